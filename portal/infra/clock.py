"""Horloges injectables (source de temps du cycle de vie)."""

from __future__ import annotations

from datetime import UTC, datetime


class SystemClock:
    """Horloge système, toujours en UTC."""

    def now(self) -> datetime:
        return datetime.now(UTC)


class FixedClock:
    """Horloge figée, avançable manuellement (tests, rejouage de balayage)."""

    def __init__(self, instant: datetime) -> None:
        self._instant = instant

    def now(self) -> datetime:
        return self._instant

    def set(self, instant: datetime) -> None:
        self._instant = instant
