"""Balayage périodique: publication des versions planifiées et expiration automatique.

Chaque version due est traitée dans sa propre portée transactionnelle (`service_scope`): l'échec
d'une version est journalisé et compté sans interrompre le reste du passage. Avant d'agir, la
version est relue; si son statut ou son échéance a changé depuis la sélection, elle est ignorée.
"""

from __future__ import annotations

import threading
from collections.abc import Callable
from concurrent.futures import ThreadPoolExecutor
from contextlib import AbstractContextManager
from dataclasses import asdict, dataclass, field
from datetime import datetime

import structlog

from portal.app.metrics import SWEEP_RUNS, SWEEP_VERSIONS
from portal.domain.asset import VersionStatus
from portal.domain.errors import IllegalTransitionError
from portal.domain.ports import Clock
from portal.services.lifecycle_service import SYSTEM_ACTOR, LifecycleService

log = structlog.get_logger(__name__)

ServiceScope = Callable[[], AbstractContextManager[LifecycleService]]


@dataclass
class SweepResult:
    """Bilan d'un passage de balayage."""

    scanned: int = 0
    published: int = 0
    expired: int = 0
    skipped: int = 0
    errors: int = 0
    error_details: list[dict[str, str]] = field(default_factory=list)

    def to_dict(self) -> dict:
        return asdict(self)


class _Skip(Exception):
    pass


class LifecycleSweeper:
    """Un passage: publie les planifiées échues puis expire les publiées échues."""

    def __init__(self, service_scope: ServiceScope, clock: Clock, max_workers: int = 1):
        self.service_scope = service_scope
        self.clock = clock
        self.max_workers = max(1, int(max_workers))
        self._lock = threading.Lock()

    def run(self, now: datetime | None = None) -> SweepResult:
        now = now or self.clock.now()
        result = SweepResult()
        with self.service_scope() as svc:
            to_publish = [v.version_id for v in svc.versions.get_scheduled_to_publish(now)]
            to_expire = [v.version_id for v in svc.versions.get_published_to_expire(now)]
        result.scanned = len(to_publish) + len(to_expire)

        # Listes figées avant traitement: une version publiée ici n'expire qu'au passage suivant
        self._run_batch("publish", to_publish, now, result)
        self._run_batch("expire", to_expire, now, result)

        SWEEP_RUNS.labels(result="errors" if result.errors else "ok").inc()
        log.info(
            "sweep_completed",
            scanned=result.scanned,
            published=result.published,
            expired=result.expired,
            skipped=result.skipped,
            errors=result.errors,
        )
        return result

    def _run_batch(self, action: str, ids: list[str], now: datetime, result: SweepResult) -> None:
        if not ids:
            return
        if self.max_workers == 1:
            for version_id in ids:
                self._process(action, version_id, now, result)
            return
        with ThreadPoolExecutor(max_workers=self.max_workers) as pool:
            list(pool.map(lambda vid: self._process(action, vid, now, result), ids))

    def _process(self, action: str, version_id: str, now: datetime, result: SweepResult) -> None:
        try:
            with self.service_scope() as svc:
                if action == "publish":
                    self._publish_due(svc, version_id, now)
                else:
                    self._expire_due(svc, version_id, now)
        except (_Skip, IllegalTransitionError):
            self._record(result, action, "skipped")
            log.info("sweep_version_skipped", action=action, version_id=version_id)
        except Exception as exc:
            self._record(
                result,
                action,
                "error",
                {"version_id": version_id, "action": action, "error": str(exc)},
            )
            log.warning(
                "sweep_version_failed",
                action=action,
                version_id=version_id,
                error=type(exc).__name__,
            )
        else:
            self._record(result, action, "ok")

    @staticmethod
    def _publish_due(svc: LifecycleService, version_id: str, now: datetime) -> None:
        version = svc.versions.get(version_id)
        if (
            version is None
            or version.status != VersionStatus.SCHEDULED
            or version.publish_at is None
            or version.publish_at > now
        ):
            raise _Skip()
        svc.publish_version(version_id, SYSTEM_ACTOR, version.change_log, now=now)

    @staticmethod
    def _expire_due(svc: LifecycleService, version_id: str, now: datetime) -> None:
        version = svc.versions.get(version_id)
        if (
            version is None
            or version.status != VersionStatus.PUBLISHED
            or version.expire_at is None
            or version.expire_at > now
        ):
            raise _Skip()
        svc.expire_version(version_id, actor_id=SYSTEM_ACTOR, now=now)

    def _record(
        self, result: SweepResult, action: str, outcome: str, detail: dict | None = None
    ) -> None:
        SWEEP_VERSIONS.labels(action=action, outcome=outcome).inc()
        with self._lock:
            if outcome == "ok":
                if action == "publish":
                    result.published += 1
                else:
                    result.expired += 1
            elif outcome == "skipped":
                result.skipped += 1
            else:
                result.errors += 1
                if detail:
                    result.error_details.append(detail)
