"""
Machine à états du cycle de vie des versions d'assets (fonctions pures).

Objectif du module
------------------
- Décrire les transitions `publish`, `schedule`, `expire` et `archive` d'une `AssetVersion`.
- Ne jamais toucher au stockage: chaque fonction reçoit l'état courant, l'acteur et l'instant
  explicitement, et renvoie un nouvel objet (l'entrée n'est pas modifiée).

Contrats laissés à l'appelant
-----------------------------
- Avant `publish`: `ensure_publishable(asset)` (titre, type et propriétaire requis).
- Avant `schedule`: garantir qu'aucune autre version de l'asset n'est planifiée (créneau atomique
  `AssetStore.claim_schedule_slot`).
- Après `publish`: appliquer le patch d'asset, puis notifier les abonnés sans jamais faire échouer
  la publication.
- Après `expire`: recalculer `current_published_version_id` si l'asset pointait sur cette version.

Transitions autorisées
----------------------
    draft ──► scheduled ──► published ──► expired
      │          │  ▲           │
      │          └──┘           │
      └──────────► published    └──► archived (depuis tout statut sauf archived)
"""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass, replace
from datetime import UTC, datetime
from typing import Any

from portal.domain.asset import Asset, AssetVersion, VersionStatus, parse_status
from portal.domain.errors import IllegalTransitionError, ValidationError

PUBLISHABLE_FROM = frozenset({VersionStatus.DRAFT, VersionStatus.SCHEDULED})
SCHEDULABLE_FROM = frozenset({VersionStatus.DRAFT, VersionStatus.SCHEDULED})
EXPIRABLE_FROM = frozenset({VersionStatus.PUBLISHED})
ARCHIVABLE_FROM = frozenset(set(VersionStatus) - {VersionStatus.ARCHIVED})

REQUIRED_PUBLISH_FIELDS = ("title", "asset_type", "owner_id")


@dataclass
class TransitionResult:
    """Résultat d'une publication: version mise à jour + patch à appliquer à l'asset."""

    version: AssetVersion
    asset_patch: dict[str, Any]


def parse_iso_datetime(value: str | datetime, field: str = "datetime") -> datetime:
    """Parse une date ISO-8601 et la normalise en UTC.

    Les valeurs sans fuseau sont refusées: une planification ambiguë ne doit pas dépendre du fuseau
    du serveur.

    Raises:
        ValidationError: format invalide ou fuseau absent.
    """
    if isinstance(value, datetime):
        parsed = value
    else:
        if not isinstance(value, str) or not value.strip():
            raise ValidationError(f"Invalid {field}: expected ISO-8601 string", {"field": field})
        try:
            parsed = datetime.fromisoformat(value.strip())
        except ValueError as err:
            raise ValidationError(
                f"Invalid {field}: {value!r} is not an ISO-8601 datetime", {"field": field}
            ) from err
    if parsed.tzinfo is None:
        raise ValidationError(f"Invalid {field}: timezone offset required", {"field": field})
    return parsed.astimezone(UTC)


def _require(version: AssetVersion, allowed: frozenset[VersionStatus], transition: str) -> None:
    status = parse_status(version.status)
    if status not in allowed:
        raise IllegalTransitionError(transition, status.value)


def _present(value: Any) -> bool:
    # Chaîne blanche = champ absent
    return bool(str(getattr(value, "value", value) or "").strip())


def ensure_publishable(asset: Asset) -> None:
    """Vérifie les métadonnées obligatoires de l'asset avant publication.

    Raises:
        ValidationError: si `title`, `asset_type` ou `owner_id` est vide ou blanc.
    """
    missing = [f for f in REQUIRED_PUBLISH_FIELDS if not _present(getattr(asset, f, None))]
    if missing:
        raise ValidationError(
            "Required metadata missing: title, asset_type, and owner_id are required to publish.",
            {"missing": missing},
        )


def publish(
    version: AssetVersion, actor_id: str, change_log: str | None, now: datetime
) -> TransitionResult:
    """Publie une version `draft` ou `scheduled`.

    Efface `publish_at`, horodate `published_at`/`updated_at` à `now` et renvoie le patch
    `current_published_version_id` à appliquer à l'asset parent.

    Raises:
        IllegalTransitionError: depuis `published`, `expired` ou `archived`.
        InvalidStateError: statut inconnu.
    """
    _require(version, PUBLISHABLE_FROM, "publish")
    published = replace(
        version,
        status=VersionStatus.PUBLISHED,
        published_at=now,
        published_by=actor_id,
        change_log=change_log or "",
        publish_at=None,
        updated_at=now,
        updated_by=actor_id,
    )
    asset_patch = {
        "current_published_version_id": version.version_id,
        "updated_at": now,
        "updated_by": actor_id,
    }
    return TransitionResult(version=published, asset_patch=asset_patch)


def schedule(
    version: AssetVersion, publish_at_iso: str | datetime, now: datetime | None = None
) -> AssetVersion:
    """Planifie (ou replanifie) la publication d'une version.

    Une date passée est acceptée: le prochain passage du balayage publiera la version.

    Raises:
        ValidationError: `publish_at_iso` n'est pas une date ISO-8601 avec fuseau.
        IllegalTransitionError: depuis `published`, `expired` ou `archived`.
    """
    _require(version, SCHEDULABLE_FROM, "schedule")
    publish_at = parse_iso_datetime(publish_at_iso, field="publish_at")
    changes: dict[str, Any] = {"status": VersionStatus.SCHEDULED, "publish_at": publish_at}
    if now is not None:
        changes["updated_at"] = now
    return replace(version, **changes)


def expire(version: AssetVersion, now: datetime) -> AssetVersion:
    """Expire une version publiée.

    Raises:
        IllegalTransitionError: si la version n'est pas `published`.
    """
    _require(version, EXPIRABLE_FROM, "expire")
    return replace(version, status=VersionStatus.EXPIRED, expired_at=now, updated_at=now)


def archive(version: AssetVersion, now: datetime) -> AssetVersion:
    """Archive une version (tout statut sauf `archived`).

    Raises:
        IllegalTransitionError: si la version est déjà archivée.
    """
    _require(version, ARCHIVABLE_FROM, "archive")
    return replace(version, status=VersionStatus.ARCHIVED, archived_at=now, updated_at=now)


def next_version_number(existing: Iterable[int]) -> int:
    """Numéro de la prochaine version: max(existants) + 1, ou 1 pour la première."""
    numbers = [int(n) for n in existing]
    return max(numbers) + 1 if numbers else 1


__all__ = [
    "TransitionResult",
    "archive",
    "ensure_publishable",
    "expire",
    "next_version_number",
    "parse_iso_datetime",
    "publish",
    "schedule",
]
