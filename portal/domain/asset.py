"""
Modèles de domaine du hub de contenus (POPO).

Ce module définit les objets `Asset` et `AssetVersion` ainsi que les énumérations associées
(statuts, types de source, rôles). Les dates sont des `datetime` UTC conscients du fuseau.
"""

# ============================================================
# Module : portal/domain/asset.py
# Objet  : Asset / AssetVersion et énumérations (POPO).
# ============================================================

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from enum import Enum

from portal.domain.errors import InvalidStateError


class VersionStatus(str, Enum):
    """Statuts du cycle de vie d'une version."""

    DRAFT = "draft"
    SCHEDULED = "scheduled"
    PUBLISHED = "published"
    EXPIRED = "expired"
    ARCHIVED = "archived"


class SourceType(str, Enum):
    """Origine du contenu d'un asset."""

    UPLOAD = "UPLOAD"
    LINK = "LINK"
    GOOGLE_DRIVE = "GOOGLE_DRIVE"
    RICHTEXT = "RICHTEXT"


class AssetType(str, Enum):
    """Nature éditoriale d'un asset."""

    DECK = "deck"
    DOC = "doc"
    IMAGE = "image"
    VIDEO = "video"
    LOGO = "logo"
    WORKSHEET = "worksheet"
    LINK = "link"


class Role(str, Enum):
    """Rôles RBAC, ordonnés: Viewer < Contributor < Approver < Admin."""

    VIEWER = "Viewer"
    CONTRIBUTOR = "Contributor"
    APPROVER = "Approver"
    ADMIN = "Admin"

    @property
    def rank(self) -> int:
        """Rang hiérarchique du rôle (0 = Viewer)."""
        return _ROLE_RANKS[self]

    def at_least(self, other: Role) -> bool:
        """Vrai si ce rôle est égal ou supérieur à `other`."""
        return self.rank >= other.rank

    @classmethod
    def parse(cls, raw: str | None, default: Role | None = None) -> Role:
        """Convertit une valeur brute en rôle; valeur inconnue ou vide -> `default` (Viewer)."""
        fallback = default or cls.VIEWER
        if not raw:
            return fallback
        try:
            return cls(raw)
        except ValueError:
            return fallback


_ROLE_RANKS = {
    Role.VIEWER: 0,
    Role.CONTRIBUTOR: 1,
    Role.APPROVER: 2,
    Role.ADMIN: 3,
}


def parse_status(raw: VersionStatus | str) -> VersionStatus:
    """Valide un statut brut (str ou enum).

    Raises:
        InvalidStateError: si la valeur n'appartient pas à l'énumération.
    """
    if isinstance(raw, VersionStatus):
        return raw
    try:
        return VersionStatus(raw)
    except ValueError as err:
        raise InvalidStateError(
            f"Unknown version status {raw!r}", details={"status": str(raw)}
        ) from err


@dataclass
class Asset:
    """
    Élément de contenu logique, porteur d'une ou plusieurs versions.

    Attributs
    - asset_id: identifiant opaque et stable.
    - title / asset_type / owner_id: métadonnées exigées à la publication.
    - source_type: UPLOAD | LINK | GOOGLE_DRIVE | RICHTEXT.
    - current_published_version_id: référence faible vers la dernière version publiée.
    - scheduled_version_id: version détenant le créneau "planifiée" (au plus une par asset).
    """

    asset_id: str
    title: str
    asset_type: str
    owner_id: str
    source_type: SourceType = SourceType.UPLOAD
    description: str | None = None
    current_published_version_id: str | None = None
    scheduled_version_id: str | None = None
    created_at: datetime | None = None
    created_by: str | None = None
    updated_at: datetime | None = None
    updated_by: str | None = None


@dataclass
class AssetVersion:
    """
    Révision d'un asset avec son état de cycle de vie.

    `published_at`, `expired_at` et `archived_at` ne sont renseignés qu'une fois, lorsque la
    transition correspondante a lieu. `publish_at` n'a de sens qu'à l'état `scheduled`;
    `expire_at` peut être posé indépendamment du statut pour demander une expiration future.
    """

    version_id: str
    asset_id: str
    version_number: int
    status: VersionStatus = VersionStatus.DRAFT
    publish_at: datetime | None = None
    expire_at: datetime | None = None
    published_at: datetime | None = None
    published_by: str | None = None
    expired_at: datetime | None = None
    archived_at: datetime | None = None
    change_log: str | None = None
    storage_key: str | None = None
    mime_type: str | None = None
    size_bytes: int | None = None
    created_at: datetime | None = None
    created_by: str | None = None
    updated_at: datetime | None = None
    updated_by: str | None = None
