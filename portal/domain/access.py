"""
Contrôle d'accès RBAC pour les versions d'assets.

Ce module fournit le prédicat `can_download` (décision d'émission d'une URL de téléchargement) et
les vérifications de rôle utilisées par les routes. Le prédicat ne lève jamais: il renvoie une
décision étiquetée que l'appelant traduit en HTTP 403.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum

from portal.domain.asset import Asset, AssetVersion, Role, VersionStatus, parse_status
from portal.domain.errors import InvalidStateError, PermissionDeniedError


class ForbiddenReason(str, Enum):
    """Motifs de refus d'accès exposés dans les réponses 403."""

    DRAFT_OWNER_OR_ADMIN_ONLY = "draft_owner_or_admin_only"
    EXPIRED_ADMIN_ONLY = "expired_admin_only"
    NOT_PUBLISHED = "not_published"
    INVALID_STATE = "invalid_state"

    @property
    def message(self) -> str:
        """Message lisible associé au motif."""
        return _REASON_MESSAGES[self]


_REASON_MESSAGES = {
    ForbiddenReason.DRAFT_OWNER_OR_ADMIN_ONLY: (
        "Only asset owner or Admin can download draft versions"
    ),
    ForbiddenReason.EXPIRED_ADMIN_ONLY: "Expired versions can only be downloaded by Admin",
    ForbiddenReason.NOT_PUBLISHED: "Only published versions can be downloaded",
    ForbiddenReason.INVALID_STATE: "Version status is not recognized",
}


@dataclass(frozen=True)
class AccessDecision:
    """Décision d'accès: `allowed` et, en cas de refus, le motif."""

    allowed: bool
    reason: ForbiddenReason | None = None

    @classmethod
    def allow(cls) -> AccessDecision:
        return cls(allowed=True)

    @classmethod
    def deny(cls, reason: ForbiddenReason) -> AccessDecision:
        return cls(allowed=False, reason=reason)


@dataclass(frozen=True)
class Actor:
    """Identité de l'appelant telle que transmise par la couche HTTP."""

    user_id: str
    role: Role = Role.VIEWER


def can_download(
    version: AssetVersion, asset: Asset, actor_role: Role | str, actor_id: str | None
) -> AccessDecision:
    """Décide si l'acteur peut télécharger la version.

    - draft: propriétaire de l'asset ou Admin.
    - expired: Admin uniquement.
    - published: Viewer et au-delà.
    - scheduled / archived: tout rôle au-dessus de Viewer.
    """
    role = actor_role if isinstance(actor_role, Role) else Role.parse(actor_role)
    try:
        status = parse_status(version.status)
    except InvalidStateError:
        return AccessDecision.deny(ForbiddenReason.INVALID_STATE)

    if status is VersionStatus.DRAFT:
        is_owner = actor_id is not None and actor_id == asset.owner_id
        if is_owner or role is Role.ADMIN:
            return AccessDecision.allow()
        return AccessDecision.deny(ForbiddenReason.DRAFT_OWNER_OR_ADMIN_ONLY)
    if status is VersionStatus.EXPIRED:
        if role is Role.ADMIN:
            return AccessDecision.allow()
        return AccessDecision.deny(ForbiddenReason.EXPIRED_ADMIN_ONLY)
    if status is VersionStatus.PUBLISHED:
        return AccessDecision.allow()
    # scheduled / archived
    if role is Role.VIEWER:
        return AccessDecision.deny(ForbiddenReason.NOT_PUBLISHED)
    return AccessDecision.allow()


def require_role(actor: Actor, min_role: Role) -> None:
    """Vérifie que l'acteur possède au moins `min_role`.

    Raises:
        PermissionDeniedError: rôle insuffisant.
    """
    if not actor.role.at_least(min_role):
        raise PermissionDeniedError(
            f"Requires {min_role.value} role or higher",
            {"required_role": min_role.value, "role": actor.role.value},
        )


def can_create_version(actor: Actor, asset: Asset) -> bool:
    """Le propriétaire ou un Contributor+ peut déposer une nouvelle version."""
    return actor.user_id == asset.owner_id or actor.role.at_least(Role.CONTRIBUTOR)
