"""Dépendances partagées pour les routes de l'API.

But du module
-------------
- Identifier l'acteur à partir des en-têtes `X-User-Id` / `X-User-Role` (stub RBAC de dev:
  l'authentification elle-même est hors périmètre).
- Fournir les services métier via les portées du container (une transaction par requête en
  mode SQL).
- Exposer `require_min_role(role)` pour protéger les transitions.
"""

from collections.abc import Iterator

from fastapi import Depends, Header

from portal.core.container import container
from portal.domain.access import Actor, require_role
from portal.domain.asset import Role
from portal.domain.errors import PermissionDeniedError
from portal.services.lifecycle_service import LifecycleService
from portal.services.notifications import SubscriptionService


def get_actor(
    x_user_id: str | None = Header(default=None),
    x_user_role: str | None = Header(default=None),
) -> Actor:
    """Construit l'acteur courant; rôle absent ou inconnu -> rôle par défaut (Viewer)."""
    if not x_user_id:
        raise PermissionDeniedError("Missing X-User-Id header", {"header": "X-User-Id"})
    default_role = Role.parse(container.settings.DEFAULT_ACTOR_ROLE)
    return Actor(user_id=x_user_id, role=Role.parse(x_user_role, default=default_role))


actor_dep = Depends(get_actor)


def require_min_role(min_role: Role):
    """Fabrique une dépendance vérifiant que l'acteur possède au moins `min_role`."""

    def _dependency(actor: Actor = actor_dep) -> Actor:
        require_role(actor, min_role)
        return actor

    return _dependency


def get_lifecycle_service() -> Iterator[LifecycleService]:
    with container.lifecycle_scope() as service:
        yield service


def get_subscription_service() -> Iterator[SubscriptionService]:
    with container.subscription_scope() as service:
        yield service
