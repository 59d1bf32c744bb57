"""
Repositories en mémoire pour le hub de contenus.

Ce module fournit des implémentations non persistantes des dépôts (assets, versions, abonnements,
notifications) avec la même sémantique que les dépôts SQLAlchemy de `portal.infra.repo`. Elles
servent en dev (sans DATABASE_URL) et dans les tests.
"""

import threading
from dataclasses import replace
from datetime import datetime
from typing import Any

from portal.domain.asset import Asset, AssetVersion, VersionStatus
from portal.domain.errors import ConflictError, NotFoundError
from portal.domain.ports import Notification, Subscription


class InMemoryAssetRepo:
    """
    Dépôt d'assets en mémoire.

    Les objets sont copiés à l'entrée et à la sortie: un appelant ne peut pas modifier l'état stocké
    par effet de bord.
    """

    def __init__(self):
        """Initialise une base mémoire vide."""
        self._db: dict[str, Asset] = {}
        self._lock = threading.Lock()

    def get(self, asset_id: str) -> Asset | None:
        """Retourne un asset par id, ou None s'il est absent."""
        asset = self._db.get(asset_id)
        return replace(asset) if asset else None

    def create(self, asset: Asset) -> Asset:
        """Enregistre un nouvel asset (ConflictError si l'id existe déjà)."""
        with self._lock:
            if asset.asset_id in self._db:
                raise ConflictError("Asset already exists", {"asset_id": asset.asset_id})
            self._db[asset.asset_id] = replace(asset)
        return replace(asset)

    def update(self, asset_id: str, patch: dict[str, Any]) -> Asset:
        """Applique un patch partiel et renvoie l'asset à jour."""
        with self._lock:
            current = self._db.get(asset_id)
            if current is None:
                raise NotFoundError("Asset not found", {"asset_id": asset_id})
            changes = {k: v for k, v in patch.items() if k not in ("asset_id", "created_at")}
            updated = replace(current, **changes)
            self._db[asset_id] = updated
        return replace(updated)

    def claim_schedule_slot(self, asset_id: str, version_id: str) -> bool:
        """Compare-and-set du créneau "planifiée" (libre ou déjà détenu par `version_id`)."""
        with self._lock:
            current = self._db.get(asset_id)
            if current is None:
                return False
            if current.scheduled_version_id not in (None, version_id):
                return False
            self._db[asset_id] = replace(current, scheduled_version_id=version_id)
            return True

    def release_schedule_slot(self, asset_id: str, version_id: str) -> None:
        """Libère le créneau s'il est détenu par `version_id`."""
        with self._lock:
            current = self._db.get(asset_id)
            if current is not None and current.scheduled_version_id == version_id:
                self._db[asset_id] = replace(current, scheduled_version_id=None)

    def list_assets(
        self, asset_type: str | None = None, owner_id: str | None = None, limit: int = 50
    ) -> list[Asset]:
        """Assets filtrés par type et propriétaire, ordre de création."""
        found = [
            replace(a)
            for a in self._db.values()
            if (asset_type is None or getattr(a.asset_type, "value", a.asset_type) == asset_type)
            and (owner_id is None or a.owner_id == owner_id)
        ]
        return found[:limit]


class InMemoryVersionRepo:
    """Dépôt de versions en mémoire (scan simple pour les requêtes de balayage)."""

    def __init__(self):
        """Initialise une base mémoire vide."""
        self._db: dict[str, AssetVersion] = {}
        self._lock = threading.Lock()

    def get(self, version_id: str) -> AssetVersion | None:
        version = self._db.get(version_id)
        return replace(version) if version else None

    def create(self, version: AssetVersion) -> AssetVersion:
        """Enregistre une version; (asset_id, version_number) doit être unique."""
        with self._lock:
            if version.version_id in self._db:
                raise ConflictError("Version already exists", {"version_id": version.version_id})
            for other in self._db.values():
                if (other.asset_id, other.version_number) == (
                    version.asset_id,
                    version.version_number,
                ):
                    raise ConflictError(
                        "Version number already taken",
                        {"asset_id": version.asset_id, "version_number": version.version_number},
                    )
            self._db[version.version_id] = replace(version)
        return replace(version)

    def update(self, version: AssetVersion) -> AssetVersion:
        with self._lock:
            current = self._db.get(version.version_id)
            if current is None:
                raise NotFoundError("Version not found", {"version_id": version.version_id})
            updated = replace(
                version,
                asset_id=current.asset_id,
                version_number=current.version_number,
                created_at=current.created_at,
                created_by=current.created_by,
            )
            self._db[version.version_id] = updated
        return replace(updated)

    def list_by_asset(self, asset_id: str) -> list[AssetVersion]:
        """Versions de l'asset, la plus récente d'abord."""
        items = [v for v in self._db.values() if v.asset_id == asset_id]
        return [replace(v) for v in sorted(items, key=lambda v: v.version_number, reverse=True)]

    def max_version_number(self, asset_id: str) -> int | None:
        numbers = [v.version_number for v in self._db.values() if v.asset_id == asset_id]
        return max(numbers) if numbers else None

    def get_latest_published(self, asset_id: str) -> AssetVersion | None:
        published = [
            v for v in self.list_by_asset(asset_id) if v.status == VersionStatus.PUBLISHED
        ]
        return published[0] if published else None

    def get_scheduled_to_publish(self, now: datetime) -> list[AssetVersion]:
        due = [
            v
            for v in self._db.values()
            if v.status == VersionStatus.SCHEDULED and v.publish_at and v.publish_at <= now
        ]
        return [replace(v) for v in sorted(due, key=lambda v: v.publish_at)]

    def get_published_to_expire(self, now: datetime) -> list[AssetVersion]:
        due = [
            v
            for v in self._db.values()
            if v.status == VersionStatus.PUBLISHED and v.expire_at and v.expire_at <= now
        ]
        return [replace(v) for v in sorted(due, key=lambda v: v.expire_at)]


class InMemorySubscriptionRepo:
    """Abonnements en mémoire (un seul par couple utilisateur/asset)."""

    def __init__(self):
        self._db: dict[str, Subscription] = {}

    def create(self, subscription: Subscription) -> Subscription:
        if self.find(subscription.user_id, subscription.asset_id) is not None:
            raise ConflictError(
                "Subscription already exists",
                {"user_id": subscription.user_id, "asset_id": subscription.asset_id},
            )
        self._db[subscription.subscription_id] = replace(subscription)
        return replace(subscription)

    def get(self, subscription_id: str) -> Subscription | None:
        sub = self._db.get(subscription_id)
        return replace(sub) if sub else None

    def delete(self, subscription_id: str) -> None:
        self._db.pop(subscription_id, None)

    def find(self, user_id: str, asset_id: str) -> Subscription | None:
        for sub in self._db.values():
            if sub.user_id == user_id and sub.asset_id == asset_id:
                return replace(sub)
        return None

    def list_by_user(self, user_id: str) -> list[Subscription]:
        return [replace(s) for s in self._db.values() if s.user_id == user_id]

    def list_by_asset(self, asset_id: str) -> list[Subscription]:
        return [replace(s) for s in self._db.values() if s.asset_id == asset_id]


class InMemoryNotificationRepo:
    """Notifications en mémoire, dédupliquées par `notification_id`."""

    def __init__(self):
        self._db: dict[str, Notification] = {}
        self._lock = threading.Lock()

    def create_if_absent(self, notification: Notification) -> bool:
        with self._lock:
            if notification.notification_id in self._db:
                return False
            self._db[notification.notification_id] = replace(notification)
            return True

    def list_by_user(self, user_id: str) -> list[Notification]:
        """Notifications de l'utilisateur, la plus récente d'abord."""
        items = [replace(n) for n in self._db.values() if n.user_id == user_id]
        return list(reversed(items))
