"""
Interfaces des collaborateurs du cycle de vie (stockage, horloge, notifications).

Les implémentations concrètes vivent dans `portal.infra` (SQLAlchemy ou mémoire) et sont injectées
par constructeur dans `LifecycleService`.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Protocol

from portal.domain.asset import Asset, AssetVersion


@dataclass
class Subscription:
    """Abonnement d'un utilisateur aux évènements d'un asset."""

    subscription_id: str
    user_id: str
    asset_id: str
    notify_new_version: bool = True
    notify_expired: bool = True
    created_at: datetime | None = None


@dataclass
class Notification:
    """Notification in-app destinée à un utilisateur.

    `notification_id` est déterministe (`{kind}:{version_id}:{user_id}`) pour dédupliquer.
    """

    notification_id: str
    user_id: str
    kind: str
    title: str
    message: str
    asset_id: str
    version_id: str
    created_at: datetime | None = None
    extra: dict[str, Any] = field(default_factory=dict)


class Clock(Protocol):
    def now(self) -> datetime: ...


class AssetStore(Protocol):
    def get(self, asset_id: str) -> Asset | None: ...

    def create(self, asset: Asset) -> Asset: ...

    def update(self, asset_id: str, patch: dict[str, Any]) -> Asset: ...

    def claim_schedule_slot(self, asset_id: str, version_id: str) -> bool: ...

    def release_schedule_slot(self, asset_id: str, version_id: str) -> None: ...

    def list_assets(
        self, asset_type: str | None = None, owner_id: str | None = None, limit: int = 50
    ) -> list[Asset]: ...


class VersionStore(Protocol):
    def get(self, version_id: str) -> AssetVersion | None: ...

    def create(self, version: AssetVersion) -> AssetVersion: ...

    def update(self, version: AssetVersion) -> AssetVersion: ...

    def list_by_asset(self, asset_id: str) -> list[AssetVersion]: ...

    def max_version_number(self, asset_id: str) -> int | None: ...

    def get_latest_published(self, asset_id: str) -> AssetVersion | None: ...

    def get_scheduled_to_publish(self, now: datetime) -> list[AssetVersion]: ...

    def get_published_to_expire(self, now: datetime) -> list[AssetVersion]: ...


class SubscriptionStore(Protocol):
    def create(self, subscription: Subscription) -> Subscription: ...

    def get(self, subscription_id: str) -> Subscription | None: ...

    def delete(self, subscription_id: str) -> None: ...

    def find(self, user_id: str, asset_id: str) -> Subscription | None: ...

    def list_by_user(self, user_id: str) -> list[Subscription]: ...

    def list_by_asset(self, asset_id: str) -> list[Subscription]: ...


class NotificationStore(Protocol):
    def create_if_absent(self, notification: Notification) -> bool: ...

    def list_by_user(self, user_id: str) -> list[Notification]: ...


class Notifier(Protocol):
    """Diffusion best-effort aux abonnés; les erreurs ne doivent pas remonter."""

    def notify_new_version(self, asset: Asset, version: AssetVersion) -> None: ...

    def notify_expired(self, asset: Asset, version: AssetVersion) -> None: ...
