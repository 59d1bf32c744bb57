"""Abonnements aux assets et diffusion des notifications aux abonnés.

- `SubscriberFanout`: crée une notification in-app par abonné (idempotent par id déterministe).
- `PostCommitNotifier`: en mode SQL, délègue la diffusion à un worker Celery après commit.
- `NotificationDispatcher`: côté worker, recharge asset + version puis appelle le fanout.
- `SubscriptionService`: abonnement / désabonnement / lecture des notifications.
"""

from __future__ import annotations

import uuid

import structlog
from sqlalchemy.orm import Session

from portal.app.metrics import NOTIFICATIONS_TOTAL
from portal.domain.access import Actor
from portal.domain.asset import Asset, AssetVersion, VersionStatus
from portal.domain.errors import ConflictError, NotFoundError, PermissionDeniedError
from portal.domain.ports import (
    AssetStore,
    Clock,
    Notification,
    NotificationStore,
    Subscription,
    SubscriptionStore,
    VersionStore,
)
from portal.infra.ops.post_commit import enqueue_task_after_commit

log = structlog.get_logger(__name__)

KIND_NEW_VERSION = "new_version"
KIND_EXPIRED = "expired"

NOTIFY_NEW_VERSION_TASK = "portal.tasks.notify_new_version"
NOTIFY_EXPIRED_TASK = "portal.tasks.notify_expired"


def notification_id(kind: str, version_id: str, user_id: str) -> str:
    """Identifiant déterministe: une seule notification par (type, version, utilisateur)."""
    return f"{kind}:{version_id}:{user_id}"


class SubscriberFanout:
    """Notifier synchrone: écrit les notifications des abonnés de l'asset."""

    def __init__(
        self, subscriptions: SubscriptionStore, notifications: NotificationStore, clock: Clock
    ):
        self.subscriptions = subscriptions
        self.notifications = notifications
        self.clock = clock

    def notify_new_version(self, asset: Asset, version: AssetVersion) -> int:
        """Notifie les abonnés `notify_new_version`; renvoie le nombre de créations."""
        return self._fan_out(
            KIND_NEW_VERSION,
            asset,
            version,
            title="New version published",
            message=f'"{asset.title}" v{version.version_number} has been published.',
        )

    def notify_expired(self, asset: Asset, version: AssetVersion) -> int:
        """Notifie les abonnés `notify_expired`; renvoie le nombre de notifications créées."""
        return self._fan_out(
            KIND_EXPIRED,
            asset,
            version,
            title="Content expired",
            message=f'"{asset.title}" v{version.version_number} has expired.',
        )

    def _fan_out(
        self, kind: str, asset: Asset, version: AssetVersion, title: str, message: str
    ) -> int:
        created = 0
        for sub in self.subscriptions.list_by_asset(asset.asset_id):
            wants = sub.notify_new_version if kind == KIND_NEW_VERSION else sub.notify_expired
            if not wants:
                continue
            notif = Notification(
                notification_id=notification_id(kind, version.version_id, sub.user_id),
                user_id=sub.user_id,
                kind=kind,
                title=title,
                message=message,
                asset_id=asset.asset_id,
                version_id=version.version_id,
                created_at=self.clock.now(),
                extra={"version_number": version.version_number},
            )
            # Un abonné en échec n'empêche pas les suivants
            try:
                inserted = self.notifications.create_if_absent(notif)
            except Exception as exc:
                NOTIFICATIONS_TOTAL.labels(kind=kind, result="failed").inc()
                log.warning(
                    "subscriber_notification_failed",
                    kind=kind,
                    user_id=sub.user_id,
                    version_id=version.version_id,
                    error=type(exc).__name__,
                )
                continue
            if inserted:
                created += 1
                NOTIFICATIONS_TOTAL.labels(kind=kind, result="created").inc()
            else:
                NOTIFICATIONS_TOTAL.labels(kind=kind, result="duplicate").inc()
        log.info(
            "subscribers_notified",
            kind=kind,
            asset_id=asset.asset_id,
            version_id=version.version_id,
            created=created,
        )
        return created


class PostCommitNotifier:
    """Notifier asynchrone: enfile la tâche Celery une fois la transaction commitée."""

    def __init__(self, session: Session, queue: str | None = None):
        self.session = session
        self.queue = queue

    def notify_new_version(self, asset: Asset, version: AssetVersion) -> None:
        enqueue_task_after_commit(
            self.session,
            NOTIFY_NEW_VERSION_TASK,
            asset.asset_id,
            version.version_id,
            queue=self.queue,
        )

    def notify_expired(self, asset: Asset, version: AssetVersion) -> None:
        enqueue_task_after_commit(
            self.session, NOTIFY_EXPIRED_TASK, asset.asset_id, version.version_id, queue=self.queue
        )


class NotificationDispatcher:
    """Diffusion côté worker à partir des identifiants transmis par la tâche."""

    _EXPECTED_STATUS = {
        KIND_NEW_VERSION: VersionStatus.PUBLISHED,
        KIND_EXPIRED: VersionStatus.EXPIRED,
    }

    def __init__(self, assets: AssetStore, versions: VersionStore, fanout: SubscriberFanout):
        self.assets = assets
        self.versions = versions
        self.fanout = fanout

    def dispatch(self, kind: str, asset_id: str, version_id: str) -> int:
        """Recharge l'état courant et notifie; 0 si la version a changé de statut entre-temps."""
        asset = self.assets.get(asset_id)
        version = self.versions.get(version_id)
        if asset is None or version is None:
            log.warning("notification_target_missing", kind=kind, version_id=version_id)
            return 0
        if version.status != self._EXPECTED_STATUS[kind]:
            log.info(
                "notification_skipped_status_changed",
                kind=kind,
                version_id=version_id,
                status=str(getattr(version.status, "value", version.status)),
            )
            return 0
        if kind == KIND_NEW_VERSION:
            return self.fanout.notify_new_version(asset, version)
        return self.fanout.notify_expired(asset, version)


class SubscriptionService:
    """Gestion des abonnements d'un utilisateur et lecture de ses notifications."""

    def __init__(
        self,
        assets: AssetStore,
        subscriptions: SubscriptionStore,
        notifications: NotificationStore,
        clock: Clock,
    ):
        self.assets = assets
        self.subscriptions = subscriptions
        self.notifications = notifications
        self.clock = clock

    def subscribe(
        self,
        actor: Actor,
        asset_id: str,
        notify_new_version: bool = True,
        notify_expired: bool = True,
    ) -> Subscription:
        """Abonne l'acteur à l'asset; renvoie l'abonnement existant s'il y en a déjà un."""
        if self.assets.get(asset_id) is None:
            raise NotFoundError("Asset not found", {"asset_id": asset_id})
        existing = self.subscriptions.find(actor.user_id, asset_id)
        if existing is not None:
            return existing
        sub = Subscription(
            subscription_id=f"sub_{uuid.uuid4().hex}",
            user_id=actor.user_id,
            asset_id=asset_id,
            notify_new_version=notify_new_version,
            notify_expired=notify_expired,
            created_at=self.clock.now(),
        )
        try:
            created = self.subscriptions.create(sub)
        except ConflictError:
            # Abonnement concurrent créé entre la lecture et l'insert
            return self.subscriptions.find(actor.user_id, asset_id)
        log.info("subscription_created", user_id=actor.user_id, asset_id=asset_id)
        return created

    def unsubscribe(self, actor: Actor, subscription_id: str) -> None:
        """Supprime un abonnement appartenant à l'acteur."""
        sub = self.subscriptions.get(subscription_id)
        if sub is None:
            raise NotFoundError("Subscription not found", {"subscription_id": subscription_id})
        if sub.user_id != actor.user_id:
            raise PermissionDeniedError(
                "Cannot delete another user's subscription",
                {"subscription_id": subscription_id},
            )
        self.subscriptions.delete(subscription_id)
        log.info("subscription_deleted", user_id=actor.user_id, asset_id=sub.asset_id)

    def find_subscription(self, actor: Actor, asset_id: str) -> Subscription | None:
        return self.subscriptions.find(actor.user_id, asset_id)

    def list_subscriptions(self, actor: Actor) -> list[Subscription]:
        return self.subscriptions.list_by_user(actor.user_id)

    def list_notifications(self, actor: Actor) -> list[Notification]:
        return self.notifications.list_by_user(actor.user_id)
