# ============================================================
# Module : portal/infra/repo/subscription_repo.py
# Objet  : Accès SQL pour abonnements et notifications.
# ============================================================

from __future__ import annotations

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from ...domain.errors import ConflictError
from ...domain.ports import Notification, Subscription
from .models import NotificationORM, SubscriptionORM


def _subscription(row: SubscriptionORM) -> Subscription:
    return Subscription(
        subscription_id=row.subscription_id,
        user_id=row.user_id,
        asset_id=row.asset_id,
        notify_new_version=bool(row.notify_new_version),
        notify_expired=bool(row.notify_expired),
        created_at=row.created_at,
    )


def _notification(row: NotificationORM) -> Notification:
    return Notification(
        notification_id=row.notification_id,
        user_id=row.user_id,
        kind=row.kind,
        title=row.title,
        message=row.message,
        asset_id=row.asset_id,
        version_id=row.version_id,
        created_at=row.created_at,
        extra=row.extra or {},
    )


class SqlSubscriptionRepo:
    """Abonnements utilisateur -> asset (un seul par couple)."""

    def __init__(self, session: Session) -> None:
        """Construit le repo avec une session (SQLAlchemy)."""
        self._session = session

    def create(self, subscription: Subscription) -> Subscription:
        """Crée un abonnement. Lève ConflictError si le couple existe déjà."""
        row = SubscriptionORM(
            subscription_id=subscription.subscription_id,
            user_id=subscription.user_id,
            asset_id=subscription.asset_id,
            notify_new_version=subscription.notify_new_version,
            notify_expired=subscription.notify_expired,
        )
        if subscription.created_at is not None:
            row.created_at = subscription.created_at
        try:
            with self._session.begin_nested():
                self._session.add(row)
        except IntegrityError as exc:
            raise ConflictError(
                "Subscription already exists",
                {"user_id": subscription.user_id, "asset_id": subscription.asset_id},
            ) from exc
        return _subscription(row)

    def get(self, subscription_id: str) -> Subscription | None:
        row = self._session.get(SubscriptionORM, subscription_id)
        return _subscription(row) if row else None

    def delete(self, subscription_id: str) -> None:
        row = self._session.get(SubscriptionORM, subscription_id)
        if row is not None:
            self._session.delete(row)
            self._session.flush()

    def find(self, user_id: str, asset_id: str) -> Subscription | None:
        stmt = select(SubscriptionORM).where(
            SubscriptionORM.user_id == user_id, SubscriptionORM.asset_id == asset_id
        )
        row = self._session.execute(stmt).scalars().first()
        return _subscription(row) if row else None

    def list_by_user(self, user_id: str) -> list[Subscription]:
        stmt = (
            select(SubscriptionORM)
            .where(SubscriptionORM.user_id == user_id)
            .order_by(SubscriptionORM.created_at)
        )
        return [_subscription(r) for r in self._session.execute(stmt).scalars().all()]

    def list_by_asset(self, asset_id: str) -> list[Subscription]:
        stmt = (
            select(SubscriptionORM)
            .where(SubscriptionORM.asset_id == asset_id)
            .order_by(SubscriptionORM.created_at)
        )
        return [_subscription(r) for r in self._session.execute(stmt).scalars().all()]


class SqlNotificationRepo:
    """Notifications in-app, dédupliquées par identifiant déterministe."""

    def __init__(self, session: Session) -> None:
        """Construit le repo avec une session (SQLAlchemy)."""
        self._session = session

    def create_if_absent(self, notification: Notification) -> bool:
        """Insère la notification si son identifiant est inconnu; renvoie True si insérée.

        L'insert passe par un savepoint: un échec n'annule que cette ligne, les notifications
        déjà écrites dans la session restent commitables.
        """
        if self._session.get(NotificationORM, notification.notification_id) is not None:
            return False
        row = NotificationORM(
            notification_id=notification.notification_id,
            user_id=notification.user_id,
            kind=notification.kind,
            title=notification.title,
            message=notification.message,
            asset_id=notification.asset_id,
            version_id=notification.version_id,
            extra=notification.extra or {},
        )
        if notification.created_at is not None:
            row.created_at = notification.created_at
        with self._session.begin_nested():
            self._session.add(row)
        return True

    def list_by_user(self, user_id: str) -> list[Notification]:
        stmt = (
            select(NotificationORM)
            .where(NotificationORM.user_id == user_id)
            .order_by(NotificationORM.created_at.desc())
        )
        return [_notification(r) for r in self._session.execute(stmt).scalars().all()]
