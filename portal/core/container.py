"""
Conteneur d'injection de dépendances et configuration application.

Instancie les composants centraux (settings, horloge, moteur SQL ou dépôts en mémoire) et expose
un singleton `container`. Les services métier sont fournis par des portées (`lifecycle_scope`,
`subscription_scope`, `dispatcher_scope`) qui, en mode SQL, partagent une session unique commitée
en fin de portée.
"""

from collections.abc import Iterator
from contextlib import contextmanager

import structlog

from portal.core.settings import get_settings
from portal.infra.clock import SystemClock
from portal.infra.repo.asset_repo import SqlAssetRepo
from portal.infra.repo.db import get_engine, session_scope
from portal.infra.repo.models import Base
from portal.infra.repo.subscription_repo import SqlNotificationRepo, SqlSubscriptionRepo
from portal.infra.repo.version_repo import SqlVersionRepo
from portal.infra.repositories import (
    InMemoryAssetRepo,
    InMemoryNotificationRepo,
    InMemorySubscriptionRepo,
    InMemoryVersionRepo,
)
from portal.services.lifecycle_service import LifecycleService
from portal.services.notifications import (
    NotificationDispatcher,
    PostCommitNotifier,
    SubscriberFanout,
    SubscriptionService,
)
from portal.services.sweep import LifecycleSweeper

log = structlog.get_logger(__name__)


class Container:
    def __init__(self, settings=None, clock=None):
        self.settings = settings or get_settings()
        self.clock = clock or SystemClock()
        if self.settings.DATABASE_URL:
            self.engine = get_engine(self.settings.DATABASE_URL)
            if self.settings.DATABASE_URL.startswith("sqlite"):
                # Base locale/dev: pas de migration Alembic à jouer
                Base.metadata.create_all(self.engine)
            self.storage_backend = "sql"
        else:
            self.engine = None
            self.asset_repo = InMemoryAssetRepo()
            self.version_repo = InMemoryVersionRepo()
            self.subscription_repo = InMemorySubscriptionRepo()
            self.notification_repo = InMemoryNotificationRepo()
            self.storage_backend = "memory"
        log.info("container_ready", storage_backend=self.storage_backend)

    @contextmanager
    def _stores(self) -> Iterator[tuple]:
        """Fournit (assets, versions, subscriptions, notifications, session|None)."""
        if self.engine is None:
            yield (
                self.asset_repo,
                self.version_repo,
                self.subscription_repo,
                self.notification_repo,
                None,
            )
            return
        with session_scope(self.engine) as session:
            yield (
                SqlAssetRepo(session),
                SqlVersionRepo(session),
                SqlSubscriptionRepo(session),
                SqlNotificationRepo(session),
                session,
            )

    @contextmanager
    def lifecycle_scope(self) -> Iterator[LifecycleService]:
        """Service du cycle de vie; en mode SQL toutes ses écritures partagent une transaction."""
        with self._stores() as (assets, versions, subscriptions, notifications, session):
            if session is None:
                notifier = SubscriberFanout(subscriptions, notifications, self.clock)
            else:
                notifier = PostCommitNotifier(session, queue=self.settings.NOTIFY_QUEUE)
            yield LifecycleService(
                assets,
                versions,
                self.clock,
                notifier,
                storage_key_prefix=self.settings.STORAGE_KEY_PREFIX,
            )

    @contextmanager
    def subscription_scope(self) -> Iterator[SubscriptionService]:
        with self._stores() as (assets, _versions, subscriptions, notifications, _session):
            yield SubscriptionService(assets, subscriptions, notifications, self.clock)

    @contextmanager
    def dispatcher_scope(self) -> Iterator[NotificationDispatcher]:
        """Diffusion côté worker (tâches `portal.tasks.notify_*`)."""
        with self._stores() as (assets, versions, subscriptions, notifications, _session):
            fanout = SubscriberFanout(subscriptions, notifications, self.clock)
            yield NotificationDispatcher(assets, versions, fanout)

    def sweeper(self, max_workers: int = 1) -> LifecycleSweeper:
        return LifecycleSweeper(self.lifecycle_scope, self.clock, max_workers=max_workers)


container = Container()
