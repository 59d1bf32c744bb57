"""Configuration de test pour pytest avec gestion des chemins.

Ce module ajoute la racine du projet au sys.path (imports `portal...`), neutralise les connexions
Redis et fournit les fixtures communes: horloge figée, dépôts en mémoire, service du cycle de vie
et client HTTP branché sur un container isolé.
"""

import os
import sys
from unittest.mock import Mock, patch

import pytest

# Ensure project root is on sys.path so that
# imports like `from portal...` resolve.
CURRENT_DIR = os.path.dirname(__file__)
PROJECT_ROOT = os.path.abspath(os.path.join(CURRENT_DIR, ".."))
if PROJECT_ROOT not in sys.path:
    sys.path.insert(0, PROJECT_ROOT)

from portal.infra.clock import FixedClock  # noqa: E402
from portal.infra.repositories import (  # noqa: E402
    InMemoryAssetRepo,
    InMemoryNotificationRepo,
    InMemorySubscriptionRepo,
    InMemoryVersionRepo,
)
from portal.services.lifecycle_service import LifecycleService  # noqa: E402
from tests.fakes import T0, RecordingNotifier  # noqa: E402


@pytest.fixture(autouse=True)
def mock_redis_connection():
    """Mock Redis connections pour éviter les erreurs de connexion dans les tests."""
    with patch("redis.Redis") as mock_redis:
        mock_redis_instance = Mock()
        mock_redis_instance.ping.return_value = True
        mock_redis_instance.get.return_value = None
        mock_redis_instance.set.return_value = True
        mock_redis_instance.delete.return_value = 1
        mock_redis.return_value = mock_redis_instance
        mock_redis.from_url.return_value = mock_redis_instance
        yield mock_redis_instance


@pytest.fixture
def clock() -> FixedClock:
    return FixedClock(T0)


@pytest.fixture
def stores():
    """Dépôts en mémoire neufs: (assets, versions, subscriptions, notifications)."""
    return (
        InMemoryAssetRepo(),
        InMemoryVersionRepo(),
        InMemorySubscriptionRepo(),
        InMemoryNotificationRepo(),
    )


@pytest.fixture
def notifier() -> RecordingNotifier:
    return RecordingNotifier()


@pytest.fixture
def service(stores, clock, notifier) -> LifecycleService:
    assets, versions, _subs, _notifs = stores
    return LifecycleService(assets, versions, clock, notifier)


@pytest.fixture
def api_container(monkeypatch, clock):
    """Container en mémoire isolé, branché dans les dépendances de l'API."""
    from portal.core.container import Container
    from portal.core.settings import Settings

    fresh = Container(settings=Settings(DATABASE_URL=None), clock=clock)
    monkeypatch.setattr("portal.api.deps.container", fresh)
    return fresh


@pytest.fixture
def client(api_container):
    from fastapi.testclient import TestClient

    from portal.app.main import app

    return TestClient(app)
