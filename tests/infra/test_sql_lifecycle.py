"""Tests de bout en bout du service en mode SQL (container + session par portée)."""

from __future__ import annotations

from unittest.mock import patch

import pytest

from portal.core.container import Container
from portal.core.settings import Settings
from portal.domain.access import Actor
from portal.domain.asset import Role, VersionStatus
from portal.domain.errors import ScheduleConflictError, ValidationError
from portal.infra.clock import FixedClock
from tests.fakes import T0

OWNER = Actor("owner_1", Role.CONTRIBUTOR)


@pytest.fixture
def sql_container():
    settings = Settings(DATABASE_URL="sqlite+pysqlite:///:memory:", NOTIFY_QUEUE="notifications")
    return Container(settings=settings, clock=FixedClock(T0))


def _create(container):
    with container.lifecycle_scope() as svc:
        asset, v1 = svc.create_asset(OWNER, title="Deck", asset_type="deck")
        v2 = svc.create_version(OWNER, asset.asset_id)
    return asset, v1, v2


def test_storage_backend_is_sql(sql_container):
    assert sql_container.storage_backend == "sql"


def test_publish_commits_pointer_and_enqueues_after_commit(sql_container):
    asset, v1, _ = _create(sql_container)
    with patch("portal.app.celery_app.celery_app.send_task") as send_task:
        with sql_container.lifecycle_scope() as svc:
            svc.publish_version(v1.version_id, "approver_1", "notes")
            # Rien n'est envoyé tant que la transaction n'est pas commitée
            send_task.assert_not_called()
    send_task.assert_called_once_with(
        "portal.tasks.notify_new_version",
        args=(asset.asset_id, v1.version_id),
        kwargs={},
        queue="notifications",
    )
    with sql_container.lifecycle_scope() as svc:
        assert svc.get_asset(asset.asset_id).current_published_version_id == v1.version_id


def test_rolled_back_transition_never_notifies(sql_container):
    asset, v1, _ = _create(sql_container)
    with patch("portal.app.celery_app.celery_app.send_task") as send_task:
        with pytest.raises(RuntimeError):
            with sql_container.lifecycle_scope() as svc:
                svc.publish_version(v1.version_id, "approver_1")
                raise RuntimeError("boom after publish")
        send_task.assert_not_called()
    with sql_container.lifecycle_scope() as svc:
        assert svc.get_version(v1.version_id).status == VersionStatus.DRAFT
        assert svc.get_asset(asset.asset_id).current_published_version_id is None


def test_second_schedule_conflicts_in_sql(sql_container):
    _asset, v1, v2 = _create(sql_container)
    with sql_container.lifecycle_scope() as svc:
        svc.schedule_version(v1.version_id, "2030-01-01T09:00:00Z")
    with pytest.raises(ScheduleConflictError):
        with sql_container.lifecycle_scope() as svc:
            svc.schedule_version(v2.version_id, "2030-01-01T10:00:00Z")


def test_validation_error_leaves_no_partial_write(sql_container):
    asset, v1, _ = _create(sql_container)
    with pytest.raises(ValidationError):
        with sql_container.lifecycle_scope() as svc:
            svc.schedule_version(v1.version_id, "2030-01-01T09:00:00")
    with sql_container.lifecycle_scope() as svc:
        assert svc.get_asset(asset.asset_id).scheduled_version_id is None


def test_sweep_in_sql_mode(sql_container):
    asset, v1, _ = _create(sql_container)
    with sql_container.lifecycle_scope() as svc:
        svc.schedule_version(v1.version_id, T0.isoformat())
    with patch("portal.app.celery_app.celery_app.send_task") as send_task:
        result = sql_container.sweeper().run()
    assert result.published == 1
    assert send_task.call_count == 1
    with sql_container.lifecycle_scope() as svc:
        assert svc.get_version(v1.version_id).status == VersionStatus.PUBLISHED
        assert svc.get_asset(asset.asset_id).scheduled_version_id is None
