"""Tests du balayage périodique (publication planifiée, expiration automatique)."""

from __future__ import annotations

from contextlib import contextmanager
from datetime import timedelta

from portal.domain.access import Actor
from portal.domain.asset import Role, VersionStatus
from portal.services.sweep import LifecycleSweeper
from tests.fakes import T0

OWNER = Actor("owner_1", Role.CONTRIBUTOR)


def _sweeper(service, clock, max_workers: int = 1) -> LifecycleSweeper:
    @contextmanager
    def scope():
        yield service

    return LifecycleSweeper(scope, clock, max_workers=max_workers)


def test_scheduled_version_published_when_due(service, clock, notifier):
    """Scénario: v2 planifiée à T, balayage à T+1min -> publiée, pointeur à jour, un seul envoi."""
    asset, _v1 = service.create_asset(OWNER, title="Pricing", asset_type="doc")
    v2 = service.create_version(OWNER, asset.asset_id)
    due = T0 + timedelta(hours=1)
    service.schedule_version(v2.version_id, due.isoformat())

    sweeper = _sweeper(service, clock)
    early = sweeper.run(now=due - timedelta(minutes=1))
    assert early.scanned == 0
    assert service.get_version(v2.version_id).status == VersionStatus.SCHEDULED

    result = sweeper.run(now=due + timedelta(minutes=1))
    assert (result.scanned, result.published, result.errors) == (1, 1, 0)
    version = service.get_version(v2.version_id)
    assert version.status == VersionStatus.PUBLISHED
    assert version.published_by == "system"
    assert service.get_asset(asset.asset_id).current_published_version_id == v2.version_id
    assert notifier.calls == [("new_version", asset.asset_id, v2.version_id)]

    # Second passage: rien à reprendre, aucune notification en double
    again = sweeper.run(now=due + timedelta(minutes=2))
    assert again.scanned == 0
    assert len(notifier.calls) == 1


def test_published_version_expires_when_expire_at_reached(service, clock, notifier):
    asset, v1 = service.create_asset(OWNER, title="Pricing", asset_type="doc")
    service.publish_version(v1.version_id, "approver_1")
    service.set_expire_at(v1.version_id, (T0 + timedelta(days=1)).isoformat())

    result = _sweeper(service, clock).run(now=T0 + timedelta(days=1, seconds=1))
    assert result.expired == 1
    assert service.get_version(v1.version_id).status == VersionStatus.EXPIRED
    assert service.get_asset(asset.asset_id).current_published_version_id is None
    assert notifier.calls[-1] == ("expired", asset.asset_id, v1.version_id)


def test_expire_at_on_draft_is_not_swept(service, clock):
    _, v1 = service.create_asset(OWNER, title="Pricing", asset_type="doc")
    service.set_expire_at(v1.version_id, T0.isoformat())
    result = _sweeper(service, clock).run(now=T0 + timedelta(days=1))
    assert result.scanned == 0
    assert service.get_version(v1.version_id).status == VersionStatus.DRAFT


def test_version_moved_between_selection_and_action_is_skipped(service, clock, notifier):
    asset, v1 = service.create_asset(OWNER, title="Pricing", asset_type="doc")
    service.schedule_version(v1.version_id, T0.isoformat())

    sweeper = _sweeper(service, clock)
    # Publication manuelle concurrente juste après la sélection
    original_publish_due = sweeper._publish_due

    def publish_then_race(svc, version_id, now):
        svc.publish_version(version_id, "approver_1")
        original_publish_due(svc, version_id, now)

    sweeper._publish_due = publish_then_race
    result = sweeper.run(now=T0 + timedelta(minutes=5))
    assert (result.published, result.skipped, result.errors) == (0, 1, 0)
    assert len(notifier.calls) == 1


def test_failure_on_one_version_does_not_stop_the_pass(service, clock, stores):
    assets, _versions, _subs, _notifs = stores
    broken, b1 = service.create_asset(OWNER, title="Broken", asset_type="doc")
    ok, o1 = service.create_asset(OWNER, title="Fine", asset_type="doc")
    service.schedule_version(b1.version_id, T0.isoformat())
    service.schedule_version(o1.version_id, T0.isoformat())
    # Métadonnées retirées après planification: la publication échouera
    assets.update(broken.asset_id, {"title": ""})

    result = _sweeper(service, clock).run(now=T0 + timedelta(minutes=1))
    assert (result.scanned, result.published, result.errors) == (2, 1, 1)
    assert result.error_details[0]["version_id"] == b1.version_id
    assert service.get_version(o1.version_id).status == VersionStatus.PUBLISHED
    assert service.get_version(b1.version_id).status == VersionStatus.SCHEDULED


def test_parallel_sweep_counts_every_version(service, clock):
    ids = []
    for n in range(6):
        _, version = service.create_asset(OWNER, title=f"Asset {n}", asset_type="doc")
        service.schedule_version(version.version_id, T0.isoformat())
        ids.append(version.version_id)

    result = _sweeper(service, clock, max_workers=3).run(now=T0 + timedelta(minutes=1))
    assert result.published == 6
    assert all(service.get_version(v).status == VersionStatus.PUBLISHED for v in ids)


def test_sweep_result_to_dict(service, clock):
    payload = _sweeper(service, clock).run(now=T0).to_dict()
    assert payload == {
        "scanned": 0,
        "published": 0,
        "expired": 0,
        "skipped": 0,
        "errors": 0,
        "error_details": [],
    }
