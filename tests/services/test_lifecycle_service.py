"""Tests du service du cycle de vie sur dépôts en mémoire."""

from __future__ import annotations

from datetime import timedelta

import pytest

from portal.domain.access import Actor, ForbiddenReason
from portal.domain.asset import Role, VersionStatus
from portal.domain.errors import (
    ConflictError,
    IllegalTransitionError,
    NotFoundError,
    PermissionDeniedError,
    ScheduleConflictError,
    ValidationError,
)
from portal.services.lifecycle_service import LifecycleService, build_storage_key
from tests.fakes import T0, FailingNotifier

OWNER = Actor("owner_1", Role.CONTRIBUTOR)


def _asset_with_draft(service: LifecycleService, **kwargs):
    return service.create_asset(OWNER, title="Battlecard", asset_type="doc", **kwargs)


def test_create_asset_creates_draft_v1(service):
    asset, version = _asset_with_draft(service, filename="card.pdf", mime_type="application/pdf")
    assert asset.owner_id == "owner_1"
    assert version.version_number == 1
    assert version.status == VersionStatus.DRAFT
    assert version.storage_key == f"assets/{asset.asset_id}/versions/{version.version_id}/card.pdf"


def test_create_version_numbers_increase(service):
    asset, _ = _asset_with_draft(service)
    v2 = service.create_version(OWNER, asset.asset_id)
    v3 = service.create_version(Actor("editor", Role.CONTRIBUTOR), asset.asset_id)
    assert (v2.version_number, v3.version_number) == (2, 3)
    assert [v.version_number for v in service.list_versions(asset.asset_id)] == [3, 2, 1]


def test_create_version_requires_owner_or_contributor(service):
    asset, _ = _asset_with_draft(service)
    with pytest.raises(PermissionDeniedError):
        service.create_version(Actor("viewer", Role.VIEWER), asset.asset_id)
    # Le propriétaire garde le droit même rétrogradé en Viewer
    demoted_owner = Actor("owner_1", Role.VIEWER)
    assert service.create_version(demoted_owner, asset.asset_id).version_number == 2


def test_build_storage_key_sanitizes_filename():
    key = build_storage_key("assets", "a", "v", "dir/evil.pdf")
    assert key == "assets/a/versions/v/dir_evil.pdf"


def test_publish_draft_updates_pointer_and_notifies(service, notifier, clock):
    """Scénario: brouillon v1 publié par un Approver."""
    asset, v1 = _asset_with_draft(service)
    version, updated = service.publish_version(v1.version_id, "approver_1", "First release")

    assert version.status == VersionStatus.PUBLISHED
    assert version.published_at == clock.now()
    assert updated.current_published_version_id == v1.version_id
    assert updated.updated_by == "approver_1"
    assert notifier.calls == [("new_version", asset.asset_id, v1.version_id)]


def test_publish_missing_metadata_is_rejected(service, stores, notifier):
    asset, v1 = _asset_with_draft(service)
    assets = stores[0]
    assets.update(asset.asset_id, {"title": ""})

    with pytest.raises(ValidationError):
        service.publish_version(v1.version_id, "approver_1")
    assert service.get_version(v1.version_id).status == VersionStatus.DRAFT
    assert notifier.calls == []


def test_publish_twice_is_illegal_and_does_not_renotify(service, notifier):
    _, v1 = _asset_with_draft(service)
    service.publish_version(v1.version_id, "approver_1")
    with pytest.raises(IllegalTransitionError):
        service.publish_version(v1.version_id, "approver_1")
    assert len(notifier.calls) == 1


def test_notification_failure_never_fails_publish(stores, clock):
    assets, versions, _subs, _notifs = stores
    service = LifecycleService(assets, versions, clock, FailingNotifier())
    _, v1 = _asset_with_draft(service)
    version, asset = service.publish_version(v1.version_id, "approver_1")
    assert version.status == VersionStatus.PUBLISHED
    assert asset.current_published_version_id == v1.version_id


def test_unknown_version_is_not_found(service):
    with pytest.raises(NotFoundError):
        service.publish_version("missing", "approver_1")


def test_only_one_scheduled_version_per_asset(service):
    asset, v1 = _asset_with_draft(service)
    v2 = service.create_version(OWNER, asset.asset_id)
    service.schedule_version(v1.version_id, "2030-01-01T09:00:00Z")

    with pytest.raises(ScheduleConflictError):
        service.schedule_version(v2.version_id, "2030-01-02T09:00:00Z")
    assert service.get_version(v2.version_id).status == VersionStatus.DRAFT

    # Replanifier la même version reste permis
    again = service.schedule_version(v1.version_id, "2030-03-01T09:00:00Z")
    assert again.publish_at.month == 3


def test_schedule_slot_released_after_publish(service):
    asset, v1 = _asset_with_draft(service)
    v2 = service.create_version(OWNER, asset.asset_id)
    service.schedule_version(v1.version_id, "2030-01-01T09:00:00Z")
    service.publish_version(v1.version_id, "approver_1")

    assert service.get_asset(asset.asset_id).scheduled_version_id is None
    assert service.schedule_version(v2.version_id, "2030-02-01T09:00:00Z").status == (
        VersionStatus.SCHEDULED
    )


def test_schedule_slot_released_after_archive(service):
    asset, v1 = _asset_with_draft(service)
    v2 = service.create_version(OWNER, asset.asset_id)
    service.schedule_version(v1.version_id, "2030-01-01T09:00:00Z")
    service.archive_version(v1.version_id, actor_id="approver_1")
    service.schedule_version(v2.version_id, "2030-02-01T09:00:00Z")
    assert service.get_asset(asset.asset_id).scheduled_version_id == v2.version_id


def test_stale_schedule_slot_is_reclaimed(service, stores):
    asset, v1 = _asset_with_draft(service)
    stores[0].update(asset.asset_id, {"scheduled_version_id": "gone"})
    scheduled = service.schedule_version(v1.version_id, "2030-01-01T09:00:00Z")
    assert scheduled.status == VersionStatus.SCHEDULED
    assert service.get_asset(asset.asset_id).scheduled_version_id == v1.version_id


def test_invalid_publish_at_keeps_slot_free(service):
    asset, v1 = _asset_with_draft(service)
    with pytest.raises(ValidationError):
        service.schedule_version(v1.version_id, "tomorrow")
    assert service.get_asset(asset.asset_id).scheduled_version_id is None


def test_expire_repoints_to_previous_published(service, notifier):
    asset, v1 = _asset_with_draft(service)
    v2 = service.create_version(OWNER, asset.asset_id)
    service.publish_version(v1.version_id, "approver_1")
    service.publish_version(v2.version_id, "approver_1")
    assert service.get_asset(asset.asset_id).current_published_version_id == v2.version_id

    service.expire_version(v2.version_id, actor_id="approver_1")
    assert service.get_asset(asset.asset_id).current_published_version_id == v1.version_id

    service.expire_version(v1.version_id)
    assert service.get_asset(asset.asset_id).current_published_version_id is None
    assert notifier.calls[-1] == ("expired", asset.asset_id, v1.version_id)


def test_expire_draft_is_illegal(service):
    _, v1 = _asset_with_draft(service)
    with pytest.raises(IllegalTransitionError):
        service.expire_version(v1.version_id)


def test_archive_current_published_repairs_pointer(service):
    asset, v1 = _asset_with_draft(service)
    service.publish_version(v1.version_id, "approver_1")
    archived = service.archive_version(v1.version_id, actor_id="admin")
    assert archived.status == VersionStatus.ARCHIVED
    assert service.get_asset(asset.asset_id).current_published_version_id is None


def test_set_expire_at_and_clear(service, clock):
    _, v1 = _asset_with_draft(service)
    updated = service.set_expire_at(v1.version_id, "2030-01-01T00:00:00+00:00")
    assert updated.expire_at.year == 2030
    assert service.set_expire_at(v1.version_id, None).expire_at is None
    with pytest.raises(ValidationError):
        service.set_expire_at(v1.version_id, "2030-01-01")


def test_check_download_uses_actor_role(service):
    asset, v1 = _asset_with_draft(service)
    _, _, decision = service.check_download(v1.version_id, Actor("stranger", Role.APPROVER))
    assert decision.reason is ForbiddenReason.DRAFT_OWNER_OR_ADMIN_ONLY

    _, _, decision = service.check_download(v1.version_id, Actor("owner_1", Role.VIEWER))
    assert decision.allowed


def test_publish_now_override_is_used(service):
    _, v1 = _asset_with_draft(service)
    later = T0 + timedelta(days=2)
    version, _ = service.publish_version(v1.version_id, "system", now=later)
    assert version.published_at == later


def test_update_asset_patches_metadata_only(service, clock):
    asset, v1 = _asset_with_draft(service)
    service.publish_version(v1.version_id, "approver_1")
    clock.set(T0 + timedelta(minutes=5))

    updated = service.update_asset(
        Actor("editor", Role.CONTRIBUTOR), asset.asset_id, {"title": "Battlecard v2"}
    )
    assert updated.title == "Battlecard v2"
    assert updated.updated_by == "editor"
    assert updated.updated_at == T0 + timedelta(minutes=5)
    assert updated.current_published_version_id == v1.version_id
    assert updated.owner_id == "owner_1"


def test_update_asset_rejects_immutable_fields(service):
    asset, _ = _asset_with_draft(service)
    with pytest.raises(ValidationError) as exc:
        service.update_asset(
            OWNER, asset.asset_id, {"title": "x", "current_published_version_id": "v9"}
        )
    assert exc.value.details == {"fields": ["current_published_version_id"]}
    with pytest.raises(NotFoundError):
        service.update_asset(OWNER, "asset_missing", {"title": "x"})


def test_blank_title_after_update_blocks_publish(service):
    asset, v1 = _asset_with_draft(service)
    service.update_asset(OWNER, asset.asset_id, {"title": "  "})
    with pytest.raises(ValidationError):
        service.publish_version(v1.version_id, "approver_1")
    assert service.get_version(v1.version_id).status == VersionStatus.DRAFT


def test_list_assets_filters_by_type_and_owner(service):
    deck, _ = service.create_asset(OWNER, title="Deck", asset_type="deck")
    doc, _ = _asset_with_draft(service)
    other, _ = service.create_asset(Actor("owner_2", Role.CONTRIBUTOR), title="D", asset_type="doc")
    assert {a.asset_id for a in service.list_assets()} == {
        deck.asset_id,
        doc.asset_id,
        other.asset_id,
    }
    docs = service.list_assets(asset_type="doc")
    assert {a.asset_id for a in docs} == {doc.asset_id, other.asset_id}
    assert [a.asset_id for a in service.list_assets(owner_id="owner_2")] == [other.asset_id]


def test_concurrent_version_number_collision_is_conflict(service, stores, monkeypatch):
    asset, _ = _asset_with_draft(service)
    _assets, versions, _subs, _notifs = stores
    # Lecture du max périmée: un autre appelant a déjà pris le numéro 1
    monkeypatch.setattr(versions, "max_version_number", lambda asset_id: None)
    with pytest.raises(ConflictError) as exc:
        service.create_version(OWNER, asset.asset_id)
    assert exc.value.details["version_number"] == 1
