"""Tests du prédicat de téléchargement et des vérifications de rôle."""

from __future__ import annotations

import pytest

from portal.domain.access import (
    AccessDecision,
    Actor,
    ForbiddenReason,
    can_create_version,
    can_download,
    require_role,
)
from portal.domain.asset import Role, VersionStatus
from portal.domain.errors import PermissionDeniedError
from tests.fakes import make_asset, make_version

ASSET = make_asset(owner_id="owner_1")


def _decide(status, role, actor_id="someone"):
    return can_download(make_version(status=status), ASSET, role, actor_id)


def test_draft_visible_to_owner_and_admin_only():
    assert _decide(VersionStatus.DRAFT, Role.VIEWER, "owner_1").allowed
    assert _decide(VersionStatus.DRAFT, Role.ADMIN).allowed
    for role in (Role.VIEWER, Role.CONTRIBUTOR, Role.APPROVER):
        decision = _decide(VersionStatus.DRAFT, role)
        assert decision == AccessDecision.deny(ForbiddenReason.DRAFT_OWNER_OR_ADMIN_ONLY)


def test_expired_visible_to_admin_only():
    assert _decide(VersionStatus.EXPIRED, Role.ADMIN).allowed
    # Même le propriétaire n'y a pas accès
    decision = _decide(VersionStatus.EXPIRED, Role.APPROVER, "owner_1")
    assert decision.reason is ForbiddenReason.EXPIRED_ADMIN_ONLY


@pytest.mark.parametrize("role", list(Role))
def test_published_visible_to_everyone(role):
    assert _decide(VersionStatus.PUBLISHED, role).allowed


@pytest.mark.parametrize("status", [VersionStatus.SCHEDULED, VersionStatus.ARCHIVED])
def test_scheduled_and_archived_require_more_than_viewer(status):
    denied = _decide(status, Role.VIEWER)
    assert denied.reason is ForbiddenReason.NOT_PUBLISHED
    for role in (Role.CONTRIBUTOR, Role.APPROVER, Role.ADMIN):
        assert _decide(status, role).allowed


def test_unknown_status_is_denied_without_raising():
    decision = can_download(make_version(status="limbo"), ASSET, Role.ADMIN, "owner_1")
    assert decision == AccessDecision(allowed=False, reason=ForbiddenReason.INVALID_STATE)


def test_raw_role_strings_are_parsed():
    assert _decide(VersionStatus.EXPIRED, "Admin").allowed
    assert not _decide(VersionStatus.SCHEDULED, "superuser").allowed


def test_reason_messages():
    assert (
        ForbiddenReason.EXPIRED_ADMIN_ONLY.message
        == "Expired versions can only be downloaded by Admin"
    )


def test_require_role_hierarchy():
    require_role(Actor("u", Role.ADMIN), Role.APPROVER)
    with pytest.raises(PermissionDeniedError) as exc:
        require_role(Actor("u", Role.CONTRIBUTOR), Role.APPROVER)
    assert exc.value.details["required_role"] == "Approver"


def test_can_create_version_owner_or_contributor():
    assert can_create_version(Actor("owner_1", Role.VIEWER), ASSET)
    assert can_create_version(Actor("other", Role.CONTRIBUTOR), ASSET)
    assert not can_create_version(Actor("other", Role.VIEWER), ASSET)


def test_role_parse_falls_back_to_viewer():
    assert Role.parse(None) is Role.VIEWER
    assert Role.parse("root") is Role.VIEWER
    assert Role.parse("Approver") is Role.APPROVER
