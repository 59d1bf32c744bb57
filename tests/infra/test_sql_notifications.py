"""Diffusion aux abonnés sur le dépôt SQL: un insert en échec n'annule pas les autres."""

from __future__ import annotations

import pytest

from portal.domain.ports import Subscription
from portal.infra.clock import FixedClock
from portal.infra.repo.db import get_engine, session_scope
from portal.infra.repo.models import Base
from portal.infra.repo.subscription_repo import SqlNotificationRepo
from portal.services.notifications import SubscriberFanout
from tests.fakes import T0, make_asset, make_version


class _StaticSubscriptions:
    """Source d'abonnés figée (seul `list_by_asset` est utilisé par le fanout)."""

    def __init__(self, user_ids):
        self._subs = [
            Subscription(
                subscription_id=f"sub_{i}",
                user_id=user_id,
                asset_id="asset_1",
                notify_new_version=True,
                notify_expired=True,
                created_at=T0,
            )
            for i, user_id in enumerate(user_ids)
        ]

    def list_by_asset(self, asset_id):
        return list(self._subs)


@pytest.fixture
def engine():
    eng = get_engine("sqlite+pysqlite:///:memory:")
    Base.metadata.create_all(eng)
    yield eng
    eng.dispose()


def test_failing_subscriber_does_not_block_others_in_sql(engine):
    # user_id None viole NOT NULL: seul cet insert doit être annulé
    subscriptions = _StaticSubscriptions(["u1", None, "u3"])
    with session_scope(engine) as s:
        fanout = SubscriberFanout(subscriptions, SqlNotificationRepo(s), FixedClock(T0))
        created = fanout.notify_new_version(make_asset(), make_version())
    assert created == 2

    with session_scope(engine) as s:
        repo = SqlNotificationRepo(s)
        assert [n.version_id for n in repo.list_by_user("u1")] == ["version_1"]
        assert [n.version_id for n in repo.list_by_user("u3")] == ["version_1"]


def test_fanout_replay_is_deduplicated_in_sql(engine):
    subscriptions = _StaticSubscriptions(["u1"])
    for expected in (1, 0):
        with session_scope(engine) as s:
            fanout = SubscriberFanout(subscriptions, SqlNotificationRepo(s), FixedClock(T0))
            assert fanout.notify_expired(make_asset(), make_version()) == expected
    with session_scope(engine) as s:
        assert len(SqlNotificationRepo(s).list_by_user("u1")) == 1
