"""
Tâches Celery du cycle de vie des versions.

- `portal.tasks.lifecycle_sweep`: passage périodique (beat) publiant les versions planifiées
  échues et expirant les versions publiées dont `expire_at` est atteint.
- `portal.tasks.notify_new_version` / `portal.tasks.notify_expired`: diffusion aux abonnés,
  enfilées après commit par `PostCommitNotifier`.
"""

from __future__ import annotations

from portal.app.celery_app import celery_app
from portal.core.container import container
from portal.infra.ops.idempotency import idempotent_task, make_idem_key
from portal.services.notifications import KIND_EXPIRED, KIND_NEW_VERSION

_NOTIFY_TTL = container.settings.IDEMPOTENCY_TTL_SECONDS


@celery_app.task(name="portal.tasks.lifecycle_sweep")
def lifecycle_sweep_task() -> dict:
    result = container.sweeper(max_workers=container.settings.LIFECYCLE_SWEEP_MAX_WORKERS).run()
    return result.to_dict()


@celery_app.task(
    name="portal.tasks.notify_new_version",
    autoretry_for=(Exception,),
    retry_backoff=True,
    max_retries=3,
)
@idempotent_task(
    lambda asset_id, version_id: make_idem_key("notify_new_version", version_id),
    ttl_seconds=_NOTIFY_TTL,
)
def notify_new_version_task(asset_id: str, version_id: str) -> int:
    with container.dispatcher_scope() as dispatcher:
        return dispatcher.dispatch(KIND_NEW_VERSION, asset_id, version_id)


@celery_app.task(
    name="portal.tasks.notify_expired",
    autoretry_for=(Exception,),
    retry_backoff=True,
    max_retries=3,
)
@idempotent_task(
    lambda asset_id, version_id: make_idem_key("notify_expired", version_id),
    ttl_seconds=_NOTIFY_TTL,
)
def notify_expired_task(asset_id: str, version_id: str) -> int:
    with container.dispatcher_scope() as dispatcher:
        return dispatcher.dispatch(KIND_EXPIRED, asset_id, version_id)
