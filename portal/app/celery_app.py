"""
Module: celery_app.

But: Initialiser l'instance Celery du portail et charger la config runtime.

Notes:
- Le broker et le backend viennent des settings (pas du container, pour éviter les cycles
  d'import avec les notifiers post-commit).
- L'instrumentation Prometheus/OTEL des tâches est branchée via bind_celery_signals.
"""

import structlog
from celery import Celery

from portal.core.settings import get_settings

log = structlog.get_logger(__name__)

_settings = get_settings()

celery_app = Celery(
    "portal",
    broker=_settings.CELERY_BROKER_URL,
    backend=_settings.CELERY_RESULT_BACKEND,
    include=["portal.tasks.lifecycle_tasks"],
)
# Load configuration from module (retries, timeouts, acks, beat)
celery_app.config_from_object("portal.app.celeryconfig")
celery_app.conf.task_routes = {
    "portal.tasks.lifecycle_sweep": {"queue": "default"},
    "portal.tasks.notify_*": {"queue": _settings.NOTIFY_QUEUE},
}

try:
    from portal.infra.monitoring.celery_exporter import bind_celery_signals

    bind_celery_signals(celery_app)
except Exception as exc:  # l'observabilité ne casse jamais le worker
    log.warning("celery_signals_binding_failed", error=type(exc).__name__)

__all__ = ["celery_app"]
