"""Configuration centralisée Celery pour les tâches asynchrones.

Ce module définit la configuration globale de Celery: politiques de retry, acks tardifs et
planification beat du balayage du cycle de vie des versions.
"""

# ============================================================
# Module : portal/app/celeryconfig.py
# Objet  : Configuration centralisée Celery (retries, beat).
# ============================================================

from __future__ import annotations

from portal.core.settings import get_settings

_settings = get_settings()

# Retries & acks
task_acks_late = True
task_reject_on_worker_lost = True
worker_prefetch_multiplier = 1
task_time_limit = 300  # secondes
broker_pool_limit = 10

# Politique de retry par défaut (à spécialiser par tâche)
max_retries = 5
retry_backoff = True
retry_backoff_max = 60  # secondes

timezone = "UTC"
enable_utc = True

# Balayage périodique: publication des planifiées échues, expiration automatique
beat_schedule = {
    "lifecycle-sweep": {
        "task": "portal.tasks.lifecycle_sweep",
        "schedule": float(_settings.LIFECYCLE_SWEEP_INTERVAL_SECONDS),
    },
}
