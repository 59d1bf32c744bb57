# ============================================================
# Module : portal/infra/monitoring/celery_exporter.py
# Objet  : Métriques Prometheus + spans OTEL des tâches Celery.
# ============================================================
"""Instrumentation des tâches Celery (balayage du cycle de vie, diffusion aux abonnés).

Les handlers de signaux alimentent des compteurs par nom de tâche et ouvrent un span OpenTelemetry
par exécution.
"""

from __future__ import annotations

import contextlib
import threading
import time
from typing import Any

from celery import signals
from opentelemetry import trace
from prometheus_client import Counter, Histogram

TASK_OUTCOMES = Counter(
    "celery_task_outcomes_total", "Issues des tâches Celery", ["task", "state"]
)
TASK_RETRY = Counter("celery_task_retry_total", "Tasks en retry", ["task"])
TASK_RUNTIME_SECONDS = Histogram(
    "celery_task_runtime_seconds", "Durée d'exécution des tâches", ["task"]
)

_starts: dict[str, float] = {}
_spans: dict[str, Any] = {}
_bound = threading.Event()


def on_task_prerun(task_id: str, task_name: str) -> None:
    """Mémorise l'instant de départ et ouvre un span `celery:{task}`."""
    _starts[task_id] = time.time()
    with contextlib.suppress(Exception):  # pragma: no cover - tracer optionnel
        _spans[task_id] = trace.get_tracer(__name__).start_span(name=f"celery:{task_name}")


def _end_span(task_id: str) -> None:
    span = _spans.pop(task_id, None)
    if span is not None:
        with contextlib.suppress(Exception):  # pragma: no cover
            span.end()


def on_task_postrun(task_id: str, task_name: str, state: str) -> None:
    """Observe la durée et compte l'état final de la tâche."""
    start = _starts.pop(task_id, None)
    if start is not None:
        TASK_RUNTIME_SECONDS.labels(task=task_name).observe(max(0.0, time.time() - start))
    TASK_OUTCOMES.labels(task=task_name, state=(state or "unknown").lower()).inc()
    _end_span(task_id)


def on_task_failure(task_id: str, task_name: str) -> None:
    TASK_OUTCOMES.labels(task=task_name, state="failure_signal").inc()
    _end_span(task_id)


def on_task_retry(task_name: str) -> None:
    TASK_RETRY.labels(task=task_name).inc()


def bind_celery_signals(celery_app) -> None:  # type: ignore[no-untyped-def]
    """Connecte les handlers aux signaux Celery (une seule fois par processus)."""
    if _bound.is_set():
        return
    _bound.set()

    @signals.task_prerun.connect(weak=False)
    def _pre(sender=None, task_id: str = "", task=None, **kw):  # type: ignore[no-untyped-def]
        name = getattr(sender, "name", None) or getattr(task, "name", None) or "unknown"
        on_task_prerun(task_id=task_id, task_name=name)

    @signals.task_postrun.connect(weak=False)
    def _post(sender=None, task_id: str = "", state: str = "", **kw):  # type: ignore[misc]
        on_task_postrun(task_id=task_id, task_name=getattr(sender, "name", "unknown"), state=state)

    @signals.task_failure.connect(weak=False)
    def _fail(sender=None, task_id: str = "", **kw):  # type: ignore[no-untyped-def]
        on_task_failure(task_id=task_id, task_name=getattr(sender, "name", "unknown"))

    @signals.task_retry.connect(weak=False)
    def _retry(sender=None, **kw):  # type: ignore[no-untyped-def]
        on_task_retry(task_name=getattr(sender, "name", "unknown"))
