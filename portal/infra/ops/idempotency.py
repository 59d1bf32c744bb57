"""Task idempotency helpers (Redis or in-memory).

- IdempotencyStore: simple `acquire(key, ttl)` to deduplicate task execution.
- idempotent_task: decorator guarding a worker task with the store.

Idempotency key rule (recommended):
    task:{name}:{param_significant}

Use `make_idem_key("notify_new_version", version_id)` to compose keys consistently.

These helpers use a Redis backend if `REDIS_URL` is set; otherwise they fallback to an in-memory
store suitable for unit tests and single-process dev runs.
"""

from __future__ import annotations

import contextlib
import functools
import os
import time
from dataclasses import dataclass, field

import redis
import structlog
from prometheus_client import Counter

log = structlog.get_logger(__name__)

WORKER_IDEMPOTENCY_ATTEMPTS_TOTAL = Counter(
    "worker_idempotency_attempts_total",
    "Idempotency attempts at worker",
    ["task", "result"],
)


def make_idem_key(task: str, *parts: str) -> str:
    """Compose a stable idempotency key following `task:{name}:{param}` rule."""
    safe_parts = [str(p).replace("\n", " ").replace("\r", " ") for p in parts]
    suffix = ":".join(safe_parts) if safe_parts else ""
    return f"task:{task}:{suffix}" if suffix else f"task:{task}"


class _InMemoryKV:
    def __init__(self) -> None:
        self._exp: dict[str, float] = {}
        self._vals: dict[str, str] = {}

    def _purge(self, key: str, now: float) -> None:
        exp = self._exp.get(key)
        if exp is not None and exp <= now:
            self._exp.pop(key, None)
            self._vals.pop(key, None)

    def setnx(self, key: str, value: str, ex: int) -> bool:
        now = time.time()
        self._purge(key, now)
        if key in self._vals:
            return False
        self._vals[key] = value
        self._exp[key] = now + ex
        return True

    def get(self, key: str) -> str | None:
        self._purge(key, time.time())
        return self._vals.get(key)

    def delete(self, key: str) -> None:
        self._vals.pop(key, None)
        self._exp.pop(key, None)


def _redis_client():  # pragma: no cover - smoke path
    url = os.getenv("REDIS_URL")
    if not url:
        return None
    try:
        return redis.Redis.from_url(url, decode_responses=True)
    except Exception:
        return None


@dataclass
class IdempotencyStore:
    """Store pour l'idempotence des tâches avec TTL."""

    ttl_seconds: int = 3600
    client: object | None = field(default=None)

    def __post_init__(self) -> None:
        """Initialise le client Redis ou fallback en mémoire."""
        if self.client is None:
            self.client = _redis_client() or _InMemoryKV()

    def acquire(self, key: str, ttl: int | None = None) -> bool:
        """Acquiert une clé d'idempotence avec TTL (False si déjà prise)."""
        ttl = int(ttl or self.ttl_seconds)
        if isinstance(self.client, _InMemoryKV):
            return self.client.setnx(key, "1", ex=ttl)
        ok = self.client.set(name=key, value="1", nx=True, ex=ttl)  # type: ignore[attr-defined]
        return bool(ok)

    def release(self, key: str) -> None:
        """Libère une clé (ex: tâche échouée qui doit pouvoir être rejouée)."""
        self.client.delete(key)  # type: ignore[attr-defined]


# Module singleton
idempotency_store = IdempotencyStore()


def _record_attempt(task_name: str, result: str) -> None:
    WORKER_IDEMPOTENCY_ATTEMPTS_TOTAL.labels(task=task_name, result=result).inc()


def idempotent_task(
    key_builder, ttl_seconds: int = 3600, on_duplicate_return: object = "duplicate"
):
    """Decorate a task function to enforce idempotence via shared store.

    La clé d'idempotence est construite dynamiquement par `key_builder(*args, **kwargs)`.
    Si la clé existe déjà (dans la fenêtre TTL), la fonction décorée renvoie immédiatement
    `on_duplicate_return` sans exécuter la logique métier. Si la fonction lève, la clé est libérée
    pour qu'un retry puisse s'exécuter.

    Args:
        key_builder: Fonction construisant une clé stable à partir des arguments.
        ttl_seconds: Fenêtre d'idempotence en secondes.
        on_duplicate_return: Valeur renvoyée si doublon détecté.
    """

    def _decorator(func):
        @functools.wraps(func)
        def _wrapper(*args, **kwargs):
            task_name = getattr(func, "__name__", "task")
            key = key_builder(*args, **kwargs)
            try:
                ok = idempotency_store.acquire(key, ttl=ttl_seconds)
            except Exception as exc:
                # Store indisponible: mieux vaut exécuter que perdre la tâche
                log.warning("idempotency_store_unavailable", key=key, error=type(exc).__name__)
                ok = True
            if not ok:
                _record_attempt(task_name, "deduped")
                return on_duplicate_return
            _record_attempt(task_name, "allowed")
            try:
                return func(*args, **kwargs)
            except Exception:
                with contextlib.suppress(Exception):
                    idempotency_store.release(key)
                raise

        return _wrapper

    return _decorator


__all__ = ["IdempotencyStore", "idempotency_store", "idempotent_task", "make_idem_key"]
