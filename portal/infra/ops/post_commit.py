"""Post-commit enqueue helpers for API→workers handoff.

Ce module fournit des utilitaires pour déclencher des actions (ex: envoi de la tâche Celery de
notification des abonnés) uniquement après qu'une transaction SQLAlchemy ait été effectivement
commitée. Une transition annulée (rollback) ne notifie donc jamais personne.
"""

from __future__ import annotations

import functools
from collections.abc import Callable

import structlog
from prometheus_client import Counter
from sqlalchemy import event
from sqlalchemy.orm import Session

log = structlog.get_logger(__name__)

POSTCOMMIT_ACTIONS_TOTAL = Counter(
    "postcommit_actions_total",
    "Post-commit action outcomes",
    ["result"],
)

_ACTIONS_KEY = "_post_commit_actions"


def _ensure_action_list(session: Session) -> list[Callable[[], None]]:
    """Ensure action list container exists on session.info and return it."""
    actions = session.info.get(_ACTIONS_KEY)
    if actions is None:
        actions = []
        session.info[_ACTIONS_KEY] = actions
        _bind_session_events(session)
    return actions


def _bind_session_events(session: Session) -> None:
    """Bind commit/rollback events once for the given session instance."""
    if session.info.get("_post_commit_bound"):
        return
    session.info["_post_commit_bound"] = True

    @event.listens_for(session, "after_commit")
    def _after_commit(_session: Session) -> None:
        actions = list(_session.info.get(_ACTIONS_KEY, []) or [])
        _session.info[_ACTIONS_KEY] = []
        for action in actions:
            # Jamais d'exception ici: la transaction est déjà commitée
            try:
                action()
            except Exception as exc:
                POSTCOMMIT_ACTIONS_TOTAL.labels(result="failed").inc()
                log.warning("post_commit_action_failed", error=type(exc).__name__)
            else:
                POSTCOMMIT_ACTIONS_TOTAL.labels(result="done").inc()

    @event.listens_for(session, "after_rollback")
    def _after_rollback(_session: Session) -> None:
        # Purge les actions planifiées si la transaction est rollback
        if _session.info.get(_ACTIONS_KEY):
            POSTCOMMIT_ACTIONS_TOTAL.labels(result="rolled_back").inc()
        _session.info[_ACTIONS_KEY] = []


def register_action_after_commit(
    session: Session,
    func: Callable[..., None],
    *args,
    **kwargs,
) -> None:
    """Register an arbitrary callable to run after a successful commit.

    La fonction est stockée dans la session et exécutée lors de l'évènement
    `after_commit`. En cas de rollback, elle est oubliée.
    """
    bound = functools.partial(func, *args, **kwargs)
    _ensure_action_list(session).append(bound)


def enqueue_task_after_commit(
    session: Session,
    task_name: str,
    *args,
    queue: str | None = None,
    countdown: int | None = None,
    **kwargs,
) -> None:
    """Enqueue a Celery task only after the current transaction commits.

    Args:
        session: Session SQLAlchemy concernée.
        task_name: Nom pleinement qualifié de la tâche (ex: "portal.tasks.notify_new_version").
        args: Arguments positionnels de la tâche.
        queue: Nom de la queue cible (optionnel).
        countdown: Délai (secondes) avant exécution (optionnel).
        kwargs: Arguments nommés de la tâche.
    """

    def _send_task() -> None:
        from portal.app.celery_app import celery_app  # local import to avoid cycles

        opts: dict[str, object] = {}
        if queue:
            opts["queue"] = queue
        if countdown is not None:
            opts["countdown"] = countdown
        celery_app.send_task(task_name, args=args, kwargs=kwargs, **opts)

    register_action_after_commit(session, _send_task)


__all__ = [
    "enqueue_task_after_commit",
    "register_action_after_commit",
]
