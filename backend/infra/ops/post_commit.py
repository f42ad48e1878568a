"""Post-commit hooks for the save → notification handoff.

Ce module permet de différer une action (ex: émission d'un évènement de
transition, qui planifie une tâche Celery) jusqu'au commit effectif de la
transaction SQLAlchemy. En cas de rollback, les actions planifiées sont
oubliées: aucune notification ne part pour une sauvegarde annulée.
"""

from __future__ import annotations

import functools
from collections.abc import Callable

import structlog
from sqlalchemy import event
from sqlalchemy.orm import Session

from backend.app.metrics import POSTCOMMIT_ACTIONS_TOTAL

log = structlog.get_logger(__name__)

_ACTIONS_KEY = "_post_commit_actions"
_BOUND_KEY = "_post_commit_bound"


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
    if session.info.get(_BOUND_KEY):
        return
    session.info[_BOUND_KEY] = True

    @event.listens_for(session, "after_commit")
    def _after_commit(_session: Session) -> None:
        actions = list(_session.info.get(_ACTIONS_KEY) or [])
        _session.info[_ACTIONS_KEY] = []
        for action in actions:
            # La transaction est déjà validée: une erreur ici ne doit pas casser la réponse API
            try:
                action()
                POSTCOMMIT_ACTIONS_TOTAL.labels(result="executed").inc()
            except Exception:
                POSTCOMMIT_ACTIONS_TOTAL.labels(result="error").inc()
                log.exception("post_commit_action_failed")

    @event.listens_for(session, "after_soft_rollback")
    def _after_rollback(_session: Session, previous_transaction) -> None:  # type: ignore[no-untyped-def]
        # Un rollback de savepoint ne concerne pas la transaction englobante
        if getattr(previous_transaction, "nested", False):
            return
        dropped = len(_session.info.get(_ACTIONS_KEY) or [])
        _session.info[_ACTIONS_KEY] = []
        if dropped:
            POSTCOMMIT_ACTIONS_TOTAL.labels(result="rolled_back").inc(dropped)


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
