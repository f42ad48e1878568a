"""Abonné `TransitionOccurred` qui planifie la tâche de notification."""

from __future__ import annotations

import structlog

from backend.domain.events import TransitionOccurred

log = structlog.get_logger(__name__)

NOTIFY_TASK_NAME = "backend.tasks.notify_mentions"


class NotificationScheduler:
    """Envoie `notify_mentions(entity_kind, entity_id)` au broker Celery."""

    def __call__(self, event: TransitionOccurred) -> None:
        # Import local pour éviter les cycles container → celery_app → container
        from backend.app.celery_app import celery_app

        celery_app.send_task(NOTIFY_TASK_NAME, args=[event.entity_kind, event.entity_id])
        log.info(
            "notification_scheduled",
            entity_kind=event.entity_kind,
            entity_id=event.entity_id,
            mentions=len(event.mentioned_user_ids),
        )
