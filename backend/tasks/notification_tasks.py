"""
Tâches Celery de notification des mentions.

Planifiée après le commit d'une sauvegarde validée, la tâche crée puis livre
les notifications du contenu. Tant qu'il reste des notifications `pending`,
`DeliveryFailure` déclenche une relance avec backoff exponentiel. À la
dernière relance autorisée, les notifications restantes passent en `failed`
au lieu de rester `pending` indéfiniment.
"""

from __future__ import annotations

from backend.app.celery_app import celery_app
from backend.core.container import container
from backend.domain.errors import DeliveryFailure
from backend.services.notification_dispatcher import DispatchReport, NotificationDispatcher

_settings = container.settings


def build_dispatcher() -> NotificationDispatcher:
    return NotificationDispatcher(
        container.session_factory,
        container.mailer,
        max_attempts=_settings.NOTIFY_MAX_ATTEMPTS,
    )


def _summary(report: DispatchReport) -> dict:
    return {"sent": report.sent, "failed": report.failed, "skipped": len(report.skipped)}


@celery_app.task(
    bind=True,
    name="backend.tasks.notify_mentions",
    autoretry_for=(DeliveryFailure,),
    retry_backoff=True,
    retry_backoff_max=_settings.NOTIFY_RETRY_BACKOFF_MAX,
    retry_jitter=True,
    max_retries=_settings.NOTIFY_MAX_RETRIES,
)
def notify_mentions_task(self, entity_kind: str, entity_id: int) -> dict:
    dispatcher = build_dispatcher()
    try:
        report = dispatcher.dispatch(entity_kind, entity_id)
    except DeliveryFailure:
        if self.max_retries is None or self.request.retries < self.max_retries:
            raise
        report = dispatcher.fail_pending(entity_kind, entity_id)
    return _summary(report)
