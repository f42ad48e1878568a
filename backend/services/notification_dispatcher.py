"""
Livraison des notifications de mentions (corps de la tâche Celery).

Étapes pour un contenu donné:
1. relire le contenu et ses mentions courantes (contenu absent → no-op);
2. garantir une notification `pending` par mention (idempotent) et valider
   ces créations avant tout envoi;
3. livrer chaque notification `pending` via le mailer, hors transaction, puis
   enregistrer le résultat dans une unité de travail courte par notification;
4. lever `DeliveryFailure` s'il reste des notifications `pending`, pour que
   Celery relance la tâche.

Une notification déjà `sent` n'est jamais renvoyée. Aucun verrou d'écriture
n'est tenu pendant un échange SMTP.
"""

from __future__ import annotations

import html
from collections.abc import Callable
from dataclasses import dataclass, field
from datetime import UTC, datetime

import structlog
from sqlalchemy.orm import Session, sessionmaker

from backend.app.metrics import NOTIFICATIONS_TOTAL
from backend.domain.entities import ENTITY_COMMENT, ENTITY_POST, ContentEntity, Post, User
from backend.domain.errors import DeliveryFailure
from backend.infra.mailer import Mailer
from backend.infra.repo.content_repo import CommentRepo, PostRepo
from backend.infra.repo.db import session_scope
from backend.infra.repo.mention_repo import MentionRepo
from backend.infra.repo.notification_repo import FAILED, PENDING, SENT, NotificationRepo
from backend.infra.repo.user_repo import SqlUserLookup

log = structlog.get_logger(__name__)

RETRIES_EXHAUSTED = "retries exhausted"


@dataclass
class DispatchReport:
    """Bilan d'un passage du worker."""

    entity_kind: str
    entity_id: int
    sent: int = 0
    failed: int = 0
    pending: int = 0
    skipped: list[int] = field(default_factory=list)


@dataclass(frozen=True)
class _Delivery:
    notification_id: int
    recipient: User


def _utcnow() -> datetime:
    return datetime.now(UTC)


def _load_entity(session: Session, kind: str, entity_id: int) -> ContentEntity | None:
    if kind == ENTITY_POST:
        return PostRepo(session).get(entity_id)
    if kind == ENTITY_COMMENT:
        return CommentRepo(session).get(entity_id)
    raise ValueError(f"unknown entity kind: {kind}")


def build_message(entity: ContentEntity, recipient: User) -> tuple[str, str]:
    """Sujet et corps HTML d'une notification de mention."""
    if isinstance(entity, Post):
        subject = f"You were mentioned in post #{entity.number}: {entity.title}"
    else:
        subject = "You were mentioned in a comment"
    greeting = f"<p>Hi @{html.escape(recipient.username)},</p>"
    return subject, f"{greeting}\n{entity.body or ''}"


class NotificationDispatcher:
    """Crée puis livre les notifications d'un contenu."""

    def __init__(
        self,
        session_factory: sessionmaker,
        mailer: Mailer,
        max_attempts: int = 5,
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        self._session_factory = session_factory
        self._mailer = mailer
        self._max_attempts = max_attempts
        self._clock = clock or _utcnow

    def dispatch(self, entity_kind: str, entity_id: int) -> DispatchReport:
        report = DispatchReport(entity_kind=entity_kind, entity_id=entity_id)
        prepared = self._prepare(entity_kind, entity_id, report)
        if prepared is None:
            return report

        entity, deliveries = prepared
        for delivery in deliveries:
            state = self._deliver(entity, delivery)
            if state == SENT:
                report.sent += 1
            elif state == FAILED:
                report.failed += 1
            else:
                report.pending += 1

        log.info(
            "notifications_dispatched",
            entity_kind=entity_kind,
            entity_id=entity_id,
            sent=report.sent,
            failed=report.failed,
            pending=report.pending,
        )
        if report.pending:
            raise DeliveryFailure(
                f"{report.pending} notification(s) pending for {entity_kind} {entity_id}"
            )
        return report

    def fail_pending(self, entity_kind: str, entity_id: int) -> DispatchReport:
        """Passe en `failed` les notifications encore `pending` (relances épuisées)."""
        report = DispatchReport(entity_kind=entity_kind, entity_id=entity_id)
        with session_scope(self._session_factory) as session:
            report.failed = NotificationRepo(session).fail_pending(
                entity_kind, entity_id, RETRIES_EXHAUSTED
            )
        if report.failed:
            NOTIFICATIONS_TOTAL.labels(result="failed").inc(report.failed)
        log.warning(
            "notifications_abandoned",
            entity_kind=entity_kind,
            entity_id=entity_id,
            failed=report.failed,
        )
        return report

    def _prepare(
        self, entity_kind: str, entity_id: int, report: DispatchReport
    ) -> tuple[ContentEntity, list[_Delivery]] | None:
        with session_scope(self._session_factory) as session:
            entity = _load_entity(session, entity_kind, entity_id)
            if entity is None:
                log.warning("notify_entity_missing", entity_kind=entity_kind, entity_id=entity_id)
                return None

            notifications = NotificationRepo(session)
            users = SqlUserLookup(session)
            deliveries: list[_Delivery] = []
            for mention in MentionRepo(session).list_for(entity_kind, entity_id):
                notification = notifications.ensure_for_mention(mention, self._clock())
                if notification.state != PENDING:
                    report.skipped.append(notification.id)
                    continue
                recipient = users.get(notification.user_id)
                if recipient is None:
                    notifications.mark_attempt_failed(notification.id, "unknown user", 1)
                    report.failed += 1
                    continue
                deliveries.append(_Delivery(notification.id, recipient))
        return entity, deliveries

    def _deliver(self, entity: ContentEntity, delivery: _Delivery) -> str:
        recipient = delivery.recipient
        subject, body = build_message(entity, recipient)
        try:
            self._mailer.send(recipient.email, subject, body)
        except DeliveryFailure as exc:
            with session_scope(self._session_factory) as session:
                state = NotificationRepo(session).mark_attempt_failed(
                    delivery.notification_id, str(exc), self._max_attempts
                )
            NOTIFICATIONS_TOTAL.labels(result="retry" if state == PENDING else "failed").inc()
            log.warning(
                "notification_delivery_failed",
                notification_id=delivery.notification_id,
                user_id=recipient.id,
                state=state,
            )
            return state
        with session_scope(self._session_factory) as session:
            NotificationRepo(session).mark_sent(delivery.notification_id, self._clock())
        NOTIFICATIONS_TOTAL.labels(result="sent").inc()
        log.info(
            "notification_sent", notification_id=delivery.notification_id, user_id=recipient.id
        )
        return SENT
