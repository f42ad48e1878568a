# ============================================================
# Module : backend/infra/repo/notification_repo.py
# Objet  : Notifications de mentions (création idempotente, états).
# ============================================================

from __future__ import annotations

from datetime import datetime

from sqlalchemy import select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from ...domain.entities import Mention, Notification
from .models import NotificationORM

PENDING = "pending"
SENT = "sent"
FAILED = "failed"


class NotificationRepo:
    """CRUD minimal pour les notifications."""

    def __init__(self, session: Session) -> None:
        """Construit le repo avec une session (SQLAlchemy)."""
        self._session = session

    def ensure_for_mention(self, mention: Mention, now: datetime) -> Notification:
        """Retourne la notification de la mention, en la créant `pending` si absente.

        Contrainte d'unicité: (entity_kind, entity_id, mention_id, user_id).
        Une création concurrente perdue est rattrapée par relecture.
        """
        existing = self._find(mention)
        if existing is not None:
            return self._to_domain(existing)
        row = NotificationORM(
            entity_kind=mention.entity_kind,
            entity_id=mention.entity_id,
            mention_id=mention.id,
            user_id=mention.user_id,
            state=PENDING,
            attempts=0,
            created_at=now,
        )
        try:
            with self._session.begin_nested():
                self._session.add(row)
                self._session.flush()
        except IntegrityError:
            row = self._find(mention)
            if row is None:
                raise
        return self._to_domain(row)

    def get(self, notification_id: int) -> Notification | None:
        row = self._session.get(NotificationORM, notification_id)
        return self._to_domain(row) if row is not None else None

    def mark_sent(self, notification_id: int, now: datetime) -> None:
        row = self._session.get(NotificationORM, notification_id)
        row.state = SENT
        row.attempts = (row.attempts or 0) + 1
        row.last_error = None
        row.sent_at = now
        self._session.flush()

    def mark_attempt_failed(self, notification_id: int, error: str, max_attempts: int) -> str:
        """Enregistre un échec de livraison; passe à `failed` au-delà de `max_attempts`."""
        row = self._session.get(NotificationORM, notification_id)
        row.attempts = (row.attempts or 0) + 1
        row.last_error = error[:255]
        row.state = FAILED if row.attempts >= max_attempts else PENDING
        self._session.flush()
        return row.state

    def fail_pending(self, entity_kind: str, entity_id: int, error: str) -> int:
        """Passe en `failed` les notifications `pending` d'un contenu; retourne leur nombre."""
        result = self._session.execute(
            update(NotificationORM)
            .where(
                NotificationORM.entity_kind == entity_kind,
                NotificationORM.entity_id == entity_id,
                NotificationORM.state == PENDING,
            )
            .values(state=FAILED, last_error=error[:255])
        )
        return result.rowcount or 0

    def list_for_entity(self, entity_kind: str, entity_id: int) -> list[Notification]:
        stmt = (
            select(NotificationORM)
            .where(
                NotificationORM.entity_kind == entity_kind,
                NotificationORM.entity_id == entity_id,
            )
            .order_by(NotificationORM.id)
        )
        return [self._to_domain(r) for r in self._session.execute(stmt).scalars().all()]

    def _find(self, mention: Mention) -> NotificationORM | None:
        stmt = select(NotificationORM).where(
            NotificationORM.entity_kind == mention.entity_kind,
            NotificationORM.entity_id == mention.entity_id,
            NotificationORM.mention_id == mention.id,
            NotificationORM.user_id == mention.user_id,
        )
        return self._session.execute(stmt).scalars().first()

    @staticmethod
    def _to_domain(row: NotificationORM) -> Notification:
        return Notification(
            id=row.id,
            entity_kind=row.entity_kind,
            entity_id=row.entity_id,
            mention_id=row.mention_id,
            user_id=row.user_id,
            state=row.state,
            attempts=row.attempts or 0,
            last_error=row.last_error,
            created_at=row.created_at,
            sent_at=row.sent_at,
        )
