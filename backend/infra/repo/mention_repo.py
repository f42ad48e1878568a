# ============================================================
# Module : backend/infra/repo/mention_repo.py
# Objet  : Synchronisation des mentions d'un contenu avec son texte validé.
# ============================================================

from __future__ import annotations

from datetime import datetime

from sqlalchemy import select
from sqlalchemy.orm import Session

from ...domain.entities import ENTITY_COMMENT, ENTITY_POST, Comment, ContentEntity, Mention
from .models import CommentUserMentionORM, PostUserMentionORM

MentionRow = PostUserMentionORM | CommentUserMentionORM


class MentionRepo:
    """Mentions des posts et commentaires (tables distinctes)."""

    def __init__(self, session: Session) -> None:
        """Construit le repo avec une session (SQLAlchemy)."""
        self._session = session

    def replace(self, entity: ContentEntity, user_ids: list[int], now: datetime) -> list[Mention]:
        """Aligne les mentions de `entity` sur `user_ids` (dans l'ordre).

        Les lignes des utilisateurs toujours mentionnés sont conservées (même
        identifiant, rang mis à jour), celles des utilisateurs qui ne le sont
        plus sont supprimées et seules les nouvelles mentions sont insérées.
        L'identifiant d'une mention reste donc stable d'une sauvegarde à
        l'autre: c'est la clé de déduplication des notifications.
        """
        existing = {row.user_id: row for row in self._rows(entity.kind, entity.id)}
        wanted = set(user_ids)
        for user_id, row in existing.items():
            if user_id not in wanted:
                self._session.delete(row)

        rows: list[MentionRow] = []
        for position, user_id in enumerate(user_ids):
            row = existing.get(user_id)
            if row is None:
                row = self._new_row(entity, user_id, now)
                self._session.add(row)
            row.position = position
            rows.append(row)
        self._session.flush()
        return [self._to_domain(entity.kind, r) for r in rows]

    def list_for(self, entity_kind: str, entity_id: int) -> list[Mention]:
        """Mentions courantes d'un contenu, dans l'ordre du texte."""
        return [self._to_domain(entity_kind, r) for r in self._rows(entity_kind, entity_id)]

    def _rows(self, entity_kind: str, entity_id: int) -> list[MentionRow]:
        if entity_kind == ENTITY_POST:
            stmt = (
                select(PostUserMentionORM)
                .where(PostUserMentionORM.post_id == entity_id)
                .order_by(PostUserMentionORM.position, PostUserMentionORM.id)
            )
        elif entity_kind == ENTITY_COMMENT:
            stmt = (
                select(CommentUserMentionORM)
                .where(CommentUserMentionORM.comment_id == entity_id)
                .order_by(CommentUserMentionORM.position, CommentUserMentionORM.id)
            )
        else:
            raise ValueError(f"unknown entity kind: {entity_kind}")
        return list(self._session.execute(stmt).scalars().all())

    @staticmethod
    def _new_row(entity: ContentEntity, user_id: int, now: datetime) -> MentionRow:
        if isinstance(entity, Comment):
            return CommentUserMentionORM(
                comment_id=entity.id, post_id=entity.post_id, user_id=user_id, created_at=now
            )
        if entity.kind == ENTITY_POST:
            return PostUserMentionORM(post_id=entity.id, user_id=user_id, created_at=now)
        raise ValueError(f"unknown entity kind: {entity.kind}")

    @staticmethod
    def _to_domain(entity_kind: str, row: MentionRow) -> Mention:
        entity_id = row.post_id if entity_kind == ENTITY_POST else row.comment_id
        return Mention(
            id=row.id,
            entity_kind=entity_kind,
            entity_id=entity_id,
            user_id=row.user_id,
            created_at=row.created_at,
        )
