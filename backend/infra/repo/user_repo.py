# ============================================================
# Module : backend/infra/repo/user_repo.py
# Objet  : Lecture des utilisateurs (résolution des mentions, auth).
# ============================================================

from __future__ import annotations

from collections.abc import Iterable

from sqlalchemy import select
from sqlalchemy.orm import Session

from ...domain.entities import User
from .models import UserORM


class SqlUserLookup:
    """Résolution `username -> id` adossée à la table `users`."""

    def __init__(self, session: Session) -> None:
        """Construit le repo avec une session (SQLAlchemy)."""
        self._session = session

    def resolve_usernames(self, usernames: Iterable[str]) -> dict[str, int]:
        names = list(dict.fromkeys(usernames))
        if not names:
            return {}
        stmt = select(UserORM.username, UserORM.id).where(UserORM.username.in_(names))
        return {username: user_id for username, user_id in self._session.execute(stmt).all()}

    def get(self, user_id: int) -> User | None:
        row = self._session.get(UserORM, user_id)
        if row is None:
            return None
        return User(id=row.id, username=row.username, email=row.email)
