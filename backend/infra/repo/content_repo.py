# ============================================================
# Module : backend/infra/repo/content_repo.py
# Objet  : Accès SQL pour les posts et commentaires (ORM <-> domaine).
# ============================================================

from __future__ import annotations

from sqlalchemy import func, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from ...domain.entities import Comment, Post
from ...domain.errors import DuplicateSequenceValue, ValidationFailed
from ...domain.publishing import ACTIVE_STATES, ContentState
from .models import (
    CommentORM,
    CommentUserMentionORM,
    PostORM,
    PostUserMentionORM,
    ProjectORM,
)

SCOPES = ("active", "all")
POST_SORTS = ("-number", "number", "-created_at", "created_at")
COMMENT_SORTS = ("created_at", "-created_at")

DEFAULT_POST_SORT = "-number"
DEFAULT_COMMENT_SORT = "created_at"

_CONTENT_FIELDS = ("user_id", "markdown", "body", "markdown_preview", "body_preview")


def _check_listing(scope: str, sort: str, allowed_sorts: tuple[str, ...]) -> None:
    errors: dict[str, list[str]] = {}
    if scope not in SCOPES:
        errors["scope"] = ["is not included in the list"]
    if sort not in allowed_sorts:
        errors["sort"] = ["is not included in the list"]
    if errors:
        raise ValidationFailed(errors)


def _order_clause(column, sort: str):  # type: ignore[no-untyped-def]
    if sort.startswith("-"):
        return column.desc().nulls_last()
    return column.asc().nulls_last()


def _active_states() -> list[str]:
    return [state.value for state in ACTIVE_STATES]


class PostRepo:
    """Lecture/écriture des posts."""

    def __init__(self, session: Session) -> None:
        """Construit le repo avec une session (SQLAlchemy)."""
        self._session = session

    def project_exists(self, project_id: int | None) -> bool:
        if project_id is None:
            return False
        return self._session.get(ProjectORM, project_id) is not None

    def get(self, post_id: int) -> Post | None:
        """Retourne le post (avec ses mentions courantes), ou None."""
        row = self._session.get(PostORM, post_id)
        if row is None:
            return None
        return self._to_domain(row)

    def add(self, post: Post) -> Post:
        """Insère un nouveau post et renvoie sa version persistée."""
        row = PostORM()
        self._write(row, post)
        self._session.add(row)
        self._session.flush()
        return self._to_domain(row)

    def update(self, post: Post) -> Post:
        """Écrit les champs du post sur la ligne existante."""
        row = self._session.get(PostORM, post.id)
        self._write(row, post)
        self._session.flush()
        return self._to_domain(row)

    def assign_number(self, post_id: int, number: int) -> None:
        """Attribue le numéro; lève `DuplicateSequenceValue` si déjà pris dans le projet.

        L'écriture est faite dans un savepoint: en cas de collision, seule
        cette écriture est annulée et la transaction englobante reste utilisable.
        """
        row = self._session.get(PostORM, post_id)
        project_id = row.project_id
        try:
            with self._session.begin_nested():
                row.number = number
                self._session.flush()
        except IntegrityError as err:
            raise DuplicateSequenceValue(project_id, number) from err

    def max_number(self, project_id: int) -> int:
        stmt = select(func.max(PostORM.number)).where(PostORM.project_id == project_id)
        return int(self._session.execute(stmt).scalar() or 0)

    def increment_comments_count(self, post_id: int) -> None:
        self._session.execute(
            update(PostORM)
            .where(PostORM.id == post_id)
            .values(comments_count=PostORM.comments_count + 1)
        )

    def list_for_project(
        self, project_id: int, scope: str = "active", sort: str = DEFAULT_POST_SORT
    ) -> list[Post]:
        """Liste les posts d'un projet.

        Args:
            project_id: projet concerné.
            scope: `active` (publiés ou édités) ou `all`.
            sort: `-number` (défaut), `number`, `-created_at`, `created_at`.
        """
        _check_listing(scope, sort, POST_SORTS)
        stmt = select(PostORM).where(PostORM.project_id == project_id)
        if scope == "active":
            stmt = stmt.where(PostORM.state.in_(_active_states()))
        column = PostORM.number if sort.lstrip("-") == "number" else PostORM.created_at
        stmt = stmt.order_by(_order_clause(column, sort), PostORM.id.desc())
        rows = self._session.execute(stmt).scalars().all()
        return [self._to_domain(r) for r in rows]

    def _mentioned_user_ids(self, post_id: int) -> list[int]:
        stmt = (
            select(PostUserMentionORM.user_id)
            .where(PostUserMentionORM.post_id == post_id)
            .order_by(PostUserMentionORM.position, PostUserMentionORM.id)
        )
        return list(self._session.execute(stmt).scalars().all())

    @staticmethod
    def _write(row: PostORM, post: Post) -> None:
        for name in _CONTENT_FIELDS:
            setattr(row, name, getattr(post, name))
        row.project_id = post.project_id
        row.title = post.title
        row.post_type = post.post_type
        row.status = post.status
        row.state = ContentState(post.state).value
        if post.updated_at is not None:
            row.updated_at = post.updated_at
        if post.created_at is not None and row.created_at is None:
            row.created_at = post.created_at

    def _to_domain(self, row: PostORM) -> Post:
        return Post(
            id=row.id,
            user_id=row.user_id,
            project_id=row.project_id,
            title=row.title,
            post_type=row.post_type,
            status=row.status,
            state=ContentState(row.state),
            number=row.number,
            markdown=row.markdown,
            body=row.body,
            markdown_preview=row.markdown_preview,
            body_preview=row.body_preview,
            comments_count=row.comments_count or 0,
            created_at=row.created_at,
            updated_at=row.updated_at,
            mentioned_user_ids=self._mentioned_user_ids(row.id),
        )


class CommentRepo:
    """Lecture/écriture des commentaires."""

    def __init__(self, session: Session) -> None:
        """Construit le repo avec une session (SQLAlchemy)."""
        self._session = session

    def post_exists(self, post_id: int | None) -> bool:
        if post_id is None:
            return False
        return self._session.get(PostORM, post_id) is not None

    def get(self, comment_id: int) -> Comment | None:
        row = self._session.get(CommentORM, comment_id)
        if row is None:
            return None
        return self._to_domain(row)

    def add(self, comment: Comment) -> Comment:
        row = CommentORM()
        self._write(row, comment)
        self._session.add(row)
        self._session.flush()
        return self._to_domain(row)

    def update(self, comment: Comment) -> Comment:
        row = self._session.get(CommentORM, comment.id)
        self._write(row, comment)
        self._session.flush()
        return self._to_domain(row)

    def list_for_post(
        self, post_id: int, scope: str = "active", sort: str = DEFAULT_COMMENT_SORT
    ) -> list[Comment]:
        """Liste les commentaires d'un post (`scope`: `active` ou `all`)."""
        _check_listing(scope, sort, COMMENT_SORTS)
        stmt = select(CommentORM).where(CommentORM.post_id == post_id)
        if scope == "active":
            stmt = stmt.where(CommentORM.state.in_(_active_states()))
        stmt = stmt.order_by(_order_clause(CommentORM.created_at, sort), CommentORM.id)
        rows = self._session.execute(stmt).scalars().all()
        return [self._to_domain(r) for r in rows]

    def _mentioned_user_ids(self, comment_id: int) -> list[int]:
        stmt = (
            select(CommentUserMentionORM.user_id)
            .where(CommentUserMentionORM.comment_id == comment_id)
            .order_by(CommentUserMentionORM.position, CommentUserMentionORM.id)
        )
        return list(self._session.execute(stmt).scalars().all())

    @staticmethod
    def _write(row: CommentORM, comment: Comment) -> None:
        for name in _CONTENT_FIELDS:
            setattr(row, name, getattr(comment, name))
        row.post_id = comment.post_id
        row.state = ContentState(comment.state).value
        if comment.updated_at is not None:
            row.updated_at = comment.updated_at
        if comment.created_at is not None and row.created_at is None:
            row.created_at = comment.created_at

    def _to_domain(self, row: CommentORM) -> Comment:
        return Comment(
            id=row.id,
            user_id=row.user_id,
            post_id=row.post_id,
            state=ContentState(row.state),
            markdown=row.markdown,
            body=row.body,
            markdown_preview=row.markdown_preview,
            body_preview=row.body_preview,
            created_at=row.created_at,
            updated_at=row.updated_at,
            mentioned_user_ids=self._mentioned_user_ids(row.id),
        )
