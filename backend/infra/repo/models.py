"""SQLAlchemy models for persistence layer (users, projects, posts, comments, mentions, notifications)."""

from __future__ import annotations

from datetime import UTC, datetime

from sqlalchemy import (
    Column,
    DateTime,
    ForeignKey,
    Integer,
    MetaData,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.orm import DeclarativeBase


def _utcnow() -> datetime:
    return datetime.now(UTC)


class Base(DeclarativeBase):
    """Classe de base pour tous les modèles SQLAlchemy."""

    metadata = MetaData()


class UserORM(Base):
    """Utilisateur (table gérée par le module comptes, lue pour les mentions)."""

    __tablename__ = "users"

    id = Column(Integer, primary_key=True, autoincrement=True)
    username = Column(String(64), nullable=False, unique=True)
    email = Column(String(255), nullable=False)
    created_at = Column(DateTime(timezone=True), nullable=False, default=_utcnow)


class ProjectORM(Base):
    """Projet: portée de numérotation des posts."""

    __tablename__ = "projects"

    id = Column(Integer, primary_key=True, autoincrement=True)
    title = Column(String(255), nullable=False)
    created_at = Column(DateTime(timezone=True), nullable=False, default=_utcnow)


class PostORM(Base):
    """Post d'un projet (numéro unique par projet, nul tant que brouillon)."""

    __tablename__ = "posts"

    id = Column(Integer, primary_key=True, autoincrement=True)
    project_id = Column(Integer, ForeignKey("projects.id"), nullable=False, index=True)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False)
    title = Column(String(255), nullable=True)
    post_type = Column(String(16), nullable=False, default="task")
    status = Column(String(16), nullable=False, default="open")
    state = Column(String(16), nullable=False, default="draft")
    number = Column(Integer, nullable=True)
    markdown = Column(Text, nullable=True)
    body = Column(Text, nullable=True)
    markdown_preview = Column(Text, nullable=True)
    body_preview = Column(Text, nullable=True)
    comments_count = Column(Integer, nullable=False, default=0)
    created_at = Column(DateTime(timezone=True), nullable=False, default=_utcnow)
    updated_at = Column(DateTime(timezone=True), nullable=False, default=_utcnow)

    __table_args__ = (UniqueConstraint("project_id", "number", name="uq_posts_project_number"),)


class CommentORM(Base):
    """Commentaire d'un post."""

    __tablename__ = "comments"

    id = Column(Integer, primary_key=True, autoincrement=True)
    post_id = Column(Integer, ForeignKey("posts.id"), nullable=False, index=True)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False)
    state = Column(String(16), nullable=False, default="draft")
    markdown = Column(Text, nullable=True)
    body = Column(Text, nullable=True)
    markdown_preview = Column(Text, nullable=True)
    body_preview = Column(Text, nullable=True)
    created_at = Column(DateTime(timezone=True), nullable=False, default=_utcnow)
    updated_at = Column(DateTime(timezone=True), nullable=False, default=_utcnow)


class PostUserMentionORM(Base):
    """Mention d'un utilisateur dans le texte validé d'un post."""

    __tablename__ = "post_user_mentions"

    id = Column(Integer, primary_key=True, autoincrement=True)
    post_id = Column(Integer, ForeignKey("posts.id", ondelete="CASCADE"), nullable=False, index=True)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False)
    # Rang de première occurrence dans le texte validé
    position = Column(Integer, nullable=False, default=0)
    created_at = Column(DateTime(timezone=True), nullable=False, default=_utcnow)

    __table_args__ = (UniqueConstraint("post_id", "user_id", name="uq_post_user_mentions"),)


class CommentUserMentionORM(Base):
    """Mention d'un utilisateur dans le texte validé d'un commentaire."""

    __tablename__ = "comment_user_mentions"

    id = Column(Integer, primary_key=True, autoincrement=True)
    comment_id = Column(
        Integer, ForeignKey("comments.id", ondelete="CASCADE"), nullable=False, index=True
    )
    post_id = Column(Integer, ForeignKey("posts.id"), nullable=False)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False)
    # Rang de première occurrence dans le texte validé
    position = Column(Integer, nullable=False, default=0)
    created_at = Column(DateTime(timezone=True), nullable=False, default=_utcnow)

    __table_args__ = (
        UniqueConstraint("comment_id", "user_id", name="uq_comment_user_mentions"),
    )


class NotificationORM(Base):
    """Notification d'une mention (`pending` → `sent` | `failed`)."""

    __tablename__ = "notifications"

    id = Column(Integer, primary_key=True, autoincrement=True)
    entity_kind = Column(String(16), nullable=False)
    entity_id = Column(Integer, nullable=False)
    mention_id = Column(Integer, nullable=False)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False)
    state = Column(String(16), nullable=False, default="pending")
    attempts = Column(Integer, nullable=False, default=0)
    last_error = Column(String(255), nullable=True)
    created_at = Column(DateTime(timezone=True), nullable=False, default=_utcnow)
    sent_at = Column(DateTime(timezone=True), nullable=True)

    __table_args__ = (
        UniqueConstraint(
            "entity_kind", "entity_id", "mention_id", "user_id", name="uq_notifications_mention_user"
        ),
    )


class ProjectSequenceORM(Base):
    """Compteur de numérotation des posts par projet."""

    __tablename__ = "project_sequences"

    project_id = Column(Integer, ForeignKey("projects.id"), primary_key=True)
    last_number = Column(Integer, nullable=False, default=0)
