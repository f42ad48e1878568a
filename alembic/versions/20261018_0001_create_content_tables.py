# mypy: ignore-errors
"""
Migration Alembic initiale du backend de contenu.

Crée les tables utilisateurs/projets (forme minimale), posts, commentaires,
mentions, notifications et compteurs de numérotation par projet.
"""

from __future__ import annotations

import sqlalchemy as sa

from alembic import op

# revision identifiers, used by Alembic.
revision = "20261018_0001"
down_revision = None
branch_labels = None
depends_on = None


def _timestamps() -> list[sa.Column]:
    return [
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False),
    ]


def _content_columns() -> list[sa.Column]:
    return [
        sa.Column("state", sa.String(length=16), nullable=False, server_default="draft"),
        sa.Column("markdown", sa.Text(), nullable=True),
        sa.Column("body", sa.Text(), nullable=True),
        sa.Column("markdown_preview", sa.Text(), nullable=True),
        sa.Column("body_preview", sa.Text(), nullable=True),
    ]


def upgrade() -> None:
    """Crée toutes les tables du domaine de contenu."""
    op.create_table(
        "users",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("username", sa.String(length=64), nullable=False, unique=True),
        sa.Column("email", sa.String(length=255), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
    )
    op.create_table(
        "projects",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("title", sa.String(length=255), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
    )
    op.create_table(
        "posts",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("project_id", sa.Integer(), sa.ForeignKey("projects.id"), nullable=False),
        sa.Column("user_id", sa.Integer(), sa.ForeignKey("users.id"), nullable=False),
        sa.Column("title", sa.String(length=255), nullable=True),
        sa.Column("post_type", sa.String(length=16), nullable=False, server_default="task"),
        sa.Column("status", sa.String(length=16), nullable=False, server_default="open"),
        sa.Column("number", sa.Integer(), nullable=True),
        sa.Column("comments_count", sa.Integer(), nullable=False, server_default="0"),
        *_content_columns(),
        *_timestamps(),
        sa.UniqueConstraint("project_id", "number", name="uq_posts_project_number"),
    )
    op.create_index("ix_posts_project_id", "posts", ["project_id"])
    op.create_table(
        "comments",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("post_id", sa.Integer(), sa.ForeignKey("posts.id"), nullable=False),
        sa.Column("user_id", sa.Integer(), sa.ForeignKey("users.id"), nullable=False),
        *_content_columns(),
        *_timestamps(),
    )
    op.create_index("ix_comments_post_id", "comments", ["post_id"])
    op.create_table(
        "post_user_mentions",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column(
            "post_id", sa.Integer(), sa.ForeignKey("posts.id", ondelete="CASCADE"), nullable=False
        ),
        sa.Column("user_id", sa.Integer(), sa.ForeignKey("users.id"), nullable=False),
        sa.Column("position", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.UniqueConstraint("post_id", "user_id", name="uq_post_user_mentions"),
    )
    op.create_index("ix_post_user_mentions_post_id", "post_user_mentions", ["post_id"])
    op.create_table(
        "comment_user_mentions",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column(
            "comment_id",
            sa.Integer(),
            sa.ForeignKey("comments.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("post_id", sa.Integer(), sa.ForeignKey("posts.id"), nullable=False),
        sa.Column("user_id", sa.Integer(), sa.ForeignKey("users.id"), nullable=False),
        sa.Column("position", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.UniqueConstraint("comment_id", "user_id", name="uq_comment_user_mentions"),
    )
    op.create_index(
        "ix_comment_user_mentions_comment_id", "comment_user_mentions", ["comment_id"]
    )
    op.create_table(
        "notifications",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("entity_kind", sa.String(length=16), nullable=False),
        sa.Column("entity_id", sa.Integer(), nullable=False),
        sa.Column("mention_id", sa.Integer(), nullable=False),
        sa.Column("user_id", sa.Integer(), sa.ForeignKey("users.id"), nullable=False),
        sa.Column("state", sa.String(length=16), nullable=False, server_default="pending"),
        sa.Column("attempts", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("last_error", sa.String(length=255), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("sent_at", sa.DateTime(timezone=True), nullable=True),
        sa.UniqueConstraint(
            "entity_kind",
            "entity_id",
            "mention_id",
            "user_id",
            name="uq_notifications_mention_user",
        ),
    )
    op.create_table(
        "project_sequences",
        sa.Column(
            "project_id", sa.Integer(), sa.ForeignKey("projects.id"), primary_key=True
        ),
        sa.Column("last_number", sa.Integer(), nullable=False, server_default="0"),
    )


def downgrade() -> None:
    """Supprime les tables dans l'ordre inverse des dépendances."""
    op.drop_table("project_sequences")
    op.drop_table("notifications")
    op.drop_index("ix_comment_user_mentions_comment_id", table_name="comment_user_mentions")
    op.drop_table("comment_user_mentions")
    op.drop_index("ix_post_user_mentions_post_id", table_name="post_user_mentions")
    op.drop_table("post_user_mentions")
    op.drop_index("ix_comments_post_id", table_name="comments")
    op.drop_table("comments")
    op.drop_index("ix_posts_project_id", table_name="posts")
    op.drop_table("posts")
    op.drop_table("projects")
    op.drop_table("users")
