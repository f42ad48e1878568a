"""
Entités du domaine de contenu.

Ce module définit les contenus publiables (Post, Comment) avec leur dualité
aperçu/validé, ainsi que les objets associés (User, Mention, Notification).

Les contenus exposent une API en deux temps:
- `stage(attrs)` applique les attributs autorisés en mémoire et rend l'aperçu;
- `commit(publish)` promeut l'aperçu vers les champs validés et fait avancer
  l'état.
Rien n'est persisté ici: c'est le service qui valide puis écrit.
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, ClassVar

from pydantic import BaseModel

from backend.domain.markdown import render_markdown
from backend.domain.publishing import (
    ACTIVE_STATES,
    CommitOutcome,
    ContentState,
    commit_event,
    transition,
)

ENTITY_POST = "post"
ENTITY_COMMENT = "comment"

POST_TYPES = ("idea", "progress", "task", "issue")
POST_STATUSES = ("open", "closed")

BLANK = "can't be blank"


def _present(value: object) -> bool:
    if value is None:
        return False
    if isinstance(value, str):
        return bool(value.strip())
    return True


class User(BaseModel):
    """Utilisateur (forme minimale consommée par le cœur)."""

    id: int
    username: str
    email: str


@dataclass
class ContentEntity:
    """Base commune des contenus publiables.

    Attributs
    - markdown_preview / body_preview: contenu en cours d'édition et son rendu.
    - markdown / body: contenu validé (nul tant que jamais publié).
    - state: état de publication (`draft`, `published`, `edited`).
    - mentioned_user_ids: utilisateurs mentionnés par le dernier texte validé.
    """

    kind: ClassVar[str] = ""
    stageable: ClassVar[frozenset[str]] = frozenset({"markdown_preview"})

    id: int | None = None
    user_id: int | None = None
    markdown_preview: str | None = None
    body_preview: str | None = None
    markdown: str | None = None
    body: str | None = None
    state: ContentState = ContentState.DRAFT
    created_at: datetime | None = None
    updated_at: datetime | None = None
    mentioned_user_ids: list[int] = field(default_factory=list)

    @property
    def is_draft(self) -> bool:
        return self.state is ContentState.DRAFT

    @property
    def is_active(self) -> bool:
        return self.state in ACTIVE_STATES

    @property
    def edited_at(self) -> datetime | None:
        """Horodatage de dernière modification, uniquement pour un contenu `edited`."""
        return self.updated_at if self.state is ContentState.EDITED else None

    def stage(self, attrs: Mapping[str, Any]) -> None:
        """Applique les attributs autorisés et rend l'aperçu.

        Les clés non autorisées sont ignorées. `body_preview` est toujours
        recalculé depuis `markdown_preview`, jamais fourni par l'appelant.
        """
        for name in self.stageable:
            if name in attrs:
                setattr(self, name, attrs[name])
        if self.markdown_preview is not None:
            self.body_preview = render_markdown(self.markdown_preview)
        else:
            self.body_preview = None

    def commit(self, publish: bool) -> CommitOutcome | None:
        """Promeut l'aperçu et déclenche la transition (si `publish`).

        Retourne None pour une simple sauvegarde d'aperçu.
        """
        if not publish:
            return None
        if self.markdown_preview is not None:
            self.markdown = self.markdown_preview
            self.body = self.body_preview
        from_state = self.state
        event = commit_event(from_state)
        if event is not None:
            self.state = transition(from_state, event)
        return CommitOutcome(from_state=from_state, to_state=self.state, event=event)

    def validate(self) -> dict[str, list[str]]:
        """Retourne les erreurs par champ (dict vide si valide)."""
        errors: dict[str, list[str]] = {}
        if self.user_id is None:
            errors.setdefault("user", []).append(BLANK)
        if not _present(self.markdown) and not _present(self.markdown_preview):
            errors.setdefault("markdown", []).append(BLANK)
            errors.setdefault("markdown_preview", []).append(BLANK)
        return errors


@dataclass
class Post(ContentEntity):
    """Post d'un projet, numéroté par projet à sa première publication."""

    kind: ClassVar[str] = ENTITY_POST
    stageable: ClassVar[frozenset[str]] = frozenset({"markdown_preview", "title", "post_type"})

    project_id: int | None = None
    title: str | None = None
    post_type: str = "task"
    status: str = "open"
    number: int | None = None
    comments_count: int = 0

    @property
    def scope_id(self) -> int | None:
        return self.project_id

    def validate(self) -> dict[str, list[str]]:
        errors = super().validate()
        if self.project_id is None:
            errors.setdefault("project", []).append(BLANK)
        if not self.is_draft and not _present(self.title):
            errors.setdefault("title", []).append(BLANK)
        if self.post_type not in POST_TYPES:
            errors.setdefault("post_type", []).append("is not included in the list")
        if self.status not in POST_STATUSES:
            errors.setdefault("status", []).append("is not included in the list")
        return errors


@dataclass
class Comment(ContentEntity):
    """Commentaire attaché à un post."""

    kind: ClassVar[str] = ENTITY_COMMENT

    post_id: int | None = None

    def validate(self) -> dict[str, list[str]]:
        errors = super().validate()
        if self.post_id is None:
            errors.setdefault("post", []).append(BLANK)
        return errors


@dataclass
class Mention:
    """Référence extraite d'un contenu vers un utilisateur existant."""

    id: int
    entity_kind: str
    entity_id: int
    user_id: int
    created_at: datetime | None = None


@dataclass
class Notification:
    """Notification d'un utilisateur pour une mention (`pending`, `sent`, `failed`)."""

    id: int
    entity_kind: str
    entity_id: int
    mention_id: int
    user_id: int
    state: str = "pending"
    attempts: int = 0
    last_error: str | None = None
    created_at: datetime | None = None
    sent_at: datetime | None = None
