"""
Service de publication des posts et commentaires.

Responsabilités:
- Appliquer la machine à états (brouillon → publié → édité) via l'API en deux
  temps des entités (`stage` puis `commit`).
- Garantir l'ordre des effets d'une sauvegarde, dans une seule unité de
  travail: validation → écriture → numérotation (première publication d'un
  post) → régénération des mentions.
- Émettre `TransitionOccurred` après le commit de base pour toute sauvegarde
  validée (jamais pour un simple aperçu, jamais après un rollback).
"""

from __future__ import annotations

from collections.abc import Callable, Mapping
from datetime import UTC, datetime
from typing import Any, Generic, TypeVar

import structlog
from sqlalchemy.orm import Session, sessionmaker

from backend.app.metrics import (
    CONTENT_SAVES_TOTAL,
    CONTENT_TRANSITIONS_TOTAL,
    CONTENT_VALIDATION_FAILURES_TOTAL,
    SEQUENCE_CONFLICTS_TOTAL,
)
from backend.domain.entities import Comment, ContentEntity, Post
from backend.domain.errors import DuplicateSequenceValue, NotFoundError, ValidationFailed
from backend.domain.events import EventDispatcher, TransitionOccurred
from backend.domain.publishing import CommitOutcome
from backend.infra.ops.post_commit import register_action_after_commit
from backend.infra.repo.content_repo import (
    DEFAULT_COMMENT_SORT,
    DEFAULT_POST_SORT,
    CommentRepo,
    PostRepo,
)
from backend.infra.repo.db import session_scope
from backend.infra.sequencer import ProjectSequencer
from backend.services.mention_generator import MentionGenerator

log = structlog.get_logger(__name__)

E = TypeVar("E", bound=ContentEntity)

Guard = Callable[[Any], None]
Clock = Callable[[], datetime]


def _utcnow() -> datetime:
    return datetime.now(UTC)


class ContentService(Generic[E]):
    """Base commune: cycle de vie d'un type de contenu."""

    def __init__(
        self,
        session_factory: sessionmaker,
        dispatcher: EventDispatcher,
        mentions: MentionGenerator | None = None,
        clock: Clock | None = None,
    ) -> None:
        self._session_factory = session_factory
        self._dispatcher = dispatcher
        self._mentions = mentions or MentionGenerator()
        self._clock = clock or _utcnow

    # Points d'extension par type de contenu
    def _new(self, user_id: int, attrs: Mapping[str, Any]) -> E:
        raise NotImplementedError

    def _repo(self, session: Session):  # type: ignore[no-untyped-def]
        raise NotImplementedError

    def _check_parent(self, session: Session, entity: E) -> None:
        raise NotImplementedError

    def _on_created(self, session: Session, entity: E) -> None:
        return None

    def _on_first_publication(self, session: Session, entity: E) -> None:
        return None

    # Opérations exposées
    def get(self, entity_id: int) -> E:
        """Retourne le contenu ou lève `NotFoundError`."""
        with session_scope(self._session_factory) as session:
            entity = self._repo(session).get(entity_id)
        if entity is None:
            raise NotFoundError(self._kind(), entity_id)
        return entity

    def create_draft(
        self, user_id: int, attrs: Mapping[str, Any], guard: Guard | None = None
    ) -> E:
        """Crée un brouillon (aperçu seulement, pas de numéro, pas de notification)."""
        return self.create(user_id, attrs, commit=False, guard=guard)

    def create(
        self,
        user_id: int,
        attrs: Mapping[str, Any],
        commit: bool,
        guard: Guard | None = None,
    ) -> E:
        """Crée un contenu puis, si `commit`, le publie dans la même unité de travail."""
        entity = self._new(user_id, attrs)
        with session_scope(self._session_factory) as session:
            saved = self._apply(session, entity, attrs, commit, guard, is_new=True)
        return saved

    def save(
        self,
        entity_id: int,
        commit: bool,
        attrs: Mapping[str, Any],
        guard: Guard | None = None,
    ) -> E:
        """Met à jour un contenu existant.

        Args:
            entity_id: identifiant du contenu.
            commit: False pour un aperçu (seuls les champs `*_preview` changent),
                True pour promouvoir l'aperçu et faire avancer l'état.
            attrs: attributs à appliquer (les clés non autorisées sont ignorées).
            guard: contrôle optionnel appelé avec le contenu chargé (autorisation).

        Raises:
            NotFoundError: contenu ou parent introuvable.
            ValidationFailed: erreurs par champ; aucune écriture partielle.
        """
        with session_scope(self._session_factory) as session:
            entity = self._repo(session).get(entity_id)
            if entity is None:
                raise NotFoundError(self._kind(), entity_id)
            saved = self._apply(session, entity, attrs, commit, guard, is_new=False)
        return saved

    # Cœur
    def _apply(
        self,
        session: Session,
        entity: E,
        attrs: Mapping[str, Any],
        commit: bool,
        guard: Guard | None,
        is_new: bool,
    ) -> E:
        if guard is not None:
            guard(entity)
        entity.stage(attrs)
        outcome = entity.commit(commit)
        errors = entity.validate()
        if errors:
            CONTENT_VALIDATION_FAILURES_TOTAL.labels(kind=entity.kind).inc()
            raise ValidationFailed(errors)
        self._check_parent(session, entity)

        now = self._clock()
        if is_new:
            entity.created_at = now
        entity.updated_at = now

        repo = self._repo(session)
        saved = repo.add(entity) if is_new else repo.update(entity)
        if is_new:
            self._on_created(session, saved)
        if outcome is not None and outcome.first_publication:
            self._on_first_publication(session, saved)
        saved.mentioned_user_ids = self._mentions.regenerate(session, saved, now)

        CONTENT_SAVES_TOTAL.labels(kind=saved.kind, mode="commit" if commit else "preview").inc()
        if outcome is not None:
            self._schedule_transition(session, saved, outcome)
        log.info(
            "content_committed" if commit else "content_previewed",
            entity_kind=saved.kind,
            entity_id=saved.id,
            state=saved.state.value,
            commit=commit,
        )
        return saved

    def _schedule_transition(self, session: Session, entity: E, outcome: CommitOutcome) -> None:
        event_name = outcome.event.value if outcome.event is not None else "recommit"
        CONTENT_TRANSITIONS_TOTAL.labels(kind=entity.kind, event=event_name).inc()
        event = TransitionOccurred(
            entity_kind=entity.kind,
            entity_id=entity.id,
            from_state=outcome.from_state,
            to_state=outcome.to_state,
            event=outcome.event,
            mentioned_user_ids=tuple(entity.mentioned_user_ids),
        )
        register_action_after_commit(session, self._dispatcher.emit, event)

    def _kind(self) -> str:
        raise NotImplementedError


class PostService(ContentService[Post]):
    """Cycle de vie des posts (numérotés par projet à la première publication)."""

    def __init__(
        self,
        session_factory: sessionmaker,
        dispatcher: EventDispatcher,
        sequencer: ProjectSequencer | None = None,
        mentions: MentionGenerator | None = None,
        clock: Clock | None = None,
    ) -> None:
        super().__init__(session_factory, dispatcher, mentions=mentions, clock=clock)
        self._sequencer = sequencer or ProjectSequencer()

    def _kind(self) -> str:
        return "post"

    def _new(self, user_id: int, attrs: Mapping[str, Any]) -> Post:
        return Post(user_id=user_id, project_id=attrs.get("project_id"))

    def _repo(self, session: Session) -> PostRepo:
        return PostRepo(session)

    def _check_parent(self, session: Session, entity: Post) -> None:
        if not PostRepo(session).project_exists(entity.project_id):
            raise NotFoundError("project", entity.project_id)

    def _on_first_publication(self, session: Session, entity: Post) -> None:
        """Attribue le numéro du post; une collision est retentée une fois."""
        repo = PostRepo(session)
        for attempt in (1, 2):
            try:
                number = self._sequencer.next_number(session, entity.project_id)
                repo.assign_number(entity.id, number)
            except DuplicateSequenceValue as err:
                SEQUENCE_CONFLICTS_TOTAL.inc()
                log.warning(
                    "sequence_conflict",
                    project_id=entity.project_id,
                    number=err.number,
                    attempt=attempt,
                )
                continue
            entity.number = number
            return
        raise ValidationFailed({"number": ["has already been taken"]})

    def list_for_project(
        self, project_id: int, scope: str = "active", sort: str = DEFAULT_POST_SORT
    ) -> list[Post]:
        """Posts d'un projet; `sort` vaut `-number` par défaut (plus récents d'abord)."""
        with session_scope(self._session_factory) as session:
            repo = PostRepo(session)
            if not repo.project_exists(project_id):
                raise NotFoundError("project", project_id)
            return repo.list_for_project(project_id, scope=scope, sort=sort)


class CommentService(ContentService[Comment]):
    """Cycle de vie des commentaires."""

    def _kind(self) -> str:
        return "comment"

    def _new(self, user_id: int, attrs: Mapping[str, Any]) -> Comment:
        return Comment(user_id=user_id, post_id=attrs.get("post_id"))

    def _repo(self, session: Session) -> CommentRepo:
        return CommentRepo(session)

    def _check_parent(self, session: Session, entity: Comment) -> None:
        if not CommentRepo(session).post_exists(entity.post_id):
            raise NotFoundError("post", entity.post_id)

    def _on_created(self, session: Session, entity: Comment) -> None:
        PostRepo(session).increment_comments_count(entity.post_id)

    def list_for_post(
        self, post_id: int, scope: str = "active", sort: str = DEFAULT_COMMENT_SORT
    ) -> list[Comment]:
        """Commentaires d'un post, du plus ancien au plus récent par défaut."""
        with session_scope(self._session_factory) as session:
            repo = CommentRepo(session)
            if not repo.post_exists(post_id):
                raise NotFoundError("post", post_id)
            return repo.list_for_post(post_id, scope=scope, sort=sort)
