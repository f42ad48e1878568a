"""
Machine à états de publication des contenus (posts et commentaires).

États: `draft` (initial) → `published` → `edited`. La table `TRANSITIONS`
est la seule source de vérité: tout couple (état, évènement) absent lève
`InvalidTransition` au lieu d'être ignoré.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum

from backend.domain.errors import InvalidTransition


class ContentState(str, Enum):
    """États possibles d'un contenu."""

    DRAFT = "draft"
    PUBLISHED = "published"
    EDITED = "edited"


class PublishEvent(str, Enum):
    """Évènements déclenchant une transition."""

    PUBLISH = "publish"
    EDIT = "edit"


TRANSITIONS: dict[tuple[ContentState, PublishEvent], ContentState] = {
    (ContentState.DRAFT, PublishEvent.PUBLISH): ContentState.PUBLISHED,
    (ContentState.PUBLISHED, PublishEvent.EDIT): ContentState.EDITED,
}

# Évènement tiré par un commit selon l'état courant (edited: aucun)
COMMIT_EVENTS: dict[ContentState, PublishEvent | None] = {
    ContentState.DRAFT: PublishEvent.PUBLISH,
    ContentState.PUBLISHED: PublishEvent.EDIT,
    ContentState.EDITED: None,
}

ACTIVE_STATES = frozenset({ContentState.PUBLISHED, ContentState.EDITED})


def transition(state: ContentState, event: PublishEvent) -> ContentState:
    """Retourne l'état cible pour `event` depuis `state`, sinon lève `InvalidTransition`."""
    key = (ContentState(state), PublishEvent(event))
    if key not in TRANSITIONS:
        raise InvalidTransition(key[0].value, key[1].value)
    return TRANSITIONS[key]


def commit_event(state: ContentState) -> PublishEvent | None:
    """Évènement déclenché par un commit depuis `state` (None si l'état est terminal)."""
    return COMMIT_EVENTS[ContentState(state)]


@dataclass(frozen=True)
class CommitOutcome:
    """Résultat d'un commit en mémoire.

    `event` vaut None pour un re-commit d'un contenu déjà `edited`: le contenu
    est promu mais l'état ne change pas.
    """

    from_state: ContentState
    to_state: ContentState
    event: PublishEvent | None

    @property
    def first_publication(self) -> bool:
        return self.event is PublishEvent.PUBLISH
