"""
Évènements de transition et dispatcher synchrone.

La machine à états ne connaît pas la livraison des notifications: après un
commit de base réussi, le service émet `TransitionOccurred` et chaque abonné
(ex: planificateur de notifications) décide de la suite.
"""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass

import structlog

from backend.domain.publishing import ContentState, PublishEvent

log = structlog.get_logger(__name__)

Handler = Callable[["TransitionOccurred"], None]


@dataclass(frozen=True)
class TransitionOccurred:
    """Un contenu a été validé (commit) et persisté.

    `event` est None pour un re-commit d'un contenu déjà `edited`.
    """

    entity_kind: str
    entity_id: int
    from_state: ContentState
    to_state: ContentState
    event: PublishEvent | None
    mentioned_user_ids: tuple[int, ...] = ()


class EventDispatcher:
    """Diffuse les évènements de transition aux abonnés enregistrés."""

    def __init__(self) -> None:
        self._handlers: list[Handler] = []

    def subscribe(self, handler: Handler) -> None:
        """Enregistre un abonné (sans doublon)."""
        if handler not in self._handlers:
            self._handlers.append(handler)

    def emit(self, event: TransitionOccurred) -> None:
        """Appelle chaque abonné; l'échec d'un abonné n'interrompt pas les autres.

        L'émission a lieu après le commit: l'appelant a déjà sa réponse, une
        erreur ici est journalisée et non propagée.
        """
        for handler in list(self._handlers):
            try:
                handler(event)
            except Exception:
                log.exception(
                    "transition_handler_failed",
                    entity_kind=event.entity_kind,
                    entity_id=event.entity_id,
                    handler=getattr(handler, "__name__", type(handler).__name__),
                )
