"""
Point d'entrée de l'autorisation consommée par le cœur.

La logique de politique elle-même est externe: le cœur ne consomme qu'un
booléen `authorized(user, action, entity)`.
"""

from __future__ import annotations

from typing import Any, Protocol

from backend.domain.entities import User
from backend.domain.errors import NotAuthorized


class Authorizer(Protocol):
    """Collaborateur d'autorisation (oui/non)."""

    def authorized(self, user: User, action: str, entity: Any) -> bool: ...


class AllowAll:
    """Autorise toute action (politique par défaut en dev)."""

    def authorized(self, user: User, action: str, entity: Any) -> bool:
        return True


def require_authorized(authorizer: Authorizer, user: User, action: str, entity: Any) -> None:
    """Lève `NotAuthorized` si le collaborateur refuse l'action.

    Args:
        authorizer: collaborateur d'autorisation.
        user: utilisateur courant.
        action: nom de l'action (`create`, `update`, `show`, …).
        entity: contenu ciblé (ou None pour une collection).
    """
    if not authorizer.authorized(user, action, entity):
        raise NotAuthorized(action)
