"""
Erreurs du domaine de contenu (posts, commentaires, mentions, notifications).

Toutes les erreurs du chemin synchrone héritent de `ContentError` et sont
traduites en réponses HTTP par `backend.api.errors`. `DeliveryFailure` ne
concerne que le worker asynchrone et ne remonte jamais à l'appelant d'une
sauvegarde.
"""

from __future__ import annotations


class ContentError(Exception):
    """Racine des erreurs métier du backend de contenu."""


class ValidationFailed(ContentError):
    """Échec de validation, avec messages structurés par champ.

    Attributs
    - errors: dict `champ -> [messages]`.
    """

    def __init__(self, errors: dict[str, list[str]]) -> None:
        self.errors = {field: list(messages) for field, messages in errors.items()}
        fields = ", ".join(sorted(self.errors))
        super().__init__(f"validation failed: {fields}")


class NotFoundError(ContentError):
    """Ressource référencée (projet, post, commentaire) introuvable."""

    def __init__(self, resource: str, resource_id: object) -> None:
        self.resource = resource
        self.resource_id = resource_id
        super().__init__(f"{resource} {resource_id} not found")


class InvalidTransition(ContentError):
    """Couple (état, évènement) absent de la table de transitions."""

    def __init__(self, state: str, event: str) -> None:
        self.state = state
        self.event = event
        super().__init__(f"cannot {event} from {state}")


class DuplicateSequenceValue(ContentError):
    """Collision de numéro de séquence dans un même projet."""

    def __init__(self, project_id: int, number: int | None = None) -> None:
        self.project_id = project_id
        self.number = number
        super().__init__(f"number {number} already taken in project {project_id}")


class DeliveryFailure(ContentError):
    """Échec (transitoire) de livraison d'une notification."""


class NotAuthorized(ContentError):
    """Le collaborateur d'autorisation a refusé l'action."""

    def __init__(self, action: str) -> None:
        self.action = action
        super().__init__(f"not authorized to {action}")
