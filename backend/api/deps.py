"""Dépendances partagées pour les routes de l'API.

But du module
-------------
- Centraliser la création des instances nécessaires aux endpoints (services,
  utilisateur courant, autorisation).
- Offrir des points d'ancrage surchargeables (`app.dependency_overrides`)
  pour les tests, sans modifier les routes.
"""

from fastapi import Depends, Header
from sqlalchemy.orm import sessionmaker

from backend.api.errors import unauthorized
from backend.core.container import container
from backend.domain.auth import decode_token
from backend.domain.entities import User
from backend.domain.events import EventDispatcher
from backend.domain.policy import Authorizer
from backend.infra.repo.db import session_scope
from backend.infra.repo.user_repo import SqlUserLookup
from backend.services.content_service import CommentService, PostService


def get_session_factory() -> sessionmaker:
    return container.session_factory


def get_dispatcher() -> EventDispatcher:
    return container.dispatcher


def get_authorizer() -> Authorizer:
    return container.authorizer


def get_post_service(
    session_factory: sessionmaker = Depends(get_session_factory),
    dispatcher: EventDispatcher = Depends(get_dispatcher),
) -> PostService:
    return PostService(session_factory, dispatcher, sequencer=container.sequencer)


def get_comment_service(
    session_factory: sessionmaker = Depends(get_session_factory),
    dispatcher: EventDispatcher = Depends(get_dispatcher),
) -> CommentService:
    return CommentService(session_factory, dispatcher)


def get_current_user(
    authorization: str | None = Header(None),
    session_factory: sessionmaker = Depends(get_session_factory),
) -> User:
    """Extrait et valide l'utilisateur courant à partir du token d'autorisation."""
    if not authorization or not authorization.lower().startswith("bearer "):
        raise unauthorized("missing_token")
    token = authorization.split(" ", 1)[1]
    data = decode_token(token, container.settings.JWT_SECRET, container.settings.JWT_ALG)
    if not data or not data.sub.isdigit():
        raise unauthorized("invalid_token")
    with session_scope(session_factory) as session:
        user = SqlUserLookup(session).get(int(data.sub))
    if user is None:
        raise unauthorized("unknown_user")
    return user
