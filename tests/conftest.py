"""Configuration de test pour pytest.

- Base SQLite fichier par test (dans `tmp_path`), schéma créé depuis les modèles.
- Utilisateurs et projets de référence.
- Bus d'évènements qui enregistre les transitions émises après commit.
"""

import os
import sys
from types import SimpleNamespace

import pytest

# Ensure project root is on sys.path so that
# imports like `from backend...` resolve.
CURRENT_DIR = os.path.dirname(__file__)
PROJECT_ROOT = os.path.abspath(os.path.join(CURRENT_DIR, ".."))
if PROJECT_ROOT not in sys.path:
    sys.path.insert(0, PROJECT_ROOT)

from backend.domain.events import EventDispatcher  # noqa: E402
from backend.infra.repo.db import get_engine, get_session_factory, session_scope  # noqa: E402
from backend.infra.repo.models import Base, ProjectORM, UserORM  # noqa: E402
from backend.services.content_service import CommentService, PostService  # noqa: E402


class RecordingHandler:
    """Abonné de test: mémorise les évènements reçus."""

    def __init__(self) -> None:
        self.events = []

    def __call__(self, event) -> None:
        self.events.append(event)


@pytest.fixture
def engine(tmp_path):
    eng = get_engine(f"sqlite:///{tmp_path / 'content.db'}")
    Base.metadata.create_all(eng)
    yield eng
    eng.dispose()


@pytest.fixture
def session_factory(engine):
    return get_session_factory(engine)


@pytest.fixture
def seed(session_factory):
    """Crée trois utilisateurs et deux projets; retourne leurs identifiants."""
    with session_scope(session_factory) as session:
        alice = UserORM(username="alice", email="alice@example.com")
        josh = UserORM(username="joshsmith", email="josh@example.com")
        dana = UserORM(username="dana_lee", email="dana@example.com")
        alpha = ProjectORM(title="Alpha")
        beta = ProjectORM(title="Beta")
        session.add_all([alice, josh, dana, alpha, beta])
        session.flush()
        ids = SimpleNamespace(
            alice=alice.id,
            josh=josh.id,
            dana=dana.id,
            project=alpha.id,
            other_project=beta.id,
        )
    return ids


@pytest.fixture
def recorder():
    return RecordingHandler()


@pytest.fixture
def dispatcher(recorder):
    bus = EventDispatcher()
    bus.subscribe(recorder)
    return bus


@pytest.fixture
def post_service(session_factory, dispatcher):
    return PostService(session_factory, dispatcher)


@pytest.fixture
def comment_service(session_factory, dispatcher):
    return CommentService(session_factory, dispatcher)


@pytest.fixture
def published_post(post_service, seed):
    """Post publié du projet Alpha, écrit par alice."""
    return post_service.create(
        seed.alice,
        {"project_id": seed.project, "title": "Kickoff", "markdown_preview": "Hello"},
        commit=True,
    )
