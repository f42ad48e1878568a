"""Tests du séquenceur de numéros par projet."""

from concurrent.futures import ThreadPoolExecutor

from sqlalchemy import select

from backend.infra.repo.db import session_scope
from backend.infra.repo.models import PostORM, ProjectSequenceORM
from backend.infra.sequencer import ProjectSequencer


def test_counter_starts_after_existing_numbers(session_factory, seed):
    """Le compteur est créé à partir du plus grand numéro du projet."""
    with session_scope(session_factory) as session:
        session.add(
            PostORM(
                project_id=seed.project,
                user_id=seed.alice,
                state="published",
                number=7,
                markdown="x",
            )
        )
    sequencer = ProjectSequencer()
    with session_scope(session_factory) as session:
        assert sequencer.next_number(session, seed.project) == 8
        assert sequencer.next_number(session, seed.project) == 9
    with session_scope(session_factory) as session:
        row = session.get(ProjectSequenceORM, seed.project)
        assert row.last_number == 9


def test_projects_have_independent_counters(session_factory, seed):
    sequencer = ProjectSequencer()
    with session_scope(session_factory) as session:
        assert sequencer.next_number(session, seed.project) == 1
        assert sequencer.next_number(session, seed.other_project) == 1
        assert sequencer.next_number(session, seed.project) == 2


def test_rolled_back_number_is_reused(session_factory, seed):
    """Un numéro tiré dans une transaction annulée n'est pas consommé."""
    sequencer = ProjectSequencer()
    try:
        with session_scope(session_factory) as session:
            sequencer.next_number(session, seed.project)
            raise RuntimeError("abort")
    except RuntimeError:
        pass
    with session_scope(session_factory) as session:
        assert sequencer.next_number(session, seed.project) == 1


def test_concurrent_publications_get_distinct_numbers(post_service, session_factory, seed):
    """Des publications simultanées dans un projet obtiennent 1..N sans trou ni doublon."""
    drafts = [
        post_service.create_draft(
            seed.alice,
            {"project_id": seed.project, "title": f"Post {i}", "markdown_preview": "body"},
        )
        for i in range(8)
    ]

    def publish(post_id):
        return post_service.save(post_id, commit=True, attrs={}).number

    with ThreadPoolExecutor(max_workers=4) as pool:
        numbers = list(pool.map(publish, [d.id for d in drafts]))

    assert sorted(numbers) == list(range(1, 9))
    with session_scope(session_factory) as session:
        stored = session.execute(
            select(PostORM.number).where(PostORM.project_id == seed.project)
        ).scalars().all()
    assert sorted(stored) == list(range(1, 9))
