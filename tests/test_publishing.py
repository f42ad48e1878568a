"""Tests de la machine à états et de l'API `stage`/`commit` des contenus."""

import pytest

from backend.domain.entities import Comment, Post
from backend.domain.errors import InvalidTransition
from backend.domain.publishing import (
    ContentState,
    PublishEvent,
    commit_event,
    transition,
)


def test_transition_table():
    assert transition(ContentState.DRAFT, PublishEvent.PUBLISH) is ContentState.PUBLISHED
    assert transition(ContentState.PUBLISHED, PublishEvent.EDIT) is ContentState.EDITED


@pytest.mark.parametrize(
    "state,event",
    [
        (ContentState.DRAFT, PublishEvent.EDIT),
        (ContentState.PUBLISHED, PublishEvent.PUBLISH),
        (ContentState.EDITED, PublishEvent.PUBLISH),
        (ContentState.EDITED, PublishEvent.EDIT),
    ],
)
def test_undefined_transitions_raise(state, event):
    """Aucun passage direct brouillon → édité, aucun retour arrière."""
    with pytest.raises(InvalidTransition) as exc:
        transition(state, event)
    assert exc.value.state == state.value
    assert exc.value.event == event.value


def test_commit_event_per_state():
    assert commit_event(ContentState.DRAFT) is PublishEvent.PUBLISH
    assert commit_event(ContentState.PUBLISHED) is PublishEvent.EDIT
    assert commit_event(ContentState.EDITED) is None


def test_stage_renders_preview_only():
    post = Post(user_id=1, project_id=1)
    post.stage({"markdown_preview": "# Hi", "title": "T", "number": 9, "status": "closed"})
    assert post.body_preview == "<h1>Hi</h1>"
    assert post.title == "T"
    assert post.markdown is None and post.body is None
    # Clés non autorisées ignorées
    assert post.number is None
    assert post.status == "open"


def test_preview_save_leaves_state_untouched():
    comment = Comment(user_id=1, post_id=1)
    comment.stage({"markdown_preview": "draft text"})
    assert comment.commit(False) is None
    assert comment.state is ContentState.DRAFT
    assert comment.markdown is None


def test_commit_promotes_and_walks_states():
    comment = Comment(user_id=1, post_id=1)
    comment.stage({"markdown_preview": "v1"})
    outcome = comment.commit(True)
    assert outcome.first_publication
    assert comment.state is ContentState.PUBLISHED
    assert (comment.markdown, comment.body) == ("v1", "<p>v1</p>")

    comment.stage({"markdown_preview": "v2"})
    outcome = comment.commit(True)
    assert outcome.event is PublishEvent.EDIT
    assert comment.state is ContentState.EDITED

    comment.stage({"markdown_preview": "v3"})
    outcome = comment.commit(True)
    assert outcome.event is None
    assert outcome.from_state is outcome.to_state is ContentState.EDITED
    assert comment.markdown == "v3"


def test_edited_at_only_for_edited():
    post = Post(user_id=1, project_id=1, state=ContentState.PUBLISHED)
    post.updated_at = "ts"
    assert post.edited_at is None
    post.state = ContentState.EDITED
    assert post.edited_at == "ts"


def test_validation_rules():
    """Titre requis hors brouillon, contenu requis, type de post connu."""
    draft = Post(user_id=1, project_id=1, markdown_preview="x")
    assert draft.validate() == {}

    published = Post(user_id=1, project_id=1, state=ContentState.PUBLISHED, markdown="x")
    assert "title" in published.validate()

    empty = Comment(user_id=None, post_id=None)
    errors = empty.validate()
    assert set(errors) == {"user", "post", "markdown", "markdown_preview"}

    wrong_type = Post(user_id=1, project_id=1, markdown_preview="x", post_type="epic")
    assert wrong_type.validate() == {"post_type": ["is not included in the list"]}
