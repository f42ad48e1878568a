"""Tests HTTP des routes posts et commentaires (TestClient + overrides de dépendances)."""

from __future__ import annotations

import pytest
from fastapi.testclient import TestClient

from backend.api.deps import get_authorizer, get_dispatcher, get_session_factory
from backend.app.main import app
from backend.core.container import container
from backend.core.http_constants import (
    HTTP_FORBIDDEN,
    HTTP_NOT_FOUND,
    HTTP_OK,
    HTTP_UNAUTHORIZED,
    HTTP_UNPROCESSABLE_ENTITY,
)
from backend.domain.auth import create_access_token
from backend.domain.policy import AllowAll


class DenyAll:
    def authorized(self, user, action, entity) -> bool:
        return False


@pytest.fixture
def authorizer():
    return AllowAll()


@pytest.fixture
def client(session_factory, dispatcher, authorizer):
    app.dependency_overrides[get_session_factory] = lambda: session_factory
    app.dependency_overrides[get_dispatcher] = lambda: dispatcher
    app.dependency_overrides[get_authorizer] = lambda: authorizer
    yield TestClient(app)
    app.dependency_overrides.clear()


def _auth(user_id: int) -> dict[str, str]:
    token = create_access_token(
        secret=container.settings.JWT_SECRET,
        alg=container.settings.JWT_ALG,
        expires_min=5,
        payload={"sub": str(user_id)},
    )
    return {"Authorization": f"Bearer {token}"}


def _create_post(client, seed, **attrs):
    payload = {"project_id": seed.project, "title": "Post title", "markdown": "Post body"}
    payload.update(attrs)
    return client.post("/posts", json=payload, headers=_auth(seed.alice))


def test_create_requires_token(client, seed):
    r = client.post("/posts", json={"project_id": seed.project})
    assert r.status_code == HTTP_UNAUTHORIZED
    assert r.json()["code"] == "UNAUTHORIZED"


def test_invalid_token_is_rejected(client, seed):
    r = client.post(
        "/posts", json={"project_id": seed.project}, headers={"Authorization": "Bearer nope"}
    )
    assert r.status_code == HTTP_UNAUTHORIZED


def test_create_publishes_by_default(client, seed, recorder):
    r = _create_post(client, seed, status="closed", number=3, markdown="@joshsmith hi")
    assert r.status_code == HTTP_OK
    body = r.json()
    assert body["state"] == "published"
    assert body["number"] == 1
    assert body["status"] == "open"
    assert body["post_type"] == "task"
    assert body["user_id"] == seed.alice
    assert body["body"] == "<p>@joshsmith hi</p>"
    assert body["mentioned_user_ids"] == [seed.josh]
    assert body["edited_at"] is None
    assert [e.entity_id for e in recorder.events] == [body["id"]]


def test_create_preview_is_a_draft(client, seed, recorder):
    r = _create_post(client, seed, preview=True)
    assert r.status_code == HTTP_OK
    body = r.json()
    assert body["state"] == "draft"
    assert body["number"] is None
    assert body["markdown"] is None
    assert body["body_preview"] == "<p>Post body</p>"
    assert recorder.events == []


def test_state_published_commits(client, seed):
    r = _create_post(client, seed, state="published", post_type="issue")
    assert r.json()["state"] == "published"
    assert r.json()["post_type"] == "issue"


def test_missing_title_is_422(client, seed):
    r = client.post(
        "/posts",
        json={"project_id": seed.project, "markdown": "body"},
        headers={**_auth(seed.alice), "X-Request-ID": "req-123"},
    )
    assert r.status_code == HTTP_UNPROCESSABLE_ENTITY
    body = r.json()
    assert body["code"] == "VALIDATION_ERROR"
    assert body["details"]["errors"] == {"title": ["can't be blank"]}
    assert body["trace_id"] == "req-123"
    assert r.headers["X-Request-ID"] == "req-123"


def test_missing_project_is_422(client, seed):
    r = client.post("/posts", json={"title": "t", "markdown": "b"}, headers=_auth(seed.alice))
    assert r.status_code == HTTP_UNPROCESSABLE_ENTITY
    assert "project" in r.json()["details"]["errors"]


def test_malformed_payload_is_422(client, seed):
    r = client.post("/posts", json={"project_id": "abc"}, headers=_auth(seed.alice))
    assert r.status_code == HTTP_UNPROCESSABLE_ENTITY
    assert "project_id" in r.json()["details"]["errors"]


def test_unknown_project_is_404(client, seed):
    r = _create_post(client, seed, project_id=999)
    assert r.status_code == HTTP_NOT_FOUND
    assert r.json()["code"] == "NOT_FOUND"


def test_refused_authorization_is_403(client, seed, authorizer):
    app.dependency_overrides[get_authorizer] = lambda: DenyAll()
    r = _create_post(client, seed)
    assert r.status_code == HTTP_FORBIDDEN
    assert r.json()["code"] == "FORBIDDEN"
    app.dependency_overrides[get_authorizer] = lambda: authorizer
    listing = client.get(f"/projects/{seed.project}/posts", params={"scope": "all"})
    assert listing.json() == []


def test_patch_flow_draft_published_edited(client, seed, recorder):
    draft = _create_post(client, seed, preview=True).json()

    r = client.patch(
        f"/posts/{draft['id']}",
        json={"markdown": "@dana_lee ready", "title": "Edited title"},
        headers=_auth(seed.alice),
    )
    assert r.status_code == HTTP_OK
    published = r.json()
    assert published["state"] == "published"
    assert published["number"] == 1
    assert published["title"] == "Edited title"
    assert published["mentioned_user_ids"] == [seed.dana]

    r = client.patch(
        f"/posts/{draft['id']}", json={"markdown": "v2"}, headers=_auth(seed.alice)
    )
    edited = r.json()
    assert edited["state"] == "edited"
    assert edited["number"] == 1
    assert edited["edited_at"] is not None
    assert edited["mentioned_user_ids"] == []
    assert len(recorder.events) == 2


def test_patch_preview_keeps_published_content(client, seed):
    post = _create_post(client, seed).json()
    r = client.patch(
        f"/posts/{post['id']}",
        json={"markdown_preview": "draft change", "preview": True},
        headers=_auth(seed.alice),
    )
    body = r.json()
    assert body["state"] == "published"
    assert body["markdown"] == "Post body"
    assert body["markdown_preview"] == "draft change"


def test_patch_invalid_attributes_is_422(client, seed):
    post = _create_post(client, seed).json()
    r = client.patch(
        f"/posts/{post['id']}", json={"title": "", "markdown": ""}, headers=_auth(seed.alice)
    )
    assert r.status_code == HTTP_UNPROCESSABLE_ENTITY
    assert client.get(f"/posts/{post['id']}").json()["title"] == "Post title"


def test_patch_unknown_post_is_404(client, seed):
    r = client.patch("/posts/12345", json={}, headers=_auth(seed.alice))
    assert r.status_code == HTTP_NOT_FOUND


def test_listing_posts(client, seed):
    _create_post(client, seed, preview=True)
    first = _create_post(client, seed).json()
    second = _create_post(client, seed).json()

    r = client.get(f"/projects/{seed.project}/posts")
    assert r.status_code == HTTP_OK
    assert [p["number"] for p in r.json()] == [2, 1]
    assert [p["id"] for p in r.json()] == [second["id"], first["id"]]

    r = client.get(f"/projects/{seed.project}/posts", params={"sort": "number", "scope": "all"})
    assert [p["number"] for p in r.json()] == [1, 2, None]

    assert client.get("/projects/999/posts").status_code == HTTP_NOT_FOUND
    bad = client.get(f"/projects/{seed.project}/posts", params={"sort": "title"})
    assert bad.status_code == HTTP_UNPROCESSABLE_ENTITY


def test_show_unknown_post_is_404(client):
    assert client.get("/posts/4242").status_code == HTTP_NOT_FOUND


def test_comment_routes(client, seed, recorder):
    post = _create_post(client, seed).json()

    r = client.post(
        "/comments",
        json={"post_id": post["id"], "markdown": "Thanks @alice"},
        headers=_auth(seed.josh),
    )
    assert r.status_code == HTTP_OK
    comment = r.json()
    assert comment["state"] == "published"
    assert comment["post_id"] == post["id"]
    assert comment["mentioned_user_ids"] == [seed.alice]
    assert recorder.events[-1].entity_kind == "comment"

    r = client.patch(
        f"/comments/{comment['id']}", json={"markdown": "Thanks"}, headers=_auth(seed.josh)
    )
    assert r.json()["state"] == "edited"

    listing = client.get(f"/posts/{post['id']}/comments").json()
    assert [c["id"] for c in listing] == [comment["id"]]
    assert client.get(f"/comments/{comment['id']}").json()["markdown"] == "Thanks"
    assert client.get(f"/posts/{post['id']}").json()["comments_count"] == 1


def test_comment_preview_and_errors(client, seed):
    post = _create_post(client, seed).json()
    draft = client.post(
        "/comments",
        json={"post_id": post["id"], "markdown": "wip", "preview": True},
        headers=_auth(seed.josh),
    ).json()
    assert draft["state"] == "draft"
    assert client.get(f"/posts/{post['id']}/comments").json() == []

    missing = client.post(
        "/comments", json={"post_id": 999, "markdown": "x"}, headers=_auth(seed.josh)
    )
    assert missing.status_code == HTTP_NOT_FOUND
    assert client.get("/posts/999/comments").status_code == HTTP_NOT_FOUND
    assert client.post("/comments", json={"post_id": post["id"]}).status_code == HTTP_UNAUTHORIZED
