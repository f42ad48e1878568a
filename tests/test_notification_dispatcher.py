"""Tests du worker de notification (création idempotente et livraison)."""

import pytest

from backend.domain.errors import DeliveryFailure
from backend.infra.mailer import InMemoryMailer
from backend.infra.repo.db import session_scope
from backend.infra.repo.mention_repo import MentionRepo
from backend.infra.repo.models import ProjectORM
from backend.infra.repo.notification_repo import NotificationRepo
from backend.services.notification_dispatcher import NotificationDispatcher


class FlakyMailer:
    """Mailer qui échoue toujours (SMTP indisponible)."""

    def __init__(self) -> None:
        self.calls = 0

    def send(self, to_email, subject, html):
        self.calls += 1
        raise DeliveryFailure("smtp: SMTPServerDisconnected")


def _notifications(session_factory, kind, entity_id):
    with session_scope(session_factory) as session:
        return NotificationRepo(session).list_for_entity(kind, entity_id)


@pytest.fixture
def mentioning_post(post_service, seed):
    return post_service.create(
        seed.alice,
        {
            "project_id": seed.project,
            "title": "Release",
            "markdown_preview": "@joshsmith @dana_lee please review",
        },
        commit=True,
    )


def test_each_mention_gets_one_sent_notification(session_factory, mentioning_post, seed):
    mailer = InMemoryMailer()
    report = NotificationDispatcher(session_factory, mailer).dispatch("post", mentioning_post.id)

    assert report.sent == 2
    assert sorted(m.to_email for m in mailer.outbox) == ["dana@example.com", "josh@example.com"]
    assert "#1" in mailer.outbox[0].subject
    notifications = _notifications(session_factory, "post", mentioning_post.id)
    assert {n.user_id for n in notifications} == {seed.josh, seed.dana}
    assert all(n.state == "sent" and n.sent_at is not None for n in notifications)


def test_rerun_sends_nothing_new(session_factory, mentioning_post):
    mailer = InMemoryMailer()
    dispatcher = NotificationDispatcher(session_factory, mailer)
    dispatcher.dispatch("post", mentioning_post.id)
    report = dispatcher.dispatch("post", mentioning_post.id)

    assert report.sent == 0
    assert len(report.skipped) == 2
    assert len(mailer.outbox) == 2
    assert len(_notifications(session_factory, "post", mentioning_post.id)) == 2


def test_failing_mailer_keeps_pending_then_fails(session_factory, mentioning_post):
    mailer = FlakyMailer()
    dispatcher = NotificationDispatcher(session_factory, mailer, max_attempts=2)

    with pytest.raises(DeliveryFailure):
        dispatcher.dispatch("post", mentioning_post.id)
    notifications = _notifications(session_factory, "post", mentioning_post.id)
    assert [n.state for n in notifications] == ["pending", "pending"]
    assert all(n.attempts == 1 and n.last_error for n in notifications)

    report = dispatcher.dispatch("post", mentioning_post.id)
    assert report.failed == 2
    notifications = _notifications(session_factory, "post", mentioning_post.id)
    assert [n.state for n in notifications] == ["failed", "failed"]

    # Plus aucune tentative une fois en échec définitif
    calls = mailer.calls
    dispatcher.dispatch("post", mentioning_post.id)
    assert mailer.calls == calls


def test_missing_entity_is_a_noop(session_factory, seed):
    mailer = InMemoryMailer()
    report = NotificationDispatcher(session_factory, mailer).dispatch("comment", 999)
    assert report.sent == 0
    assert mailer.outbox == []


def test_comment_notifications(session_factory, comment_service, mentioning_post, seed):
    comment = comment_service.create(
        seed.josh, {"post_id": mentioning_post.id, "markdown_preview": "@alice done"}, commit=True
    )
    mailer = InMemoryMailer()
    report = NotificationDispatcher(session_factory, mailer).dispatch("comment", comment.id)
    assert report.sent == 1
    assert mailer.outbox[0].to_email == "alice@example.com"
    assert "<p>@alice done</p>" in mailer.outbox[0].html


def _mention_ids(session_factory, kind, entity_id):
    with session_scope(session_factory) as session:
        return [m.id for m in MentionRepo(session).list_for(kind, entity_id)]


def _emails_to(mailer, address):
    return [m.to_email for m in mailer.outbox].count(address)


@pytest.fixture
def josh_post(post_service, seed):
    """Post mentionnant joshsmith; un second post détient les ids de mention suivants."""
    post = post_service.create(
        seed.alice,
        {"project_id": seed.project, "title": "A", "markdown_preview": "Hi @joshsmith"},
        commit=True,
    )
    post_service.create(
        seed.alice,
        {"project_id": seed.project, "title": "B", "markdown_preview": "Hi @dana_lee"},
        commit=True,
    )
    return post


def test_preview_save_between_runs_sends_nothing_new(
    session_factory, post_service, josh_post
):
    """Une sauvegarde d'aperçu entre deux passages ne renvoie pas la notification."""
    mailer = InMemoryMailer()
    dispatcher = NotificationDispatcher(session_factory, mailer)
    dispatcher.dispatch("post", josh_post.id)
    before = _mention_ids(session_factory, "post", josh_post.id)

    post_service.save(
        josh_post.id, commit=False, attrs={"markdown_preview": "Hi @joshsmith draft"}
    )
    report = dispatcher.dispatch("post", josh_post.id)

    assert _mention_ids(session_factory, "post", josh_post.id) == before
    assert report.sent == 0
    assert _emails_to(mailer, "josh@example.com") == 1


def test_edited_resave_with_same_mentions_sends_nothing_new(
    session_factory, post_service, josh_post
):
    mailer = InMemoryMailer()
    dispatcher = NotificationDispatcher(session_factory, mailer)
    dispatcher.dispatch("post", josh_post.id)

    edited = post_service.save(
        josh_post.id, commit=True, attrs={"markdown_preview": "Hi @joshsmith, v2"}
    )
    assert edited.state.value == "edited"
    dispatcher.dispatch("post", josh_post.id)
    again = post_service.save(
        josh_post.id, commit=True, attrs={"markdown_preview": "Hello again @joshsmith"}
    )
    assert again.state.value == "edited"
    dispatcher.dispatch("post", josh_post.id)

    assert _emails_to(mailer, "josh@example.com") == 1
    assert len(_notifications(session_factory, "post", josh_post.id)) == 1


def test_new_mention_on_resave_is_notified_once(session_factory, post_service, josh_post, seed):
    mailer = InMemoryMailer()
    dispatcher = NotificationDispatcher(session_factory, mailer)
    dispatcher.dispatch("post", josh_post.id)

    post_service.save(
        josh_post.id, commit=True, attrs={"markdown_preview": "@dana_lee @joshsmith review"}
    )
    report = dispatcher.dispatch("post", josh_post.id)

    assert report.sent == 1
    assert _emails_to(mailer, "dana@example.com") == 1
    assert _emails_to(mailer, "josh@example.com") == 1
    post = post_service.get(josh_post.id)
    assert post.mentioned_user_ids == [seed.dana, seed.josh]


class ObservingMailer:
    """Mailer qui écrit en base pendant l'envoi et relève l'état des notifications."""

    def __init__(self, session_factory, entity_kind, entity_id) -> None:
        self.session_factory = session_factory
        self.entity_kind = entity_kind
        self.entity_id = entity_id
        self.seen: list[list[str]] = []
        self.outbox = InMemoryMailer()

    def send(self, to_email, subject, html):
        with session_scope(self.session_factory) as session:
            notifications = NotificationRepo(session).list_for_entity(
                self.entity_kind, self.entity_id
            )
            self.seen.append([n.state for n in notifications])
            session.add(ProjectORM(title="written during delivery"))
        self.outbox.send(to_email, subject, html)


def test_delivery_runs_outside_the_write_transaction(session_factory, mentioning_post):
    """Pendant l'envoi, la base reste inscriptible et les notifications sont déjà validées."""
    mailer = ObservingMailer(session_factory, "post", mentioning_post.id)
    report = NotificationDispatcher(session_factory, mailer).dispatch("post", mentioning_post.id)

    assert report.sent == 2
    assert mailer.seen[0] == ["pending", "pending"]
    assert mailer.seen[1] == ["sent", "pending"]
    with session_scope(session_factory) as session:
        written = session.query(ProjectORM).filter_by(title="written during delivery").count()
    assert written == 2


def test_fail_pending_closes_leftover_notifications(session_factory, mentioning_post):
    dispatcher = NotificationDispatcher(session_factory, FlakyMailer(), max_attempts=5)
    with pytest.raises(DeliveryFailure):
        dispatcher.dispatch("post", mentioning_post.id)

    report = dispatcher.fail_pending("post", mentioning_post.id)

    assert report.failed == 2
    notifications = _notifications(session_factory, "post", mentioning_post.id)
    assert [n.state for n in notifications] == ["failed", "failed"]
    assert all(n.last_error == "retries exhausted" for n in notifications)
    assert dispatcher.fail_pending("post", mentioning_post.id).failed == 0
