"""
Livraison des e-mails de notification.

- `SmtpMailer`: envoi SMTP (STARTTLS) configuré par les paramètres `SMTP_*`.
- `InMemoryMailer`: boîte d'envoi en mémoire pour le dev et les tests.

Toute erreur de transport est traduite en `DeliveryFailure`, que le worker
traite comme transitoire.
"""

from __future__ import annotations

import smtplib
from dataclasses import dataclass, field
from email.mime.multipart import MIMEMultipart
from email.mime.text import MIMEText
from typing import Protocol

import structlog

from backend.domain.errors import DeliveryFailure

log = structlog.get_logger(__name__)


class Mailer(Protocol):
    """Collaborateur de livraison."""

    def send(self, to_email: str, subject: str, html: str) -> None: ...


@dataclass
class SentMail:
    """E-mail capturé par `InMemoryMailer`."""

    to_email: str
    subject: str
    html: str


@dataclass
class InMemoryMailer:
    """Mailer en mémoire (dev/tests); ne fait jamais d'I/O."""

    outbox: list[SentMail] = field(default_factory=list)

    def send(self, to_email: str, subject: str, html: str) -> None:
        self.outbox.append(SentMail(to_email=to_email, subject=subject, html=html))


class SmtpMailer:
    """Envoi SMTP des notifications."""

    def __init__(
        self,
        host: str,
        port: int,
        user: str | None,
        password: str | None,
        from_email: str,
        from_name: str = "Content notifications",
        timeout: int = 30,
    ) -> None:
        self.host = host
        self.port = port
        self.user = user
        self.password = password
        self.from_email = from_email
        self.from_name = from_name
        self.timeout = timeout

    def _message(self, to_email: str, subject: str, html: str) -> MIMEMultipart:
        msg = MIMEMultipart("alternative")
        msg["Subject"] = subject
        msg["From"] = f"{self.from_name} <{self.from_email}>"
        msg["To"] = to_email
        msg.attach(MIMEText(html, "html"))
        return msg

    def send(self, to_email: str, subject: str, html: str) -> None:
        """Envoie un e-mail HTML; lève `DeliveryFailure` sur erreur de transport."""
        msg = self._message(to_email, subject, html)
        try:
            with smtplib.SMTP(self.host, self.port, timeout=self.timeout) as server:
                server.starttls()
                if self.user and self.password:
                    server.login(self.user, self.password)
                server.send_message(msg)
        except (smtplib.SMTPException, OSError) as exc:
            log.warning("smtp_send_failed", host=self.host, error=type(exc).__name__)
            raise DeliveryFailure(f"smtp: {type(exc).__name__}") from exc
        log.info("smtp_sent", host=self.host)
