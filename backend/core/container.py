"""
Conteneur d'injection de dépendances et configuration application.

Instancie les composants centraux (settings, moteur SQL, séquenceur, bus
d'évènements, mailer) et expose un singleton `container` utilisé par le reste
de l'application.
"""

from backend.core.settings import Settings, get_settings
from backend.domain.events import EventDispatcher
from backend.domain.policy import AllowAll
from backend.infra.mailer import InMemoryMailer, Mailer, SmtpMailer
from backend.infra.repo.db import get_engine, get_session_factory
from backend.infra.sequencer import ProjectSequencer
from backend.services.notification_scheduler import NotificationScheduler


def build_mailer(settings: Settings) -> Mailer:
    """Sélectionne le mailer selon `MAILER_BACKEND`."""
    if settings.MAILER_BACKEND == "smtp":
        return SmtpMailer(
            host=settings.SMTP_HOST,
            port=settings.SMTP_PORT,
            user=settings.SMTP_USER,
            password=settings.SMTP_PASSWORD,
            from_email=settings.MAIL_FROM,
        )
    if settings.MAILER_BACKEND == "memory":
        return InMemoryMailer()
    raise RuntimeError(f"Unknown MAILER_BACKEND: {settings.MAILER_BACKEND}")


class Container:
    def __init__(self, settings: Settings | None = None):
        self.settings = settings or get_settings()
        self.engine = get_engine(self.settings.DATABASE_URL)
        self.session_factory = get_session_factory(self.engine)
        self.sequencer = ProjectSequencer()
        self.mailer = build_mailer(self.settings)
        self.authorizer = AllowAll()
        # Bus d'évènements de transition: la planification des notifications est un abonné
        self.dispatcher = EventDispatcher()
        self.dispatcher.subscribe(NotificationScheduler())


container = Container()
