"""
Module: celery_app.

But: Initialiser l’instance Celery de l’application et charger la config runtime.

Notes:
- Aucun secret loggé.
- Les tâches sont déclarées sous `backend.tasks` et routées vers la file `notifications`.
"""

from celery import Celery

from backend.core.container import container

celery_app = Celery(
    "collab_content",
    broker=container.settings.REDIS_URL or container.settings.CELERY_BROKER_URL,
    backend=container.settings.CELERY_RESULT_BACKEND,
    include=["backend.tasks.notification_tasks"],
)
# Load configuration from module (retries, timeouts, acks)
celery_app.config_from_object("backend.app.celeryconfig")
celery_app.conf.task_routes = {"backend.tasks.notify_mentions": {"queue": "notifications"}}

__all__ = ["celery_app"]
