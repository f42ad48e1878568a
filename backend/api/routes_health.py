"""
Endpoint de santé pour vérifier la disponibilité de l'API et de la base.

Expose `/health` pour signaler l'état général de l'application et du stockage.
"""

from fastapi import APIRouter, Depends
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import sessionmaker

from backend.api.deps import get_session_factory
from backend.core.container import container

router = APIRouter(tags=["health"])


@router.get("/health")
def health(session_factory: sessionmaker = Depends(get_session_factory)):
    """Vérifie la disponibilité de l'API et de la base de données."""
    try:
        with session_factory() as session:
            session.execute(text("SELECT 1"))
        database = "ok"
    except SQLAlchemyError:
        database = "unavailable"
    return {
        "status": "ok" if database == "ok" else "degraded",
        "database": database,
        "mailer": container.settings.MAILER_BACKEND,
    }
