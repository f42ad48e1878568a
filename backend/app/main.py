"""
Application principale FastAPI.

Ce module assemble tous les composants de l'application : middlewares,
routes, gestion des erreurs et métriques de l'API de contenu.

Responsabilités du module:
- Initialiser le logging structuré
- Construire l'application FastAPI avec son titre/debug
- Ajouter les middlewares (request id, métriques)
- Monter les routers (santé, posts, commentaires, métriques)
"""

from __future__ import annotations

from fastapi import FastAPI

from backend.api.errors import register_error_handlers
from backend.api.routes_comments import router as comments_router
from backend.api.routes_health import router as health_router
from backend.api.routes_posts import router as posts_router
from backend.app.metrics import PrometheusMiddleware, metrics_router
from backend.core.container import container
from backend.core.logging import setup_logging
from backend.middlewares.request_id import RequestIDMiddleware


def create_app() -> FastAPI:
    """
    Construit et retourne l'application FastAPI prête à l'usage.

    Étapes:
    - Configure le logging structuré (structlog)
    - Lit les paramètres d'exécution
    - Ajoute les middlewares utiles au debug/traçabilité
    - Publie les routes de santé, posts et commentaires
    """
    settings = container.settings
    setup_logging(debug=settings.APP_DEBUG)
    app = FastAPI(title=settings.APP_NAME, debug=settings.APP_DEBUG)
    app.add_middleware(PrometheusMiddleware)
    app.add_middleware(RequestIDMiddleware)
    register_error_handlers(app)
    app.include_router(health_router)
    app.include_router(posts_router)
    app.include_router(comments_router)
    app.include_router(metrics_router)
    return app


app = create_app()
