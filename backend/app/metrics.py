"""
Métriques Prometheus pour l'application.

Ce module définit les métriques HTTP et les métriques métier du cycle de
publication (transitions, mentions, notifications), ainsi que l'endpoint
`/metrics`.
"""

import time

from fastapi import APIRouter, Request
from prometheus_client import (
    CONTENT_TYPE_LATEST,
    Counter,
    Histogram,
    generate_latest,
)
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.responses import Response

metrics_router = APIRouter()

REQUEST_COUNT = Counter(
    "http_requests_total", "Total HTTP requests", ["method", "route", "status"]
)
REQUEST_LATENCY = Histogram(
    "http_request_duration_seconds", "Latency of HTTP requests", ["route"]
)

# Cycle de publication
CONTENT_SAVES_TOTAL = Counter(
    "content_saves_total",
    "Content saves by kind and mode (preview/commit)",
    ["kind", "mode"],
)
CONTENT_TRANSITIONS_TOTAL = Counter(
    "content_transitions_total",
    "Committed saves by kind and transition event",
    ["kind", "event"],
)
CONTENT_VALIDATION_FAILURES_TOTAL = Counter(
    "content_validation_failures_total",
    "Saves rejected by validation",
    ["kind"],
)
SEQUENCE_CONFLICTS_TOTAL = Counter(
    "sequence_conflicts_total",
    "Sequence number collisions (before retry)",
)
MENTIONS_GENERATED_TOTAL = Counter(
    "mentions_generated_total",
    "Mention rows written by regeneration passes",
    ["kind"],
)

# Notifications (worker)
NOTIFICATIONS_TOTAL = Counter(
    "notifications_total",
    "Notification delivery outcomes",
    ["result"],
)
POSTCOMMIT_ACTIONS_TOTAL = Counter(
    "postcommit_actions_total",
    "Post-commit action outcomes",
    ["result"],
)


@metrics_router.get("/metrics")
def metrics():
    """
    Expose les métriques Prometheus au format texte.

    Returns:
        Response: Réponse HTTP contenant les métriques au format Prometheus.
    """
    return Response(generate_latest(), media_type=CONTENT_TYPE_LATEST)


class PrometheusMiddleware(BaseHTTPMiddleware):
    """
    Middleware Prometheus pour mesurer les métriques HTTP.

    Collecte les métriques de comptage des requêtes et de latence par route.
    """

    async def dispatch(self, request: Request, call_next):
        """Traite une requête HTTP et collecte les métriques."""
        start = time.perf_counter()
        response: Response = await call_next(request)
        route = request.scope.get("route")
        route_path = getattr(route, "path", None) or "unmatched"
        REQUEST_COUNT.labels(request.method, route_path, str(response.status_code)).inc()
        REQUEST_LATENCY.labels(route_path).observe(time.perf_counter() - start)
        return response
