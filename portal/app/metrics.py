"""
Métriques Prometheus pour l'application.

Ce module définit les métriques Prometheus utilisées pour le monitoring du portail: requêtes HTTP,
transitions du cycle de vie, balayages périodiques, notifications et décisions de téléchargement.
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

# Cycle de vie des versions
LIFECYCLE_TRANSITIONS = Counter(
    "lifecycle_transitions_total",
    "Version lifecycle transitions",
    ["transition", "result"],
)
SWEEP_RUNS = Counter(
    "lifecycle_sweep_runs_total",
    "Lifecycle sweep passes",
    ["result"],
)
SWEEP_VERSIONS = Counter(
    "lifecycle_sweep_versions_total",
    "Versions handled by lifecycle sweeps",
    ["action", "outcome"],
)

# Diffusion aux abonnés
NOTIFICATIONS_TOTAL = Counter(
    "notifications_total",
    "Subscriber notifications",
    ["kind", "result"],
)

# Contrôle d'accès
DOWNLOAD_DECISIONS = Counter(
    "download_decisions_total",
    "Download access decisions",
    ["status", "result"],
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

    Collecte les métriques de comptage des requêtes et de latence par route pour l'exposition
    Prometheus. Le label `route` utilise le gabarit de route (ex: `/v1/versions/{version_id}`)
    pour borner la cardinalité.
    """

    async def dispatch(self, request: Request, call_next):
        """
        Traite une requête HTTP et collecte les métriques.

        Args:
            request: Requête HTTP entrante.
            call_next: Fonction pour appeler le middleware suivant.

        Returns:
            Response: Réponse HTTP avec métriques collectées.
        """
        start = time.perf_counter()
        response: Response = await call_next(request)
        route_obj = request.scope.get("route")
        route = getattr(route_obj, "path", None) or request.scope.get("path", "unknown")
        REQUEST_COUNT.labels(request.method, route, str(response.status_code)).inc()
        REQUEST_LATENCY.labels(route).observe(time.perf_counter() - start)
        return response
