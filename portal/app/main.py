"""
Application principale FastAPI.

Ce module assemble les composants du portail: middlewares, routes du cycle de vie des versions,
abonnements, métriques et handlers d'erreurs.

Responsabilités du module:
- Initialiser le logging structuré et le tracing
- Construire l'application FastAPI avec son titre/debug
- Ajouter les middlewares (request id, timing, Prometheus)
- Monter les routers (santé, assets, versions, abonnements, métriques)
"""

from __future__ import annotations

import logging

from fastapi import FastAPI

from portal.api.routes_assets import router as assets_router
from portal.api.routes_health import router as health_router
from portal.api.routes_subscriptions import router as subscriptions_router
from portal.api.routes_versions import router as versions_router
from portal.apigw.errors import register_error_handlers
from portal.app.metrics import PrometheusMiddleware, metrics_router
from portal.app.tracing import setup_tracing
from portal.core.container import container
from portal.core.logging import setup_logging
from portal.middlewares.request_id import RequestIDMiddleware
from portal.middlewares.timing import TimingMiddleware


def create_app() -> FastAPI:
    """
    Construit et retourne l'application FastAPI prête à l'usage.

    Étapes:
    - Configure le logging structuré (JSON hors dev)
    - Ajoute les middlewares utiles au debug/traçabilité
    - Publie les routes et les handlers d'erreurs standardisés
    """
    settings = container.settings
    setup_logging(
        json_logs=settings.APP_ENV != "dev",
        level=logging.DEBUG if settings.APP_DEBUG else logging.INFO,
    )
    setup_tracing()
    app = FastAPI(title=settings.APP_NAME, debug=settings.APP_DEBUG)
    app.add_middleware(PrometheusMiddleware)
    app.add_middleware(TimingMiddleware)
    app.add_middleware(RequestIDMiddleware)
    register_error_handlers(app)
    app.include_router(health_router)
    app.include_router(assets_router)
    app.include_router(versions_router)
    app.include_router(subscriptions_router)
    app.include_router(metrics_router)
    return app


app = create_app()
