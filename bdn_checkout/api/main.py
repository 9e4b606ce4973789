"""FastAPI application factory"""

from fastapi import FastAPI
from prometheus_client import generate_latest, CONTENT_TYPE_LATEST
from starlette.responses import Response

from bdn_checkout.api.middleware import RequestIDMiddleware, MetricsMiddleware
from bdn_checkout.api.v1 import pricing, settlement
from bdn_checkout.infrastructure.observability.logging import setup_logging
from bdn_checkout.config import settings

# Setup structured logging
setup_logging(settings.log_level)


def create_app() -> FastAPI:
    """Create and configure FastAPI application"""
    app = FastAPI(
        title="BDN Checkout",
        description="BLKD tier pricing and split-source settlement quotes",
        version="0.1.0",
        docs_url="/docs",
        redoc_url="/redoc",
    )

    # Add middleware (order matters: last added = first executed)
    app.add_middleware(MetricsMiddleware)
    app.add_middleware(RequestIDMiddleware)

    # Health check endpoint
    @app.get("/health")
    def health_check():
        return {"status": "ok", "service": settings.service_name}

    # Prometheus metrics endpoint
    @app.get("/metrics")
    def metrics():
        return Response(content=generate_latest(), media_type=CONTENT_TYPE_LATEST)

    # Register API routers
    app.include_router(pricing.router, prefix="/v1", tags=["pricing"])
    app.include_router(settlement.router, prefix="/v1", tags=["settlement"])

    return app


app = create_app()
