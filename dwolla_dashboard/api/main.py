"""FastAPI application factory"""

import logging
from typing import Optional

import httpx
import uvicorn
from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from prometheus_client import CONTENT_TYPE_LATEST, generate_latest
from starlette.responses import Response

from dwolla_dashboard.api.dependencies import DashboardContext, get_request_id
from dwolla_dashboard.api.middleware import MetricsMiddleware, RequestIDMiddleware
from dwolla_dashboard.api.v1 import account, config, customers, funding_sources, transfers, webhooks
from dwolla_dashboard.config import Settings, settings as default_settings
from dwolla_dashboard.domain.exceptions import DashboardError
from dwolla_dashboard.infrastructure.observability.logging import setup_logging

# Setup structured logging
setup_logging(default_settings.log_level, default_settings.service_name)


def create_app(settings: Optional[Settings] = None, transport: Optional[httpx.AsyncBaseTransport] = None) -> FastAPI:
    """
    Create and configure FastAPI application.

    ``transport`` replaces the network for every Dwolla call (tests pass a
    mock or an ASGI transport onto the sandbox imitation).
    """
    settings = settings or default_settings

    app = FastAPI(
        title="Dwolla Sandbox Dashboard",
        description="Learning proxy in front of the Dwolla sandbox API",
        version="0.1.0",
        docs_url="/docs",
        redoc_url="/redoc",
    )
    app.state.context = DashboardContext.build(settings, transport=transport)

    # Add middleware (order matters: last added = first executed)
    app.add_middleware(MetricsMiddleware)
    app.add_middleware(RequestIDMiddleware)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.exception_handler(DashboardError)
    async def dashboard_error_handler(request: Request, exc: DashboardError):
        level = logging.ERROR if exc.http_status >= 500 else logging.WARNING
        logging.log(
            level,
            f"{exc.__class__.__name__}: {exc.message}",
            extra={"request_id": get_request_id(request), "path": request.url.path},
        )
        return JSONResponse(status_code=exc.http_status, content={"error": exc.message})

    @app.exception_handler(RequestValidationError)
    async def request_validation_handler(request: Request, exc: RequestValidationError):
        fields = ", ".join(".".join(str(p) for p in e["loc"] if p != "body") for e in exc.errors())
        return JSONResponse(status_code=400, content={"error": f"Invalid request field(s): {fields}"})

    # Health check endpoint
    @app.get("/health")
    def health_check():
        return {"status": "ok", "service": settings.service_name}

    # Prometheus metrics endpoint
    @app.get("/metrics")
    def metrics():
        return Response(content=generate_latest(), media_type=CONTENT_TYPE_LATEST)

    # Register API routers
    app.include_router(config.router, prefix="/api", tags=["config"])
    app.include_router(customers.router, prefix="/api", tags=["customers"])
    app.include_router(funding_sources.router, prefix="/api", tags=["funding-sources"])
    app.include_router(account.router, prefix="/api", tags=["account"])
    app.include_router(transfers.router, prefix="/api", tags=["transfers"])
    app.include_router(webhooks.router, prefix="/api", tags=["webhooks"])

    return app


app = create_app()


def run() -> None:
    """Console entry point: serve on the fixed local port"""
    uvicorn.run(app, host=default_settings.host, port=default_settings.port, log_config=None)
