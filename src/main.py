from __future__ import annotations

from contextlib import asynccontextmanager
from typing import AsyncIterator

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.openapi.utils import get_openapi
from starlette.middleware.base import BaseHTTPMiddleware

from src.config import settings
from src.dependencies import extract_bearer_token
from src.shared import security
from src.shared.database import close_database_engine, create_database_engine
from src.shared.exceptions import DomainError, register_exception_handlers
from src.shared.health import router as health_router
from src.shared.infrastructure.observability.logger import configure_logging, get_logger
from src.webhooks.api.routes.admin_webhooks import router as admin_webhooks_router
from src.webhooks.api.routes.cron import router as cron_router
from src.webhooks.infrastructure.container import build_webhook_container
from src.workers.manager import create_default_worker_manager

logger = get_logger(__name__)


class JwtContextMiddleware(BaseHTTPMiddleware):
    """
    Parses Bearer JWT and attaches claims to request.state.user_claims.
    Authorization itself happens in the route dependencies.
    """

    async def dispatch(self, request: Request, call_next):
        request.state.user_claims = None
        token = extract_bearer_token(request)
        if token:
            try:
                claims = security.decode_token(token)
                request.state.user_claims = {
                    "sub": claims.get("sub"),
                    "tenant_id": claims.get("tenant_id"),
                    "tenant_slug": claims.get("tenant_slug"),
                    "role": claims.get("role"),
                }
            except DomainError:
                request.state.user_claims = None

        return await call_next(request)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    configure_logging(settings.LOG_LEVEL, settings.JSON_LOGS)
    database = create_database_engine()
    if getattr(app.state, "webhooks", None) is None:
        app.state.webhooks = build_webhook_container(database.session_factory)

    manager = None
    if settings.ENABLE_WEBHOOK_WORKER:
        manager = create_default_worker_manager(app.state.webhooks)
        await manager.start_all()
    logger.info("app_started", environment=settings.ENVIRONMENT, worker=bool(manager))
    try:
        yield
    finally:
        if manager is not None:
            await manager.shutdown()
        await close_database_engine()
        logger.info("app_stopped")


def create_app() -> FastAPI:
    app = FastAPI(
        title=f"{settings.PROJECT_NAME} API",
        version=settings.PROJECT_VERSION,
        swagger_ui_parameters={"persistAuthorization": True},
        lifespan=lifespan,
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins(),
        allow_methods=["*"],
        allow_headers=["*"],
        allow_credentials=True,
    )

    # JWT → request.state.user_claims
    app.add_middleware(JwtContextMiddleware)

    app.include_router(health_router)
    app.include_router(admin_webhooks_router, prefix=settings.API_PREFIX)
    app.include_router(cron_router, prefix=settings.API_PREFIX)

    # Centralized error handling → {code, message, details?}
    register_exception_handlers(app)

    @app.get("/", tags=["Root"])
    async def root():
        return {
            "message": f"{settings.PROJECT_NAME} API",
            "docs": "/docs",
            "health": "/health",
        }

    def custom_openapi():
        if app.openapi_schema:
            return app.openapi_schema
        schema = get_openapi(
            title=app.title,
            version=app.version,
            routes=app.routes,
        )
        schema.setdefault("components", {}).setdefault("securitySchemes", {})["bearerAuth"] = {
            "type": "http",
            "scheme": "bearer",
            "bearerFormat": "JWT",
        }
        schema["security"] = [{"bearerAuth": []}]
        app.openapi_schema = schema
        return schema

    app.openapi = custom_openapi

    return app


app = create_app()
