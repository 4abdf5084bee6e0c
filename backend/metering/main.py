"""FastAPI application entry point."""

import structlog
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import ORJSONResponse

from metering.api import api_router
from metering.config import get_settings
from metering.database import Base, engine
from metering.middleware.error_handler import register_error_handlers
from metering.middleware.observability import ObservabilityMiddleware, configure_logging

settings = get_settings()
configure_logging(settings.LOG_LEVEL, settings.LOG_FORMAT)
logger = structlog.get_logger()


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Startup / shutdown lifecycle."""
    logger.info(
        "startup",
        environment=settings.ENVIRONMENT,
        billing_enabled=settings.BILLING_ENABLED,
        quota_fail_open=settings.QUOTA_FAIL_OPEN,
    )

    # Create tables (in production, use alembic migrate instead)
    if settings.ENVIRONMENT == "development":
        import metering.billing.models  # noqa: F401 - registers tables on Base.metadata
        async with engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)

    yield

    await engine.dispose()
    logger.info("shutdown")


def create_app() -> FastAPI:
    app = FastAPI(
        title="Usage Governor API",
        description="Quota evaluation, cost estimation and usage recording for metered third-party APIs",
        version="0.1.0",
        default_response_class=ORJSONResponse,
        lifespan=lifespan,
        docs_url="/api/docs" if settings.ENVIRONMENT != "production" else None,
        redoc_url="/api/redoc" if settings.ENVIRONMENT != "production" else None,
    )
    # Paid provider clients, keyed by MeteredService; registered by the deployment
    app.state.providers = {}

    origins = [o.strip() for o in settings.ALLOWED_ORIGINS.split(",")]
    app.add_middleware(
        CORSMiddleware,
        allow_origins=origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    app.add_middleware(ObservabilityMiddleware)

    register_error_handlers(app)
    app.include_router(api_router)

    @app.get("/health")
    async def health_check():
        return {"status": "ok", "version": "0.1.0", "billing_enabled": settings.BILLING_ENABLED}

    return app


app = create_app()
