import logging

from fastapi import FastAPI

from app.core.settings import settings
from app.db.session import engine
from app.db.url import redact_database_url

logger = logging.getLogger(__name__)


def register_event_handlers(app: FastAPI) -> None:
    @app.on_event("startup")
    async def on_startup() -> None:
        # Schema is owned by alembic; startup only reports where it is pointed.
        logger.info(
            "Application startup",
            extra={
                "environment": settings.environment,
                "database": redact_database_url(settings.database_url),
                "tenancy_mode": settings.tenancy_mode,
            },
        )

    @app.on_event("shutdown")
    async def on_shutdown() -> None:
        logger.info("Application shutdown")
        await engine.dispose()
