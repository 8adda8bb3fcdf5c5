import logging
from pathlib import Path

from fastapi import FastAPI

from app.core.settings import settings
from app.db.init_db import init_db

logger = logging.getLogger(__name__)


def _prepare_upload_root() -> None:
    root = Path(settings.local_upload_dir)
    try:
        root.mkdir(parents=True, exist_ok=True)
    except OSError:
        # storage health check reports the failure; uploads will be rejected until fixed
        logger.warning("Document upload root %s is not available", root, exc_info=True)


def register_event_handlers(app: FastAPI) -> None:
    @app.on_event("startup")
    async def on_startup() -> None:
        logger.info(
            "Loan dashboard starting environment=%s uploads=%s",
            settings.environment,
            settings.local_upload_dir,
        )
        _prepare_upload_root()
        if settings.seed_demo_data:
            await init_db()

    @app.on_event("shutdown")
    async def on_shutdown() -> None:
        logger.info("Loan dashboard shutting down")
