"""FastAPI application factory."""

import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from fastapi import FastAPI

from party_sessions.api.admin import router as admin_router
from party_sessions.app_logging import configure_logging
from party_sessions.containers import AppContainer


def create_app(container: AppContainer) -> FastAPI:
    """Create a FastAPI app configured with dependencies."""
    configure_logging()
    logger = logging.getLogger(__name__)

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        state_container: AppContainer = app.state.container
        report = await state_container.reconciler.initialize_existing_sessions()
        logger.info(
            "Scheduler ready with %d sessions (%d reconciled)",
            state_container.scheduler.get_scheduled_task_count(),
            report.total,
        )
        try:
            yield
        finally:
            await state_container.close_resources()

    app = FastAPI(lifespan=lifespan)
    app.state.container = container

    app.include_router(admin_router)

    @app.get("/health")
    async def health() -> dict[str, str]:
        """Simple health check endpoint."""
        return {"status": "ok"}

    return app
