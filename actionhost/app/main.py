"""
actionhost HTTP app: health, init and run endpoints around one RuntimeController.
"""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from typing import Any

from fastapi import Depends, FastAPI

from actionhost import __version__
from actionhost.app.api import action_router
from actionhost.app.dependencies import get_controller, get_settings, shutdown_services
from actionhost.runtime import RuntimeController, RuntimeState

settings = get_settings()

# Root logging from ACTIONHOST_LOG_LEVEL
logging.basicConfig(
    level=getattr(logging, settings.log_level, logging.INFO),
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Creates the runtime controller on startup and closes the loaded
    action on shutdown.
    """
    logger.info("Starting action runtime...")
    get_controller()

    yield

    logger.info("Shutting down action runtime...")
    try:
        await shutdown_services()
    except Exception as e:
        logger.error(f"Error during shutdown: {e}", exc_info=True)


app = FastAPI(
    title="actionhost",
    description="Action runtime: load an action once with /init, invoke it with /run",
    version=__version__,
    lifespan=lifespan,
    debug=settings.debug,
)

app.include_router(action_router)


@app.get("/health", tags=["health"])
async def health_check(
    controller: RuntimeController = Depends(get_controller),
) -> dict[str, Any]:
    """Report whether an action has been loaded."""
    return {
        "status": "healthy",
        "initialized": controller.state is RuntimeState.INITIALIZED,
    }


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "actionhost.app.main:app",
        host=settings.host,
        port=settings.port,
    )
