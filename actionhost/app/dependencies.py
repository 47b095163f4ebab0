"""
Dependency Injection for actionhost.

Provides singleton instances of settings and the runtime controller.
There is exactly one controller per process: the action it loads lives
as long as the process does.
"""
from __future__ import annotations

import logging
import os
from functools import lru_cache
from typing import Optional

from actionhost.config.schemas import AppSettings
from actionhost.runtime import ActivationLog, ExecutionPolicy, RuntimeController
from actionhost.runtime.sandbox import DEFAULT_DENIED_EVENTS

logger = logging.getLogger(__name__)


def _env_list(name: str, default: list[str]) -> list[str]:
    raw = os.getenv(name)
    if raw is None:
        return default
    return [item.strip() for item in raw.split(",") if item.strip()]


@lru_cache()
def get_settings() -> AppSettings:
    """
    Get application settings from environment.

    Uses lru_cache for singleton pattern.
    """
    return AppSettings(
        service_name=os.getenv("ACTIONHOST_SERVICE_NAME", "actionhost"),
        debug=os.getenv("ACTIONHOST_DEBUG", "false").lower() == "true",
        log_level=os.getenv("ACTIONHOST_LOG_LEVEL", "INFO").upper(),
        host=os.getenv("ACTIONHOST_HOST", "0.0.0.0"),
        port=int(os.getenv("ACTIONHOST_PORT", "8080")),
        spool_max_memory=int(os.getenv("ACTIONHOST_SPOOL_MAX_MEMORY", str(1024 * 1024))),
        archive_dir=os.getenv("ACTIONHOST_ARCHIVE_DIR") or None,
        denied_events=_env_list("ACTIONHOST_DENIED_EVENTS", sorted(DEFAULT_DENIED_EVENTS)),
        sentinel_stdout=os.getenv("ACTIONHOST_SENTINEL_STDOUT", "false").lower() == "true",
    )


# Global instance (initialized on first access)
_controller: Optional[RuntimeController] = None


def create_controller(settings: AppSettings) -> RuntimeController:
    """Build a controller configured from settings."""
    return RuntimeController(
        policy=ExecutionPolicy.from_events(settings.denied_events),
        archive_dir=settings.archive_dir,
        activation_log=ActivationLog(include_stdout=settings.sentinel_stdout),
    )


def get_controller() -> RuntimeController:
    """
    Get the process-wide runtime controller.

    Creates it on first call.
    """
    global _controller
    if _controller is None:
        _controller = create_controller(get_settings())
        logger.info(f"Runtime controller created (denied events: {sorted(_controller.policy.denied_events)})")
    return _controller


async def shutdown_services() -> None:
    """
    Release the loaded action on application shutdown.

    Called from FastAPI lifespan.
    """
    global _controller
    if _controller is not None:
        await _controller.shutdown()
        _controller = None
