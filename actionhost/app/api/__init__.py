"""HTTP routers."""

from .action import router as action_router

__all__ = ["action_router"]
