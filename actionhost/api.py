"""
Public API for action authors.

An action archive exposes one class deriving from ``ActionRouteBuilder``
as its entry point. The runtime instantiates it with no arguments and
registers it with the engine, which calls ``configure()`` once.

Example (``demo/__init__.py`` inside the archive):

    from actionhost.api import ActionRouteBuilder

    class Echo(ActionRouteBuilder):
        def configure(self):
            self.from_().process(lambda body, headers: body)

Entry point: ``demo.Echo``.

This module, together with ``actionhost.engine``, is shared with loaded
code; everything else in the host stays out of the action's namespace.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Any

from actionhost.engine.context import ExecutionContext
from actionhost.engine.frames import Frame, MessageFrame
from actionhost.engine.pipeline import INPUT_ENDPOINT_URI, RouteDefinition
from actionhost.engine.processor import Processor


class ActionRouteBuilder(ABC):
    """Base class for action entry points."""

    def __init__(self):
        self.registry: dict[str, Any] | None = None
        self._routes: list[RouteDefinition] = []

    @abstractmethod
    def configure(self) -> None:
        """Declare routes with ``from_()``."""
        ...

    def from_(self, endpoint: str = INPUT_ENDPOINT_URI) -> RouteDefinition:
        """Start a route consuming from ``endpoint`` (the invocation input by default)."""
        route = RouteDefinition(endpoint)
        self._routes.append(route)
        return route

    def set_registry(self, registry: dict[str, Any]) -> None:
        self.registry = registry

    def bind(self, name: str, bean: Any) -> None:
        """Make ``bean`` available to processors via ``ctx.lookup(name)``."""
        if self.registry is None:
            raise RuntimeError("Route builder is not attached to a function")
        self.registry[name] = bean

    def collect_routes(self) -> list[RouteDefinition]:
        """Run configure() and hand back the declared routes."""
        self._routes = []
        self.configure()
        return list(self._routes)


__all__ = [
    "INPUT_ENDPOINT_URI",
    "ActionRouteBuilder",
    "ExecutionContext",
    "Frame",
    "MessageFrame",
    "Processor",
    "RouteDefinition",
]
