"""
ActionFunction: the engine instance a loaded action plugs into.

It owns the bean registry and the routes declared by route builders.
Once started, routes are frozen and each invocation is executed through
the input endpoint.
"""

from __future__ import annotations

import logging
from typing import Any, Protocol

from actionhost.errors import InvocationError

from .context import ExecutionContext
from .frames import MessageFrame
from .pipeline import INPUT_ENDPOINT_URI, Pipeline, RouteDefinition

logger = logging.getLogger(__name__)


class RouteSource(Protocol):
    """Anything that can contribute routes to an ActionFunction."""

    def set_registry(self, registry: dict[str, Any]) -> None: ...

    def collect_routes(self) -> list[RouteDefinition]: ...


class ActionFunction:
    """
    Engine hosting the routes of one action.

    Lifecycle:
    1. add_route_builder(): register route sources (any number)
    2. start(): build the routes; irreversible
    3. execute(): run an invocation through the input endpoint

    Example:
        function = ActionFunction()
        function.add_route_builder(MyRoutes())
        function.start()
        output = await function.execute({"a": 1.0}, {"__OW_ACTIVATION_ID": "abc"})
    """

    def __init__(self):
        self.registry: dict[str, Any] = {}
        self._definitions: list[RouteDefinition] = []
        self._routes: dict[str, Pipeline] = {}
        self._started = False

    @property
    def started(self) -> bool:
        return self._started

    @property
    def endpoints(self) -> list[str]:
        return sorted(self._routes)

    def bind(self, name: str, bean: Any) -> None:
        """Bind ``bean`` under ``name`` so processors can look it up."""
        self.registry[name] = bean

    def add_route_builder(self, builder: RouteSource) -> None:
        """Let ``builder`` declare its routes against this engine."""
        if self._started:
            raise RuntimeError("Cannot add routes to a started function")
        builder.set_registry(self.registry)
        self._definitions.extend(builder.collect_routes())

    def start(self) -> None:
        """Build every declared route. Fails if two routes share an endpoint."""
        if self._started:
            raise RuntimeError("Function already started")
        routes: dict[str, Pipeline] = {}
        for definition in self._definitions:
            if definition.endpoint in routes:
                raise ValueError(f"Duplicate route for endpoint '{definition.endpoint}'")
            routes[definition.endpoint] = definition.build()
        self._routes = routes
        self._started = True
        logger.info(f"Function started with routes: {self.endpoints}")

    async def execute(
        self,
        body: Any,
        headers: dict[str, Any],
        endpoint: str = INPUT_ENDPOINT_URI,
    ) -> Any:
        """
        Send one message through ``endpoint`` and return the resulting body.

        Returns None if the route dropped the message.

        Raises:
            InvocationError: Not started, no such route, or a processor failed
        """
        if not self._started:
            raise InvocationError("Function has not been started")
        route = self._routes.get(endpoint)
        if route is None:
            raise InvocationError(f"No route consumes from '{endpoint}'")

        context = ExecutionContext(
            registry=self.registry,
            activation_id=str(headers.get("__OW_ACTIVATION_ID", "")),
        )
        frame = MessageFrame(body=body, headers=dict(headers))
        logger.debug(f"Dispatching {frame.describe()} to {endpoint}")
        result = await route.execute(frame, context)
        logger.debug(f"Execution finished: {result.summary()}")

        if not result.success:
            raise InvocationError(
                f"{result.exception_class}: {result.error}",
                exception_class=result.exception_class,
            )
        if result.frame is None:
            return None
        return result.frame.body
