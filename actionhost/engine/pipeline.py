"""
Route execution for the action engine.

A Pipeline runs a sequence of processors on one message frame,
recording timings and stopping at the first error or dropped message.
RouteDefinition is the fluent builder route code uses to declare one.
"""
from __future__ import annotations

import logging
import time
from collections.abc import Callable
from typing import TYPE_CHECKING, Any

from .context import ExecutionContext, ExecutionResult
from .frames import ErrorFrame, Frame
from .processor import FunctionProcessor, SetBodyProcessor, SetHeaderProcessor

if TYPE_CHECKING:
    from .processor import Processor

logger = logging.getLogger(__name__)

# Endpoint every invocation enters through
INPUT_ENDPOINT_URI = "function:input"


class Pipeline:
    """
    Executes frames through an ordered list of processors.

    Semantics:
    - The frame flows sequentially through processors
    - A processor returning None ends the route with no result
    - An ErrorFrame ends the route as failed

    Example:
        pipeline = Pipeline([FunctionProcessor(lambda body, headers: body)])
        result = await pipeline.execute(MessageFrame(body={"a": 1.0}))
    """

    def __init__(self, processors: list[Processor], endpoint: str = ""):
        self.processors = processors
        self.endpoint = endpoint

    @property
    def processor_names(self) -> list[str]:
        """Processor names, in route order."""
        return [p.name for p in self.processors]

    async def execute(
        self,
        initial_frame: Frame,
        context: ExecutionContext | None = None,
    ) -> ExecutionResult:
        """
        Run the route on an initial frame.

        Never raises for processor failures; they are reported on the
        returned result.
        """
        if context is None:
            context = ExecutionContext()

        result = ExecutionResult(context=context)
        frame: Frame | None = initial_frame

        for processor in self.processors:
            kind = frame.kind
            start = time.perf_counter()
            frame = await processor.process_frame(frame, context)
            context.record_step(processor.name, kind, (time.perf_counter() - start) * 1000)

            if frame is None:
                logger.debug(f"Processor '{processor.name}' dropped the message, stopping route")
                break
            if isinstance(frame, ErrorFrame):
                result.error = frame.error
                result.exception_class = frame.exception_class
                logger.warning(
                    f"Route {self.endpoint or '<anonymous>'} failed in '{frame.failed_processor}' "
                    f"after {context.elapsed_ms:.1f}ms"
                )
                logger.debug(f"Failure frame: {frame.describe()}")
                break

        result.frame = frame if result.success else None
        return result

    def __repr__(self) -> str:
        return f"Pipeline(endpoint={self.endpoint!r}, processors={self.processor_names})"


class RouteDefinition:
    """
    Fluent builder for a route starting at an endpoint.

    Example:
        (
            RouteDefinition("function:input")
            .set_header("seen", True)
            .process(lambda body, headers: {"echo": body})
            .build()
        )
    """

    def __init__(self, endpoint: str):
        self.endpoint = endpoint
        self._processors: list[Processor] = []

    def add(self, processor: Processor) -> RouteDefinition:
        """Append a processor to the route."""
        self._processors.append(processor)
        return self

    def process(self, fn: Callable[[Any, dict[str, Any]], Any], name: str | None = None) -> RouteDefinition:
        """Append a ``(body, headers) -> body`` function."""
        return self.add(FunctionProcessor(fn, name=name))

    def set_body(self, value: Any) -> RouteDefinition:
        """Replace the body with a constant."""
        return self.add(SetBodyProcessor(value))

    def set_header(self, name: str, value: Any) -> RouteDefinition:
        """Set a header on the message."""
        return self.add(SetHeaderProcessor(name, value))

    def build(self) -> Pipeline:
        """Freeze the route into a Pipeline."""
        if not self._processors:
            raise ValueError(f"Route '{self.endpoint}' must have at least one processor")
        return Pipeline(list(self._processors), endpoint=self.endpoint)
