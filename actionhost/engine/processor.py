"""
Processor abstraction for the action engine.

Processors are the steps of a route. Each receives the current frame
and the execution context and returns the next frame, or None to drop
the message.
"""

from __future__ import annotations

import asyncio
import inspect
import logging
from abc import ABC, abstractmethod
from collections.abc import Callable
from typing import TYPE_CHECKING, Any

from .frames import ErrorFrame, MessageFrame

if TYPE_CHECKING:
    from .context import ExecutionContext
    from .frames import Frame

logger = logging.getLogger(__name__)


class Processor(ABC):
    """
    One step of a route.

    A subclass provides ``name`` and an async ``process(frame, ctx)``
    returning the next frame or None. Callers go through
    ``process_frame``, which turns exceptions into an ErrorFrame.
    """

    @property
    @abstractmethod
    def name(self) -> str:
        """Name for this processor, used in logging and timings."""
        ...

    @abstractmethod
    async def process(
        self,
        frame: Frame,
        ctx: ExecutionContext,
    ) -> Frame | None:
        """
        Produce the next frame from ``frame``.

        Returns:
            Frame: Continue the route with this frame
            None: Stop the route (message dropped)

        Raises:
            Exception: Wrapped in an ErrorFrame by process_frame()
        """
        ...

    async def process_frame(
        self,
        frame: Frame,
        context: ExecutionContext,
    ) -> Frame | None:
        """
        Call process() and turn exceptions into an ErrorFrame.

        SystemExit raised by route code is caught too; loaded code must
        not be able to stop the host process.
        """
        try:
            return await self.process(frame, context)
        except (Exception, SystemExit) as e:
            logger.error(
                f"Processor '{self.name}' failed on {frame.kind}: {e!r}",
                exc_info=True,
            )
            return ErrorFrame.from_exception(e, self.name, frame)

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}(name='{self.name}')"


class FunctionProcessor(Processor):
    """
    Adapts a plain callable into a processor.

    The callable receives ``(body, headers)`` and returns the new body.
    Coroutine functions are awaited on the event loop; plain callables run
    in a worker thread (with a copy of the current context) so a blocking
    action never stalls the loop.
    """

    def __init__(self, fn: Callable[[Any, dict[str, Any]], Any], name: str | None = None):
        self._fn = fn
        self._name = name or getattr(fn, "__name__", "function")

    @property
    def name(self) -> str:
        return self._name

    async def process(self, frame: Frame, ctx: ExecutionContext) -> Frame | None:
        if not isinstance(frame, MessageFrame):
            return frame
        if inspect.iscoroutinefunction(self._fn):
            result = await self._fn(frame.body, dict(frame.headers))
        else:
            result = await asyncio.to_thread(self._fn, frame.body, dict(frame.headers))
        if inspect.isawaitable(result):
            result = await result
        return frame.with_body(result)


class SetBodyProcessor(Processor):
    """Replaces the message body with a constant."""

    def __init__(self, value: Any):
        self._value = value

    @property
    def name(self) -> str:
        return "set_body"

    async def process(self, frame: Frame, ctx: ExecutionContext) -> Frame | None:
        if not isinstance(frame, MessageFrame):
            return frame
        return frame.with_body(self._value)


class SetHeaderProcessor(Processor):
    """Sets one header on the message."""

    def __init__(self, header: str, value: Any):
        self._header = header
        self._value = value

    @property
    def name(self) -> str:
        return f"set_header:{self._header}"

    async def process(self, frame: Frame, ctx: ExecutionContext) -> Frame | None:
        if not isinstance(frame, MessageFrame):
            return frame
        return frame.with_header(self._header, self._value)
