"""
Execution context for the action engine.

One ``ExecutionContext`` is created per invocation and handed to every
processor in the route. It gives processors access to the beans the
route builder bound, and collects the per-step trail the engine logs
once the route finishes.
"""
from __future__ import annotations

import time
from dataclasses import dataclass, field
from typing import Any
from uuid import UUID, uuid4


@dataclass
class ExecutionContext:
    """
    Invocation-scoped state shared by the processors of a route.

    Attributes:
        registry: Beans bound by the route builder (shared, not copied)
        activation_id: ``__OW_ACTIVATION_ID`` of the invocation, if given
        steps: ``(processor, frame kind, duration ms)`` per executed step
    """

    registry: dict[str, Any] = field(default_factory=dict)
    activation_id: str = ""
    invocation_id: UUID = field(default_factory=uuid4)
    steps: list[tuple[str, str, float]] = field(default_factory=list)
    _started: float = field(default_factory=time.perf_counter, repr=False)

    @property
    def elapsed_ms(self) -> float:
        return (time.perf_counter() - self._started) * 1000

    def lookup(self, name: str) -> Any:
        """
        Bean bound under ``name``.

        Raises:
            LookupError: Nothing is bound under that name
        """
        try:
            return self.registry[name]
        except KeyError:
            raise LookupError(f"No bean bound under name '{name}'") from None

    def record_step(self, processor: str, frame_kind: str, duration_ms: float) -> None:
        self.steps.append((processor, frame_kind, duration_ms))


@dataclass
class ExecutionResult:
    """
    Outcome of one route execution.

    ``frame`` is the final frame of a successful route, or None when a
    processor dropped the message (or the route failed).
    """

    context: ExecutionContext
    frame: Any | None = None
    error: str | None = None
    exception_class: str | None = None

    @property
    def success(self) -> bool:
        return self.error is None

    def summary(self) -> dict[str, Any]:
        """Log line for the finished route."""
        return {
            "invocation_id": str(self.context.invocation_id),
            "activation_id": self.context.activation_id,
            "success": self.success,
            "dropped": self.success and self.frame is None,
            "steps": [name for name, _, _ in self.context.steps],
            "elapsed_ms": round(self.context.elapsed_ms, 3),
            "error": f"{self.exception_class}: {self.error}" if self.error is not None else None,
        }
