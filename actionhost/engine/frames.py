"""
Frames for the action engine.

A frame is an immutable snapshot of the message travelling down a route.
Processors never mutate a frame; they derive a new one, which records the
frame it came from so a route's history can be reconstructed from the log.

``MessageFrame`` is the only frame routes normally see: its body is the
invocation input (and, at the end, the output) and its headers are the
invocation environment. ``ErrorFrame`` replaces it when a processor fails.
"""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from datetime import UTC, datetime
from typing import Any, TypeVar
from uuid import UUID, uuid4

FrameT = TypeVar("FrameT", bound="Frame")


def _now() -> datetime:
    return datetime.now(UTC)


@dataclass(frozen=True, kw_only=True, slots=True)
class Frame:
    """
    Base frame: identity, timestamp and parent link.

    Use ``derive()`` to produce a successor instead of mutating.
    """

    frame_id: UUID = field(default_factory=uuid4)
    timestamp: datetime = field(default_factory=_now)
    parent_id: UUID | None = None

    @property
    def kind(self) -> str:
        return type(self).__name__

    def derive(self: FrameT, **changes: Any) -> FrameT:
        """Successor frame with ``changes`` applied and a link back to this one."""
        return replace(
            self,
            frame_id=uuid4(),
            timestamp=_now(),
            parent_id=self.frame_id,
            **changes,
        )

    def describe(self) -> dict[str, Any]:
        """Log-friendly summary; never includes message contents."""
        return {
            "kind": self.kind,
            "frame_id": str(self.frame_id),
            "parent_id": str(self.parent_id) if self.parent_id else None,
            "timestamp": self.timestamp.isoformat(),
        }


@dataclass(frozen=True, kw_only=True, slots=True)
class MessageFrame(Frame):
    """
    The message a route operates on.

    Attributes:
        body: Invocation input (the result, once the route completes)
        headers: Invocation environment
    """

    body: Any = None
    headers: dict[str, Any] = field(default_factory=dict)

    def with_body(self, body: Any) -> MessageFrame:
        return self.derive(body=body)

    def with_header(self, name: str, value: Any) -> MessageFrame:
        return self.derive(headers={**self.headers, name: value})

    def describe(self) -> dict[str, Any]:
        summary = Frame.describe(self)
        summary["header_names"] = sorted(self.headers)
        return summary


@dataclass(frozen=True, kw_only=True, slots=True)
class ErrorFrame(Frame):
    """
    Marks a failed processor. Ends the route; the engine reports the
    invocation as failed with ``exception_class: error``.
    """

    error: str = ""
    exception_class: str = "Exception"
    failed_processor: str = ""

    @classmethod
    def from_exception(cls, exc: BaseException, processor: str, frame: Frame | None = None) -> ErrorFrame:
        return cls(
            error=str(exc),
            exception_class=type(exc).__name__,
            failed_processor=processor,
            parent_id=frame.frame_id if frame is not None else None,
        )

    def describe(self) -> dict[str, Any]:
        summary = Frame.describe(self)
        summary.update(
            error=self.error,
            exception_class=self.exception_class,
            failed_processor=self.failed_processor,
        )
        return summary


__all__ = ["Frame", "MessageFrame", "ErrorFrame"]
