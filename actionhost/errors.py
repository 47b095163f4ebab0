"""
Error types for the action runtime.

Every failure the runtime can report is one of these. The controller
catches them at the protocol boundary and turns them into a uniform
``{"error": ...}`` response; none of them escape past it.
"""

from __future__ import annotations


class ActionRuntimeError(Exception):
    """Base class for all runtime errors."""

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class ParseError(ActionRuntimeError):
    """
    Malformed or structurally unexpected control document.

    Syntax errors carry the 1-based line/column of the offending
    character. Structural errors (valid JSON, wrong shape) have no
    position.
    """

    def __init__(self, message: str, line: int | None = None, column: int | None = None):
        if line is not None:
            message = f"{message} at {line}:{column}"
        super().__init__(message)
        self.line = line
        self.column = column


class AlreadyInitializedError(ActionRuntimeError):
    """Init was called on a runtime that already loaded its action."""

    def __init__(self, message: str = "Cannot initialize the action more than once."):
        super().__init__(message)


class UninitializedError(ActionRuntimeError):
    """Run was called before a successful init."""

    def __init__(self, message: str = "Cannot invoke an uninitialized action."):
        super().__init__(message)


class LoadError(ActionRuntimeError):
    """The code archive or its entry point could not be loaded."""


class InvocationError(ActionRuntimeError):
    """The loaded code, or the engine running it, failed during a run."""

    def __init__(self, message: str, exception_class: str | None = None):
        super().__init__(message)
        self.exception_class = exception_class


__all__ = [
    "ActionRuntimeError",
    "ParseError",
    "AlreadyInitializedError",
    "UninitializedError",
    "LoadError",
    "InvocationError",
]
