"""
Action Runtime Layer.

Connects the HTTP control surface to loaded action code:

    init body --> JsonReader --> {main, archive} --> ArchiveLoader --> ActionFunction
    run body  --> JsonReader --> {input, env} --> sandbox --> ActionFunction.execute

Components:
    - RuntimeController: init/run state machine and error mapping
    - ArchiveLoader: entry point resolution and engine registration
    - ArchiveNamespace: per-archive module isolation
    - sandboxed / ExecutionPolicy: invocation-scoped privilege policy
    - ActivationLog: end-of-activation sentinel
"""

from .activation import ACTIVATION_SENTINEL, ActivationLog
from .controller import ControlResponse, LoadedAction, RuntimeController, RuntimeState
from .isolation import ArchiveNamespace, current_namespace
from .loader import ArchiveLoader, split_entry_point
from .sandbox import (
    DEFAULT_DENIED_EVENTS,
    ExecutionPolicy,
    SandboxState,
    current_policy,
    current_state,
    sandboxed,
)

__all__ = [
    "ACTIVATION_SENTINEL",
    "DEFAULT_DENIED_EVENTS",
    "ActivationLog",
    "ArchiveLoader",
    "ArchiveNamespace",
    "ControlResponse",
    "ExecutionPolicy",
    "LoadedAction",
    "RuntimeController",
    "RuntimeState",
    "SandboxState",
    "current_namespace",
    "current_policy",
    "current_state",
    "sandboxed",
    "split_entry_point",
]
