"""
Invocation sandbox.

Two things are installed around every call into loaded code and removed
afterwards, whatever the outcome:

1. The code-resolution context: the archive's ``ArchiveNamespace``, marked
   active for the current context. Imports made by archive code already
   resolve through the namespace wherever they run.
2. The privilege policy: an ``ExecutionPolicy`` listing audit events the
   loaded code may not trigger.

The policy is enforced by one process-wide audit hook (``sys.addaudithook``
cannot be undone) that reads the policy from a ``ContextVar``. Setting and
resetting that variable scopes the policy to the invocation. Threads
started by loaded code run in a fresh context and are not covered.
"""

from __future__ import annotations

import logging
import sys
import threading
from collections.abc import Iterable, Iterator
from contextlib import contextmanager
from contextvars import ContextVar
from dataclasses import dataclass, field

from .isolation import ArchiveNamespace, current_namespace

logger = logging.getLogger(__name__)

# Audit events loaded code may not raise unless configured otherwise
DEFAULT_DENIED_EVENTS = frozenset({
    "os.exec",
    "os.fork",
    "os.forkpty",
    "os.kill",
    "os.killpg",
    "os.posix_spawn",
    "os.spawn",
    "os.system",
    "pty.spawn",
    "subprocess.Popen",
})

_current_policy: ContextVar["ExecutionPolicy | None"] = ContextVar(
    "actionhost_current_policy", default=None
)
_hook_lock = threading.Lock()
_hook_installed = False


@dataclass(frozen=True)
class ExecutionPolicy:
    """Set of audit events denied while the policy is in force."""

    denied_events: frozenset[str] = field(default=DEFAULT_DENIED_EVENTS)

    @classmethod
    def from_events(cls, events: Iterable[str]) -> ExecutionPolicy:
        return cls(denied_events=frozenset(e.strip() for e in events if e.strip()))

    def permits(self, event: str) -> bool:
        return event not in self.denied_events


@dataclass(frozen=True)
class SandboxState:
    """What is installed in the current context."""

    namespace: ArchiveNamespace | None
    policy: ExecutionPolicy | None


def current_policy() -> ExecutionPolicy | None:
    return _current_policy.get()


def current_state() -> SandboxState:
    """Snapshot of the sandbox state in the current context."""
    return SandboxState(namespace=current_namespace(), policy=current_policy())


def _audit_hook(event: str, args: tuple) -> None:
    policy = _current_policy.get()
    if policy is not None and not policy.permits(event):
        raise PermissionError(f"Operation '{event}' is not permitted inside an action")


def install_audit_hook() -> None:
    """Register the policy audit hook once per process."""
    global _hook_installed
    with _hook_lock:
        if not _hook_installed:
            sys.addaudithook(_audit_hook)
            _hook_installed = True
            logger.debug("Installed action policy audit hook")


@contextmanager
def sandboxed(namespace: ArchiveNamespace, policy: ExecutionPolicy | None) -> Iterator[SandboxState]:
    """
    Run the enclosed block inside the action's sandbox.

    The previous namespace and policy are restored on every exit path,
    including exceptions and SystemExit raised by loaded code.
    """
    install_audit_hook()
    token = _current_policy.set(policy)
    try:
        with namespace.activate():
            yield current_state()
    finally:
        _current_policy.reset(token)
