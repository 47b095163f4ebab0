"""
Archive loader.

Loads an action's entry point out of a code archive, instantiates it and
registers it with a fresh ``ActionFunction`` engine, which is then started.
Importing and instantiating happen inside the sandbox, since module-level
code in the archive is as untrusted as the action itself.
"""

from __future__ import annotations

import logging
import zipfile
from pathlib import Path
from typing import Any

from actionhost.api import ActionRouteBuilder
from actionhost.document import BinaryRef
from actionhost.engine import ActionFunction
from actionhost.errors import LoadError

from .isolation import ArchiveNamespace
from .sandbox import ExecutionPolicy, sandboxed

logger = logging.getLogger(__name__)


def split_entry_point(entry_point: str) -> tuple[str, str]:
    """
    Split ``pkg.module.Class`` or ``pkg.module:Class`` into module and attribute.

    Raises:
        LoadError: The name has no module part
    """
    name = entry_point.strip()
    if ":" in name:
        module_name, _, attr = name.partition(":")
    else:
        module_name, _, attr = name.rpartition(".")
    if not module_name or not attr:
        raise LoadError(f"Entry point '{entry_point}' must be of the form 'module.Class'")
    return module_name, attr


class ArchiveLoader:
    """
    A loaded action: its archive, its namespace and its running engine.

    Construction is the whole load; it either yields a ready loader or
    raises LoadError.

    Args:
        archive_path: Zip archive (or directory) holding the action's code
        entry_point: Name of the ActionRouteBuilder subclass to instantiate
        policy: Privilege policy in force while archive code runs
        artifact: Extracted temp file backing the archive, owned from now on
    """

    def __init__(
        self,
        archive_path: str | Path,
        entry_point: str,
        *,
        policy: ExecutionPolicy | None = None,
        artifact: BinaryRef | None = None,
    ):
        self.archive_path = Path(archive_path)
        self.entry_point = entry_point
        self.policy = policy
        self.artifact = artifact

        module_name, attr = split_entry_point(entry_point)
        if not self.archive_path.exists():
            raise LoadError(f"Code archive not found: {self.archive_path}")
        try:
            self.namespace = ArchiveNamespace(self.archive_path)
        except (OSError, ValueError, zipfile.BadZipFile) as e:
            raise LoadError(f"Cannot open code archive {self.archive_path}: {e}") from e
        if not self.namespace.owns(module_name):
            raise LoadError(f"Module '{module_name}' is not provided by the code archive")

        with sandboxed(self.namespace, policy):
            builder = self._instantiate(module_name, attr)
            self.function = ActionFunction()
            try:
                self.function.add_route_builder(builder)
                self.function.start()
            except (Exception, SystemExit) as e:
                raise LoadError(f"Cannot register '{entry_point}' with the engine: {e!r}") from e

        logger.info(
            f"Loaded entry point '{entry_point}' from {self.archive_path} "
            f"(routes: {self.function.endpoints})"
        )

    def _instantiate(self, module_name: str, attr: str) -> ActionRouteBuilder:
        try:
            module = self.namespace.import_module(module_name)
        except (Exception, SystemExit) as e:
            raise LoadError(f"Cannot import module '{module_name}': {e!r}") from e

        target = getattr(module, attr, None)
        if target is None:
            raise LoadError(f"Module '{module_name}' has no attribute '{attr}'")
        if not (isinstance(target, type) and issubclass(target, ActionRouteBuilder)):
            raise LoadError(f"Entry point '{self.entry_point}' is not an ActionRouteBuilder subclass")

        try:
            return target()
        except (Exception, SystemExit) as e:
            raise LoadError(f"Cannot instantiate '{self.entry_point}': {e!r}") from e

    async def invoke(self, value: dict[str, Any], env: dict[str, Any]) -> Any:
        """
        Run one invocation through the engine.

        The caller is responsible for installing the sandbox around this.

        Raises:
            InvocationError: The route failed
        """
        return await self.function.execute(value, env)

    def close(self) -> None:
        """Release the archive's modules and delete the owned temp file."""
        self.namespace.modules.clear()
        if self.artifact is not None:
            self.artifact.discard()
            self.artifact = None

    def __repr__(self) -> str:
        return f"ArchiveLoader(entry_point={self.entry_point!r}, archive={str(self.archive_path)!r})"
