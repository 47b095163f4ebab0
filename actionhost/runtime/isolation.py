"""
Code-resolution isolation for loaded archives.

Each archive gets an ``ArchiveNamespace``: the set of top-level module
names it provides plus a private table of the modules imported from it.
Archive modules are never published in ``sys.modules``. Instead every
module loaded from the archive gets its own ``__builtins__`` whose
``__import__`` resolves the archive's names from the private table and
hands every other name to the host's import system.

Resolution therefore depends on which module is importing, not on any
process-wide state:

- archive code importing one of the archive's names gets the archive's copy;
- host code importing the same name gets the host's copy, even while an
  invocation is suspended in the middle of a run;
- two archives providing the same module name never see each other.

The ``actionhost`` package itself is shared with loaded code and can never
be shadowed by an archive. ``importlib.import_module`` called from archive
code bypasses ``__import__`` and resolves against the host.

Usage:
    namespace = ArchiveNamespace("/tmp/action.zip")
    module = namespace.import_module("demo.routes")
"""

from __future__ import annotations

import builtins
import importlib.machinery
import importlib.util
import logging
import threading
import zipfile
from collections.abc import Iterator, Sequence
from contextlib import contextmanager
from contextvars import ContextVar
from pathlib import Path
from types import ModuleType
from typing import Any

logger = logging.getLogger(__name__)

# Packages loaded code always shares with the host
SHARED_PACKAGES = frozenset({"actionhost"})

_host_import = builtins.__import__

_active_namespace: ContextVar["ArchiveNamespace | None"] = ContextVar(
    "actionhost_active_namespace", default=None
)


def current_namespace() -> ArchiveNamespace | None:
    """The namespace whose code the current context is running, if any."""
    return _active_namespace.get()


class ArchiveNamespace:
    """
    Module namespace of one code archive.

    Args:
        archive: Path to a zip archive or a plain directory of modules

    Raises:
        ValueError: The path is neither a zip archive nor a directory
        OSError, zipfile.BadZipFile: The archive cannot be read
    """

    def __init__(self, archive: str | Path):
        self.archive = Path(archive)
        self.top_level = list_top_level_names(self.archive) - SHARED_PACKAGES
        self.modules: dict[str, ModuleType] = {}
        self.builtins: dict[str, Any] = dict(vars(builtins), __import__=self._import)
        self._lock = threading.RLock()

    def owns(self, name: str) -> bool:
        return name.partition(".")[0] in self.top_level

    def import_module(self, fullname: str) -> ModuleType:
        """
        Module ``fullname`` from this archive, loading it (and its parents) once.

        Raises:
            ModuleNotFoundError: The archive does not provide ``fullname``
            Exception: Whatever the module's own code raises while loading
        """
        if not self.owns(fullname):
            raise ModuleNotFoundError(f"No module named '{fullname}' in {self.archive}", name=fullname)

        with self._lock:
            module = self.modules.get(fullname)
            if module is not None:
                return module

            parent_name, _, child = fullname.rpartition(".")
            parent = None
            if parent_name:
                parent = self.import_module(parent_name)
                # the parent's own code may have imported us
                module = self.modules.get(fullname)
                if module is not None:
                    return module
                search = getattr(parent, "__path__", None)
                if search is None:
                    raise ModuleNotFoundError(
                        f"No module named '{fullname}'; '{parent_name}' is not a package",
                        name=fullname,
                    )
            else:
                search = [str(self.archive)]

            spec = importlib.machinery.PathFinder.find_spec(fullname, list(search))
            if spec is None or spec.loader is None:
                raise ModuleNotFoundError(f"No module named '{fullname}' in {self.archive}", name=fullname)

            module = importlib.util.module_from_spec(spec)
            module.__dict__["__builtins__"] = self.builtins
            self.modules[fullname] = module
            try:
                spec.loader.exec_module(module)
            except BaseException:
                del self.modules[fullname]
                raise

            if parent is not None:
                setattr(parent, child, module)
            logger.debug(f"Imported '{fullname}' from {self.archive}")
            return module

    def _import(
        self,
        name: str,
        globals: dict[str, Any] | None = None,
        locals: dict[str, Any] | None = None,
        fromlist: Sequence[str] | None = (),
        level: int = 0,
    ) -> ModuleType:
        """``__import__`` seen by archive code."""
        if level:
            package = (globals or {}).get("__package__")
            absolute = importlib.util.resolve_name("." * level + name, package)
        else:
            absolute = name
        if not self.owns(absolute):
            return _host_import(name, globals, locals, fromlist, level)

        module = self.import_module(absolute)
        if fromlist:
            if hasattr(module, "__path__"):
                self._import_fromlist(module, fromlist)
            return module
        if level == 0:
            return self.modules[absolute.partition(".")[0]]
        if not name:
            return module
        cut_off = len(name) - len(name.partition(".")[0])
        return self.modules[absolute[: len(absolute) - cut_off]]

    def _import_fromlist(self, package: ModuleType, fromlist: Sequence[str]) -> None:
        for item in fromlist:
            if item == "*":
                self._import_fromlist(package, [n for n in getattr(package, "__all__", ()) if n != "*"])
                continue
            if hasattr(package, item):
                continue
            submodule = f"{package.__name__}.{item}"
            try:
                self.import_module(submodule)
            except ModuleNotFoundError as e:
                # "from pkg import name" where name is neither attribute nor module
                if e.name != submodule:
                    raise

    @contextmanager
    def activate(self) -> Iterator[ArchiveNamespace]:
        """Mark the current context as running this namespace's code."""
        token = _active_namespace.set(self)
        try:
            yield self
        finally:
            _active_namespace.reset(token)

    def __repr__(self) -> str:
        return f"ArchiveNamespace(archive={str(self.archive)!r}, top_level={sorted(self.top_level)})"


def list_top_level_names(archive: Path) -> frozenset[str]:
    """Top-level module and package names provided by an archive or directory."""
    if archive.is_dir():
        entries = [
            child.name + ("/" if child.is_dir() else "")
            for child in archive.iterdir()
        ]
    elif zipfile.is_zipfile(archive):
        with zipfile.ZipFile(archive) as zf:
            entries = zf.namelist()
    else:
        raise ValueError(f"Not a zip archive or directory: {archive}")

    names: set[str] = set()
    for entry in entries:
        head, sep, _ = entry.partition("/")
        if sep:
            name = head
        elif head.endswith((".py", ".pyc")):
            name = head.rsplit(".", 1)[0]
        else:
            continue
        if name.isidentifier() and not name.startswith("__"):
            names.add(name)
    logger.debug(f"Archive {archive} provides {sorted(names)}")
    return frozenset(names)
