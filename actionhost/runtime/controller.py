"""
Runtime lifecycle controller.

Owns the exactly-once init / many-times run state machine:

    UNINITIALIZED --init ok-------> INITIALIZED
    UNINITIALIZED --init failed---> UNINITIALIZED
    INITIALIZED   --init (any)----> INITIALIZED  (rejected, loader never re-run)
    INITIALIZED   --run-----------> INITIALIZED

Init attempts are serialized behind one lock held for parsing and loading.
Runs are serialized behind another, so only one invocation is in flight at
a time.

Every failure is turned into a ``ControlResponse`` with status 502 and an
``{"error": ...}`` body; nothing propagates to the caller. Calls into loaded
code have no timeout. Synchronous action code runs in a worker thread, so
the event loop stays responsive while it blocks, but a run that never
returns holds the run lock and every later run waits behind it. A
coroutine action that blocks without awaiting still stalls the whole loop.
"""

from __future__ import annotations

import asyncio
import io
import json
import logging
from collections.abc import Callable
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Any, BinaryIO

from actionhost.document import JsonReader, is_code_payload, read_bytes_stream
from actionhost.errors import (
    ActionRuntimeError,
    AlreadyInitializedError,
    InvocationError,
    ParseError,
    UninitializedError,
)

from .activation import ActivationLog
from .loader import ArchiveLoader
from .messages import InitPayload, parse_init_document, split_run_document
from .sandbox import ExecutionPolicy, sandboxed

logger = logging.getLogger(__name__)

ERROR_STATUS = 502
ERROR_PREFIX = "An error has occurred (see logs for details): "


class RuntimeState(str, Enum):
    UNINITIALIZED = "uninitialized"
    INITIALIZED = "initialized"


@dataclass(frozen=True)
class ControlResponse:
    """A fully serialized response: either a success or an error document."""

    status: int
    body: dict[str, Any]
    content: str

    @classmethod
    def ok(cls, body: dict[str, Any]) -> ControlResponse:
        """
        Serialize a success document.

        Raises:
            TypeError, ValueError: ``body`` is not representable as JSON
        """
        return cls(status=200, body=body, content=json.dumps(body, allow_nan=False))

    @classmethod
    def error(cls, message: str) -> ControlResponse:
        body = {"error": message}
        return cls(status=ERROR_STATUS, body=body, content=json.dumps(body))

    @property
    def success(self) -> bool:
        return self.status == 200


@dataclass(frozen=True)
class LoadedAction:
    entry_point: str
    archive_path: Path
    loader: ArchiveLoader


def describe_error(exc: BaseException) -> str:
    """Opaque wire message for a failure."""
    if isinstance(exc, (AlreadyInitializedError, UninitializedError)):
        return exc.message
    return f"{ERROR_PREFIX}{type(exc).__name__}: {exc}"


LoaderFactory = Callable[..., ArchiveLoader]


class RuntimeController:
    """
    The init/run protocol for a single action.

    Args:
        policy: Privilege policy applied while loaded code runs
        archive_dir: Where inline archives are extracted
        loader_factory: Builds the loader; ``ArchiveLoader`` by default
        activation_log: Writes the end-of-activation sentinel
    """

    def __init__(
        self,
        *,
        policy: ExecutionPolicy | None = None,
        archive_dir: str | Path | None = None,
        loader_factory: LoaderFactory = ArchiveLoader,
        activation_log: ActivationLog | None = None,
    ):
        self._policy = policy if policy is not None else ExecutionPolicy()
        self._archive_dir = archive_dir
        self._loader_factory = loader_factory
        self._activation_log = activation_log or ActivationLog()
        self._action: LoadedAction | None = None
        self._init_lock = asyncio.Lock()
        self._run_lock = asyncio.Lock()

    @property
    def state(self) -> RuntimeState:
        if self._action is None:
            return RuntimeState.UNINITIALIZED
        return RuntimeState.INITIALIZED

    @property
    def action(self) -> LoadedAction | None:
        return self._action

    @property
    def policy(self) -> ExecutionPolicy:
        return self._policy

    # ==================== Init ====================

    async def init(self, body: BinaryIO) -> ControlResponse:
        """Load the action described by an init request body."""
        logger.info("Initialize")
        try:
            await self._initialize(body)
        except AlreadyInitializedError as e:
            logger.error(f"Error during initialization: {e.message}")
            return ControlResponse.error(describe_error(e))
        except Exception as e:
            logger.error("Error during initialization", exc_info=True)
            return ControlResponse.error(describe_error(e))
        finally:
            body.close()

        logger.info("Initialization finished.")
        return ControlResponse.ok({"OK": True})

    async def _initialize(self, body: BinaryIO) -> None:
        if self._action is not None:
            raise AlreadyInitializedError()

        async with self._init_lock:
            if self._action is not None:
                raise AlreadyInitializedError()

            payload = await asyncio.to_thread(self._read_init, body)
            try:
                loader = self._loader_factory(
                    payload.archive_path,
                    payload.main,
                    policy=self._policy,
                    artifact=payload.artifact,
                )
            except BaseException:
                if payload.artifact is not None:
                    payload.artifact.discard()
                raise

            self._action = LoadedAction(
                entry_point=payload.main,
                archive_path=payload.archive_path,
                loader=loader,
            )

    def _read_init(self, body: BinaryIO) -> InitPayload:
        reader = JsonReader(
            io.TextIOWrapper(body, encoding="utf-8"),
            binary_field=is_code_payload,
            archive_dir=self._archive_dir,
        )
        document = reader.parse()
        try:
            payload = parse_init_document(document)
        except ParseError:
            reader.discard_artifacts()
            raise
        # duplicate "value" keys can leave earlier extractions unreferenced
        reader.discard_artifacts(keep=payload.artifact)
        return payload

    # ==================== Run ====================

    async def run(self, body: BinaryIO) -> ControlResponse:
        """Invoke the loaded action with a run request body."""
        logger.info("Running")
        try:
            response = await self._invoke(body)
            logger.info("Run finished")
            return response
        except UninitializedError as e:
            logger.error(f"Error during run: {e.message}")
            return ControlResponse.error(describe_error(e))
        except Exception as e:
            logger.error("Error during run", exc_info=True)
            return ControlResponse.error(describe_error(e))
        finally:
            body.close()
            self._activation_log.end_activation()

    def reject_run(self, exc: Exception) -> ControlResponse:
        """Report a run whose request body could not be received."""
        logger.error("Error receiving run request", exc_info=exc)
        self._activation_log.end_activation()
        return ControlResponse.error(describe_error(exc))

    async def _invoke(self, body: BinaryIO) -> ControlResponse:
        action = self._action
        if action is None:
            raise UninitializedError()

        document = await asyncio.to_thread(self._read_run, body)
        value, env = split_run_document(document)

        async with self._run_lock:
            try:
                with sandboxed(action.loader.namespace, self._policy):
                    # loaded code runs from here...
                    output = await action.loader.invoke(value, env)
                    # ...to here
            except ActionRuntimeError:
                raise
            except (Exception, SystemExit) as e:
                raise InvocationError(f"{type(e).__name__}: {e}", exception_class=type(e).__name__) from e

        if output is None:
            raise InvocationError("The action returned no result")
        if not isinstance(output, dict):
            raise InvocationError(f"The action returned a {type(output).__name__}, expected an object")
        try:
            return ControlResponse.ok(output)
        except (TypeError, ValueError) as e:
            raise InvocationError(f"The action result is not valid JSON: {e}") from e

    @staticmethod
    def _read_run(body: BinaryIO) -> Any:
        return read_bytes_stream(body)

    # ==================== Teardown ====================

    async def shutdown(self) -> None:
        """Release the loaded action and its extracted archive."""
        action = self._action
        if action is not None:
            action.loader.close()
            logger.info(f"Released action '{action.entry_point}'")
