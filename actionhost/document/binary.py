"""
Binary extraction support for the document reader.

The init payload may carry the code archive inline as a base64 string.
Rather than decoding that string into memory, the reader diverts it
through the pieces in this module and straight into a temporary file:

    reader chars --> QuotedRunSource --> Base64DecodeStream --> file

Which string gets diverted is decided by a field predicate evaluated
against the reader's container stack. ``is_code_payload`` is the one
the runtime uses; it is kept free of any reader state so it can be
tested on its own.
"""

from __future__ import annotations

import base64
import binascii
import io
import logging
from collections.abc import Callable, Sequence
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

logger = logging.getLogger(__name__)

DEFAULT_CHUNK_SIZE = 64 * 1024


@dataclass(frozen=True)
class BinaryRef:
    """
    Handle to bytes extracted out of a document into external storage.

    Only ever produced by the reader's binary extraction path.
    """

    path: Path

    def read_bytes(self) -> bytes:
        return self.path.read_bytes()

    def discard(self) -> None:
        """Delete the backing file if it still exists."""
        try:
            self.path.unlink(missing_ok=True)
        except OSError as e:
            logger.warning(f"Could not remove extracted archive {self.path}: {e}")

    def __str__(self) -> str:
        return str(self.path)


@dataclass
class StackEntry:
    """
    One open container on the reader's stack.

    For objects, ``key`` is the member currently being filled; for arrays
    it stays ``None``.
    """

    kind: str
    container: Any
    key: str | None = field(default=None)

    @property
    def is_object(self) -> bool:
        return self.kind == "object"


FieldPredicate = Callable[[Sequence[StackEntry]], bool]


def is_code_payload(stack: Sequence[StackEntry]) -> bool:
    """
    Match the inline archive of an init document.

    True only for the string at ``value.code.value`` (four levels deep,
    counting the root object as level one) whose enclosing ``code``
    object already holds ``"binary": true``::

        {"value": {"main": "...", "code": {"binary": true, "value": "<base64>"}}}
    """
    if len(stack) != 3:
        return False
    root, message, code = stack
    if not (root.is_object and message.is_object and code.is_object):
        return False
    if (root.key, message.key, code.key) != ("value", "code", "value"):
        return False
    return code.container.get("binary") is True


class Base64DecodeStream(io.RawIOBase):
    """
    Readable stream yielding the decoded bytes of a base64 byte source.

    Reads the source in fixed-size chunks and decodes every complete
    4-character group as it arrives, so memory stays bounded by the chunk
    size regardless of payload length. Trailing padding is optional.
    Characters outside the base64 alphabet raise ``binascii.Error``.
    """

    def __init__(self, source: io.RawIOBase, chunk_size: int = DEFAULT_CHUNK_SIZE):
        super().__init__()
        self._source = source
        self._chunk_size = chunk_size - chunk_size % 4 or 4
        self._pending = b""
        self._decoded = b""
        self._exhausted = False

    def readable(self) -> bool:
        return True

    def readinto(self, buffer) -> int:
        while not self._decoded and not self._exhausted:
            chunk = self._source.read(self._chunk_size)
            if not chunk:
                self._exhausted = True
                tail, self._pending = self._pending, b""
                if tail:
                    self._decoded = _decode_tail(tail)
                break
            data = self._pending + chunk
            cut = len(data) - len(data) % 4
            self._pending = data[cut:]
            self._decoded = base64.b64decode(data[:cut], validate=True)

        size = min(len(buffer), len(self._decoded))
        buffer[:size] = self._decoded[:size]
        self._decoded = self._decoded[size:]
        return size


def _decode_tail(tail: bytes) -> bytes:
    if len(tail) % 4 == 1:
        raise binascii.Error("Truncated base64 input")
    return base64.b64decode(tail + b"=" * (-len(tail) % 4), validate=True)


__all__ = [
    "BinaryRef",
    "StackEntry",
    "FieldPredicate",
    "is_code_payload",
    "Base64DecodeStream",
    "DEFAULT_CHUNK_SIZE",
]
