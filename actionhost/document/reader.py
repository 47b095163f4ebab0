"""
Streaming JSON reader for control documents.

A recursive-descent reader over a character stream. It keeps an explicit
stack of open containers (and, for objects, the key being filled) so that
it always knows where in the document it is. Before each string value a
field predicate is consulted with that stack; when it matches, the string
is not decoded into memory but streamed through a base64 decoder into a
fresh temporary file, and a ``BinaryRef`` is returned in its place.

Supported values: null, booleans, numbers (always ``float``), strings,
arrays and objects. Every malformed input raises ``ParseError`` with the
1-based line/column of the offending character. There is no recovery;
temporary files created before a failure are removed.

Usage:
    with open("init.json", encoding="utf-8") as f:
        doc = JsonReader(f, binary_field=is_code_payload).parse()

    value = loads('{"a": [1, 2.5, "x"]}')
"""

from __future__ import annotations

import binascii
import io
import logging
import os
import shutil
import tempfile
from pathlib import Path
from typing import Any, BinaryIO, TextIO

from actionhost.errors import ParseError

from .binary import (
    DEFAULT_CHUNK_SIZE,
    Base64DecodeStream,
    BinaryRef,
    FieldPredicate,
    StackEntry,
)

logger = logging.getLogger(__name__)

_WHITESPACE = frozenset(" \t\n\r")
_DIGITS = frozenset("0123456789")
_HEX_DIGITS = frozenset("0123456789abcdefABCDEF")
_ESCAPES = {
    '"': '"',
    "\\": "\\",
    "/": "/",
    "b": "\b",
    "f": "\f",
    "n": "\n",
    "r": "\r",
    "t": "\t",
}


class JsonReader:
    """
    Incremental JSON reader with context-sensitive binary extraction.

    ``current`` is the character under the cursor, or ``None`` at end of
    input. ``line``/``column`` give its 1-based position.

    Args:
        stream: Text stream to read from
        binary_field: Predicate deciding which string values are extracted
            to a temporary file. ``None`` disables extraction.
        archive_dir: Directory for extracted files (system temp by default)
        archive_prefix: Filename prefix for extracted files
        archive_suffix: Filename suffix for extracted files
        chunk_size: Read size for the underlying stream
    """

    def __init__(
        self,
        stream: TextIO,
        *,
        binary_field: FieldPredicate | None = None,
        archive_dir: str | Path | None = None,
        archive_prefix: str = "useraction-",
        archive_suffix: str = ".zip",
        chunk_size: int = DEFAULT_CHUNK_SIZE,
    ):
        self._stream = stream
        self._binary_field = binary_field
        self._archive_dir = archive_dir
        self._archive_prefix = archive_prefix
        self._archive_suffix = archive_suffix
        self._chunk_size = chunk_size

        self._buffer = ""
        self._pos = 0
        self.current: str | None = ""
        self.line = 1
        self.column = 0
        self.stack: list[StackEntry] = []
        self.artifacts: list[BinaryRef] = []

    # ==================== Entry point ====================

    def parse(self) -> Any:
        """
        Read exactly one value followed only by whitespace.

        On failure every file extracted so far is deleted before the
        exception propagates.
        """
        try:
            self._read()
            self._skip_whitespace()
            result = self._read_value()
            self._skip_whitespace()
            if not self._end_of_text():
                raise self._error("Unexpected character")
            return result
        except Exception:
            self.discard_artifacts()
            raise

    def discard_artifacts(self, keep: BinaryRef | None = None) -> None:
        """Delete extracted files, optionally sparing one."""
        for ref in self.artifacts:
            if ref != keep:
                ref.discard()
        self.artifacts = [keep] if keep in self.artifacts else []

    # ==================== Values ====================

    def _read_value(self) -> Any:
        ch = self.current
        if ch == "n":
            return self._read_literal("null", None)
        if ch == "t":
            return self._read_literal("true", True)
        if ch == "f":
            return self._read_literal("false", False)
        if ch == '"':
            if self._binary_field is not None and self._binary_field(tuple(self.stack)):
                return self._read_binary()
            return self._read_string()
        if ch == "[":
            return self._read_array()
        if ch == "{":
            return self._read_object()
        if ch == "-" or ch in _DIGITS:
            return self._read_number()
        raise self._expected("value")

    def _read_array(self) -> list[Any]:
        self._read()
        array: list[Any] = []
        self.stack.append(StackEntry("array", array))
        self._skip_whitespace()
        if not self._read_char("]"):
            while True:
                self._skip_whitespace()
                array.append(self._read_value())
                self._skip_whitespace()
                if not self._read_char(","):
                    break
            if not self._read_char("]"):
                raise self._expected("',' or ']'")
        self.stack.pop()
        return array

    def _read_object(self) -> dict[str, Any]:
        self._read()
        obj: dict[str, Any] = {}
        entry = StackEntry("object", obj)
        self.stack.append(entry)
        self._skip_whitespace()
        if not self._read_char("}"):
            while True:
                self._skip_whitespace()
                name = self._read_name()
                entry.key = name
                self._skip_whitespace()
                if not self._read_char(":"):
                    raise self._expected("':'")
                self._skip_whitespace()
                obj[name] = self._read_value()
                entry.key = None
                self._skip_whitespace()
                if not self._read_char(","):
                    break
            if not self._read_char("}"):
                raise self._expected("',' or '}'")
        self.stack.pop()
        return obj

    def _read_literal(self, word: str, value: Any) -> Any:
        self._read()
        for ch in word[1:]:
            if not self._read_char(ch):
                raise self._expected(f"'{ch}'")
        return value

    def _read_name(self) -> str:
        if self.current != '"':
            raise self._expected("name")
        return self._read_string()

    def _read_string(self) -> str:
        self._read()
        chars: list[str] = []
        surrogates = False
        while self.current != '"':
            ch = self.current
            if ch is None:
                raise self._error("Unexpected end of input")
            if ch == "\\":
                decoded = self._read_escape()
                surrogates = surrogates or 0xD800 <= ord(decoded) <= 0xDFFF
                chars.append(decoded)
            elif ord(ch) < 0x20:
                raise self._expected("valid string character")
            else:
                chars.append(ch)
                self._read()
        self._read()
        text = "".join(chars)
        if surrogates:
            # join escaped surrogate pairs into one code point
            text = text.encode("utf-16", "surrogatepass").decode("utf-16", "surrogatepass")
        return text

    def _read_escape(self) -> str:
        self._read()
        ch = self.current
        if ch in _ESCAPES:
            self._read()
            return _ESCAPES[ch]
        if ch == "u":
            digits = []
            for _ in range(4):
                self._read()
                if self.current not in _HEX_DIGITS:
                    raise self._expected("hexadecimal digit")
                digits.append(self.current)
            self._read()
            return chr(int("".join(digits), 16))
        raise self._expected("valid escape sequence")

    def _read_number(self) -> float:
        recorder: list[str] = []
        self._read_and_append(recorder, "-")
        first_digit = self.current
        if not self._read_and_append_digit(recorder):
            raise self._expected("digit")
        if first_digit != "0":
            while self._read_and_append_digit(recorder):
                pass
        if self._read_and_append(recorder, "."):
            if not self._read_and_append_digit(recorder):
                raise self._expected("digit")
            while self._read_and_append_digit(recorder):
                pass
        if self._read_and_append(recorder, "e") or self._read_and_append(recorder, "E"):
            if not self._read_and_append(recorder, "+"):
                self._read_and_append(recorder, "-")
            if not self._read_and_append_digit(recorder):
                raise self._expected("digit")
            while self._read_and_append_digit(recorder):
                pass
        return float("".join(recorder))

    # ==================== Binary extraction ====================

    def _read_binary(self) -> BinaryRef:
        fd, name = tempfile.mkstemp(
            prefix=self._archive_prefix,
            suffix=self._archive_suffix,
            dir=self._archive_dir,
        )
        ref = BinaryRef(Path(name))
        self.artifacts.append(ref)
        self._read()
        try:
            with os.fdopen(fd, "wb") as out:
                decoder = Base64DecodeStream(QuotedRunSource(self), self._chunk_size)
                shutil.copyfileobj(decoder, out, self._chunk_size)
        except (binascii.Error, UnicodeEncodeError) as e:
            raise self._error(f"Invalid base64 payload ({e})") from e
        self._read()
        logger.debug(f"Extracted binary payload to {ref.path} ({ref.path.stat().st_size} bytes)")
        return ref

    def take_until_quote(self, limit: int) -> str:
        """
        Consume up to ``limit`` characters, stopping before a closing quote.

        Returns an empty string once the cursor sits on the quote. Used by
        ``QuotedRunSource`` to pull raw string content in bulk.
        """
        if self.current is None:
            raise self._error("Unexpected end of input")
        if self.current == '"' or limit <= 0:
            return ""
        if self._pos >= len(self._buffer):
            self._fill()
        end = self._buffer.find('"', self._pos, self._pos + limit - 1)
        if end == -1:
            end = min(len(self._buffer), self._pos + limit - 1)
        run = self.current + self._buffer[self._pos:end]
        self._pos = end
        self.column += len(run)
        self.current = self._next_char()
        return run

    # ==================== Cursor ====================

    def _fill(self) -> None:
        try:
            self._buffer = self._stream.read(self._chunk_size)
        except UnicodeDecodeError as e:
            raise self._error(f"Invalid UTF-8 input ({e.reason})") from e
        self._pos = 0

    def _next_char(self) -> str | None:
        if self._pos >= len(self._buffer):
            self._fill()
            if not self._buffer:
                return None
        ch = self._buffer[self._pos]
        self._pos += 1
        return ch

    def _read(self) -> None:
        if self._end_of_text():
            raise self._error("Unexpected end of input")
        if self.current == "\n":
            self.line += 1
            self.column = 1
        else:
            self.column += 1
        self.current = self._next_char()

    def _read_char(self, ch: str) -> bool:
        if self.current != ch:
            return False
        self._read()
        return True

    def _read_and_append(self, recorder: list[str], ch: str) -> bool:
        if self.current != ch:
            return False
        recorder.append(ch)
        self._read()
        return True

    def _read_and_append_digit(self, recorder: list[str]) -> bool:
        if self.current not in _DIGITS:
            return False
        recorder.append(self.current)
        self._read()
        return True

    def _skip_whitespace(self) -> None:
        while self.current in _WHITESPACE:
            self._read()

    def _end_of_text(self) -> bool:
        return self.current is None

    def _expected(self, what: str) -> ParseError:
        if self._end_of_text():
            return self._error("Unexpected end of input")
        return self._error(f"Expected {what}")

    def _error(self, message: str) -> ParseError:
        return ParseError(message, self.line, self.column)


class QuotedRunSource(io.RawIOBase):
    """
    Byte view of the reader's input up to the next double quote.

    Reports end of stream when the reader's cursor reaches the closing
    quote, leaving the quote itself unconsumed. Only ASCII content is
    accepted, which covers the base64 alphabet.
    """

    def __init__(self, reader: JsonReader):
        super().__init__()
        self._reader = reader

    def readable(self) -> bool:
        return True

    def readinto(self, buffer) -> int:
        data = self._reader.take_until_quote(len(buffer)).encode("ascii")
        buffer[: len(data)] = data
        return len(data)


def read(stream: TextIO, **options: Any) -> Any:
    """Parse one document from a text stream."""
    return JsonReader(stream, **options).parse()


def read_bytes_stream(stream: BinaryIO, **options: Any) -> Any:
    """Parse one UTF-8 document from a binary stream without closing it."""
    text = io.TextIOWrapper(stream, encoding="utf-8")
    try:
        return JsonReader(text, **options).parse()
    finally:
        text.detach()


def loads(text: str) -> Any:
    """Parse a document held in a string. Binary extraction is disabled."""
    return JsonReader(io.StringIO(text)).parse()


__all__ = [
    "JsonReader",
    "QuotedRunSource",
    "read",
    "read_bytes_stream",
    "loads",
]
