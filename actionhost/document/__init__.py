"""
Control document parsing.

Streaming JSON reader used for init and run request bodies, with
path-sensitive extraction of inline base64 archives.
"""

from .binary import (
    Base64DecodeStream,
    BinaryRef,
    FieldPredicate,
    StackEntry,
    is_code_payload,
)
from .reader import JsonReader, QuotedRunSource, loads, read, read_bytes_stream

__all__ = [
    "Base64DecodeStream",
    "BinaryRef",
    "FieldPredicate",
    "JsonReader",
    "QuotedRunSource",
    "StackEntry",
    "is_code_payload",
    "loads",
    "read",
    "read_bytes_stream",
]
