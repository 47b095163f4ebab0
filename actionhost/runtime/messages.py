"""
Control message schemas.

Pydantic models describing the parsed init document, plus the helpers
that split a run document into invocation input and environment.
"""

from __future__ import annotations

from pathlib import Path
from typing import Any

from pydantic import BaseModel, Field, InstanceOf, ValidationError, model_validator

from actionhost.document import BinaryRef
from actionhost.errors import ParseError

# Key holding the payload in both init and run documents
VALUE_KEY = "value"


class InlineCode(BaseModel):
    """``{"binary": true, "value": <base64>}`` form of the code field."""

    binary: bool = False
    value: InstanceOf[BinaryRef] | str

    class Config:
        arbitrary_types_allowed = True
        extra = "allow"

    @model_validator(mode="after")
    def _require_extracted(self) -> InlineCode:
        if not self.binary:
            raise ValueError('inline code must be marked "binary": true')
        if not isinstance(self.value, BinaryRef):
            raise ValueError('"binary": true must come before "value" in the code object')
        return self


class InitPayload(BaseModel):
    """Contents of the init document's ``value`` member."""

    main: str = Field(..., min_length=1, description="Entry point name")
    code: InlineCode | str = Field(..., description="Archive path or inline archive")

    class Config:
        arbitrary_types_allowed = True
        extra = "allow"

    @property
    def artifact(self) -> BinaryRef | None:
        """Temp file extracted for this payload, if the archive came inline."""
        if isinstance(self.code, InlineCode):
            return self.code.value  # type: ignore[return-value]
        return None

    @property
    def archive_path(self) -> Path:
        artifact = self.artifact
        if artifact is not None:
            return artifact.path
        return Path(self.code)  # type: ignore[arg-type]


class InitDocument(BaseModel):
    """``{"value": {"main": ..., "code": ...}}``"""

    value: InitPayload

    class Config:
        arbitrary_types_allowed = True
        extra = "allow"


def parse_init_document(document: Any) -> InitPayload:
    """
    Validate a parsed init document.

    Raises:
        ParseError: The document does not have the init shape
    """
    if not isinstance(document, dict):
        raise ParseError("Init document must be an object")
    try:
        return InitDocument.model_validate(document).value
    except ValidationError as e:
        problems = "; ".join(
            f"{'.'.join(str(p) for p in err['loc'])}: {err['msg']}" for err in e.errors()
        )
        raise ParseError(f"Unexpected init document ({problems})") from e


def split_run_document(document: Any) -> tuple[dict[str, Any], dict[str, Any]]:
    """
    Split a run document into ``(input, environment)``.

    The input is removed from the top-level map under ``value``; what
    remains is the environment. A missing input is an empty object.

    Raises:
        ParseError: The document or its input is not an object
    """
    if not isinstance(document, dict):
        raise ParseError("Run document must be an object")
    value = document.pop(VALUE_KEY, None)
    if value is None:
        value = {}
    if not isinstance(value, dict):
        raise ParseError(f'Run input under "{VALUE_KEY}" must be an object')
    return value, document
