"""
Tests for inline archive extraction.

Tests that base64 strings at the code payload position are streamed
to temporary files, and that nothing else is.
"""
import base64
import binascii
import io
import json
import os

import pytest

from actionhost.document import (
    Base64DecodeStream,
    BinaryRef,
    JsonReader,
    StackEntry,
    is_code_payload,
)
from actionhost.errors import ParseError


def parse(text: str, directory, **options):
    reader = JsonReader(
        io.StringIO(text),
        binary_field=is_code_payload,
        archive_dir=directory,
        **options,
    )
    return reader.parse()


def init_doc(encoded: str) -> str:
    return json.dumps({"value": {"main": "demo.Echo", "code": {"binary": True, "value": encoded}}})


class TestIsCodePayload:
    """Tests for the field predicate."""

    def _stack(self, keys, binary=True):
        code = {"binary": binary} if binary is not None else {}
        return [
            StackEntry("object", {}, keys[0]),
            StackEntry("object", {}, keys[1]),
            StackEntry("object", code, keys[2]),
        ]

    def test_matches_code_value(self):
        assert is_code_payload(self._stack(("value", "code", "value")))

    def test_requires_binary_true(self):
        assert not is_code_payload(self._stack(("value", "code", "value"), binary=False))
        assert not is_code_payload(self._stack(("value", "code", "value"), binary="true"))
        assert not is_code_payload(self._stack(("value", "code", "value"), binary=None))

    def test_requires_exact_path(self):
        assert not is_code_payload(self._stack(("value", "main", "value")))
        assert not is_code_payload(self._stack(("code", "code", "value")))

    def test_requires_depth(self):
        stack = self._stack(("value", "code", "value"))
        assert not is_code_payload(stack[:2])
        assert not is_code_payload(stack + [StackEntry("object", {}, "value")])

    def test_array_in_path_does_not_match(self):
        stack = self._stack(("value", "code", "value"))
        stack[1] = StackEntry("array", [])
        assert not is_code_payload(stack)


class TestBase64DecodeStream:
    """Tests for chunked base64 decoding."""

    def test_decodes_padded_input(self):
        stream = Base64DecodeStream(io.BytesIO(b"aGVsbG8gd29ybGQ="), chunk_size=4)
        assert stream.read() == b"hello world"

    def test_padding_optional(self):
        stream = Base64DecodeStream(io.BytesIO(b"aGVsbG8gd29ybGQ"), chunk_size=4)
        assert stream.read() == b"hello world"

    def test_chunk_size_rounded_to_groups(self):
        data = os.urandom(1000)
        stream = Base64DecodeStream(io.BytesIO(base64.b64encode(data)), chunk_size=7)
        assert stream.read() == data

    def test_empty_input(self):
        assert Base64DecodeStream(io.BytesIO(b"")).read() == b""

    def test_truncated_group(self):
        with pytest.raises(binascii.Error):
            Base64DecodeStream(io.BytesIO(b"QUJDR")).read()

    def test_invalid_character(self):
        with pytest.raises(binascii.Error):
            Base64DecodeStream(io.BytesIO(b"QU!D")).read()


class TestExtraction:
    """Tests for reader-driven extraction to temporary files."""

    def test_payload_written_to_file(self, tmp_path):
        payload = b"PK\x03\x04 archive bytes \x00\xff"
        doc = parse(init_doc(base64.b64encode(payload).decode()), tmp_path)

        ref = doc["value"]["code"]["value"]
        assert isinstance(ref, BinaryRef)
        assert ref.read_bytes() == payload
        assert ref.path.parent == tmp_path
        assert ref.path.name.startswith("useraction-")
        assert ref.path.suffix == ".zip"
        assert doc["value"]["code"]["binary"] is True
        assert doc["value"]["main"] == "demo.Echo"

    def test_empty_payload(self, tmp_path):
        doc = parse(init_doc(""), tmp_path)
        assert doc["value"]["code"]["value"].read_bytes() == b""

    def test_single_byte_payload(self, tmp_path):
        doc = parse(init_doc(base64.b64encode(b"\x7f").decode()), tmp_path)
        assert doc["value"]["code"]["value"].read_bytes() == b"\x7f"

    def test_large_payload(self, tmp_path):
        """Multi-megabyte payloads are decoded across many chunks."""
        payload = os.urandom(3 * 1024 * 1024 + 5)
        doc = parse(init_doc(base64.b64encode(payload).decode()), tmp_path)

        assert doc["value"]["code"]["value"].read_bytes() == payload

    def test_small_reader_chunks(self, tmp_path):
        payload = os.urandom(257)
        doc = parse(init_doc(base64.b64encode(payload).decode()), tmp_path, chunk_size=5)

        assert doc["value"]["code"]["value"].read_bytes() == payload

    def test_parsing_continues_after_payload(self, tmp_path):
        text = (
            '{"value": {"code": {"binary": true, "value": "QUJD", "extra": [1, "x"]},\n'
            '"main": "demo.Echo"}, "after": true}'
        )
        doc = parse(text, tmp_path)

        assert doc["value"]["code"]["value"].read_bytes() == b"ABC"
        assert doc["value"]["code"]["extra"] == [1.0, "x"]
        assert doc["value"]["main"] == "demo.Echo"
        assert doc["after"] is True


class TestContextSensitivity:
    """Only the code payload position is extracted."""

    @pytest.mark.parametrize(
        "text",
        [
            # top-level code object
            '{"code": {"binary": true, "value": "QUJD"}}',
            # binary flag after value
            '{"value": {"code": {"value": "QUJD", "binary": true}}}',
            # binary flag not a boolean
            '{"value": {"code": {"binary": "true", "value": "QUJD"}}}',
            # array in the path
            '{"value": {"code": [{"binary": true, "value": "QUJD"}]}}',
            # deeper than the payload position
            '{"value": {"code": {"binary": true, "x": {"value": "QUJD"}}}}',
            # run document shape
            '{"value": {"binary": true, "value": "QUJD"}}',
        ],
    )
    def test_other_positions_stay_strings(self, text, tmp_path):
        doc = parse(text, tmp_path)

        assert "QUJD" in json.dumps(doc)
        assert list(tmp_path.iterdir()) == []

    def test_non_string_payload_not_extracted(self, tmp_path):
        doc = parse('{"value": {"code": {"binary": true, "value": 5}}}', tmp_path)

        assert doc["value"]["code"]["value"] == 5.0
        assert list(tmp_path.iterdir()) == []

    def test_extraction_disabled_without_predicate(self, tmp_path):
        reader = JsonReader(io.StringIO(init_doc("QUJD")), archive_dir=tmp_path)

        assert reader.parse()["value"]["code"]["value"] == "QUJD"
        assert list(tmp_path.iterdir()) == []


class TestExtractionFailures:
    """Failed parses leave no temporary files behind."""

    @pytest.mark.parametrize(
        "encoded,message",
        [
            ("QU!D", "Invalid base64 payload"),
            ("QUJDR", "Invalid base64 payload"),
            ("QUJ\\nD", "Invalid base64 payload"),
            ("QUJé", "Invalid base64 payload"),
        ],
    )
    def test_bad_base64(self, encoded, message, tmp_path):
        text = '{"value": {"code": {"binary": true, "value": "%s"}}}' % encoded

        with pytest.raises(ParseError, match=message):
            parse(text, tmp_path)

        assert list(tmp_path.iterdir()) == []

    def test_unterminated_payload(self, tmp_path):
        with pytest.raises(ParseError, match="Unexpected end of input"):
            parse('{"value": {"code": {"binary": true, "value": "QUJD', tmp_path)

        assert list(tmp_path.iterdir()) == []

    def test_error_after_payload_removes_file(self, tmp_path):
        text = '{"value": {"code": {"binary": true, "value": "QUJD"}}, oops}'

        with pytest.raises(ParseError, match="Expected name"):
            parse(text, tmp_path)

        assert list(tmp_path.iterdir()) == []

    def test_discard_artifacts_keeps_requested(self, tmp_path):
        text = (
            '{"value": {"code": {"binary": true, "value": "QUJD"}},'
            ' "other": 1, "value": {"code": {"binary": true, "value": "REVG"}}}'
        )
        reader = JsonReader(io.StringIO(text), binary_field=is_code_payload, archive_dir=tmp_path)
        doc = reader.parse()
        keep = doc["value"]["code"]["value"]

        assert len(reader.artifacts) == 2
        reader.discard_artifacts(keep=keep)

        assert reader.artifacts == [keep]
        assert list(tmp_path.iterdir()) == [keep.path]
        assert keep.read_bytes() == b"DEF"

    def test_binary_ref_discard_is_idempotent(self, tmp_path):
        ref = BinaryRef(tmp_path / "gone.zip")
        ref.path.write_bytes(b"x")

        ref.discard()
        ref.discard()

        assert not ref.path.exists()
