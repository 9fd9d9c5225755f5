"""Tests for query and document sanitizing."""

import pytest
from bson import ObjectId

from nvisy_odm.errors import ErrorKind, OdmError
from nvisy_odm.sanitize import is_update, sanitize_document, sanitize_query
from tests.conftest import BAR, FOO

OID = ObjectId("5927f337c5178b9665b56b1e")


class TestSanitizeQuery:
    """Test identifier wrapping and field stripping."""

    def test_object_id_becomes_id_filter(self):
        assert sanitize_query(FOO, OID) == {"_id": OID}

    def test_hex_string_becomes_id_filter(self):
        assert sanitize_query(FOO, "5927f337c5178b9665b56b1e") == {"_id": OID}

    def test_invalid_hex_string_raises(self):
        with pytest.raises(OdmError) as exc_info:
            sanitize_query(FOO, "not-an-id")

        assert exc_info.value.kind == ErrorKind.INVALID_INPUT
        assert str(exc_info.value).startswith("[invalid_input] ")
        assert exc_info.value.model is None

    def test_strict_drops_undeclared_keys(self):
        query = {"a_string": "x", "garbage": 2, "_id": OID}

        assert sanitize_query(FOO, query) == {"a_string": "x", "_id": OID}

    def test_non_strict_keeps_everything(self):
        query = {"a_string": "x", "a_bar.a_name": "y"}

        assert sanitize_query(FOO, query, strict=False) == query

    def test_timestamps_kept_only_when_enabled(self):
        assert sanitize_query(FOO, {"created_at": 1}) == {"created_at": 1}
        assert sanitize_query(BAR, {"created_at": 1}) == {}

    def test_non_mapping_raises(self):
        with pytest.raises(OdmError) as exc_info:
            sanitize_query(FOO, 42)  # type: ignore[arg-type]

        assert exc_info.value.kind == ErrorKind.INVALID_INPUT

    def test_returns_a_copy(self):
        query = {"a_string": "x"}
        result = sanitize_query(FOO, query)
        result["a_number"] = 1

        assert query == {"a_string": "x"}


class TestSanitizeDocument:
    """Test document fragment sanitizing."""

    def test_strips_undeclared_keys(self):
        assert sanitize_document(BAR, {"a_name": "n", "nope": 1}) == {"a_name": "n"}

    def test_is_idempotent(self):
        once = sanitize_document(BAR, {"a_name": "n", "nope": 1})

        assert sanitize_document(BAR, once) == once

    def test_does_not_wrap_identifiers(self):
        with pytest.raises(OdmError) as exc_info:
            sanitize_document(BAR, OID)  # type: ignore[arg-type]

        assert exc_info.value.kind == ErrorKind.INVALID_INPUT


class TestIsUpdate:
    """Test update descriptor detection."""

    def test_operator_mapping(self):
        assert is_update({"$set": {"a": 1}})

    def test_plain_document(self):
        assert not is_update({"a": 1})

    def test_non_mapping(self):
        assert not is_update("$set")
