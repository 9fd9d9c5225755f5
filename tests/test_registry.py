"""Tests for schema declarations and the schema registry."""

import pytest
from pydantic import ValidationError

from nvisy_odm.errors import ErrorKind, OdmError
from nvisy_odm.registry import SchemaRegistry
from nvisy_odm.schema import FieldSpec, IndexSpec, Nested, PrimitiveType, Schema
from tests.conftest import BAR, BAZ, FOO


class TestSchema:
    """Test schema declaration checks."""

    @pytest.mark.parametrize("name", ["", "$bad", "a.b"])
    def test_invalid_field_names_rejected(self, name):
        with pytest.raises(ValidationError):
            Schema(name="X", collection="xs", fields={name: FieldSpec(type=PrimitiveType.STRING)})

    def test_invalid_nested_field_names_rejected(self):
        nested = Nested(fields={"a.b": FieldSpec(type=PrimitiveType.STRING)})

        with pytest.raises(ValidationError):
            Schema(name="X", collection="xs", fields={"n": FieldSpec(type=nested)})

    def test_index_without_keys_rejected(self):
        with pytest.raises(ValidationError):
            Schema(name="X", collection="xs", fields={}, indexes=[IndexSpec(keys={})])

    def test_reserved_keys(self):
        assert FOO.is_reserved("_id")
        assert FOO.is_reserved("created_at")
        assert not BAR.is_reserved("created_at")
        assert FOO.has_field("a_string")
        assert not FOO.has_field("nope")

    def test_default_factory_is_called(self):
        tags = BAR.fields["tags"]

        assert tags.has_default()
        assert tags.default_value() == []
        assert tags.default_value() is not tags.default_value()

    def test_schema_is_frozen(self):
        with pytest.raises(ValidationError):
            FOO.timestamps = False  # type: ignore[misc]


class TestSchemaRegistry:
    """Test registration and reference resolution."""

    def test_lookup_by_name_or_collection(self, registry):
        assert registry.get("Foo") is FOO
        assert registry.get("foos") is FOO
        assert "bars" in registry
        assert len(registry) == 5

    def test_unknown_name_raises(self, registry):
        with pytest.raises(OdmError) as exc_info:
            registry.get("Nope")

        assert exc_info.value.kind == ErrorKind.CONFIGURATION

    def test_duplicate_name_rejected(self):
        registry = SchemaRegistry([FOO])

        with pytest.raises(OdmError) as exc_info:
            registry.register(FOO)

        assert exc_info.value.kind == ErrorKind.CONFIGURATION

    def test_duplicate_collection_rejected(self):
        registry = SchemaRegistry([FOO])
        clash = Schema(name="Other", collection="foos", fields={})

        with pytest.raises(OdmError, match="already used by 'Foo'"):
            registry.register(clash)

    def test_resolve_ref(self, registry):
        assert registry.resolve_ref(FOO, "a_bar") is BAR
        assert registry.resolve_ref(FOO, "a_foo") is FOO

    def test_resolve_ref_without_ref_raises(self, registry):
        with pytest.raises(OdmError) as exc_info:
            registry.resolve_ref(FOO, "a_string")

        assert exc_info.value.kind == ErrorKind.CONFIGURATION

    def test_forward_references_resolve_lazily(self):
        registry = SchemaRegistry([FOO])

        with pytest.raises(OdmError):
            registry.resolve_ref(FOO, "a_bar")

        registry.register(BAR)
        assert registry.resolve_ref(FOO, "a_bar") is BAR

    def test_referencing_fields(self, registry):
        assert registry.referencing_fields(FOO, "Bar") == ["a_bar"]
        assert registry.referencing_fields(BAR, "Baz") == ["a_baz"]
        assert registry.referencing_fields(BAZ, "Foo") == []
