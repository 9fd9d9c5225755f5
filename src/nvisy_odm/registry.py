"""Registry of entity schemas."""

from collections.abc import Iterable, Iterator
from typing import ClassVar

from nvisy_odm.errors import ErrorKind, OdmError
from nvisy_odm.schema import FieldSpec, Schema


class SchemaRegistry:
    """Holds schemas by entity name and resolves references between them.

    Schemas register by name only; references are looked up on first use,
    so entities may reference themselves or entities registered later.
    """

    __slots__: ClassVar[tuple[str, str]] = ("_by_collection", "_schemas")

    _schemas: dict[str, Schema]
    _by_collection: dict[str, str]

    def __init__(self, schemas: Iterable[Schema] = ()) -> None:
        self._schemas = {}
        self._by_collection = {}
        for schema in schemas:
            self.register(schema)

    def register(self, schema: Schema) -> Schema:
        """Add a schema, rejecting duplicate entity or collection names."""
        if schema.name in self._schemas:
            msg = f"Schema '{schema.name}' is already registered"
            raise OdmError(msg, kind=ErrorKind.CONFIGURATION)
        if schema.collection in self._by_collection:
            owner = self._by_collection[schema.collection]
            msg = f"Collection '{schema.collection}' is already used by '{owner}'"
            raise OdmError(msg, kind=ErrorKind.CONFIGURATION)

        self._schemas[schema.name] = schema
        self._by_collection[schema.collection] = schema.name
        return schema

    def get(self, name_or_collection: str) -> Schema:
        """Look up a schema by entity name, then by collection name."""
        schema = self._schemas.get(name_or_collection)
        if schema is not None:
            return schema

        name = self._by_collection.get(name_or_collection)
        if name is not None:
            return self._schemas[name]

        msg = f"No schema found for model/collection name '{name_or_collection}'"
        raise OdmError(msg, kind=ErrorKind.CONFIGURATION)

    def resolve_ref(self, schema: Schema, field: str) -> Schema:
        """Resolve the schema referenced by `field` of `schema`."""
        spec: FieldSpec | None = schema.fields.get(field)
        if spec is None or spec.ref is None:
            msg = f"Field '{field}' of '{schema.name}' does not reference another model"
            raise OdmError(msg, kind=ErrorKind.CONFIGURATION)
        return self.get(spec.ref)

    def referencing_fields(self, schema: Schema, target: str) -> list[str]:
        """Names of the fields of `schema` that reference entity `target`."""
        return [key for key, spec in schema.fields.items() if spec.ref == target]

    def __contains__(self, name_or_collection: object) -> bool:
        return name_or_collection in self._schemas or name_or_collection in self._by_collection

    def __iter__(self) -> Iterator[Schema]:
        return iter(self._schemas.values())

    def __len__(self) -> int:
        return len(self._schemas)
