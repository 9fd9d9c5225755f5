"""Declarative schema types.

A `Schema` describes one entity: its backing collection, its fields and
the flags that gate lifecycle operations. Field types form a closed union
of `PrimitiveType`, `ArrayOf` and `Nested`; references to other entities
are expressed with `FieldSpec.ref` and resolved lazily by the registry.
"""

import re
from collections.abc import Callable
from enum import StrEnum
from typing import Any, Literal, Self

from pydantic import BaseModel, ConfigDict, Field, model_validator

ID_FIELD = "_id"
CREATED_AT = "created_at"
UPDATED_AT = "updated_at"
TIMESTAMP_FIELDS = (CREATED_AT, UPDATED_AT)


class PrimitiveType(StrEnum):
    """Scalar field types."""

    STRING = "string"
    NUMBER = "number"
    BOOLEAN = "boolean"
    DATE = "date"
    OBJECT_ID = "object_id"
    ARRAY = "array"
    """Array of values of any type."""

    MAPPING = "mapping"
    """Free-form embedded mapping with no declared sub-fields."""


class ArrayOf(BaseModel, frozen=True):
    """Array whose elements all conform to `item`."""

    kind: Literal["array_of"] = "array_of"
    item: "FieldType"


class Nested(BaseModel, frozen=True):
    """Embedded sub-document with its own field specs."""

    kind: Literal["nested"] = "nested"
    fields: dict[str, "FieldSpec"]


type FieldType = PrimitiveType | ArrayOf | Nested

# A regex, an inclusive upper bound, an inclusive `(low, high)` range,
# a set of allowed values, or a predicate.
type ValidationStrategy = (
    re.Pattern[str]
    | int
    | float
    | tuple[float, float]
    | list[Any]
    | set[Any]
    | frozenset[Any]
    | Callable[[Any], bool]
)


class FieldSpec(BaseModel):
    """Declarative description of one field."""

    model_config = ConfigDict(frozen=True, arbitrary_types_allowed=True)

    type: FieldType
    """Declared type of the field's value."""

    ref: str | None = None
    """Name of the referenced entity, giving the field foreign key semantics."""

    required: bool = False
    """Whether the field must be present on insert."""

    encrypted: bool = False
    """Whether the value is stored as a one-way hash."""

    default: Any = None
    """Static default value, or a zero-argument callable producing one."""

    format: Callable[[Any], Any] | None = None
    """Transform applied before persistence. May return an awaitable."""

    validation: ValidationStrategy | None = None
    """Extra constraint checked after the type check."""

    random: Callable[[], Any] | None = None
    """Producer of random values for synthetic documents."""

    def has_default(self) -> bool:
        """Whether a default value or default factory is configured."""
        return self.default is not None

    def default_value(self) -> Any:
        """Resolve the default, calling it if it is a factory."""
        return self.default() if callable(self.default) else self.default


class IndexSpec(BaseModel, frozen=True):
    """Index definition for a collection."""

    keys: dict[str, int | str]
    """Index keys mapped to direction (`1`, `-1`) or index type (`"text"`)."""

    unique: bool = False
    """Whether the index enforces unique values."""

    name: str | None = None
    """Optional index name."""


def _check_field_names(fields: dict[str, FieldSpec], owner: str) -> None:
    for key, spec in fields.items():
        if not key or key.startswith("$") or "." in key:
            msg = f"Invalid field name {key!r} in {owner}"
            raise ValueError(msg)
        if isinstance(spec.type, Nested):
            _check_field_names(spec.type.fields, f"{owner}.{key}")


class Schema(BaseModel, frozen=True):
    """Schema of one entity and its backing collection."""

    name: str = Field(min_length=1)
    """Entity name, used by references and cascades."""

    collection: str = Field(min_length=1)
    """Backing collection name."""

    fields: dict[str, FieldSpec]
    """Field specs keyed by field name, in declaration order."""

    indexes: list[IndexSpec] = Field(default_factory=list)
    """Index definitions. Unique ones are also pre-checked on insert."""

    timestamps: bool = False
    """Whether `created_at`/`updated_at` are managed automatically."""

    allow_upsert: bool = False
    """Whether update operations may upsert."""

    no_inserts: bool = False
    no_insert_many: bool = False
    no_updates: bool = False
    no_update_many: bool = False
    no_deletes: bool = False
    no_delete_many: bool = False

    cascade: list[str] = Field(default_factory=list)
    """Entities whose documents referencing this one are deleted with it."""

    @model_validator(mode="after")
    def check_fields(self) -> Self:
        _check_field_names(self.fields, self.name)
        for index in self.indexes:
            if not index.keys:
                msg = f"Index without keys in {self.name}"
                raise ValueError(msg)
        return self

    def is_reserved(self, key: str) -> bool:
        """Whether `key` is managed by the ODM rather than declared."""
        if key == ID_FIELD:
            return True
        return self.timestamps and key in TIMESTAMP_FIELDS

    def has_field(self, key: str) -> bool:
        """Whether `key` is a declared field or a reserved key."""
        return key in self.fields or self.is_reserved(key)


_ = ArrayOf.model_rebuild()
_ = Nested.model_rebuild()
_ = FieldSpec.model_rebuild()
_ = Schema.model_rebuild()
