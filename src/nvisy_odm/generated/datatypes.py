"""Data types for the ODM.

These types represent the values that flow between models and stores:
- `Document` and `Query`/`Update` for caller-facing data
- `Stage` and `Pipeline` for the aggregation framework
- `InsertResult`, `WriteResult`, `ModifyResult` for store acknowledgements
"""

from collections.abc import Mapping
from typing import Any

from bson import ObjectId
from pydantic import BaseModel, ConfigDict, Field

# A stored document, always keyed by field name.
type Document = dict[str, Any]

# A partial document as supplied by callers.
type DocumentFragment = Mapping[str, Any]

# Either an identifier (or its hex string form) or a filter mapping.
type Query = ObjectId | str | Mapping[str, Any]

# Either a partial document or a mapping of `$`-prefixed update operators.
type Update = Mapping[str, Any]

# One aggregation stage, e.g. `{"$match": {...}}`.
type Stage = dict[str, Any]

# An ordered list of aggregation stages.
type Pipeline = list[Stage]


class InsertResult(BaseModel):
    """Acknowledgement of an insert operation."""

    model_config = ConfigDict(frozen=True, arbitrary_types_allowed=True)

    ok: bool
    """Whether the store acknowledged the write."""

    inserted_ids: list[Any] = Field(default_factory=list)
    """Identifiers of the inserted documents, in insertion order."""


class WriteResult(BaseModel):
    """Acknowledgement of an update or delete operation."""

    model_config = ConfigDict(frozen=True, arbitrary_types_allowed=True)

    ok: bool
    """Whether the store acknowledged the write."""

    n: int = 0
    """Number of documents matched (or deleted), counting an upsert as one."""

    upserted_id: Any | None = None
    """Identifier of the upserted document, if any."""


class ModifyResult(BaseModel):
    """Acknowledgement of an atomic find-and-modify operation."""

    model_config = ConfigDict(frozen=True, arbitrary_types_allowed=True)

    ok: bool
    """Whether the store acknowledged the write."""

    value: Document | None = None
    """The document before (or after) modification, depending on the call."""

    upserted_id: Any | None = None
    """Identifier of the upserted document, if any."""
