"""Parameter types for model operations and pipeline generation.

Params define how an operation behaves (hooks, timestamps, returned
documents), while specs describe what a generated pipeline should contain.
"""

from collections.abc import Mapping
from typing import Any

from bson import ObjectId
from pydantic import BaseModel, ConfigDict, Field

# Recursive mapping of reference field names to `True` or nested join specs.
type JoinSpecs = Mapping[str, bool | JoinSpecs]

# Recursive mapping of field names to populate options for `$project`.
type PopulateSpecs = Mapping[str, bool | PopulateSpecs]


class PipelineSpecs(BaseModel):
    """Declarative specs for the aggregation pipeline factory.

    Every field also accepts its aggregation-framework alias (`$match`,
    `$lookup`, `$prune`, `$group`, `$sort`).
    """

    model_config = ConfigDict(
        frozen=True,
        populate_by_name=True,
        arbitrary_types_allowed=True,
        extra="forbid",
    )

    filter: ObjectId | str | dict[str, Any] | None = Field(default=None, alias="$match")
    """Query for the initial `$match` stage."""

    join: dict[str, Any] | None = Field(default=None, alias="$lookup")
    """Reference fields to populate, possibly nested."""

    post_filter: ObjectId | str | dict[str, Any] | None = Field(default=None, alias="$prune")
    """Query applied after all joins, may target populated paths."""

    group: str | dict[str, Any] | None = Field(default=None, alias="$group")
    """Field name to group by, or a verbatim `$group` descriptor."""

    sort: dict[str, Any] | None = Field(default=None, alias="$sort")
    """Verbatim `$sort` descriptor."""


class InsertOptions(BaseModel, frozen=True):
    """Options for `insert_one` and `insert_many`."""

    ignore_timestamps: bool = False
    """Skip stamping `created_at` and `updated_at`."""

    ignore_unique_index: bool = False
    """Skip the unique index pre-check."""

    strict: bool = True
    """Require every required field without a default to be present."""


class UpdateOptions(BaseModel, frozen=True):
    """Options for `update_one`."""

    upsert: bool = False
    """Insert a document built from the filter when nothing matches."""

    return_doc: bool = False
    """Return the updated document instead of a boolean."""

    skip_hooks: bool = False
    """Bypass `will_update`/`did_update` and sanitizing. The caller must pass
    an already sanitized filter mapping."""

    ignore_timestamps: bool = False
    """Skip stamping `updated_at`."""


class UpdateManyOptions(BaseModel, frozen=True):
    """Options for `update_many`."""

    upsert: bool = False
    """Insert a document built from the filter when nothing matches."""

    return_docs: bool = False
    """Return the updated documents instead of a boolean."""

    ignore_timestamps: bool = False
    """Skip stamping `updated_at`."""


class DeleteOptions(BaseModel, frozen=True):
    """Options for `delete_one`."""

    return_doc: bool = False
    """Atomically read and delete, returning the deleted document."""


class DeleteManyOptions(BaseModel, frozen=True):
    """Options for `delete_many`."""

    return_docs: bool = False
    """Delete one document at a time, returning the deleted documents."""


class ReplaceOptions(BaseModel, frozen=True):
    """Options for `find_and_replace_one`."""

    return_original: bool = False
    """Return the replaced document instead of the new one."""

    ignore_timestamps: bool = False
    """Skip stamping timestamps on the replacement."""


class RandomFieldsOptions(BaseModel, frozen=True):
    """Options for `random_fields`."""

    include_optionals: bool = False
    """Also generate values for optional fields."""
