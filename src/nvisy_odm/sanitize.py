"""Normalization of caller-supplied queries and documents.

Sanitizing only shapes input, it never validates values:

    >>> sanitize_query(schema, ObjectId("5927f337c5178b9665b56b1e"))
    {'_id': ObjectId('5927f337c5178b9665b56b1e')}
    >>> sanitize_query(schema, {"a": 1, "garbage": 2})
    {'a': 1}
    >>> sanitize_query(schema, {"a": 1, "garbage": 2}, strict=False)
    {'a': 1, 'garbage': 2}
"""

from collections.abc import Mapping
from typing import Any

from bson import ObjectId
from bson.errors import InvalidId

from nvisy_odm.errors import ErrorKind, OdmError
from nvisy_odm.generated.datatypes import Document, Query
from nvisy_odm.schema import ID_FIELD, Schema


def is_update(value: object) -> bool:
    """Whether `value` is a mapping of `$`-prefixed update operators."""
    if not isinstance(value, Mapping):
        return False
    return any(str(key).startswith("$") for key in value)


def _strip(schema: Schema, value: Mapping[str, Any], *, strict: bool) -> Document:
    if not strict:
        return dict(value)
    return {key: val for key, val in value.items() if schema.has_field(key)}


def sanitize_query(schema: Schema, query: Query, *, strict: bool = True) -> Document:
    """Turn an identifier, its hex string or a filter mapping into a filter.

    In strict mode, keys that are neither declared fields nor reserved keys
    (`_id` and, with timestamps, `created_at`/`updated_at`) are dropped.
    """
    if isinstance(query, ObjectId):
        return {ID_FIELD: query}

    if isinstance(query, str):
        try:
            return {ID_FIELD: ObjectId(query)}
        except InvalidId as e:
            msg = f"'{query}' is not a valid identifier"
            raise OdmError(msg, kind=ErrorKind.INVALID_INPUT, source=e) from e

    if not isinstance(query, Mapping):
        msg = f"Query is expected to be a mapping, got {type(query).__name__}"
        raise OdmError(msg, kind=ErrorKind.INVALID_INPUT)

    return _strip(schema, query, strict=strict)


def sanitize_document(schema: Schema, doc: Mapping[str, Any], *, strict: bool = True) -> Document:
    """Copy a document fragment, dropping undeclared keys in strict mode."""
    if not isinstance(doc, Mapping):
        msg = f"Document is expected to be a mapping, got {type(doc).__name__}"
        raise OdmError(msg, kind=ErrorKind.INVALID_INPUT)

    return _strip(schema, doc, strict=strict)
