"""Field value validation."""

import re
from collections.abc import Mapping
from datetime import datetime
from typing import Any

import structlog
from bson import ObjectId

from nvisy_odm.schema import ArrayOf, FieldSpec, FieldType, Nested, PrimitiveType

logger = structlog.get_logger(__name__)


def _is_number(value: object) -> bool:
    return isinstance(value, int | float) and not isinstance(value, bool)


def _conforms(value: Any, field_type: FieldType) -> bool:
    """Whether the runtime category of `value` matches `field_type`."""
    if isinstance(field_type, ArrayOf):
        return isinstance(value, list) and all(
            item is None or _conforms(item, field_type.item) for item in value
        )

    if isinstance(field_type, Nested):
        if not isinstance(value, Mapping):
            return False
        for key, val in value.items():
            spec = field_type.fields.get(key)
            if spec is None or not validate_field_value(val, spec):
                return False
        return all(
            key in value for key, spec in field_type.fields.items() if spec.required
        )

    match field_type:
        case PrimitiveType.STRING:
            return isinstance(value, str)
        case PrimitiveType.NUMBER:
            return _is_number(value)
        case PrimitiveType.BOOLEAN:
            return isinstance(value, bool)
        case PrimitiveType.DATE:
            return isinstance(value, datetime)
        case PrimitiveType.OBJECT_ID:
            return isinstance(value, ObjectId)
        case PrimitiveType.ARRAY:
            return isinstance(value, list)
        case PrimitiveType.MAPPING:
            return isinstance(value, Mapping)
        case _:
            return False


def _satisfies(value: Any, strategy: Any) -> bool:
    """Whether `value` satisfies a validation strategy."""
    if isinstance(strategy, re.Pattern):
        return isinstance(value, str) and strategy.search(value) is not None

    if isinstance(strategy, tuple):
        low, high = strategy
        return _is_number(value) and low <= value <= high

    if _is_number(strategy):
        return _is_number(value) and value <= strategy

    if isinstance(strategy, list | set | frozenset):
        try:
            return value in strategy
        except TypeError:
            return False

    if callable(strategy):
        try:
            return bool(strategy(value))
        except Exception as e:  # noqa: BLE001
            logger.debug("validation_predicate_failed", error=repr(e))
            return False

    return False


def validate_field_value(value: Any, spec: FieldSpec) -> bool:
    """Decide whether `value` is acceptable for the field described by `spec`.

    `None` is accepted only for optional fields. Otherwise the value must
    conform to the declared type and then to the validation strategy, if
    any. This never raises; callers decide how to escalate a `False`.
    """
    if value is None:
        return not spec.required

    if not _conforms(value, spec.type):
        return False

    if spec.validation is None:
        return True

    return _satisfies(value, spec.validation)
