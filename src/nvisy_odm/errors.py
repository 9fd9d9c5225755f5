"""Error types for mapping operations."""

from enum import StrEnum
from typing import final


class ErrorKind(StrEnum):
    """Classification of ODM errors."""

    CONFIGURATION = "configuration"
    """Invalid schema, registry or pipeline specs."""

    PERMISSION = "permission"
    """Operation disallowed by a schema flag."""

    VALIDATION = "validation"
    """Document rejected by field checks, required fields or unique indexes."""

    INVALID_INPUT = "invalid_input"
    """Malformed query, identifier or document."""

    NOT_FOUND = "not_found"
    CONNECTION = "connection"
    STORE = "store"
    """Store failure or unacknowledged write."""


@final
class OdmError(Exception):
    """Error raised by schema, lifecycle and store operations.

    `model` names the entity whose operation failed, when there is one.
    """

    __slots__ = ("kind", "message", "model", "source")

    def __init__(
        self,
        message: str,
        kind: ErrorKind = ErrorKind.STORE,
        source: BaseException | None = None,
        *,
        model: str | None = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.kind = kind
        self.source = source
        self.model = model

    def __str__(self) -> str:
        return f"[{self.kind}] {self.message}"

    def __repr__(self) -> str:
        if self.model is None:
            return f"OdmError({self.message!r}, kind={self.kind!r})"
        return f"OdmError({self.message!r}, kind={self.kind!r}, model={self.model!r})"
