"""Core protocols for stores, providers and lifecycle hooks."""

from collections.abc import Sequence
from typing import Any, Protocol, Self, TypeVar, runtime_checkable

from nvisy_odm.generated.datatypes import (
    Document,
    InsertResult,
    ModifyResult,
    Pipeline,
    WriteResult,
)
from nvisy_odm.schema import IndexSpec

Cred_contra = TypeVar("Cred_contra", contravariant=True)
Params_contra = TypeVar("Params_contra", contravariant=True)


@runtime_checkable
class Store(Protocol):
    """Protocol for the primitives of one document collection."""

    async def aggregate(self, pipeline: Pipeline) -> list[Document]:
        """Run an aggregation pipeline and return the resulting documents."""
        ...

    async def insert_one(self, doc: Document) -> InsertResult:
        """Insert one document."""
        ...

    async def insert_many(self, docs: Sequence[Document]) -> InsertResult:
        """Insert documents in order."""
        ...

    async def update_one(
        self, query: Document, update: Document, *, upsert: bool = False
    ) -> WriteResult:
        """Apply an operator update to the first matching document."""
        ...

    async def update_many(
        self, query: Document, update: Document, *, upsert: bool = False
    ) -> WriteResult:
        """Apply an operator update to every matching document."""
        ...

    async def delete_one(self, query: Document) -> WriteResult:
        """Delete the first matching document."""
        ...

    async def delete_many(self, query: Document) -> WriteResult:
        """Delete every matching document."""
        ...

    async def find_one_and_update(
        self,
        query: Document,
        update: Document,
        *,
        upsert: bool = False,
        return_original: bool = True,
    ) -> ModifyResult:
        """Atomically update one document, returning it before or after."""
        ...

    async def find_one_and_delete(self, query: Document) -> ModifyResult:
        """Atomically delete one document, returning it."""
        ...

    async def find_one_and_replace(self, query: Document, replacement: Document) -> ModifyResult:
        """Atomically replace one document, returning the original."""
        ...

    async def create_indexes(self, indexes: Sequence[IndexSpec]) -> list[str]:
        """Create indexes, returning their names."""
        ...


@runtime_checkable
class Provider(Protocol[Cred_contra, Params_contra]):
    """Protocol for provider lifecycle management."""

    @classmethod
    async def connect(cls, credentials: Cred_contra, params: Params_contra) -> Self:
        """Establish connection to the document database."""
        ...

    async def disconnect(self) -> None:
        """Release resources and close connections."""
        ...

    @property
    def is_connected(self) -> bool:
        """Whether the provider can currently serve requests."""
        ...

    async def ping(self) -> bool:
        """Round-trip to the server; `False` if it does not answer."""
        ...

    def collection(self, name: str) -> Store:
        """Return the store for collection `name`."""
        ...


@runtime_checkable
class Hooks(Protocol):
    """Protocol for per-entity lifecycle hooks."""

    async def will_insert(self, doc: Document) -> Document:
        """Rewrite a document before it is sanitized and inserted."""
        ...

    async def did_insert(self, doc: Document) -> None:
        """React to an inserted document."""
        ...

    async def will_update(self, query: Any, update: Any) -> tuple[Any, Any]:
        """Rewrite the filter and update descriptor before an update."""
        ...

    async def did_update(
        self,
        prev: Document | None = None,
        docs: Document | list[Document] | None = None,
    ) -> None:
        """React to updated documents, when they were requested."""
        ...

    async def will_delete(self, query: Any) -> Any:
        """Rewrite the filter before a delete."""
        ...

    async def did_delete(self, docs: Document | list[Document] | None = None) -> None:
        """React to deleted documents, when they were requested."""
        ...
