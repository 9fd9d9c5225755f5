"""Default lifecycle hooks."""

from typing import Any

from nvisy_odm.generated.datatypes import Document


class ModelHooks:
    """No-op hooks; subclass and override to customize a model.

    Implements the `Hooks` protocol. Every method may perform I/O,
    including calls into other models.
    """

    async def will_insert(self, doc: Document) -> Document:
        return doc

    async def did_insert(self, doc: Document) -> None:
        pass

    async def will_update(self, query: Any, update: Any) -> tuple[Any, Any]:
        return query, update

    async def did_update(
        self,
        prev: Document | None = None,
        docs: Document | list[Document] | None = None,
    ) -> None:
        """Called after an update.

        `prev` is only given for `update_one` with `return_doc`; `docs` only
        when documents were requested with `return_doc`/`return_docs`.
        """

    async def will_delete(self, query: Any) -> Any:
        return query

    async def did_delete(self, docs: Document | list[Document] | None = None) -> None:
        pass
