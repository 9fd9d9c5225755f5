"""Document lifecycle engine.

A `Model` binds one `Schema` to its collection and runs every write through
the same ordered steps: hook, sanitize, timestamps, defaults, format,
encryption, validation, persistence, hook. Deletes cascade to dependent
entities named in the schema.
"""

import copy
import inspect
from collections.abc import Mapping, Sequence
from datetime import UTC, datetime
from typing import TYPE_CHECKING, Any, ClassVar

import structlog
from bson import ObjectId

from nvisy_odm.aggregation import Aggregation
from nvisy_odm.crypto import hash_value
from nvisy_odm.errors import ErrorKind, OdmError
from nvisy_odm.generated.datatypes import Document, DocumentFragment, Pipeline, Query, Update
from nvisy_odm.generated.params import (
    DeleteManyOptions,
    DeleteOptions,
    InsertOptions,
    PipelineSpecs,
    RandomFieldsOptions,
    ReplaceOptions,
    UpdateManyOptions,
    UpdateOptions,
)
from nvisy_odm.hooks import ModelHooks
from nvisy_odm.protocols import Hooks, Store
from nvisy_odm.sanitize import is_update, sanitize_document, sanitize_query
from nvisy_odm.schema import CREATED_AT, ID_FIELD, UPDATED_AT, Schema
from nvisy_odm.validation import validate_field_value

if TYPE_CHECKING:
    from nvisy_odm.odm import Odm

logger = structlog.get_logger(__name__)

# Update operators whose operands are document fragments of this schema.
_FRAGMENT_OPERATORS = ("$set", "$setOnInsert", "$addToSet", "$push")

_SPEC_ALIASES = frozenset(
    field.alias for field in PipelineSpecs.model_fields.values() if field.alias is not None
)


def _now() -> datetime:
    return datetime.now(UTC)


def _is_specs(value: object) -> bool:
    if isinstance(value, PipelineSpecs):
        return True
    return isinstance(value, Mapping) and bool(value) and all(key in _SPEC_ALIASES for key in value)


def _store_failure(action: str, model: str) -> OdmError:
    msg = f"{model}.{action} was not acknowledged by the store"
    return OdmError(msg, kind=ErrorKind.STORE, model=model)


class Model:
    """CRUD and aggregation for the documents of one schema."""

    __slots__: ClassVar[tuple[str, str, str, str]] = ("_aggregation", "_hooks", "_odm", "schema")

    schema: Schema
    _odm: "Odm"
    _hooks: Hooks
    _aggregation: Aggregation

    def __init__(self, schema: Schema, odm: "Odm", hooks: Hooks | None = None) -> None:
        self.schema = schema
        self._odm = odm
        self._hooks = hooks if hooks is not None else ModelHooks()
        self._aggregation = odm.aggregation

    def __repr__(self) -> str:
        return f"Model({self.schema.name!r}, collection={self.schema.collection!r})"

    @property
    def name(self) -> str:
        return self.schema.name

    @property
    def hooks(self) -> Hooks:
        return self._hooks

    @property
    def store(self) -> Store:
        """Store of the backing collection."""
        return self._odm.collection(self.schema.collection)

    def random_fields(
        self,
        fixed: DocumentFragment | None = None,
        options: RandomFieldsOptions | None = None,
    ) -> Document:
        """Generate random values for fields that define a `random` producer.

        Only required fields are generated unless `include_optionals` is set.
        Values in `fixed` always win.
        """
        options = options or RandomFieldsOptions()
        out: Document = {}

        for key, spec in self.schema.fields.items():
            if not options.include_optionals and not spec.required:
                continue
            if spec.random is not None:
                out[key] = spec.random()

        out.update(fixed or {})
        return out

    def pipeline(
        self,
        query_or_specs: Query | PipelineSpecs | Mapping[str, Any] | None = None,
        *,
        prefix: str = "",
        pipeline: Pipeline | None = None,
    ) -> Pipeline:
        """Generate a pipeline from specs, or from a query for the filter stage."""
        if _is_specs(query_or_specs):
            specs: Any = query_or_specs
        else:
            specs = PipelineSpecs(filter=query_or_specs)
        return self._aggregation.pipeline(self.schema, specs, prefix=prefix, pipeline=pipeline)

    def project(self, **kwargs: Any) -> Pipeline:
        """Generate a `$project` stage for this schema."""
        return self._aggregation.project_stage(self.schema, **kwargs)

    async def find_many(
        self, query_or_specs: Query | PipelineSpecs | Mapping[str, Any] | None = None
    ) -> list[Document]:
        """Find every matching document through the aggregation framework."""
        return await self.store.aggregate(self.pipeline(query_or_specs))

    async def find_one(
        self, query_or_specs: Query | PipelineSpecs | Mapping[str, Any] | None = None
    ) -> Document | None:
        """Find the first matching document, or a random one without a query."""
        if query_or_specs is None:
            results = await self.store.aggregate(self.pipeline() + [{"$sample": {"size": 1}}])
            if len(results) > 1:
                msg = "More than 1 random document found even though only 1 was supposed to be found"
                raise OdmError(msg, kind=ErrorKind.STORE, model=self.name)
            return results[0] if results else None

        results = await self.find_many(query_or_specs)
        return results[0] if results else None

    async def count(self, query_or_specs: Query | PipelineSpecs | Mapping[str, Any] | None = None) -> int:
        """Count the documents `find_many` would return."""
        return len(await self.find_many(query_or_specs))

    async def identify_one(self, query: Query) -> Any:
        """Return the identifier of the first document matching `query`."""
        doc = await self.find_one(query)
        if doc is None:
            msg = f"No results found while identifying this {self.name} using the query {query!r}"
            raise OdmError(msg, kind=ErrorKind.NOT_FOUND, model=self.name)
        if doc.get(ID_FIELD) is None:
            msg = f"Cannot identify this {self.name} using the query {query!r}"
            raise OdmError(msg, kind=ErrorKind.NOT_FOUND, model=self.name)
        return doc[ID_FIELD]

    async def insert_one(
        self,
        doc: DocumentFragment | None = None,
        options: InsertOptions | None = None,
    ) -> Document | None:
        """Insert one document, or a random one if `doc` is omitted."""
        options = options or InsertOptions()
        if self.schema.no_inserts:
            msg = f"Insertions are disallowed for {self.name}"
            raise OdmError(msg, kind=ErrorKind.PERMISSION, model=self.name)

        prepared = await self._before_insert(
            doc if doc is not None else self.random_fields(), options
        )
        logger.debug("insert_one", model=self.name, doc=prepared)

        result = await self.store.insert_one(prepared)
        if not result.ok:
            raise _store_failure("insert_one", self.name)
        if not result.inserted_ids:
            return None

        inserted = {**prepared, ID_FIELD: result.inserted_ids[0]}
        await self._hooks.did_insert(inserted)
        return inserted

    async def insert_many(
        self,
        docs: Sequence[DocumentFragment],
        options: InsertOptions | None = None,
    ) -> list[Document]:
        """Insert documents, each processed in order before one batch write."""
        options = options or InsertOptions()
        if self.schema.no_inserts or self.schema.no_insert_many:
            msg = f"Multiple insertions are disallowed for {self.name}"
            raise OdmError(msg, kind=ErrorKind.PERMISSION, model=self.name)
        if not docs:
            return []

        prepared: list[Document] = []
        for doc in docs:
            prepared.append(await self._before_insert(doc, options))

        logger.debug("insert_many", model=self.name, count=len(prepared))

        result = await self.store.insert_many(prepared)
        if not result.ok:
            raise _store_failure("insert_many", self.name)

        inserted = [
            {**doc, ID_FIELD: inserted_id}
            for doc, inserted_id in zip(prepared, result.inserted_ids, strict=True)
        ]
        for doc in inserted:
            await self._hooks.did_insert(doc)
        return inserted

    async def update_one(
        self,
        query: Query,
        update: Update,
        options: UpdateOptions | None = None,
    ) -> Document | bool | None:
        """Update the first matching document.

        Returns the updated document with `return_doc` (or `None` if nothing
        matched), otherwise whether anything matched. When upserting, values
        for required fields belong in `query` rather than `update`.
        """
        options = options or UpdateOptions()
        if self.schema.no_updates:
            msg = f"Updates are disallowed for {self.name}"
            raise OdmError(msg, kind=ErrorKind.PERMISSION, model=self.name)

        if options.skip_hooks:
            self._check_upsert(upsert=options.upsert)
            query_, update_ = query, update
        else:
            query_, update_ = await self._before_update(
                query,
                update,
                upsert=options.upsert,
                ignore_timestamps=options.ignore_timestamps,
            )

        if not isinstance(query_, Mapping):
            msg = (
                "Invalid query, maybe it is not sanitized? This happens with skip_hooks, "
                "in which case the query must be sanitized by the caller"
            )
            raise OdmError(msg, kind=ErrorKind.INVALID_INPUT, model=self.name)

        filter_ = dict(query_)
        descriptor = dict(update_)
        logger.debug("update_one", model=self.name, query=filter_, update=descriptor)

        if options.return_doc:
            result = await self.store.find_one_and_update(
                filter_, descriptor, upsert=options.upsert, return_original=True
            )
            if not result.ok:
                raise _store_failure("update_one", self.name)

            prev: Document | None
            if result.upserted_id is None:
                prev = result.value
                if prev is None:
                    return None
                updated = await self.find_one({ID_FIELD: prev[ID_FIELD]})
            else:
                prev = None
                updated = await self.find_one({ID_FIELD: result.upserted_id})

            if updated is None:
                msg = f"Unable to find the updated {self.name} document"
                raise OdmError(msg, kind=ErrorKind.STORE, model=self.name)

            if not options.skip_hooks:
                await self._hooks.did_update(prev, updated)
            return updated

        write = await self.store.update_one(filter_, descriptor, upsert=options.upsert)
        if not write.ok:
            raise _store_failure("update_one", self.name)
        if write.n <= 0:
            return False

        if not options.skip_hooks:
            await self._hooks.did_update()
        return True

    async def update_many(
        self,
        query: Query,
        update: Update,
        options: UpdateManyOptions | None = None,
    ) -> list[Document] | bool:
        """Update every matching document.

        With `return_docs`, matches are updated one at a time so that each
        updated document can be returned.
        """
        options = options or UpdateManyOptions()
        if self.schema.no_updates or self.schema.no_update_many:
            msg = f"Multiple updates are disallowed for {self.name}"
            raise OdmError(msg, kind=ErrorKind.PERMISSION, model=self.name)

        query_, update_ = await self._before_update(
            query,
            update,
            upsert=options.upsert,
            ignore_timestamps=options.ignore_timestamps,
        )
        logger.debug("update_many", model=self.name, query=query_, update=update_)

        if options.return_docs:
            docs = await self.find_many(query_)
            results: list[Document] = []

            if not docs and options.upsert:
                upserted = await self.update_one(
                    query_,
                    update_,
                    UpdateOptions(
                        upsert=True,
                        return_doc=True,
                        skip_hooks=True,
                        ignore_timestamps=options.ignore_timestamps,
                    ),
                )
                if not isinstance(upserted, dict):
                    msg = f"Error upserting {self.name} document during update_many"
                    raise OdmError(msg, kind=ErrorKind.STORE, model=self.name)
                results.append(upserted)
            else:
                for doc in docs:
                    result = await self.store.find_one_and_update(
                        {ID_FIELD: doc[ID_FIELD]}, update_, return_original=False
                    )
                    if not result.ok or result.value is None:
                        raise _store_failure("update_many", self.name)
                    results.append(result.value)

            await self._hooks.did_update(None, results)
            return results

        write = await self.store.update_many(query_, update_, upsert=options.upsert)
        if not write.ok:
            raise _store_failure("update_many", self.name)
        if write.n <= 0:
            return False

        await self._hooks.did_update()
        return True

    async def delete_one(
        self,
        query: Query,
        options: DeleteOptions | None = None,
    ) -> Document | bool | None:
        """Delete the first matching document.

        Returns the deleted document with `return_doc` (or `None` if nothing
        matched), otherwise whether anything was deleted. Cascades to
        referencing entities only run with `return_doc`, since otherwise the
        deleted identifier is not known.
        """
        options = options or DeleteOptions()
        if self.schema.no_deletes:
            msg = f"Deletions are disallowed for {self.name}"
            raise OdmError(msg, kind=ErrorKind.PERMISSION, model=self.name)

        query_ = await self._before_delete(query)
        logger.debug("delete_one", model=self.name, query=query_)

        if options.return_doc:
            result = await self.store.find_one_and_delete(query_)
            if not result.ok:
                raise _store_failure("delete_one", self.name)
            if result.value is None:
                return None
            await self._after_delete(result.value)
            return result.value

        write = await self.store.delete_one(query_)
        if not write.ok:
            raise _store_failure("delete_one", self.name)
        if write.n <= 0:
            return False

        await self._after_delete()
        return True

    async def delete_many(
        self,
        query: Query,
        options: DeleteManyOptions | None = None,
    ) -> list[Document] | bool:
        """Delete every matching document.

        With `return_docs`, matches are deleted one at a time so that each
        deleted document can be returned and cascaded. Without it no cascade
        runs.
        """
        options = options or DeleteManyOptions()
        if self.schema.no_deletes or self.schema.no_delete_many:
            msg = f"Multiple deletions are disallowed for {self.name}"
            raise OdmError(msg, kind=ErrorKind.PERMISSION, model=self.name)

        query_ = await self._before_delete(query)
        logger.debug("delete_many", model=self.name, query=query_)

        if options.return_docs:
            docs = await self.find_many(query_)
            results: list[Document] = []

            for doc in docs:
                result = await self.store.find_one_and_delete({ID_FIELD: doc[ID_FIELD]})
                if not result.ok:
                    raise _store_failure("delete_many", self.name)
                if result.value is not None:
                    results.append(result.value)

            await self._after_delete(results)
            return results

        write = await self.store.delete_many(query_)
        if not write.ok:
            raise _store_failure("delete_many", self.name)
        if write.n <= 0:
            return False

        await self._after_delete()
        return True

    async def find_and_replace_one(
        self,
        query: Query,
        replacement: DocumentFragment | None = None,
        options: ReplaceOptions | None = None,
    ) -> Document | None:
        """Replace the first matching document, or return `None`.

        The replacement goes through the insert-side steps. Returns the new
        document, or the replaced one with `return_original`.
        """
        options = options or ReplaceOptions()
        if self.schema.no_updates:
            msg = f"Updates are disallowed for {self.name}"
            raise OdmError(msg, kind=ErrorKind.PERMISSION, model=self.name)

        query_ = await self._before_delete(query)
        prepared = await self._before_insert(
            replacement if replacement is not None else self.random_fields(),
            InsertOptions(ignore_timestamps=options.ignore_timestamps, ignore_unique_index=True),
        )
        logger.debug("find_and_replace_one", model=self.name, query=query_, replacement=prepared)

        result = await self.store.find_one_and_replace(query_, prepared)
        if not result.ok:
            raise _store_failure("find_and_replace_one", self.name)

        original = result.value
        if original is None:
            return None

        replaced = await self.find_one({ID_FIELD: original[ID_FIELD]})
        if replaced is None:
            msg = f"{self.name} document is replaced but the new document cannot be found"
            raise OdmError(msg, kind=ErrorKind.STORE, model=self.name)

        await self._hooks.did_delete(original)
        await self._hooks.did_insert(replaced)
        return original if options.return_original else replaced

    async def format_document(self, doc: DocumentFragment) -> Document:
        """Apply format functions, then hash fields marked `encrypted`."""
        out: Document = copy.deepcopy(dict(doc))

        for key, spec in self.schema.fields.items():
            if key not in out:
                continue

            if spec.format is not None:
                value = spec.format(out[key])
                if inspect.isawaitable(value):
                    value = await value
                out[key] = value

            if spec.encrypted and out[key] is not None:
                out[key] = hash_value(out[key])

        return out

    async def validate_document(
        self,
        doc: DocumentFragment,
        *,
        strict: bool = False,
        ignore_unique_index: bool = False,
    ) -> bool:
        """Validate a document, raising `OdmError` on the first violation.

        Checks, in order: every key is a declared field, every value conforms
        to its spec, no required field is missing (`strict` only), and no
        other document holds the same unique index values. The unique check
        is a read before the write and may race with concurrent writers;
        `Odm.create_indexes` installs the indexes that enforce it.
        """
        if not isinstance(doc, Mapping):
            msg = "Invalid document provided"
            raise OdmError(msg, kind=ErrorKind.VALIDATION, model=self.name)
        if not doc:
            msg = "Empty documents are not permitted"
            raise OdmError(msg, kind=ErrorKind.VALIDATION, model=self.name)

        for key, value in doc.items():
            if self.schema.is_reserved(key):
                continue

            spec = self.schema.fields.get(key)
            if spec is None:
                msg = f"The field '{key}' is not defined in the {self.name} schema"
                raise OdmError(msg, kind=ErrorKind.VALIDATION, model=self.name)

            if not validate_field_value(value, spec):
                msg = (
                    f"Error validating field '{key}' of {self.name} with value {value!r} "
                    f"of type {type(value).__name__}"
                )
                raise OdmError(msg, kind=ErrorKind.VALIDATION, model=self.name)

        if strict:
            for key, spec in self.schema.fields.items():
                if not spec.required or spec.has_default():
                    continue
                if key not in doc:
                    msg = f"Missing required field '{key}' of {self.name}"
                    raise OdmError(msg, kind=ErrorKind.VALIDATION, model=self.name)

        if not ignore_unique_index:
            for index in self.schema.indexes:
                if not index.unique:
                    continue
                if not all(key in doc for key in index.keys):
                    continue

                unique_query = {key: doc[key] for key in index.keys}
                if await self.find_one(unique_query) is not None:
                    msg = f"Another {self.name} document already exists with {unique_query!r}"
                    raise OdmError(msg, kind=ErrorKind.VALIDATION, model=self.name)

        return True

    def _check_upsert(self, *, upsert: bool) -> None:
        if upsert and not self.schema.allow_upsert:
            msg = f"Attempting to upsert a {self.name} document while upserting is disallowed"
            raise OdmError(msg, kind=ErrorKind.PERMISSION, model=self.name)

    async def _before_insert(self, doc: DocumentFragment, options: InsertOptions) -> Document:
        """Turn a caller's document into the one to insert (or upsert)."""
        hooked = await self._hooks.will_insert(dict(doc))
        out = sanitize_document(self.schema, hooked)

        if self.schema.timestamps and not options.ignore_timestamps:
            now = _now()
            if not isinstance(out.get(CREATED_AT), datetime):
                out[CREATED_AT] = now
            if not isinstance(out.get(UPDATED_AT), datetime):
                out[UPDATED_AT] = now

        for key, spec in self.schema.fields.items():
            if key in out or not spec.has_default():
                continue
            out[key] = spec.default_value()

        out = await self.format_document(out)
        _ = await self.validate_document(
            out,
            strict=options.strict,
            ignore_unique_index=options.ignore_unique_index,
        )
        return out

    async def _before_update(
        self,
        query: Query,
        update: Update,
        *,
        upsert: bool,
        ignore_timestamps: bool,
    ) -> tuple[Document, Document]:
        """Turn a caller's filter and update into the ones sent to the store."""
        hooked_query, hooked_update = await self._hooks.will_update(query, update)

        query_ = sanitize_query(self.schema, hooked_query)
        if is_update(hooked_update):
            update_: Document = dict(hooked_update)
            for operator in _FRAGMENT_OPERATORS:
                if operator in update_:
                    update_[operator] = sanitize_document(self.schema, update_[operator])
        else:
            update_ = {"$set": sanitize_document(self.schema, hooked_update)}

        self._check_upsert(upsert=upsert)

        if self.schema.timestamps and not ignore_timestamps:
            fields = dict(update_.get("$set", {}))
            if not isinstance(fields.get(UPDATED_AT), datetime):
                fields[UPDATED_AT] = _now()
            update_["$set"] = fields

        if "$set" in update_:
            update_["$set"] = await self.format_document(update_["$set"])

        if upsert:
            # The filter's equality terms, plus any explicit `$setOnInsert`
            # values, are processed like an insertion so defaults and formats
            # apply to upserts.
            seed = {
                **{key: copy.deepcopy(value) for key, value in query_.items() if not is_update(value)},
                **update_.get("$setOnInsert", {}),
            }
            stamps = self.schema.timestamps and not ignore_timestamps
            defaults = any(spec.has_default() for spec in self.schema.fields.values())
            inserted: Document = {}
            # An empty filter with nothing to fill in seeds an empty document.
            if seed or stamps or defaults:
                inserted = await self._before_insert(
                    seed,
                    InsertOptions(
                        ignore_timestamps=ignore_timestamps,
                        ignore_unique_index=True,
                        strict=False,
                    ),
                )
            taken = {ID_FIELD}
            for operator, operand in update_.items():
                if operator != "$setOnInsert" and isinstance(operand, Mapping):
                    taken.update(operand)

            on_insert = {key: value for key, value in inserted.items() if key not in taken}
            if on_insert:
                update_["$setOnInsert"] = on_insert
            else:
                _ = update_.pop("$setOnInsert", None)

        if "$set" in update_:
            _ = await self.validate_document(update_["$set"], ignore_unique_index=True)

        return query_, update_

    async def _before_delete(self, query: Query) -> Document:
        hooked = await self._hooks.will_delete(query)
        return sanitize_query(self.schema, hooked)

    async def _after_delete(self, docs: Document | list[Document] | None = None) -> None:
        """Cascade deletes for the deleted documents, then call the hook."""
        if isinstance(docs, list):
            for doc in docs:
                if isinstance(doc.get(ID_FIELD), ObjectId):
                    await self.cascade_delete(doc[ID_FIELD])
        elif docs is not None and isinstance(docs.get(ID_FIELD), ObjectId):
            await self.cascade_delete(docs[ID_FIELD])

        await self._hooks.did_delete(docs)

    async def cascade_delete(self, doc_id: ObjectId) -> None:
        """Delete documents of cascade entities that reference `doc_id`.

        Dependent documents are deleted with `return_docs` so their own
        cascades run too. Earlier deletions are not rolled back if a later
        one fails.
        """
        for name in self.schema.cascade:
            dependent = self._odm.model(name)
            for key in self._odm.registry.referencing_fields(dependent.schema, self.name):
                logger.info(
                    "cascade_delete",
                    model=self.name,
                    dependent=dependent.name,
                    field=key,
                    id=str(doc_id),
                )
                _ = await dependent.delete_many({key: doc_id}, DeleteManyOptions(return_docs=True))
