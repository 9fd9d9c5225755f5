"""Aggregation pipeline factory.

Turns declarative specs into ordered aggregation stages:

    >>> aggregation.lookup_stage(schema, {"sub": {"subsub": True}})
    [{'$lookup': {'from': 'subs', 'localField': 'sub', 'foreignField': '_id', 'as': 'sub'}},
     {'$unwind': {'path': '$sub', 'preserveNullAndEmptyArrays': True}},
     {'$lookup': {'from': 'subsubs', 'localField': 'sub.subsub', 'foreignField': '_id', 'as': 'sub.subsub'}},
     {'$unwind': {'path': '$sub.subsub', 'preserveNullAndEmptyArrays': True}}]
"""

from collections.abc import Collection, Mapping
from typing import Any, ClassVar

from pydantic import ValidationError

from nvisy_odm.errors import ErrorKind, OdmError
from nvisy_odm.generated.datatypes import Pipeline, Query, Stage
from nvisy_odm.generated.params import JoinSpecs, PipelineSpecs, PopulateSpecs
from nvisy_odm.registry import SchemaRegistry
from nvisy_odm.sanitize import sanitize_query
from nvisy_odm.schema import CREATED_AT, ID_FIELD, UPDATED_AT, Schema


def parse_specs(specs: PipelineSpecs | Mapping[str, Any] | None) -> PipelineSpecs:
    """Validate pipeline specs, rejecting malformed shapes."""
    if specs is None:
        return PipelineSpecs()
    if isinstance(specs, PipelineSpecs):
        return specs
    if not isinstance(specs, Mapping):
        msg = f"Bad pipeline specs provided: {specs!r}"
        raise OdmError(msg, kind=ErrorKind.CONFIGURATION)
    try:
        return PipelineSpecs.model_validate(specs)
    except ValidationError as e:
        msg = f"Bad pipeline specs provided: {e}"
        raise OdmError(msg, kind=ErrorKind.CONFIGURATION, source=e) from e


class Aggregation:
    """Builds aggregation stages for schemas of one registry."""

    __slots__: ClassVar[tuple[str]] = ("_registry",)

    _registry: SchemaRegistry

    def __init__(self, registry: SchemaRegistry) -> None:
        self._registry = registry

    def pipeline(
        self,
        schema: Schema,
        specs: PipelineSpecs | Mapping[str, Any] | None = None,
        *,
        prefix: str = "",
        pipeline: Pipeline | None = None,
    ) -> Pipeline:
        """Generate a pipeline from specs.

        The order is fixed: filter, join, the caller's `pipeline`, post
        filter, group, sort.
        """
        parsed = parse_specs(specs)
        if not isinstance(prefix, str):
            msg = "Bad prefix provided"
            raise OdmError(msg, kind=ErrorKind.CONFIGURATION)
        if pipeline is not None and not isinstance(pipeline, list):
            msg = "Bad pipeline provided"
            raise OdmError(msg, kind=ErrorKind.CONFIGURATION)

        stages: Pipeline = list(pipeline or [])

        if parsed.join:
            stages = self.lookup_stage(schema, parsed.join, from_prefix=prefix, to_prefix=prefix) + stages

        if parsed.filter is not None:
            stages = self.match_stage(schema, parsed.filter, prefix=prefix) + stages

        if parsed.post_filter is not None:
            stages += self.match_stage(schema, parsed.post_filter)

        if parsed.group is not None:
            stages += self.group_stage(schema, parsed.group)

        if parsed.sort is not None:
            stages += self.sort_stage(schema, parsed.sort)

        return stages

    def match_stage(self, schema: Schema, query: Query, *, prefix: str = "") -> Pipeline:
        """Generate a `$match` stage, prefixing every key with `prefix`.

        Sanitizing is non-strict since the query may target populated paths.
        """
        sanitized = sanitize_query(schema, query, strict=False)
        return [{"$match": {f"{prefix}{key}": value for key, value in sanitized.items()}}]

    def lookup_stage(
        self,
        schema: Schema,
        specs: JoinSpecs,
        *,
        from_prefix: str = "",
        to_prefix: str = "",
    ) -> Pipeline:
        """Generate `$lookup`/`$unwind` pairs for reference fields.

        Unmatched references unwind to a missing value rather than dropping
        the document. Nested specs populate recursively.
        """
        stages: Pipeline = []

        for key, value in specs.items():
            if value is not True and not isinstance(value, Mapping):
                msg = f"Invalid populate value for '{key}' of '{schema.name}': {value!r}"
                raise OdmError(msg, kind=ErrorKind.CONFIGURATION)

            target = self._registry.resolve_ref(schema, key)
            path = f"{to_prefix}{key}"

            stages.append(
                {
                    "$lookup": {
                        "from": target.collection,
                        "localField": f"{from_prefix}{key}",
                        "foreignField": ID_FIELD,
                        "as": path,
                    }
                }
            )
            stages.append(
                {
                    "$unwind": {
                        "path": f"${path}",
                        "preserveNullAndEmptyArrays": True,
                    }
                }
            )

            if isinstance(value, Mapping):
                stages += self.lookup_stage(
                    target,
                    value,
                    from_prefix=f"{path}.",
                    to_prefix=f"{path}.",
                )

        return stages

    def group_stage(self, schema: Schema, specs: str | Mapping[str, Any]) -> Pipeline:  # noqa: ARG002
        """Generate a `$group` stage, by field name or verbatim."""
        if isinstance(specs, str):
            return [{"$group": {ID_FIELD: f"${specs}"}}]
        return [{"$group": dict(specs)}]

    def sort_stage(self, schema: Schema, specs: Mapping[str, Any]) -> Pipeline:  # noqa: ARG002
        """Generate a `$sort` stage."""
        return [{"$sort": dict(specs)}]

    def project_stage(
        self,
        schema: Schema,
        *,
        from_prefix: str = "",
        to_prefix: str = "",
        populate: PopulateSpecs | None = None,
        exclude: Collection[str] = (),
    ) -> Pipeline:
        """Generate a `$project` stage covering every field of `schema`.

        Populated reference fields project the referenced schema in place.
        The identifier is always included; timestamps unless excluded.
        """
        populate = populate or {}
        out: Stage = {f"{to_prefix}{ID_FIELD}": f"${from_prefix}{ID_FIELD}"}

        for key, spec in schema.fields.items():
            if key in exclude:
                continue

            options = populate.get(key)
            if options is False:
                continue

            if options is not None and spec.ref is not None:
                target = self._registry.get(spec.ref)
                nested = self.project_stage(
                    target,
                    from_prefix=f"{from_prefix}{key}.",
                    populate=None if options is True else options,
                )
                out[f"{to_prefix}{key}"] = nested[0]["$project"]
            else:
                out[f"{to_prefix}{key}"] = f"${from_prefix}{key}"

        if schema.timestamps:
            for key in (UPDATED_AT, CREATED_AT):
                if key not in exclude:
                    out[f"{to_prefix}{key}"] = f"${from_prefix}{key}"

        return [{"$project": out}]
