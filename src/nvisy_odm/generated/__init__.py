"""Data and parameter types shared by models, pipelines and stores."""

from nvisy_odm.generated.datatypes import (
    Document,
    DocumentFragment,
    InsertResult,
    ModifyResult,
    Pipeline,
    Query,
    Stage,
    Update,
    WriteResult,
)
from nvisy_odm.generated.params import (
    DeleteManyOptions,
    DeleteOptions,
    InsertOptions,
    JoinSpecs,
    PipelineSpecs,
    PopulateSpecs,
    RandomFieldsOptions,
    ReplaceOptions,
    UpdateManyOptions,
    UpdateOptions,
)

__all__ = [
    # Params (operation behaviour)
    "DeleteManyOptions",
    "DeleteOptions",
    "InsertOptions",
    "RandomFieldsOptions",
    "ReplaceOptions",
    "UpdateManyOptions",
    "UpdateOptions",
    # Specs (pipeline generation)
    "JoinSpecs",
    "PipelineSpecs",
    "PopulateSpecs",
    # Data types
    "Document",
    "DocumentFragment",
    "InsertResult",
    "ModifyResult",
    "Pipeline",
    "Query",
    "Stage",
    "Update",
    "WriteResult",
]
