"""Schema-driven object-document mapper for MongoDB."""

from nvisy_odm.errors import ErrorKind, OdmError
from nvisy_odm.hooks import ModelHooks
from nvisy_odm.model import Model
from nvisy_odm.odm import Odm
from nvisy_odm.protocols import Hooks, Provider, Store
from nvisy_odm.registry import SchemaRegistry
from nvisy_odm.schema import ArrayOf, FieldSpec, IndexSpec, Nested, PrimitiveType, Schema

__all__ = [
    "ArrayOf",
    "ErrorKind",
    "FieldSpec",
    "Hooks",
    "IndexSpec",
    "Model",
    "ModelHooks",
    "Nested",
    "Odm",
    "OdmError",
    "PrimitiveType",
    "Provider",
    "Schema",
    "SchemaRegistry",
    "Store",
]
