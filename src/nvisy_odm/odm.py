"""Entry point tying a provider, a schema registry and models together."""

from collections.abc import Mapping
from types import TracebackType
from typing import ClassVar, Self

import structlog

from nvisy_odm.aggregation import Aggregation
from nvisy_odm.config import OdmSettings, get_settings
from nvisy_odm.errors import ErrorKind, OdmError
from nvisy_odm.log import configure_logging
from nvisy_odm.model import Model
from nvisy_odm.protocols import Hooks, Provider, Store
from nvisy_odm.providers.mongodb import MongoProvider
from nvisy_odm.registry import SchemaRegistry

logger = structlog.get_logger(__name__)


class Odm:
    """Resolves models by entity or collection name over one provider.

    Example:
        async with await Odm.connect(registry) as odm:
            foo = await odm.model("Foo").insert_one({"name": "x"})
    """

    __slots__: ClassVar[tuple[str, str, str, str, str]] = (
        "_aggregation",
        "_hooks",
        "_models",
        "_provider",
        "registry",
    )

    registry: SchemaRegistry
    _provider: Provider[object, object]
    _hooks: dict[str, Hooks]
    _models: dict[str, Model]
    _aggregation: Aggregation

    def __init__(
        self,
        provider: Provider[object, object],
        registry: SchemaRegistry,
        hooks: Mapping[str, Hooks] | None = None,
    ) -> None:
        self._provider = provider
        self.registry = registry
        self._hooks = {}
        self._models = {}
        self._aggregation = Aggregation(registry)

        for name, model_hooks in (hooks or {}).items():
            self._hooks[registry.get(name).name] = model_hooks

    @classmethod
    async def connect(
        cls,
        registry: SchemaRegistry,
        settings: OdmSettings | None = None,
        hooks: Mapping[str, Hooks] | None = None,
    ) -> Self:
        """Connect to MongoDB with `settings`, defaulting to the environment."""
        settings = settings or get_settings()
        configure_logging(settings.log_level, settings.log_format)
        provider = await MongoProvider.connect(settings.credentials(), settings.params())
        logger.info("odm_connected", database=settings.name, schemas=len(registry))
        return cls(provider, registry, hooks)

    async def disconnect(self) -> None:
        await self._provider.disconnect()
        self._models.clear()

    async def __aenter__(self) -> Self:
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        await self.disconnect()

    @property
    def is_connected(self) -> bool:
        return self._provider.is_connected

    async def ping(self) -> bool:
        """Whether the database answers a round-trip."""
        alive = await self._provider.ping()
        if not alive:
            logger.warning("odm_ping_failed", schemas=len(self.registry))
        return alive

    @property
    def aggregation(self) -> Aggregation:
        return self._aggregation

    def collection(self, name: str) -> Store:
        """Store of the collection called `name`."""
        return self._provider.collection(name)

    def model(self, name_or_collection: str) -> Model:
        """Model for an entity, looked up by entity name or collection name."""
        if not self.is_connected:
            msg = "The ODM is disconnected"
            raise OdmError(msg, kind=ErrorKind.CONNECTION)

        schema = self.registry.get(name_or_collection)
        model = self._models.get(schema.name)
        if model is None:
            model = Model(schema, self, self._hooks.get(schema.name))
            self._models[schema.name] = model
        return model

    async def create_indexes(self) -> dict[str, list[str]]:
        """Create the declared indexes of every registered schema."""
        created: dict[str, list[str]] = {}
        for schema in self.registry:
            if not schema.indexes:
                continue
            created[schema.name] = await self.collection(schema.collection).create_indexes(schema.indexes)
            logger.info("indexes_created", model=schema.name, indexes=created[schema.name])
        return created
