"""Tests for the ODM handle and provider wiring."""

import pytest
from bson import ObjectId

import nvisy_odm.odm as odm_module
from nvisy_odm.config import OdmSettings
from nvisy_odm.errors import ErrorKind, OdmError
from nvisy_odm.generated.params import InsertOptions
from nvisy_odm.odm import Odm
from nvisy_odm.protocols import Provider, Store
from tests.helpers.memory_store import MemoryProvider


class TestOdm:
    """Test model resolution and lifecycle."""

    def test_models_are_cached(self, odm):
        assert odm.model("Foo") is odm.model("foos")

    def test_unknown_model(self, odm):
        with pytest.raises(OdmError) as exc_info:
            odm.model("Nope")

        assert exc_info.value.kind == ErrorKind.CONFIGURATION

    def test_unknown_hooks_target(self, provider, registry):
        with pytest.raises(OdmError):
            Odm(provider, registry, hooks={"nope": object()})  # type: ignore[dict-item]

    def test_memory_provider_satisfies_protocols(self, provider):
        assert isinstance(provider, Provider)
        assert isinstance(provider.collection("foos"), Store)


@pytest.mark.asyncio
class TestOdmLifecycle:
    """Test connection state and index creation."""

    async def test_disconnect(self, odm):
        assert odm.is_connected

        await odm.disconnect()

        assert not odm.is_connected
        with pytest.raises(OdmError) as exc_info:
            odm.model("Foo")
        assert exc_info.value.kind == ErrorKind.CONNECTION

    async def test_async_context_manager(self, registry):
        provider = await MemoryProvider.connect()

        async with Odm(provider, registry) as odm:
            assert odm.is_connected

        assert not provider.is_connected

    async def test_ping(self, odm):
        assert await odm.ping()

        await odm.disconnect()

        assert not await odm.ping()

    async def test_connect_configures_logging(self, registry, monkeypatch):
        calls = []
        monkeypatch.setattr(odm_module, "MongoProvider", MemoryProvider)
        monkeypatch.setattr(odm_module, "configure_logging", lambda *args: calls.append(args))
        settings = OdmSettings(log_level="DEBUG", log_format="json")

        odm = await Odm.connect(registry, settings)

        assert calls == [("DEBUG", "json")]
        assert await odm.ping()

    async def test_create_indexes(self, odm, foo):
        created = await odm.create_indexes()

        assert created == {"Foo": ["a_string_1"]}

        await foo.insert_one({"a_string": "x", "a_bar": ObjectId()})
        with pytest.raises(OdmError) as exc_info:
            await foo.insert_one(
                {"a_string": "x", "a_bar": ObjectId()},
                InsertOptions(ignore_unique_index=True),
            )
        assert exc_info.value.kind == ErrorKind.STORE
