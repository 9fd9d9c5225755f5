"""
Shared pytest fixtures for nvisy-odm tests.

This module provides:
- Example schemas: Foo references Bar, Bar references Baz
- An ODM over the in-memory provider
- Settings isolation for configuration tests

Deletes cascade Baz -> Bar -> Foo.
"""

import random
import re
import string
from collections.abc import Generator

import pytest

from nvisy_odm.config import reset_settings
from nvisy_odm.odm import Odm
from nvisy_odm.model import Model
from nvisy_odm.registry import SchemaRegistry
from nvisy_odm.schema import ArrayOf, FieldSpec, IndexSpec, Nested, PrimitiveType, Schema
from tests.helpers.memory_store import MemoryProvider


async def _shout(value: str) -> str:
    return value.upper()


def _random_code() -> str:
    return "".join(random.choices(string.ascii_uppercase, k=3))


FOO = Schema(
    name="Foo",
    collection="foos",
    timestamps=True,
    allow_upsert=True,
    fields={
        "a_string": FieldSpec(type=PrimitiveType.STRING, required=True, format=str.strip),
        "a_number": FieldSpec(
            type=PrimitiveType.NUMBER,
            required=True,
            default=100,
            validation=lambda value: 0 <= value <= 1000,
            random=lambda: random.randint(0, 1000),
        ),
        "a_bar": FieldSpec(type=PrimitiveType.OBJECT_ID, ref="Bar", required=True),
        "a_foo": FieldSpec(type=PrimitiveType.OBJECT_ID, ref="Foo"),
    },
    indexes=[IndexSpec(keys={"a_string": 1}, unique=True)],
)

BAR = Schema(
    name="Bar",
    collection="bars",
    allow_upsert=True,
    cascade=["Foo"],
    fields={
        "a_name": FieldSpec(type=PrimitiveType.STRING, required=True),
        "a_secret": FieldSpec(type=PrimitiveType.STRING, encrypted=True),
        "a_baz": FieldSpec(type=PrimitiveType.OBJECT_ID, ref="Baz"),
        "tags": FieldSpec(type=ArrayOf(item=PrimitiveType.STRING), default=list),
        "level": FieldSpec(type=PrimitiveType.NUMBER, validation=[1, 2, 3]),
        "profile": FieldSpec(
            type=Nested(
                fields={
                    "city": FieldSpec(type=PrimitiveType.STRING, required=True),
                    "zip": FieldSpec(type=PrimitiveType.STRING, validation=re.compile(r"^\d{5}$")),
                }
            )
        ),
    },
)

BAZ = Schema(
    name="Baz",
    collection="bazs",
    cascade=["Bar"],
    fields={
        "code": FieldSpec(
            type=PrimitiveType.STRING,
            required=True,
            validation=re.compile(r"^[A-Z]{3}$"),
            random=_random_code,
        ),
        "label": FieldSpec(type=PrimitiveType.STRING, format=_shout),
    },
)

LOCKED = Schema(
    name="Locked",
    collection="locked",
    no_inserts=True,
    no_updates=True,
    no_deletes=True,
    fields={"name": FieldSpec(type=PrimitiveType.STRING)},
)

LIMITED = Schema(
    name="Limited",
    collection="limited",
    no_insert_many=True,
    no_update_many=True,
    no_delete_many=True,
    fields={"name": FieldSpec(type=PrimitiveType.STRING)},
)


@pytest.fixture
def registry() -> SchemaRegistry:
    return SchemaRegistry([FOO, BAR, BAZ, LOCKED, LIMITED])


@pytest.fixture
def provider() -> MemoryProvider:
    return MemoryProvider()


@pytest.fixture
def odm(provider: MemoryProvider, registry: SchemaRegistry) -> Odm:
    return Odm(provider, registry)


@pytest.fixture
def foo(odm: Odm) -> Model:
    return odm.model("Foo")


@pytest.fixture
def bar(odm: Odm) -> Model:
    return odm.model("Bar")


@pytest.fixture
def baz(odm: Odm) -> Model:
    return odm.model("Baz")


@pytest.fixture(autouse=True)
def clean_settings() -> Generator[None, None, None]:
    """Reset cached settings before and after each test."""
    reset_settings()
    yield
    reset_settings()
