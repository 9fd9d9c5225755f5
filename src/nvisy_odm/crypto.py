"""One-way hashing of fields marked `encrypted`."""

import re
from typing import Any

import bcrypt

DEFAULT_ROUNDS = 10

_BCRYPT_HASH = re.compile(r"^\$2[abxy]\$\d{2}\$[./A-Za-z0-9]{53}$")


def is_hashed(value: Any) -> bool:
    """Whether `value` already has the shape of a bcrypt hash."""
    return isinstance(value, str) and _BCRYPT_HASH.match(value) is not None


def hash_value(value: Any, rounds: int = DEFAULT_ROUNDS) -> str:
    """Hash the string form of `value`, leaving existing hashes untouched."""
    if is_hashed(value):
        return value
    salt = bcrypt.gensalt(rounds=rounds)
    return bcrypt.hashpw(str(value).encode("utf-8"), salt).decode("ascii")


def verify_value(value: Any, hashed: str) -> bool:
    """Check a plaintext value against a stored hash."""
    if not is_hashed(hashed):
        return False
    return bcrypt.checkpw(str(value).encode("utf-8"), hashed.encode("ascii"))
