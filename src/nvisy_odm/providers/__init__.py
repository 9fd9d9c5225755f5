"""Provider implementations for document databases.

Each provider module exports a `Provider` class alias for the main provider
class, along with its credentials and params types.

Available providers:
- mongodb: MongoDB via pymongo's asyncio client
"""

from nvisy_odm.providers import mongodb

__all__ = [
    "mongodb",
]
