"""Store module - read-only access to the relational store.

Public API:
- Database / StoreConnection: The run's single connection and ORM session
- RecordSource: Distinct, lazy reads of every live instance of a type
- load_store_metadata / collect_models: Type-name -> TypeMetadata mapping
"""

from searchbuild.store.database import Database, StoreConnection, build_url
from searchbuild.store.metadata import (
    TypeMetadata,
    collect_models,
    describe,
    load_store_metadata,
)
from searchbuild.store.source import RecordSource

__all__ = [
    "Database",
    "StoreConnection",
    "build_url",
    "RecordSource",
    "TypeMetadata",
    "collect_models",
    "describe",
    "load_store_metadata",
]
