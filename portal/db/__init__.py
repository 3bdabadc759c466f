"""
Database Layer for the DRA Compliance Portal

Provides:
- DocumentStore abstraction (InMemory for dev, Postgres for prod)
- Query description shared by both implementations
- Connection configuration
"""

from .store import (
    COLLECTIONS,
    COMPLIANCE,
    INITIATIVES,
    LOCATIONS,
    USERS,
    DocumentStore,
    InMemoryDocumentStore,
    Query,
    DocumentStoreError,
    DocumentNotFoundError,
    StoreUnavailableError,
    UnknownCollectionError,
)
from .config import DatabaseConfig, get_database_url

__all__ = [
    "COLLECTIONS",
    "COMPLIANCE",
    "INITIATIVES",
    "LOCATIONS",
    "USERS",
    "DocumentStore",
    "InMemoryDocumentStore",
    "Query",
    "DocumentStoreError",
    "DocumentNotFoundError",
    "StoreUnavailableError",
    "UnknownCollectionError",
    "DatabaseConfig",
    "get_database_url",
]
