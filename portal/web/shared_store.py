"""
Process-wide document store.

Built once at import from the environment (see ``portal.db.config``):
PostgreSQL when a database is configured and reachable, otherwise the
in-memory store. A PostgreSQL failure at startup degrades to memory
rather than refusing to boot; the [STORE] lines on stdout say which one
is live.

Demo data is only inserted on startup when ENABLE_AUTO_SEED is set and
the store has no locations yet. Real deployments seed with
``python -m tools.manage seed-demo``.
"""

import os
from functools import partial
from threading import Lock

from portal.core import PortalService
from portal.core.clock import today
from portal.db.config import (
    DatabaseConfig,
    DocumentStoreDriver,
    get_database_url,
    get_documentstore_driver,
)
from portal.db.store import LOCATIONS, DocumentStore, InMemoryDocumentStore


def _env_flag(name: str) -> bool:
    return os.getenv(name, "").strip().lower() in ("1", "true", "yes", "on")


def _memory_store(reason: str) -> DocumentStore:
    print(f"[STORE] In-memory store: {reason}. Data is lost on restart.")
    return InMemoryDocumentStore()


def _postgres_store(config: DatabaseConfig) -> DocumentStore:
    try:
        import psycopg2
        from portal.db.postgres import PostgresDocumentStore
    except ImportError:
        return _memory_store("psycopg2 is not importable (pip install psycopg2-binary)")

    store = PostgresDocumentStore(
        partial(psycopg2.connect, config.to_dsn()),
        statement_timeout_ms=config.statement_timeout_ms,
    )
    try:
        store.create_schema()
    except Exception as e:
        return _memory_store(f"PostgreSQL at {config.to_url(include_password=False)} failed ({e})")

    print(f"[STORE] PostgreSQL documents table ready at {config.host}:{config.port}/{config.database}")
    return store


def create_document_store() -> DocumentStore:
    """The store selected by DOCUMENTSTORE_DRIVER / DATABASE_* settings."""
    if get_documentstore_driver() == DocumentStoreDriver.MEMORY:
        return _memory_store("no database configured")

    url = get_database_url()
    if url is None:
        return _memory_store("psycopg2 driver selected but DATABASE_URL/DATABASE_HOST unset")

    config = DatabaseConfig.from_url(url) if "://" in url else DatabaseConfig.from_env()
    return _postgres_store(config)


_document_store = create_document_store()


def get_document_store() -> DocumentStore:
    return _document_store


_seed_lock = Lock()
_seed_done = False


def seed_demo_data(store: DocumentStore) -> None:
    """
    Insert the demo data on startup, at most once per process, and only
    into a store without locations. No-op unless ENABLE_AUTO_SEED is set.
    """
    global _seed_done

    if not _env_flag("ENABLE_AUTO_SEED"):
        return

    with _seed_lock:
        if _seed_done:
            return
        _seed_done = True

        existing = store.count(LOCATIONS)
        if existing:
            print(f"[SEED] Skipped: store already holds {existing} locations")
            return

        from portal.db.seed import seed_demo

        counts = seed_demo(PortalService(store), today())
        print("[SEED] Demo data inserted: " + ", ".join(f"{k}={v}" for k, v in counts.items()))
