"""
PostgreSQL Document Store

All collections share one table; each row holds a JSONB body:

    CREATE TABLE documents (
        collection TEXT NOT NULL,
        id TEXT NOT NULL,
        body JSONB NOT NULL,
        created_at TIMESTAMPTZ NOT NULL,
        updated_at TIMESTAMPTZ NOT NULL,
        PRIMARY KEY (collection, id)
    );

Query conditions are translated to ``body->>'field'`` comparisons, so the
semantics match InMemoryDocumentStore for the JSON-compatible values the
portal stores (strings, booleans, numbers, ISO dates).

THREAD SAFETY: every call opens its own connection from the factory; no
connection state lives on the store.
"""

import json
from contextlib import contextmanager
from datetime import datetime, timezone
from decimal import Decimal
from typing import Any, Callable, Generator, Optional

from psycopg2.extras import Json as _Psycopg2Json

from .store import (
    DocumentStore,
    DocumentStoreError,
    Query,
    StoreUnavailableError,
    new_document_id,
)


def _json_serial(obj):
    """JSON serializer for objects not serializable by default json code."""
    if isinstance(obj, Decimal):
        return str(obj)
    if hasattr(obj, "isoformat"):  # datetime, date
        return obj.isoformat()
    raise TypeError(f"Type {type(obj)} not serializable")


class Psycopg2Json(_Psycopg2Json):
    """Json adapter that handles dates and decimals."""
    def dumps(self, obj):
        return json.dumps(obj, default=_json_serial)


SCHEMA_SQL = """
CREATE TABLE IF NOT EXISTS documents (
    collection TEXT NOT NULL,
    id TEXT NOT NULL,
    body JSONB NOT NULL,
    created_at TIMESTAMPTZ NOT NULL,
    updated_at TIMESTAMPTZ NOT NULL,
    PRIMARY KEY (collection, id)
);
CREATE INDEX IF NOT EXISTS documents_collection_created
    ON documents (collection, created_at DESC);
"""


def _as_text(value: Any) -> Optional[str]:
    """Render a Python value the way ``body->>'field'`` renders JSON."""
    if value is None:
        return None
    if isinstance(value, bool):
        return "true" if value else "false"
    return str(value)


def _escape_like(term: str) -> str:
    return term.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")


class PostgresDocumentStore(DocumentStore):
    """
    PostgreSQL implementation of DocumentStore.

    Provides:
    - Durability (documents survive restarts)
    - Multi-instance support (shared database)
    - Statement timeouts to prevent hanging

    Usage:
        store = PostgresDocumentStore(lambda: psycopg2.connect(dsn))
        store.create_schema()
    """

    STATEMENT_TIMEOUT_MS = 10000

    # psycopg2 error code for statement timeout
    PGCODE_QUERY_CANCELED = "57014"

    def __init__(
        self,
        connection_factory: Callable[[], Any],
        statement_timeout_ms: int = STATEMENT_TIMEOUT_MS,
    ):
        """
        Initialize PostgreSQL document store.

        Args:
            connection_factory: Callable that returns a psycopg2 connection.
            statement_timeout_ms: Max statement execution time (ms).
        """
        self._connection_factory = connection_factory
        self._statement_timeout_ms = statement_timeout_ms

    @contextmanager
    def _cursor(self) -> Generator[Any, None, None]:
        """Open a connection, run one transaction, always close."""
        try:
            conn = self._connection_factory()
        except Exception as e:
            raise StoreUnavailableError(f"Could not connect to PostgreSQL: {e}") from e

        cursor = conn.cursor()
        try:
            cursor.execute(
                f"SET statement_timeout = '{int(self._statement_timeout_ms)}ms'"
            )
            yield cursor
            conn.commit()
        except Exception as e:
            conn.rollback()
            if getattr(e, "pgcode", None) == self.PGCODE_QUERY_CANCELED:
                raise StoreUnavailableError("Query timed out - statement took too long.") from e
            raise
        finally:
            try:
                cursor.close()
            finally:
                conn.close()

    def create_schema(self) -> None:
        """Create the documents table if it does not exist."""
        with self._cursor() as cur:
            cur.execute(SCHEMA_SQL)

    # ------------------------------------------------------------
    # Query translation
    # ------------------------------------------------------------

    def _where(self, collection: str, query: Query) -> tuple[str, list[Any]]:
        clauses = ["collection = %s"]
        params: list[Any] = [collection]

        for key, value in query.filters.items():
            text = _as_text(value)
            if text is None:
                clauses.append("body->>%s IS NULL")
                params.append(key)
            else:
                clauses.append("body->>%s = %s")
                params.extend([key, text])

        for key, value in query.exclude.items():
            clauses.append("body->>%s IS DISTINCT FROM %s")
            params.extend([key, _as_text(value)])

        if query.search and query.search_fields:
            pattern = f"%{_escape_like(query.search)}%"
            ors = []
            for f in query.search_fields:
                ors.append("body->>%s ILIKE %s")
                params.extend([f, pattern])
            clauses.append("(" + " OR ".join(ors) + ")")

        for key, bound in query.on_or_before.items():
            clauses.append("body->>%s <= %s")
            params.extend([key, bound])

        for key, bound in query.before.items():
            clauses.append("body->>%s < %s")
            params.extend([key, bound])

        return " AND ".join(clauses), params

    # ------------------------------------------------------------
    # DocumentStore API
    # ------------------------------------------------------------

    def insert(self, collection: str, document: dict[str, Any]) -> dict[str, Any]:
        self._check_collection(collection)
        now = datetime.now(timezone.utc)
        doc = dict(document)
        doc["id"] = doc.get("id") or new_document_id()
        doc["created_at"] = now.isoformat()
        doc["updated_at"] = now.isoformat()

        with self._cursor() as cur:
            cur.execute(
                """
                INSERT INTO documents (collection, id, body, created_at, updated_at)
                VALUES (%s, %s, %s, %s, %s)
                ON CONFLICT (collection, id) DO NOTHING
                """,
                (collection, doc["id"], Psycopg2Json(doc), now, now),
            )
            if cur.rowcount == 0:
                raise DocumentStoreError(
                    f"Document {doc['id']} already exists in {collection}"
                )
        return doc

    def get(self, collection: str, document_id: str) -> Optional[dict[str, Any]]:
        self._check_collection(collection)
        with self._cursor() as cur:
            cur.execute(
                "SELECT body FROM documents WHERE collection = %s AND id = %s",
                (collection, document_id),
            )
            row = cur.fetchone()
        return row[0] if row else None

    def find(self, collection: str, query: Optional[Query] = None) -> list[dict[str, Any]]:
        self._check_collection(collection)
        query = query or Query()
        where, params = self._where(collection, query)
        direction = "DESC" if query.descending else "ASC"

        sql = (
            f"SELECT body FROM documents WHERE {where} "
            f"ORDER BY body->>%s {direction} NULLS LAST, created_at {direction}"
        )
        params.append(query.sort_by)
        if query.limit is not None:
            sql += " LIMIT %s"
            params.append(query.limit)
        if query.skip:
            sql += " OFFSET %s"
            params.append(query.skip)

        with self._cursor() as cur:
            cur.execute(sql, params)
            return [row[0] for row in cur.fetchall()]

    def count(self, collection: str, query: Optional[Query] = None) -> int:
        self._check_collection(collection)
        where, params = self._where(collection, query or Query())
        with self._cursor() as cur:
            cur.execute(f"SELECT COUNT(*) FROM documents WHERE {where}", params)
            return cur.fetchone()[0]

    def update(
        self,
        collection: str,
        document_id: str,
        changes: dict[str, Any],
    ) -> Optional[dict[str, Any]]:
        self._check_collection(collection)
        now = datetime.now(timezone.utc)
        patch = {k: v for k, v in changes.items() if k not in ("id", "created_at")}
        patch["updated_at"] = now.isoformat()

        with self._cursor() as cur:
            cur.execute(
                """
                UPDATE documents
                SET body = body || %s, updated_at = %s
                WHERE collection = %s AND id = %s
                RETURNING body
                """,
                (Psycopg2Json(patch), now, collection, document_id),
            )
            row = cur.fetchone()
        return row[0] if row else None

    def delete(self, collection: str, document_id: str) -> bool:
        self._check_collection(collection)
        with self._cursor() as cur:
            cur.execute(
                "DELETE FROM documents WHERE collection = %s AND id = %s",
                (collection, document_id),
            )
            return cur.rowcount > 0

    def ping(self) -> bool:
        with self._cursor() as cur:
            cur.execute("SELECT 1")
            return cur.fetchone()[0] == 1
