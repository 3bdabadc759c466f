"""
Document Store Abstraction

This module defines the DocumentStore interface and the in-memory
implementation. The PostgreSQL implementation lives in
``portal.db.postgres`` so that psycopg2 is only imported when it is used.

The DocumentStore is responsible for:
- Assigning opaque string ids and created/updated timestamps
- Equality, search and date-bound filtering
- Sorting and skip/limit pagination

Route handlers retain responsibility for:
- Schema validation (pydantic)
- Cross-collection rules (e.g. a location cannot be deleted while
  initiatives still reference it)

Documents are plain JSON-compatible dicts. Dates are stored as ISO strings,
so date bounds compare lexicographically.
"""

import copy
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from datetime import datetime, timezone
from threading import Lock
from typing import Any, Optional
from uuid import uuid4


# ============================================================
# COLLECTIONS
# ============================================================

LOCATIONS = "locations"
INITIATIVES = "initiatives"
COMPLIANCE = "compliance"
USERS = "users"

COLLECTIONS = (LOCATIONS, INITIATIVES, COMPLIANCE, USERS)


# ============================================================
# EXCEPTIONS
# ============================================================

class DocumentStoreError(Exception):
    """Base exception for document store errors."""
    pass


class UnknownCollectionError(DocumentStoreError):
    """Raised when a collection name is not one of COLLECTIONS."""
    pass


class DocumentNotFoundError(DocumentStoreError):
    """Raised when a document id does not exist in a collection."""
    pass


class StoreUnavailableError(DocumentStoreError):
    """Raised when the backing database cannot be reached or times out."""
    pass


# ============================================================
# QUERY
# ============================================================

@dataclass
class Query:
    """
    A find/count query over one collection.

    All conditions are combined with AND:
    - filters: field equals value
    - exclude: field is not equal to value (missing fields match)
    - search: case-insensitive substring over any of search_fields
    - on_or_before / before: ISO date bounds (missing fields never match)
    """
    filters: dict[str, Any] = field(default_factory=dict)
    exclude: dict[str, Any] = field(default_factory=dict)
    search: Optional[str] = None
    search_fields: tuple[str, ...] = ()
    on_or_before: dict[str, str] = field(default_factory=dict)
    before: dict[str, str] = field(default_factory=dict)
    sort_by: str = "created_at"
    descending: bool = True
    skip: int = 0
    limit: Optional[int] = None

    @classmethod
    def page(cls, page: int, limit: int, **kwargs) -> "Query":
        """Build a query for 1-based page numbers."""
        page = max(page, 1)
        return cls(skip=(page - 1) * limit, limit=limit, **kwargs)

    def unpaged(self) -> "Query":
        """Same conditions without skip/limit (for counting)."""
        return Query(
            filters=dict(self.filters),
            exclude=dict(self.exclude),
            search=self.search,
            search_fields=self.search_fields,
            on_or_before=dict(self.on_or_before),
            before=dict(self.before),
            sort_by=self.sort_by,
            descending=self.descending,
        )

    def matches(self, doc: dict[str, Any]) -> bool:
        """Evaluate the query conditions against a single document."""
        for key, value in self.filters.items():
            if doc.get(key) != value:
                return False

        for key, value in self.exclude.items():
            if doc.get(key) == value:
                return False

        if self.search:
            needle = self.search.lower()
            if not any(
                needle in str(doc.get(f) or "").lower()
                for f in self.search_fields
            ):
                return False

        for key, bound in self.on_or_before.items():
            value = doc.get(key)
            if value is None or str(value) > bound:
                return False

        for key, bound in self.before.items():
            value = doc.get(key)
            if value is None or str(value) >= bound:
                return False

        return True


def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


def new_document_id() -> str:
    """Generate an opaque document id."""
    return uuid4().hex


# ============================================================
# ABSTRACT BASE CLASS
# ============================================================

class DocumentStore(ABC):
    """
    Abstract base class for document storage.

    Every method takes a collection name from COLLECTIONS and works on
    plain dicts. Returned documents are copies; mutating them never
    changes stored state.
    """

    @abstractmethod
    def insert(self, collection: str, document: dict[str, Any]) -> dict[str, Any]:
        """
        Insert a new document.

        Assigns ``id`` (unless the caller supplied one), ``created_at`` and
        ``updated_at``.

        Returns:
            The stored document
        """
        pass

    @abstractmethod
    def get(self, collection: str, document_id: str) -> Optional[dict[str, Any]]:
        """Get a document by id, or None."""
        pass

    @abstractmethod
    def find(self, collection: str, query: Optional[Query] = None) -> list[dict[str, Any]]:
        """List documents matching the query, sorted and paginated."""
        pass

    @abstractmethod
    def count(self, collection: str, query: Optional[Query] = None) -> int:
        """Count documents matching the query (pagination ignored)."""
        pass

    @abstractmethod
    def update(
        self,
        collection: str,
        document_id: str,
        changes: dict[str, Any],
    ) -> Optional[dict[str, Any]]:
        """
        Shallow-merge changes into a document and bump ``updated_at``.

        Returns:
            The updated document, or None if it does not exist
        """
        pass

    @abstractmethod
    def delete(self, collection: str, document_id: str) -> bool:
        """Delete a document. Returns False if it did not exist."""
        pass

    @abstractmethod
    def ping(self) -> bool:
        """Check connectivity to the backing storage."""
        pass

    def find_one(self, collection: str, **filters: Any) -> Optional[dict[str, Any]]:
        """First document whose fields equal the given values."""
        docs = self.find(collection, Query(filters=filters, limit=1))
        return docs[0] if docs else None

    def exists(self, collection: str, document_id: str) -> bool:
        return self.get(collection, document_id) is not None

    @staticmethod
    def _check_collection(collection: str) -> None:
        if collection not in COLLECTIONS:
            raise UnknownCollectionError(
                f"Unknown collection: {collection}. "
                f"Valid values: {', '.join(COLLECTIONS)}"
            )


# ============================================================
# IN-MEMORY IMPLEMENTATION
# ============================================================

class InMemoryDocumentStore(DocumentStore):
    """
    In-memory implementation of DocumentStore.

    Suitable for:
    - Development
    - Testing
    - Single-instance demos

    NOT suitable for:
    - Production (no durability)
    - Multi-instance deployments (no shared state)
    """

    def __init__(self):
        self._collections: dict[str, dict[str, dict[str, Any]]] = {
            name: {} for name in COLLECTIONS
        }
        self._lock = Lock()

    def insert(self, collection: str, document: dict[str, Any]) -> dict[str, Any]:
        self._check_collection(collection)
        now = _now_iso()
        doc = copy.deepcopy(document)
        doc["id"] = doc.get("id") or new_document_id()
        doc["created_at"] = now
        doc["updated_at"] = now

        with self._lock:
            docs = self._collections[collection]
            if doc["id"] in docs:
                raise DocumentStoreError(
                    f"Document {doc['id']} already exists in {collection}"
                )
            docs[doc["id"]] = doc
            return copy.deepcopy(doc)

    def get(self, collection: str, document_id: str) -> Optional[dict[str, Any]]:
        self._check_collection(collection)
        with self._lock:
            doc = self._collections[collection].get(document_id)
            return copy.deepcopy(doc) if doc is not None else None

    def find(self, collection: str, query: Optional[Query] = None) -> list[dict[str, Any]]:
        self._check_collection(collection)
        query = query or Query()

        with self._lock:
            matched = [
                d for d in self._collections[collection].values()
                if query.matches(d)
            ]

        # Documents without the sort field go last in either direction
        present = [d for d in matched if d.get(query.sort_by) is not None]
        missing = [d for d in matched if d.get(query.sort_by) is None]
        # Ties keep insertion order, newest first when descending
        if query.descending:
            present.reverse()
        present.sort(key=lambda d: d[query.sort_by], reverse=query.descending)
        ordered = present + missing

        end = None if query.limit is None else query.skip + query.limit
        return [copy.deepcopy(d) for d in ordered[query.skip:end]]

    def count(self, collection: str, query: Optional[Query] = None) -> int:
        self._check_collection(collection)
        query = query or Query()
        with self._lock:
            return sum(
                1 for d in self._collections[collection].values()
                if query.matches(d)
            )

    def update(
        self,
        collection: str,
        document_id: str,
        changes: dict[str, Any],
    ) -> Optional[dict[str, Any]]:
        self._check_collection(collection)
        with self._lock:
            doc = self._collections[collection].get(document_id)
            if doc is None:
                return None
            for key, value in copy.deepcopy(changes).items():
                if key in ("id", "created_at"):
                    continue
                doc[key] = value
            doc["updated_at"] = _now_iso()
            return copy.deepcopy(doc)

    def delete(self, collection: str, document_id: str) -> bool:
        self._check_collection(collection)
        with self._lock:
            return self._collections[collection].pop(document_id, None) is not None

    def ping(self) -> bool:
        return True

    def clear(self) -> None:
        """Clear all documents (for testing only)."""
        with self._lock:
            for docs in self._collections.values():
                docs.clear()
