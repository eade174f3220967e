"""
AlumGlass - Vector Stores
==========================
Nearest-neighbour search over the knowledge base (building-regulation
books and technical documents).

Backends:
  • ``AstraVectorStore``: Astra DB Data API over HTTP (production).
  • ``LanceVectorStore``: embedded LanceDB table (local development,
    seeding and tests).

Both expose ``async search(vector, limit) -> list[RetrievedDocument]``
in descending similarity order with the fixed projection ``content``,
``metadata.doc_name``, ``metadata.references``.  Backend failures are
raised as ``VectorStoreError``; callers decide how to degrade.

Usage:
    store = build_vector_store()
    docs = await store.search(query_vector, limit=10)
"""

from __future__ import annotations

import asyncio
import threading
from typing import Protocol, runtime_checkable

import httpx
import lancedb
import pyarrow as pa
from pydantic import ValidationError

from alumglass.config.settings import settings
from alumglass.src.core.models import RetrievedDocument
from alumglass.src.utils.logger import get_logger

logger = get_logger(__name__)

# ── Type Aliases ──────────────────────────────────────────────────────
DocumentRecord = dict[str, str | list[float]]

PROJECTION: dict[str, int] = {"_id": 0, "content": 1, "metadata.doc_name": 1, "metadata.references": 1}


class VectorStoreError(RuntimeError):
    """A vector backend could not answer a search."""


@runtime_checkable
class VectorStore(Protocol):
    """Structural type for any knowledge-base backend."""

    async def search(self, vector: list[float], limit: int) -> list[RetrievedDocument]: ...


# ══════════════════════════════════════════════════════════════════════
#  ASTRA DATA API
# ══════════════════════════════════════════════════════════════════════


class AstraVectorStore:
    """
    Astra DB collection queried through the JSON Data API.

    Parameters
    ----------
    endpoint
        Database API endpoint, e.g. ``https://<id>-<region>.apps.astra.datastax.com``.
    keyspace, collection
        Target collection.
    token
        Application token sent as ``X-Cassandra-Token``.
    transport
        Optional ``httpx`` transport (tests inject ``httpx.MockTransport``).
    """

    def __init__(self, endpoint: str, keyspace: str, collection: str, token: str, timeout: float | None = None, transport: httpx.AsyncBaseTransport | None = None) -> None:
        self.url = f"{endpoint.rstrip('/')}/api/json/v1/{keyspace}/{collection}"
        self._token = token
        self._timeout = timeout if timeout is not None else settings.HTTP_TIMEOUT_SECONDS
        self._transport = transport


    @classmethod
    def from_settings(cls) -> AstraVectorStore:
        missing = [name for name in ("ASTRA_DB_ENDPOINT", "ASTRA_KEYSPACE", "ASTRA_COLLECTION_NAME", "ASTRA_DB_TOKEN") if not getattr(settings, name)]
        if missing:
            raise ValueError(f"Astra vector backend selected but not configured: {', '.join(missing)}")
        return cls(settings.ASTRA_DB_ENDPOINT, settings.ASTRA_KEYSPACE, settings.ASTRA_COLLECTION_NAME, settings.ASTRA_DB_TOKEN.get_secret_value())


    def build_query(self, vector: list[float], limit: int) -> dict[str, object]:
        return {"find": {"sort": {"$vector": vector}, "options": {"limit": limit, "includeSimilarity": True}, "projection": PROJECTION}}


    async def search(self, vector: list[float], limit: int) -> list[RetrievedDocument]:
        headers = {"X-Cassandra-Token": self._token, "Content-Type": "application/json", "Accept": "application/json"}
        try:
            async with httpx.AsyncClient(timeout=self._timeout, transport=self._transport) as client:
                response = await client.post(self.url, json=self.build_query(vector, limit), headers=headers)
                response.raise_for_status()
                payload = response.json()
        except httpx.HTTPError as exc:
            logger.error("[VECTOR] Astra request failed: %s", exc)
            raise VectorStoreError(f"Astra request failed: {exc}") from exc
        except ValueError as exc:
            logger.error("[VECTOR] Astra returned a non-JSON body: %s", exc)
            raise VectorStoreError("Astra returned a non-JSON body") from exc

        if not isinstance(payload, dict):
            logger.error("[VECTOR] Astra returned a %s payload, expected an object.", type(payload).__name__)
            raise VectorStoreError("Astra returned an unexpected payload")

        # The Data API reports query errors with HTTP 200 and an "errors" list
        if payload.get("errors"):
            message = "; ".join(str(error.get("message", error)) if isinstance(error, dict) else str(error) for error in payload["errors"])
            logger.error("[VECTOR] Astra query error: %s", message)
            raise VectorStoreError(message)

        try:
            documents = (payload.get("data") or {}).get("documents") or []
            results = [RetrievedDocument.model_validate(document) for document in documents]
        except (ValidationError, AttributeError, TypeError) as exc:
            logger.error("[VECTOR] Astra returned malformed documents: %s", exc)
            raise VectorStoreError("Astra returned malformed documents") from exc

        logger.info("[VECTOR] Astra returned %d document(s).", len(results))
        return results


    def __repr__(self) -> str:
        return f"AstraVectorStore(url='{self.url}')"


# ══════════════════════════════════════════════════════════════════════
#  LANCEDB
# ══════════════════════════════════════════════════════════════════════

_DB_LOCK = threading.Lock()
_db_connection_cache: dict[str, lancedb.DBConnection] = {}


def knowledge_base_schema(dimension: int) -> pa.Schema:
    return pa.schema([
        pa.field("vector", pa.list_(pa.float32(), dimension)),
        pa.field("content", pa.utf8()),
        pa.field("doc_name", pa.utf8()),
        pa.field("references", pa.utf8()),
    ])


def _get_connection(db_path: str) -> lancedb.DBConnection:
    """Return a cached ``lancedb.DBConnection`` for *db_path* (thread-safe)."""
    if db_path not in _db_connection_cache:
        with _DB_LOCK:
            if db_path not in _db_connection_cache:
                logger.info("[VECTOR] Opening LanceDB connection: %s", db_path)
                _db_connection_cache[db_path] = lancedb.connect(db_path)
    return _db_connection_cache[db_path]


class LanceVectorStore:
    """
    Knowledge base stored in a local LanceDB table.

    Search uses cosine distance; ``similarity = 1 - _distance``.  LanceDB
    calls are synchronous and run in a worker thread.
    """

    __slots__ = ("_db_path", "_table_name", "dimension", "db", "table")

    def __init__(self, db_path: str | None = None, table_name: str | None = None, dimension: int | None = None) -> None:
        self._db_path: str = str(db_path or settings.LANCEDB_PATH)
        self._table_name: str = table_name or settings.LANCEDB_TABLE_NAME
        self.dimension: int = dimension or settings.VECTOR_DIMENSION
        self.db = _get_connection(self._db_path)
        self.table = self.db.create_table(self._table_name, schema=knowledge_base_schema(self.dimension), exist_ok=True)
        logger.info("[VECTOR] LanceDB table '%s' ready (%d rows).", self._table_name, self.table.count_rows())


    def add_documents(self, vectors: list[list[float]], contents: list[str], metadatas: list[dict[str, str]]) -> int:
        """
        Insert pre-embedded knowledge-base chunks.

        Raises
        ------
        ValueError
            If the three lists differ in length or a vector has the wrong dimension.
        """
        if not len(vectors) == len(contents) == len(metadatas):
            raise ValueError(f"Length mismatch: {len(vectors)} vectors, {len(contents)} contents, {len(metadatas)} metadatas.")
        for vector in vectors:
            if len(vector) != self.dimension:
                raise ValueError(f"Expected {self.dimension}-dimensional vectors, got {len(vector)}.")

        records: list[DocumentRecord] = [
            {"vector": vector, "content": content, "doc_name": meta.get("doc_name", ""), "references": meta.get("references", "")}
            for vector, content, meta in zip(vectors, contents, metadatas)
        ]
        self.table.add(records)
        logger.info("[VECTOR] Added %d chunk(s) to '%s'.", len(records), self._table_name)
        return len(records)


    def _search_sync(self, vector: list[float], limit: int) -> list[RetrievedDocument]:
        rows = self.table.search(vector).distance_type("cosine").limit(limit).select(["content", "doc_name", "references"]).to_list()
        return [
            RetrievedDocument(content=row.get("content") or "", metadata={"doc_name": row.get("doc_name") or "", "references": row.get("references") or ""}, similarity=1.0 - float(row["_distance"]))
            for row in rows
        ]


    async def search(self, vector: list[float], limit: int) -> list[RetrievedDocument]:
        try:
            results = await asyncio.to_thread(self._search_sync, vector, limit)
        except (OSError, ValueError, RuntimeError) as exc:
            logger.error("[VECTOR] LanceDB search failed: %s", exc)
            raise VectorStoreError(f"LanceDB search failed: {exc}") from exc

        logger.info("[VECTOR] LanceDB returned %d document(s).", len(results))
        return results


    def count(self) -> int:
        return self.table.count_rows()


    def __repr__(self) -> str:
        return f"LanceVectorStore(db='{self._db_path}', table='{self._table_name}', rows={self.count()})"


def build_vector_store() -> VectorStore:
    """Instantiate the backend selected by ``settings.VECTOR_BACKEND``."""
    if settings.VECTOR_BACKEND == "lancedb":
        return LanceVectorStore()
    return AstraVectorStore.from_settings()
