"""Snapshot repository over a pluggable document store.

The dashboard never edits fetched data in place.  Each collection has one
current :class:`Snapshot` (an immutable tuple of read-only documents) that
is replaced wholesale when a fetch completes.

Overlapping fetches
-------------------
Every fetch takes a ticket from a monotonically increasing counter when it
is issued.  A response is applied only if its ticket is still the latest
one issued for that collection; anything older is discarded.  So the most
recently *requested* data wins, even when an earlier request happens to
finish last.

Failures
--------
A failed fetch is logged, leaves the current snapshot untouched, and
raises :class:`~pipeline.errors.FetchError`.  Mutations are sent to the
store first and the collection is re-fetched only after the store
confirms; a rejected batch raises :class:`~pipeline.errors.MutationError`
and no local state changes.
"""

from __future__ import annotations

import copy
import json
import logging
import threading
import time
import uuid
from collections.abc import Callable, Iterable, Mapping, Sequence
from dataclasses import dataclass
from pathlib import Path
from types import MappingProxyType
from typing import Any, Protocol

from pipeline.errors import FetchError, MutationError
from utils.config import KnownValues

logger = logging.getLogger(__name__)

Document = Mapping[str, Any]


class DataSource(Protocol):
    """The external store: bulk read and atomic batch write per collection."""

    def fetch_all(self, collection: str) -> list[dict[str, Any]]:
        """Return every document in *collection*, each including its ``id``."""
        ...

    def apply_batch(self, collection: str, writes: Mapping[str, Document],
                    deletes: Sequence[str] = (), *, create: bool = False) -> None:
        """Write *writes* (id -> fields) and remove *deletes*, all or nothing.

        With ``create`` the writes are new documents; otherwise each one
        merges into an existing document and a missing id fails the batch.
        """
        ...


def _chunks(items: Sequence[Any], size: int) -> Iterable[Sequence[Any]]:
    for start in range(0, len(items), size):
        yield items[start:start + size]


# ── Data sources ──────────────────────────────────────────────────────────────

class MemoryDataSource:
    """In-process document store for tests and local development.

    Documents are copied on the way in and out so callers can never alias
    stored state.
    """

    def __init__(self, collections: Mapping[str, Sequence[Document]] | None = None) -> None:
        self._lock = threading.Lock()
        self._data: dict[str, dict[str, dict[str, Any]]] = {}
        self._auto_id = 0
        for name, docs in (collections or {}).items():
            store = self._data.setdefault(name, {})
            for doc in docs:
                body = copy.deepcopy(dict(doc))
                doc_id = str(body.pop("id", "") or self._next_id())
                store[doc_id] = body

    @classmethod
    def from_json(cls, path: Path) -> "MemoryDataSource":
        """Seed from a JSON file mapping collection name -> list of documents."""
        with open(path, "r", encoding="utf-8") as f:
            data = json.load(f)
        if not isinstance(data, dict):
            raise ValueError(f"Seed file {path} must contain a JSON object")
        logger.info("Seeding memory store from %s (%d collections)", path, len(data))
        return cls(data)

    def _next_id(self) -> str:
        self._auto_id += 1
        return f"doc-{self._auto_id:06d}"

    def fetch_all(self, collection: str) -> list[dict[str, Any]]:
        with self._lock:
            store = self._data.get(collection, {})
            return [{"id": doc_id, **copy.deepcopy(body)} for doc_id, body in store.items()]

    def apply_batch(self, collection: str, writes: Mapping[str, Document],
                    deletes: Sequence[str] = (), *, create: bool = False) -> None:
        with self._lock:
            staged = copy.deepcopy(self._data.get(collection, {}))
            for doc_id, fields in writes.items():
                body = copy.deepcopy({k: v for k, v in fields.items() if k != "id"})
                if create:
                    staged[doc_id] = body
                elif doc_id in staged:
                    staged[doc_id].update(body)
                else:
                    raise KeyError(f"No document '{doc_id}' in '{collection}'")
            for doc_id in deletes:
                staged.pop(doc_id, None)
            self._data[collection] = staged


class FirestoreDataSource:
    """Google Cloud Firestore-backed store.

    Batches go through ``WriteBatch``; Firestore caps a batch at 500
    operations, so larger requests commit in 500-operation chunks, each
    atomic on its own.
    """

    def __init__(self, client: Any = None, project: str | None = None) -> None:
        if client is None:
            from google.cloud import firestore

            client = firestore.Client(project=project)
        self._client = client

    def fetch_all(self, collection: str) -> list[dict[str, Any]]:
        docs = self._client.collection(collection).stream()
        return [{**(doc.to_dict() or {}), "id": doc.id} for doc in docs]

    def apply_batch(self, collection: str, writes: Mapping[str, Document],
                    deletes: Sequence[str] = (), *, create: bool = False) -> None:
        ref = self._client.collection(collection)
        write_op = "set" if create else "update"
        ops: list[tuple[str, str, Document | None]] = [
            (write_op, doc_id, fields) for doc_id, fields in writes.items()
        ] + [("delete", doc_id, None) for doc_id in deletes]
        for chunk in _chunks(ops, KnownValues.BATCH_SIZE):
            batch = self._client.batch()
            for op, doc_id, fields in chunk:
                if op == "delete":
                    batch.delete(ref.document(doc_id))
                    continue
                body = {k: v for k, v in (fields or {}).items() if k != "id"}
                if op == "set":
                    batch.set(ref.document(doc_id), body)
                else:
                    # update() fails the commit when the document is missing.
                    batch.update(ref.document(doc_id), body)
            batch.commit()


def build_data_source(cfg) -> DataSource:
    """Create the data source named by ``AppConfig.data_source``."""
    if cfg.data_source == "firestore":
        logger.info("Using Firestore data source (project=%s)", cfg.firestore_project)
        return FirestoreDataSource(project=cfg.firestore_project)
    if cfg.data_source != "memory":
        raise ValueError(f"Unknown APP_DATA_SOURCE '{cfg.data_source}'")
    if cfg.seed_path is not None:
        return MemoryDataSource.from_json(cfg.seed_path)
    return MemoryDataSource()


# ── Snapshots ─────────────────────────────────────────────────────────────────

@dataclass(frozen=True)
class Snapshot:
    """A complete, read-only copy of one collection."""

    collection: str
    records: tuple[Document, ...] = ()
    generation: int = 0
    fetched_at: float | None = None

    def __len__(self) -> int:
        return len(self.records)

    @property
    def is_loaded(self) -> bool:
        return self.fetched_at is not None


@dataclass
class _CollectionState:
    snapshot: Snapshot
    latest_ticket: int = 0
    stale: bool = False


class SnapshotRepository:
    """Holds the current snapshot per collection and refreshes it.

    Args:
        source: Store to read from and write to.
        ttl_seconds: Age after which :meth:`get` re-fetches; ``0`` or less
            re-fetches only when nothing is loaded or a mutation happened.
        clock: Monotonic clock, injectable for tests.
    """

    def __init__(self, source: DataSource, ttl_seconds: float = 300.0,
                 clock: Callable[[], float] = time.monotonic) -> None:
        self._source = source
        self._ttl = ttl_seconds
        self._clock = clock
        self._lock = threading.Lock()
        self._tickets = 0
        self._collections: dict[str, _CollectionState] = {}
        self._listeners: list[Callable[[str], None]] = []

    def _state(self, collection: str) -> _CollectionState:
        state = self._collections.get(collection)
        if state is None:
            state = _CollectionState(snapshot=Snapshot(collection))
            self._collections[collection] = state
        return state

    @property
    def source_name(self) -> str:
        return type(self._source).__name__

    def add_listener(self, callback: Callable[[str], None]) -> None:
        """Call *callback(collection)* whenever a new snapshot is applied."""
        self._listeners.append(callback)

    # ── Reads ─────────────────────────────────────────────────────────────

    def current(self, collection: str) -> Snapshot:
        """The applied snapshot, without fetching (empty if never loaded)."""
        with self._lock:
            return self._state(collection).snapshot

    def _needs_refresh(self, collection: str) -> bool:
        with self._lock:
            state = self._state(collection)
            snap = state.snapshot
            if not snap.is_loaded or state.stale:
                return True
            if self._ttl <= 0:
                return False
            return self._clock() - snap.fetched_at >= self._ttl

    def get(self, collection: str) -> Snapshot:
        """Current snapshot, fetching first if missing, stale or expired.

        Raises:
            FetchError: If a needed fetch fails.
        """
        if self._needs_refresh(collection):
            return self.refresh(collection)
        return self.current(collection)

    def issue_ticket(self, collection: str) -> int:
        """Reserve the next fetch ticket for *collection*."""
        with self._lock:
            self._tickets += 1
            self._state(collection).latest_ticket = self._tickets
            return self._tickets

    def apply_result(self, collection: str, ticket: int,
                     documents: Iterable[Document]) -> Snapshot:
        """Install fetched *documents* if *ticket* is still the latest.

        Returns:
            The snapshot now current: the new one, or the existing one when
            the response was superseded by a later fetch.
        """
        with self._lock:
            state = self._state(collection)
            if ticket != state.latest_ticket:
                logger.info(
                    "Discarding stale fetch of '%s' (ticket %d, latest %d)",
                    collection, ticket, state.latest_ticket,
                )
                return state.snapshot
            state.snapshot = Snapshot(
                collection=collection,
                records=tuple(MappingProxyType(dict(doc)) for doc in documents),
                generation=ticket,
                fetched_at=self._clock(),
            )
            state.stale = False
            snapshot = state.snapshot
        logger.info("Loaded %d documents from '%s' (generation %d)",
                    len(snapshot), collection, snapshot.generation)
        for callback in self._listeners:
            callback(collection)
        return snapshot

    def refresh(self, collection: str) -> Snapshot:
        """Fetch *collection* now and apply it if no later fetch was issued.

        Raises:
            FetchError: If the store read fails; the current snapshot stays.
        """
        ticket = self.issue_ticket(collection)
        try:
            documents = self._source.fetch_all(collection)
        except Exception as exc:
            logger.error("Fetch of '%s' failed: %s", collection, exc, exc_info=True)
            raise FetchError(collection, exc) from exc
        return self.apply_result(collection, ticket, documents)

    # ── Writes ────────────────────────────────────────────────────────────

    def _after_mutation(self, collection: str) -> None:
        with self._lock:
            self._state(collection).stale = True
        try:
            self.refresh(collection)
        except FetchError:
            logger.warning("Refresh after mutation of '%s' failed; will retry on next read",
                           collection)

    def update_record(self, collection: str, record_id: str,
                      changes: Mapping[str, Any]) -> Snapshot:
        """Merge *changes* into an existing document, then re-fetch.

        Raises:
            MutationError: If the store rejects the write, including when
                *record_id* does not exist.
        """
        try:
            self._source.apply_batch(collection, {record_id: dict(changes)}, ())
        except Exception as exc:
            logger.error("Update of %s/%s failed: %s", collection, record_id, exc)
            raise MutationError(collection, "update", exc) from exc
        logger.info("Updated %s/%s (%d fields)", collection, record_id, len(changes))
        self._after_mutation(collection)
        return self.current(collection)

    def delete_records(self, collection: str, record_ids: Sequence[str]) -> int:
        """Delete *record_ids* in one batch, then re-fetch.

        Returns:
            Number of ids submitted for deletion.

        Raises:
            MutationError: If the store rejects the batch.
        """
        ids = list(dict.fromkeys(record_ids))
        if not ids:
            return 0
        try:
            self._source.apply_batch(collection, {}, ids)
        except Exception as exc:
            logger.error("Bulk delete of %d records in '%s' failed: %s",
                         len(ids), collection, exc)
            raise MutationError(collection, "delete", exc) from exc
        logger.info("Deleted %d records from '%s'", len(ids), collection)
        self._after_mutation(collection)
        return len(ids)

    def insert_records(self, collection: str, documents: Sequence[Document],
                       batch_size: int = KnownValues.BATCH_SIZE) -> list[str]:
        """Add *documents* with fresh ids, committing *batch_size* at a time.

        Returns:
            Ids of the inserted documents, in input order.

        Raises:
            MutationError: On the first rejected batch; ``applied`` says how
                many documents earlier batches committed.
        """
        inserted: list[str] = []
        try:
            for chunk in _chunks(list(documents), batch_size):
                created = {uuid.uuid4().hex[:20]: dict(doc) for doc in chunk}
                try:
                    self._source.apply_batch(collection, created, (), create=True)
                except Exception as exc:
                    logger.error("Insert batch into '%s' failed after %d records: %s",
                                 collection, len(inserted), exc)
                    raise MutationError(collection, "insert", exc,
                                        applied=len(inserted)) from exc
                inserted.extend(created)
        finally:
            if inserted:
                self._after_mutation(collection)
        logger.info("Inserted %d records into '%s'", len(inserted), collection)
        return inserted
