# ==============================================================================
# DOCUMENT STORE - JSON backed collections with transactions and live queries
# ==============================================================================
# All collections live in a single JSON file so that a multi-document
# transaction reaches the disk with one atomic rename.
#
# On disk:
# {
#     "ProductsRegistered": {
#         "<doc_id>": {"version": 7, "data": {...}},
#         ...
#     },
#     "Sales": {...}
# }
#
# Versions come from one store-wide counter; a missing document has version 0.
# Transactions are optimistic: reads record the version they saw, commit
# checks them under the lock and either applies every buffered write or
# discards the attempt so run_transaction can call the function again.
# ==============================================================================

import copy
import json
import os
import random
import threading
import time
import uuid
from collections import defaultdict
from datetime import datetime, timezone
from typing import Any, Callable, Dict, List, Optional, Tuple

from noble_pos.errors import DocumentNotFound, StoreError, TransactionConflict
from noble_pos.logging_config import get_logger

logger = get_logger(__name__)


class _ServerTimestamp:
    """Sentinel replaced with the commit time when a write is applied."""

    def __repr__(self):
        return 'SERVER_TIMESTAMP'


SERVER_TIMESTAMP = _ServerTimestamp()

DEFAULT_MAX_ATTEMPTS = 5

_OPERATORS = {
    '==': lambda a, b: a == b,
    '!=': lambda a, b: a != b,
    '<': lambda a, b: a is not None and a < b,
    '<=': lambda a, b: a is not None and a <= b,
    '>': lambda a, b: a is not None and a > b,
    '>=': lambda a, b: a is not None and a >= b,
    'in': lambda a, b: a in b,
}


def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


def _resolve(value: Any, commit_time: str) -> Any:
    """Replaces SERVER_TIMESTAMP anywhere inside a document."""
    if value is SERVER_TIMESTAMP:
        return commit_time
    if isinstance(value, dict):
        return {k: _resolve(v, commit_time) for k, v in value.items()}
    if isinstance(value, list):
        return [_resolve(v, commit_time) for v in value]
    return value


def _check_id(collection: str, doc_id: Any) -> str:
    if not isinstance(doc_id, str) or not doc_id or '/' in doc_id:
        raise StoreError(f"Invalid document id for {collection}: {doc_id!r}")
    return doc_id


class Transaction:
    """
    Handle passed to a run_transaction callback.

    Reads must all happen before the first write, like the hosted store
    this replaces. Writes are buffered and only applied on commit.
    """

    def __init__(self, store: 'DocumentStore'):
        self._store = store
        self._reads: Dict[Tuple[str, str], int] = {}
        self._writes: List[Tuple[str, str, str, Optional[Dict[str, Any]]]] = []

    def get(self, collection: str, doc_id: str) -> Optional[Dict[str, Any]]:
        """
        Reads a document inside the transaction.

        Returns:
            Snapshot dict (with 'id') or None if the document does not exist
        """
        if self._writes:
            raise StoreError("Transactions require all reads to be executed before all writes.")
        snapshot, version = self._store._read_versioned(collection, doc_id)
        self._reads.setdefault((collection, doc_id), version)
        return snapshot

    def set(self, collection: str, doc_id: str, data: Dict[str, Any]) -> None:
        self._writes.append(('set', collection, _check_id(collection, doc_id), dict(data)))

    def update(self, collection: str, doc_id: str, fields: Dict[str, Any]) -> None:
        self._writes.append(('update', collection, _check_id(collection, doc_id), dict(fields)))

    def delete(self, collection: str, doc_id: str) -> None:
        self._writes.append(('delete', collection, _check_id(collection, doc_id), None))

    @property
    def reads(self) -> Dict[Tuple[str, str], int]:
        return dict(self._reads)

    @property
    def writes(self) -> List[Tuple[str, str, str, Optional[Dict[str, Any]]]]:
        return list(self._writes)


class DocumentStore:
    """
    Collections of JSON documents persisted to one file.

    Thread-safe: every mutation runs under an RLock and is written to disk
    (temp file + os.replace) before it becomes visible in memory.
    """

    def __init__(self, file_path: str):
        """
        Args:
            file_path: Absolute path of the JSON file (created if missing)
        """
        self.file_path = file_path
        self._lock = threading.RLock()
        self._seq = 0
        self._data: Dict[str, Dict[str, Dict[str, Any]]] = {}
        self._listeners: Dict[str, List[Tuple[Callable, Optional[str], bool]]] = defaultdict(list)
        self._load()

    # =========================================================================
    # FILE ACCESS
    # =========================================================================

    def _load(self) -> None:
        directory = os.path.dirname(self.file_path)
        if directory:
            os.makedirs(directory, exist_ok=True)
        if not os.path.exists(self.file_path):
            self._write_raw({})
            return
        try:
            with open(self.file_path, 'r', encoding='utf-8') as f:
                raw = json.load(f)
        except json.JSONDecodeError as e:
            # Never start empty over a damaged file: the next write would erase it
            logger.error("Store file is corrupt", extra={'path': self.file_path})
            raise StoreError(f"Corrupt store file {self.file_path}: {e}") from e

        self._data = {}
        for collection, docs in (raw or {}).items():
            self._data[collection] = {}
            for doc_id, entry in docs.items():
                version = int(entry.get('version', 0))
                self._data[collection][doc_id] = {'version': version, 'data': entry.get('data', {})}
                self._seq = max(self._seq, version)
        logger.info(
            "Store loaded",
            extra={'path': self.file_path, 'collections': {c: len(d) for c, d in self._data.items()}},
        )

    def _write_raw(self, data: Dict[str, Any]) -> None:
        """Writes the whole store atomically (temp file, then rename)."""
        temp_path = self.file_path + '.tmp'
        try:
            with open(temp_path, 'w', encoding='utf-8') as f:
                json.dump(data, f, indent=2, ensure_ascii=False)
            os.replace(temp_path, self.file_path)
        except Exception:
            if os.path.exists(temp_path):
                os.remove(temp_path)
            raise

    # =========================================================================
    # READS
    # =========================================================================

    def _read_versioned(self, collection: str, doc_id: str) -> Tuple[Optional[Dict[str, Any]], int]:
        with self._lock:
            entry = self._data.get(collection, {}).get(doc_id)
            if entry is None:
                return None, 0
            return self._snapshot(doc_id, entry), entry['version']

    @staticmethod
    def _snapshot(doc_id: str, entry: Dict[str, Any]) -> Dict[str, Any]:
        snapshot = copy.deepcopy(entry['data'])
        snapshot['id'] = doc_id
        return snapshot

    def get(self, collection: str, doc_id: str) -> Optional[Dict[str, Any]]:
        """Returns a document snapshot, or None."""
        snapshot, _ = self._read_versioned(collection, doc_id)
        return snapshot

    def exists(self, collection: str, doc_id: str) -> bool:
        with self._lock:
            return doc_id in self._data.get(collection, {})

    def query(
        self,
        collection: str,
        order_by: Optional[str] = None,
        descending: bool = False,
        limit: Optional[int] = None,
        where: Optional[List[Tuple[str, str, Any]]] = None,
    ) -> List[Dict[str, Any]]:
        """
        Lists documents of a collection.

        Args:
            order_by: Field to sort on; documents missing it sort last
            descending: Reverse the order of documents that have the field
            limit: Maximum number of documents returned
            where: [(field, op, value)] filters, op in ==, !=, <, <=, >, >=, in

        Returns:
            List of snapshots (each with 'id')
        """
        with self._lock:
            docs = [self._snapshot(doc_id, entry) for doc_id, entry in self._data.get(collection, {}).items()]

        for field_name, op, value in where or []:
            if op not in _OPERATORS:
                raise StoreError(f"Unsupported operator {op!r}")
            test = _OPERATORS[op]
            docs = [d for d in docs if test(d.get(field_name), value)]

        if order_by:
            present = [d for d in docs if d.get(order_by) is not None]
            missing = [d for d in docs if d.get(order_by) is None]
            present.sort(key=lambda d: d[order_by], reverse=descending)
            docs = present + missing

        if limit is not None:
            docs = docs[:max(0, limit)]
        return docs

    # =========================================================================
    # WRITES
    # =========================================================================

    def set(self, collection: str, doc_id: str, data: Dict[str, Any]) -> None:
        """Creates or replaces a document."""
        self._apply([('set', collection, _check_id(collection, doc_id), dict(data))])

    def update(self, collection: str, doc_id: str, fields: Dict[str, Any]) -> None:
        """
        Merges fields into an existing document.

        Raises:
            DocumentNotFound: If the document does not exist
        """
        self._apply([('update', collection, _check_id(collection, doc_id), dict(fields))])

    def delete(self, collection: str, doc_id: str) -> None:
        """Deletes a document; deleting a missing document is a no-op."""
        self._apply([('delete', collection, _check_id(collection, doc_id), None)])

    def add(self, collection: str, data: Dict[str, Any]) -> str:
        """Stores a document under a generated id and returns the id."""
        doc_id = uuid.uuid4().hex[:20]
        self.set(collection, doc_id, data)
        return doc_id

    def _apply(self, writes, reads: Optional[Dict[Tuple[str, str], int]] = None) -> bool:
        """
        Applies a batch of writes atomically.

        Args:
            writes: [(op, collection, doc_id, data)]
            reads: Versions observed by a transaction; the batch is rejected
                   if any of them changed

        Returns:
            False if a read version no longer matches (nothing is written)
        """
        changed = set()
        with self._lock:
            for (collection, doc_id), version in (reads or {}).items():
                entry = self._data.get(collection, {}).get(doc_id)
                current = entry['version'] if entry else 0
                if current != version:
                    return False

            commit_time = _now_iso()
            staged = {c: dict(docs) for c, docs in self._data.items()}
            seq = self._seq

            for op, collection, doc_id, data in writes:
                docs = staged.setdefault(collection, {})
                if op == 'delete':
                    if docs.pop(doc_id, None) is not None:
                        changed.add(collection)
                    continue

                data = _resolve(data, commit_time)
                data.pop('id', None)
                if op == 'update':
                    existing = docs.get(doc_id)
                    if existing is None:
                        raise DocumentNotFound(collection, doc_id)
                    merged = copy.deepcopy(existing['data'])
                    merged.update(data)
                    data = merged
                seq += 1
                docs[doc_id] = {'version': seq, 'data': data}
                changed.add(collection)

            if not changed:
                return True

            self._write_raw(staged)
            self._data = staged
            self._seq = seq

        for collection in changed:
            self._notify(collection)
        return True

    # =========================================================================
    # TRANSACTIONS
    # =========================================================================

    def run_transaction(self, fn: Callable[[Transaction], Any], max_attempts: int = DEFAULT_MAX_ATTEMPTS) -> Any:
        """
        Runs fn(tx) until its writes commit against unchanged reads.

        An exception raised by fn aborts the transaction: nothing is written
        and the exception propagates to the caller.

        Returns:
            Whatever fn returned on the attempt that committed

        Raises:
            TransactionConflict: If every attempt lost to a concurrent write
        """
        for attempt in range(1, max_attempts + 1):
            tx = Transaction(self)
            result = fn(tx)
            if self._apply(tx.writes, reads=tx.reads):
                return result
            logger.debug("Transaction conflict", extra={'attempt': attempt})
            # Small randomized backoff before reading again
            time.sleep(random.uniform(0, 0.005) * attempt)
        logger.warning("Transaction gave up", extra={'attempts': max_attempts})
        raise TransactionConflict(f"Transaction failed after {max_attempts} attempts")

    # =========================================================================
    # LIVE QUERIES
    # =========================================================================

    def subscribe(
        self,
        collection: str,
        callback: Callable[[List[Dict[str, Any]]], None],
        order_by: Optional[str] = None,
        descending: bool = False,
    ) -> Callable[[], None]:
        """
        Delivers the collection snapshot now and after every change.

        Returns:
            Function that removes the subscription
        """
        listener = (callback, order_by, descending)
        with self._lock:
            self._listeners[collection].append(listener)
        self._deliver(collection, listener)

        def unsubscribe():
            with self._lock:
                if listener in self._listeners[collection]:
                    self._listeners[collection].remove(listener)

        return unsubscribe

    def _notify(self, collection: str) -> None:
        with self._lock:
            listeners = list(self._listeners.get(collection, []))
        for listener in listeners:
            self._deliver(collection, listener)

    def _deliver(self, collection: str, listener) -> None:
        callback, order_by, descending = listener
        try:
            callback(self.query(collection, order_by=order_by, descending=descending))
        except Exception:
            logger.exception("Snapshot listener failed", extra={'collection': collection})
