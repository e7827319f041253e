# Overview: Collection store implementations; the persistence seam the engine is built on.

"""
Unit Collection Store contract:

- get_all(name)        -> list of records (dicts); empty list for an unknown name
- set_all(name, list)  -> full replace of the collection; no partial updates
- next_id(name)        -> max(id) + 1, or 1 when the collection is empty
- transaction()        -> context manager; everything inside commits or rolls
                          back together
- atomic(func)         -> run func() inside transaction(), with whatever retry
                          policy the backend needs

Callers always receive copies. Mutating a returned list never changes stored
state until set_all is called.
"""

from __future__ import annotations

import copy
import threading
from contextlib import contextmanager, nullcontext
from typing import Callable, Iterator, TypeVar

from ..extensions import db
from ..models import StoredCollection
from .concurrency import lock_for_update, run_with_retry

T = TypeVar("T")


def compute_next_id(records: list[dict]) -> int:
    ids = [r["id"] for r in records if isinstance(r.get("id"), int) and not isinstance(r.get("id"), bool)]
    return max(ids) + 1 if ids else 1


class CollectionStore:
    """Abstract base; concrete stores override the four primitives."""

    def get_all(self, name: str) -> list[dict]:
        raise NotImplementedError

    def set_all(self, name: str, records: list[dict]) -> None:
        raise NotImplementedError

    def next_id(self, name: str) -> int:
        return compute_next_id(self.get_all(name))

    def transaction(self):
        raise NotImplementedError

    def read_view(self):
        """Context for multi-read queries; no writes, no snapshot copy."""
        return nullcontext()

    def atomic(self, func: Callable[[], T]) -> T:
        with self.transaction():
            return func()


class MemoryCollectionStore(CollectionStore):
    """
    In-process store backed by a dict of lists.

    A single re-entrant lock guards reads and writes. transaction() holds the
    lock for the whole block and restores a snapshot if the block raises, so
    readers on other threads never observe a half-applied operation.
    """

    def __init__(self, initial: dict[str, list[dict]] | None = None):
        self._lock = threading.RLock()
        self._data: dict[str, list[dict]] = copy.deepcopy(initial) if initial else {}

    def get_all(self, name: str) -> list[dict]:
        with self._lock:
            return copy.deepcopy(self._data.get(name, []))

    def set_all(self, name: str, records: list[dict]) -> None:
        with self._lock:
            self._data[name] = copy.deepcopy(list(records))

    def next_id(self, name: str) -> int:
        with self._lock:
            return compute_next_id(self._data.get(name, []))

    @contextmanager
    def transaction(self) -> Iterator[None]:
        with self._lock:
            snapshot = copy.deepcopy(self._data)
            try:
                yield
            except BaseException:
                self._data = snapshot
                raise

    @contextmanager
    def read_view(self) -> Iterator[None]:
        with self._lock:
            yield

    def dump(self) -> dict[str, list[dict]]:
        with self._lock:
            return copy.deepcopy(self._data)


class SqlCollectionStore(CollectionStore):
    """
    Flask-SQLAlchemy store: one stored_collections row per collection name.

    Must be used inside an application context. Nested transaction() blocks
    join the outermost one; only the outermost commits or rolls back.
    """

    def __init__(self):
        self._local = threading.local()

    @property
    def session(self):
        return db.session

    def _depth(self) -> int:
        return getattr(self._local, "depth", 0)

    def _row(self, name: str, *, lock: bool = False) -> StoredCollection | None:
        query = self.session.query(StoredCollection).filter_by(name=name)
        if lock:
            query = lock_for_update(query)
        return query.first()

    def get_all(self, name: str) -> list[dict]:
        row = self._row(name, lock=self._depth() > 0)
        if row is None:
            return []
        return copy.deepcopy(row.records or [])

    def set_all(self, name: str, records: list[dict]) -> None:
        row = self._row(name, lock=self._depth() > 0)
        payload = copy.deepcopy(list(records))
        if row is None:
            row = StoredCollection(name=name, records=payload)
            self.session.add(row)
        else:
            row.records = payload
        self.session.flush()
        if self._depth() == 0:
            self.session.commit()

    @contextmanager
    def transaction(self) -> Iterator[None]:
        depth = self._depth()
        self._local.depth = depth + 1
        try:
            yield
            if depth == 0:
                self.session.commit()
        except BaseException:
            if depth == 0:
                self.session.rollback()
            raise
        finally:
            self._local.depth = depth

    def atomic(self, func: Callable[[], T]) -> T:
        if self._depth() > 0:
            return func()

        def _op():
            with self.transaction():
                return func()

        return run_with_retry(_op)

    def collection_names(self) -> list[str]:
        return [row.name for row in self.session.query(StoredCollection).order_by(StoredCollection.name).all()]
