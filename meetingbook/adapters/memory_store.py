"""
In-memory document store for tests and single-process use.
"""

from __future__ import annotations

import copy
import threading
import uuid
from contextlib import contextmanager
from typing import Any, Callable, Dict, Iterable, Iterator, List, Mapping, Optional

from ..domain.exceptions import PersistenceError

Query = Mapping[str, Any]


def _compare(op: Callable[[Any, Any], bool]) -> Callable[[bool, Any, Any], bool]:
    def check(present: bool, value: Any, operand: Any) -> bool:
        if not present or value is None:
            return False
        try:
            return op(value, operand)
        except TypeError:
            return False
    return check


_OPERATORS: Dict[str, Callable[[bool, Any, Any], bool]] = {
    "$gt": _compare(lambda a, b: a > b),
    "$gte": _compare(lambda a, b: a >= b),
    "$lt": _compare(lambda a, b: a < b),
    "$lte": _compare(lambda a, b: a <= b),
    "$ne": lambda present, value, operand: not present or value != operand,
    "$in": lambda present, value, operand: present and value in operand,
    "$exists": lambda present, value, operand: present == bool(operand),
}


def matches(document: Mapping[str, Any], query: Query) -> bool:
    """
    Check a document against a query.

    Supports field equality, the comparison operators ``$gt``, ``$gte``,
    ``$lt``, ``$lte``, ``$ne``, ``$in`` and ``$exists``, and the logical
    operators ``$or`` and ``$and``.
    """
    for key, condition in query.items():
        if key == "$or":
            if not any(matches(document, sub) for sub in condition):
                return False
        elif key == "$and":
            if not all(matches(document, sub) for sub in condition):
                return False
        elif key.startswith("$"):
            raise PersistenceError(f"Unsupported query operator: {key}")
        elif not _field_matches(document, key, condition):
            return False
    return True


def _field_matches(document: Mapping[str, Any], key: str, condition: Any) -> bool:
    present = key in document
    value = document.get(key)

    if isinstance(condition, Mapping) and condition and all(k.startswith("$") for k in condition):
        for op, operand in condition.items():
            check = _OPERATORS.get(op)
            if check is None:
                raise PersistenceError(f"Unsupported query operator: {op}")
            if not check(present, value, operand):
                return False
        return True

    return present and value == condition


class MemoryDocument:
    """A stored document handed out by ``MemoryFilter.select_one``."""

    def __init__(self, store: "InMemoryStore", collection: str, data: Dict[str, Any]):
        self.store = store
        self.collection = collection
        self.id: str = data["_id"]
        self.data = data

    def update(self, patch: Mapping[str, Any]) -> None:
        self.data = self.store._update(self.collection, self.id, patch)


class MemoryFilter:
    """Filter over one collection of an ``InMemoryStore``; queries are ANDed."""

    def __init__(self, store: "InMemoryStore", collection: str, queries: Optional[List[Query]] = None):
        self.store = store
        self.collection = collection
        self.queries: List[Query] = list(queries or [])

    def add_query(self, query: Query) -> None:
        self.queries.append(copy.deepcopy(dict(query)))

    def clone(self) -> "MemoryFilter":
        return MemoryFilter(self.store, self.collection, self.queries)

    def count(self) -> int:
        return len(self.store._matching(self.collection, self.queries))

    def find(self) -> List[Dict[str, Any]]:
        return self.store._matching(self.collection, self.queries)

    def select_one(self) -> MemoryDocument:
        found = self.find()
        if not found:
            raise PersistenceError(f"No document in '{self.collection}' matches the filter")
        return MemoryDocument(self.store, self.collection, found[0])

    def insert(self, document: Mapping[str, Any]) -> str:
        return self.store._insert(self.collection, document)

    def remove_all(self) -> int:
        return self.store._remove(self.collection, self.queries)


class InMemoryStore:
    """
    Thread-safe document store keeping every collection in a dict.

    Every document gets a string ``_id``. Reads return deep copies, so callers
    never mutate stored state by accident. A write builds the new state first
    and only keeps it once ``_commit`` accepted it.
    """

    def __init__(self, collections: Optional[Mapping[str, Iterable[Mapping[str, Any]]]] = None):
        self._lock = threading.RLock()
        self._collections: Dict[str, List[Dict[str, Any]]] = self._normalize(collections or {})

    def new_filter(self, collection: str, base_query: Optional[Query] = None) -> MemoryFilter:
        flt = MemoryFilter(self, collection)
        if base_query:
            flt.add_query(base_query)
        return flt

    @contextmanager
    def exclusive(self) -> Iterator[None]:
        """Hold the store for a check-then-write sequence. Re-entrant."""
        with self._lock:
            yield

    def documents(self, collection: str) -> List[Dict[str, Any]]:
        """Copies of every document in a collection, in insertion order."""
        with self.exclusive():
            return copy.deepcopy(self._collections.get(collection, []))

    def collections(self) -> List[str]:
        with self.exclusive():
            return sorted(self._collections)

    def _commit(self, collections: Dict[str, List[Dict[str, Any]]]) -> None:
        """Hook run with the new state before a write is kept; persistent subclasses flush here."""

    @staticmethod
    def _prepare(document: Mapping[str, Any]) -> Dict[str, Any]:
        stored = copy.deepcopy(dict(document))
        stored.setdefault("_id", uuid.uuid4().hex)
        return stored

    @classmethod
    def _normalize(cls, collections: Mapping[str, Iterable[Mapping[str, Any]]]) -> Dict[str, List[Dict[str, Any]]]:
        return {name: [cls._prepare(doc) for doc in documents] for name, documents in collections.items()}

    def _replace_collection(self, collection: str, documents: List[Dict[str, Any]]) -> None:
        staged = dict(self._collections)
        staged[collection] = documents
        self._commit(staged)
        self._collections = staged

    def _matching(self, collection: str, queries: List[Query]) -> List[Dict[str, Any]]:
        with self.exclusive():
            return [
                copy.deepcopy(doc)
                for doc in self._collections.get(collection, [])
                if all(matches(doc, query) for query in queries)
            ]

    def _insert(self, collection: str, document: Mapping[str, Any]) -> str:
        stored = self._prepare(document)
        with self.exclusive():
            self._replace_collection(collection, self._collections.get(collection, []) + [stored])
            return stored["_id"]

    def _update(self, collection: str, doc_id: str, patch: Mapping[str, Any]) -> Dict[str, Any]:
        with self.exclusive():
            documents = self._collections.get(collection, [])
            for index, doc in enumerate(documents):
                if doc["_id"] == doc_id:
                    updated = copy.deepcopy(doc)
                    updated.update(copy.deepcopy({k: v for k, v in patch.items() if k != "_id"}))
                    self._replace_collection(collection, documents[:index] + [updated] + documents[index + 1:])
                    return copy.deepcopy(updated)
        raise PersistenceError(f"Document {doc_id} no longer exists in '{collection}'")

    def _remove(self, collection: str, queries: List[Query]) -> int:
        with self.exclusive():
            documents = self._collections.get(collection, [])
            kept = [doc for doc in documents if not all(matches(doc, query) for query in queries)]
            removed = len(documents) - len(kept)
            if removed:
                self._replace_collection(collection, kept)
            return removed
