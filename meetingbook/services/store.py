"""
Protocols describing the document store behaviour needed by the services.

The services never talk to a concrete database: they depend on these
protocols, so the in-memory adapter, the JSON file adapter or any real
store wrapper can be plugged in.
"""

from __future__ import annotations

from typing import Any, ContextManager, Dict, List, Mapping, Optional, Protocol

Query = Mapping[str, Any]


class Document(Protocol):
    """A single stored document that can be patched in place."""

    id: str
    data: Dict[str, Any]

    def update(self, patch: Mapping[str, Any]) -> None:
        """Set the given fields on the stored document."""


class Filter(Protocol):
    """A query over one collection, narrowed by successive ``add_query`` calls."""

    collection: str

    def add_query(self, query: Query) -> None:
        """AND another query onto the filter."""

    def clone(self) -> "Filter":
        """Return an independent copy carrying the same queries."""

    def count(self) -> int:
        """Number of matching documents."""

    def find(self) -> List[Dict[str, Any]]:
        """Copies of all matching documents."""

    def select_one(self) -> Document:
        """The first matching document, raising PersistenceError if none matches."""

    def insert(self, document: Mapping[str, Any]) -> str:
        """Store a new document in the filter's collection and return its id."""

    def remove_all(self) -> int:
        """Delete every matching document and return how many were removed."""


class DocumentStore(Protocol):
    """Entry point of a store: hands out filters per collection."""

    def new_filter(self, collection: str, base_query: Optional[Query] = None) -> Filter:
        """Create a filter over ``collection``, optionally pre-narrowed by ``base_query``."""

    def exclusive(self) -> ContextManager[None]:
        """
        Exclusive access for a check-then-write sequence.

        No other writer of the same store, in this process or another one,
        runs while it is held. Nested use by the same thread is allowed.
        """
