"""
Request context: who is calling, which store to use and how collections are named.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Mapping

from .store import DocumentStore

DEFAULT_RESOURCE = "entries"
DEFAULT_TIMETABLE_COLLECTION = "timeTables"
DEFAULT_LENGTH_COLLECTION = "intervals"


@dataclass(frozen=True)
class Caller:
    """Identity and role of the current caller."""
    id: str
    professional: bool = False


@dataclass(frozen=True)
class RequestContext:
    """
    Everything a service needs to know about the current request.

    ``options`` is the options document; collection names are looked up under
    ``nouns.<resource>.options`` and fall back to the defaults.
    """
    caller: Caller
    store: DocumentStore
    options: Mapping[str, Any] = field(default_factory=dict)
    resource: str = DEFAULT_RESOURCE

    def option(self, path: str, default: Any = None) -> Any:
        """Look up a dotted path in the options document."""
        node: Any = self.options
        for part in path.split("."):
            if not isinstance(node, Mapping) or part not in node:
                return default
            node = node[part]
        return node

    def _collection_option(self, key: str, default: str) -> str:
        value = self.option(f"nouns.{self.resource}.options.{key}")
        if isinstance(value, str) and value:
            return value
        return default

    @property
    def booking_collection(self) -> str:
        return self.resource

    @property
    def timetable_collection(self) -> str:
        return self._collection_option("timeTableColl", DEFAULT_TIMETABLE_COLLECTION)

    @property
    def length_collection(self) -> str:
        return self._collection_option("intervalColl", DEFAULT_LENGTH_COLLECTION)
