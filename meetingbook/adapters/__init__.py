"""
Adapters layer - Document store implementations.
"""

from .json_store import JsonFileStore
from .memory_store import InMemoryStore, MemoryDocument, MemoryFilter

__all__ = ["InMemoryStore", "JsonFileStore", "MemoryDocument", "MemoryFilter"]
