"""
Catalogue of meeting lengths each professional accepts.
"""

from __future__ import annotations

import logging
from typing import List

from ..domain.exceptions import BookingPermissionError, LengthNotDefinedError, ValidationError
from .context import RequestContext
from .locks import KeyedLocks, default_locks

logger = logging.getLogger(__name__)


class LengthCatalog:
    """Reads and maintains the allowed-length definitions in the store."""

    def __init__(self, context: RequestContext, locks: KeyedLocks | None = None) -> None:
        self._context = context
        self._locks = locks or default_locks

    def _filter(self, professional: str, length: int | None = None):
        query = {"professional": professional}
        if length is not None:
            query["length"] = length
        return self._context.store.new_filter(self._context.length_collection, query)

    def require(self, professional: str, length: int) -> None:
        """
        Ensure ``length`` matches exactly one definition for the professional.

        Raises:
            LengthNotDefinedError: If there is no matching definition, or more than one
        """
        if self._filter(professional, length).count() != 1:
            logger.debug("Rejected length %s for professional %s", length, professional)
            raise LengthNotDefinedError(length)

    def lengths(self, professional: str) -> List[int]:
        """Sorted, distinct lengths defined for a professional."""
        return sorted({int(doc["length"]) for doc in self._filter(professional).find()})

    def define(self, length: int) -> bool:
        """
        Allow ``length`` minutes for the calling professional.

        Returns:
            True if a definition was added, False if it already existed
        """
        caller = self._context.caller
        if not caller.professional:
            raise BookingPermissionError("Only professionals can define meeting lengths.")
        if length <= 0:
            raise ValidationError(f"Meeting length must be positive, got {length}")

        with self._locks.hold(("lengths", caller.id)), self._context.store.exclusive():
            existing = self._filter(caller.id, length)
            if existing.count() > 0:
                return False
            existing.insert({"professional": caller.id, "length": length})

        logger.info("Professional %s now accepts %s minute meetings", caller.id, length)
        return True
