# infrastructure/document_locks.py
"""Per-document locks serializing chunk-set replacement"""
import asyncio
from typing import Dict


class DocumentLockRegistry:
    """
    In-memory asyncio.Lock per document id (single process, lost on restart).

    Usage: `async with registry.lock(document_id): ...`. Two writes to the
    same document never interleave; different documents proceed in parallel.
    A lock stays registered once created: a released lock may still have a
    woken waiter about to take it, so dropping it would let a new caller in
    alongside that waiter.
    """

    def __init__(self):
        self._locks: Dict[str, asyncio.Lock] = {}

    def lock(self, document_id: str) -> asyncio.Lock:
        # No await between lookup and insert, so this is safe on one event loop
        existing = self._locks.get(document_id)
        if existing is None:
            existing = asyncio.Lock()
            self._locks[document_id] = existing
        return existing

    def is_locked(self, document_id: str) -> bool:
        existing = self._locks.get(document_id)
        return bool(existing and existing.locked())


# Global instance
document_locks = DocumentLockRegistry()
