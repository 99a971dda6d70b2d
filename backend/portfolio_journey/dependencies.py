"""
FastAPI dependencies.
The store is created once per process; tests swap it through `app.dependency_overrides`.
"""
from typing import Optional

from fastapi import Depends

from .providers.database import DocumentStore, FirestoreStore, JourneyRepository

_store: Optional[DocumentStore] = None


def get_store() -> DocumentStore:
    """Get the process-wide document store."""
    global _store
    if _store is None:
        _store = FirestoreStore()
    return _store


async def close_store() -> None:
    """Close the document store."""
    global _store
    if _store:
        await _store.close()
        _store = None


def get_repository(store: DocumentStore = Depends(get_store)) -> JourneyRepository:
    return JourneyRepository(store)
