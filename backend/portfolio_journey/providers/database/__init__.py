from .store import DocumentStore, FirestoreStore
from .journey_repository import BulkResult, JourneyRepository

__all__ = ["DocumentStore", "FirestoreStore", "BulkResult", "JourneyRepository"]
