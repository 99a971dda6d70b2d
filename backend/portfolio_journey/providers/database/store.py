"""
Document store adapter.
Generic CRUD keyed by collection name and document id; records come back as
plain dicts carrying their document id under `docId`.
"""
import base64
import json
import os
from abc import ABC, abstractmethod
from typing import Any, Iterable, Optional

from google.api_core import exceptions as google_exceptions
from google.auth import exceptions as google_auth_exceptions
from google.cloud import firestore
from google.cloud.firestore_v1 import FieldFilter
from google.oauth2 import service_account

from ...config import settings, logger
from ...exceptions import NotFoundError, StoreError

Filter = tuple[str, str, Any]


class DocumentStore(ABC):
    """Minimal CRUD contract the journey repository depends on."""

    @abstractmethod
    async def list(
        self,
        collection: str,
        filters: Optional[Iterable[Filter]] = None,
        order_by: Optional[str] = None,
    ) -> list[dict]:
        ...

    @abstractmethod
    async def get(self, collection: str, doc_id: str) -> Optional[dict]:
        ...

    @abstractmethod
    async def create(self, collection: str, record: dict) -> str:
        ...

    @abstractmethod
    async def update(self, collection: str, doc_id: str, partial: dict) -> None:
        ...

    @abstractmethod
    async def delete(self, collection: str, doc_id: str) -> None:
        ...

    async def close(self) -> None:
        return None


class FirestoreStore(DocumentStore):
    """Firestore-backed store using the async client."""

    def __init__(self, client: Optional[firestore.AsyncClient] = None):
        self._db = client

    def _client(self) -> firestore.AsyncClient:
        if self._db is None:
            self._db = self._initialize()
        return self._db

    def _initialize(self) -> firestore.AsyncClient:
        if not settings.firebase_credentials_configured():
            raise StoreError("No Firebase credentials provided")

        creds = None
        try:
            if settings.FIREBASE_CRED_PATH and os.path.exists(settings.FIREBASE_CRED_PATH):
                creds = service_account.Credentials.from_service_account_file(settings.FIREBASE_CRED_PATH)
                logger.info(f"Firebase initialized from file: {settings.FIREBASE_CRED_PATH}")
            elif settings.FIREBASE_CRED_BASE64:
                # Remove whitespace (including newlines) from base64 string
                clean_base64 = settings.FIREBASE_CRED_BASE64.replace('\n', '').replace(' ', '')
                cred_json = json.loads(base64.b64decode(clean_base64))
                creds = service_account.Credentials.from_service_account_info(cred_json)
                logger.info("Firebase initialized from base64 credentials")
            else:
                logger.info("Firebase initialized from application default credentials")

            project = settings.FIREBASE_PROJECT_ID or (creds.project_id if creds else None)
            return firestore.AsyncClient(project=project, credentials=creds)
        except (ValueError, OSError, google_auth_exceptions.GoogleAuthError) as e:
            # binascii.Error and JSONDecodeError are ValueErrors
            logger.error(f"Firebase initialization failed: {type(e).__name__}")
            raise StoreError(f"Invalid Firebase credentials: {type(e).__name__}") from e

    @staticmethod
    def _to_record(doc) -> dict:
        data = doc.to_dict() or {}
        data["docId"] = doc.id
        return data

    async def list(self, collection, filters=None, order_by=None):
        query = self._client().collection(collection)
        for field, op, value in filters or ():
            query = query.where(filter=FieldFilter(field, op, value))
        if order_by:
            query = query.order_by(order_by)
        try:
            return [self._to_record(doc) async for doc in query.stream()]
        except google_exceptions.GoogleAPIError as e:
            logger.error(f"Firestore list failed for {collection}: {e}")
            raise StoreError(f"Failed to list {collection}: {e}")

    async def get(self, collection, doc_id):
        try:
            doc = await self._client().collection(collection).document(doc_id).get()
        except google_exceptions.GoogleAPIError as e:
            logger.error(f"Firestore get failed for {collection}/{doc_id}: {e}")
            raise StoreError(f"Failed to read {collection}/{doc_id}: {e}")
        if not doc.exists:
            return None
        return self._to_record(doc)

    async def create(self, collection, record):
        try:
            _, doc_ref = await self._client().collection(collection).add(record)
        except google_exceptions.GoogleAPIError as e:
            logger.error(f"Firestore create failed for {collection}: {e}")
            raise StoreError(f"Failed to create document in {collection}: {e}")
        return doc_ref.id

    async def update(self, collection, doc_id, partial):
        try:
            await self._client().collection(collection).document(doc_id).update(partial)
        except google_exceptions.NotFound:
            raise NotFoundError("Document", f"{collection}/{doc_id}")
        except google_exceptions.GoogleAPIError as e:
            logger.error(f"Firestore update failed for {collection}/{doc_id}: {e}")
            raise StoreError(f"Failed to update {collection}/{doc_id}: {e}")

    async def delete(self, collection, doc_id):
        try:
            await self._client().collection(collection).document(doc_id).delete()
        except google_exceptions.GoogleAPIError as e:
            logger.error(f"Firestore delete failed for {collection}/{doc_id}: {e}")
            raise StoreError(f"Failed to delete {collection}/{doc_id}: {e}")

    async def close(self):
        if self._db:
            self._db.close()
            self._db = None
