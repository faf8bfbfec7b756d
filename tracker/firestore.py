"""Cloud Firestore implementations of the document and category stores.

Only imported when FINANCE_BACKEND=firestore; needs the ``firestore`` extra.
Snapshot listeners run on a background thread owned by the client library,
the TransactionStore generation check keeps late callbacks harmless.
"""
import asyncio
import logging
from typing import Dict, List, Optional, Tuple

import firebase_admin
from firebase_admin import credentials, firestore

from tracker.interfaces import (
    CategoryStore,
    Document,
    DocumentStore,
    ErrorCallback,
    SnapshotCallback,
    Unsubscribe,
)

logger = logging.getLogger(__name__)


def preferences_path(app_id: str, uid: str) -> str:
    return f"artifacts/{app_id}/users/{uid}/preferences/categories"


class FirestoreDocumentStore(DocumentStore):
    def __init__(self, client):
        self._client = client

    def subscribe(
        self, path: str, on_change: SnapshotCallback, on_error: ErrorCallback
    ) -> Unsubscribe:
        def _callback(col_snapshot, changes, read_time):
            try:
                on_change([(doc.id, doc.to_dict()) for doc in col_snapshot])
            except Exception as e:
                logger.error("Snapshot handler failed for %s: %s", path, e)
                on_error(e)

        watch = self._client.collection(path).on_snapshot(_callback)
        return watch.unsubscribe

    async def insert(self, path: str, document: Document) -> str:
        payload = {**document, "createdAt": firestore.SERVER_TIMESTAMP}
        _, ref = await asyncio.to_thread(self._client.collection(path).add, payload)
        return ref.id

    async def delete(self, path: str, doc_id: str) -> None:
        await asyncio.to_thread(self._client.collection(path).document(doc_id).delete)


class FirestoreCategoryStore(CategoryStore):
    def __init__(self, client, app_id: str):
        self._client = client
        self._app_id = app_id

    def _ref(self, uid: str):
        return self._client.document(preferences_path(self._app_id, uid))

    async def load(self, uid: str) -> Optional[Dict[str, List[str]]]:
        snapshot = await asyncio.to_thread(self._ref(uid).get)
        if not snapshot.exists:
            return None
        return snapshot.to_dict()

    async def save(self, uid: str, categories: Dict[str, List[str]]) -> None:
        await asyncio.to_thread(self._ref(uid).set, categories)

    async def add(self, uid: str, category_type: str, label: str) -> None:
        await asyncio.to_thread(
            self._ref(uid).update, {category_type: firestore.ArrayUnion([label])}
        )

    async def delete(self, uid: str, category_type: str, label: str) -> None:
        await asyncio.to_thread(
            self._ref(uid).update, {category_type: firestore.ArrayRemove([label])}
        )


def connect(credentials_path: str, app_id: str) -> Tuple[FirestoreDocumentStore, FirestoreCategoryStore]:
    try:
        app = firebase_admin.get_app()
    except ValueError:
        app = firebase_admin.initialize_app(credentials.Certificate(credentials_path))
    client = firestore.client(app)
    logger.info("Connected to Firestore project %s", app.project_id)
    return FirestoreDocumentStore(client), FirestoreCategoryStore(client, app_id)
