import asyncio
import copy
import logging
from typing import Dict, List, Optional, Tuple
from uuid import uuid4

from tracker.domain import Identity
from tracker.events import AUTH_STATE_CHANGED, EventBus
from tracker.interfaces import (
    CategoryStore,
    Document,
    DocumentStore,
    ErrorCallback,
    IdentityProvider,
    SnapshotCallback,
    Unsubscribe,
)

logger = logging.getLogger(__name__)


class InMemoryDocumentStore(DocumentStore):
    """Process-local document store with live collection listeners.

    A new listener receives the current collection right away, then the full
    collection again after every insert or delete on its path.
    """

    def __init__(self):
        self._collections: Dict[str, Dict[str, Document]] = {}
        self._listeners: Dict[str, List[Tuple[object, SnapshotCallback, ErrorCallback]]] = {}

    def subscribe(
        self, path: str, on_change: SnapshotCallback, on_error: ErrorCallback
    ) -> Unsubscribe:
        token = object()
        self._listeners.setdefault(path, []).append((token, on_change, on_error))
        on_change(self.snapshot(path))

        def cancel() -> None:
            self._listeners[path] = [
                listener for listener in self._listeners.get(path, []) if listener[0] is not token
            ]

        return cancel

    async def insert(self, path: str, document: Document) -> str:
        await asyncio.sleep(0)
        doc_id = uuid4().hex
        self._collections.setdefault(path, {})[doc_id] = copy.deepcopy(document)
        self._notify(path)
        return doc_id

    async def delete(self, path: str, doc_id: str) -> None:
        await asyncio.sleep(0)
        # deleting a missing document succeeds, like the hosted stores
        self._collections.get(path, {}).pop(doc_id, None)
        self._notify(path)

    def snapshot(self, path: str) -> List[tuple]:
        return [(doc_id, copy.deepcopy(doc)) for doc_id, doc in self._collections.get(path, {}).items()]

    def listener_count(self, path: str) -> int:
        return len(self._listeners.get(path, []))

    def fail(self, path: str, error: Exception) -> None:
        """Report error to every listener on path and drop them."""
        listeners, self._listeners[path] = self._listeners.get(path, []), []
        for _, _, on_error in listeners:
            on_error(error)

    def _notify(self, path: str) -> None:
        docs = self.snapshot(path)
        for _, on_change, _ in list(self._listeners.get(path, [])):
            on_change(docs)


class InMemoryCategoryStore(CategoryStore):
    def __init__(self):
        self._data: Dict[str, Dict[str, List[str]]] = {}

    async def load(self, uid: str) -> Optional[Dict[str, List[str]]]:
        await asyncio.sleep(0)
        saved = self._data.get(uid)
        return copy.deepcopy(saved) if saved is not None else None

    async def save(self, uid: str, categories: Dict[str, List[str]]) -> None:
        await asyncio.sleep(0)
        self._data[uid] = copy.deepcopy(categories)

    async def add(self, uid: str, category_type: str, label: str) -> None:
        await asyncio.sleep(0)
        labels = self._data.setdefault(uid, {}).setdefault(category_type, [])
        if label not in labels:
            labels.append(label)

    async def delete(self, uid: str, category_type: str, label: str) -> None:
        await asyncio.sleep(0)
        labels = self._data.get(uid, {}).get(category_type, [])
        if label in labels:
            labels.remove(label)


class LocalIdentityProvider(IdentityProvider):
    """Nickname based sign-in for local use, no password involved."""

    def __init__(self, bus: EventBus):
        self._bus = bus
        self._identity: Optional[Identity] = None

    @property
    def current_identity(self) -> Optional[Identity]:
        return self._identity

    def sign_in(self, nickname: str, photo_url: Optional[str] = None) -> Optional[Identity]:
        nickname = (nickname or "").strip()
        if not nickname:
            logger.warning("Sign-in attempted without a nickname")
            return None
        identity = Identity(uid=nickname.lower().replace(" ", "-"), display_name=nickname, photo_url=photo_url)
        self._set(identity)
        return identity

    def sign_out(self) -> None:
        self._set(None)

    def _set(self, identity: Optional[Identity]) -> None:
        if identity == self._identity:
            return
        self._identity = identity
        logger.info("Auth state changed: %s", identity.uid if identity else "signed out")
        self._bus.publish(AUTH_STATE_CHANGED, {"identity": identity})
