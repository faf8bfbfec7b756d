from abc import ABC, abstractmethod
from typing import Callable, Dict, List, Optional

from tracker.domain import Identity

Document = Dict[str, object]
# called with the full list of (doc_id, data) pairs on every change
SnapshotCallback = Callable[[List[tuple]], None]
ErrorCallback = Callable[[Exception], None]
Unsubscribe = Callable[[], None]


class IdentityProvider(ABC):
    """Source of the signed-in identity.

    Implementations publish AUTH_STATE_CHANGED on the bus they were built
    with whenever the identity changes.
    """

    @property
    @abstractmethod
    def current_identity(self) -> Optional[Identity]:
        pass

    @abstractmethod
    def sign_in(self, *args, **kwargs) -> Optional[Identity]:
        pass

    @abstractmethod
    def sign_out(self) -> None:
        pass


class DocumentStore(ABC):
    @abstractmethod
    def subscribe(
        self, path: str, on_change: SnapshotCallback, on_error: ErrorCallback
    ) -> Unsubscribe:
        """Start a live feed on a collection path.

        on_change receives the complete collection on every change, never a
        delta. Returns a callable that cancels the feed.
        """
        pass

    @abstractmethod
    async def insert(self, path: str, document: Document) -> str:
        """Add a document and return its generated id."""
        pass

    @abstractmethod
    async def delete(self, path: str, doc_id: str) -> None:
        pass


class CategoryStore(ABC):
    """Per-identity persistence of the income/expense category labels."""

    @abstractmethod
    async def load(self, uid: str) -> Optional[Dict[str, List[str]]]:
        """Return {"income": [...], "expense": [...]} or None if never saved."""
        pass

    @abstractmethod
    async def save(self, uid: str, categories: Dict[str, List[str]]) -> None:
        pass

    @abstractmethod
    async def add(self, uid: str, category_type: str, label: str) -> None:
        pass

    @abstractmethod
    async def delete(self, uid: str, category_type: str, label: str) -> None:
        pass
