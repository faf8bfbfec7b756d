import logging
from typing import Optional, Tuple

from tracker.categories import CategoryService
from tracker.cursor import PeriodCursor
from tracker.domain import Identity
from tracker.events import AUTH_STATE_CHANGED, Event, EventBus
from tracker.functional import validate_entry
from tracker.interfaces import CategoryStore, DocumentStore
from tracker.overview import DAY, Overview, build_overview
from tracker.store import TransactionStore

logger = logging.getLogger(__name__)


class SessionContext:
    """Everything the UI needs for one signed-in identity.

    Created at sign-in, closed at sign-out. Views read the overview from
    here instead of reaching for shared globals.
    """

    def __init__(
        self,
        identity: Identity,
        documents: DocumentStore,
        category_store: CategoryStore,
        bus: EventBus,
        app_id: str,
        cursor: Optional[PeriodCursor] = None,
    ):
        self.identity = identity
        self.cursor = cursor or PeriodCursor.today()
        self.store = TransactionStore(documents, bus, app_id)
        self.categories = CategoryService(category_store, identity.uid)
        self.closed = False

    def start(self) -> None:
        self.store.subscribe(self.identity)

    async def load_categories(self):
        return await self.categories.load()

    def close(self) -> None:
        if self.closed:
            return
        self.store.unsubscribe()
        self.closed = True
        logger.info("Closed session for %s", self.identity.uid)

    @property
    def loading(self) -> bool:
        return self.store.loading

    def overview(self, kind: str = DAY) -> Overview:
        return build_overview(self.store.transactions, self.cursor, kind)

    def step_day(self, delta: int) -> PeriodCursor:
        return self.cursor.step_day(delta)

    def step_month(self, delta: int) -> PeriodCursor:
        return self.cursor.step_month(delta)

    async def add_transaction(self, tx_type, amount, category, when) -> Tuple[bool, str]:
        """Validate and submit a new transaction, returning (ok, message)."""
        result = validate_entry(tx_type, amount, category, when, self.categories.categories)
        if result.is_left():
            return False, result.get_error()["message"]

        entry = result.get_or_else(None)
        if await self.store.add(entry):
            return True, f"{entry.type.capitalize()} added successfully!"
        return False, f"Error adding {entry.type}"

    async def delete_transaction(self, transaction_id: str) -> Tuple[bool, str]:
        if await self.store.delete(transaction_id):
            return True, "Transaction deleted successfully."
        return False, "Failed to delete transaction."


class SessionManager:
    """Keeps exactly one SessionContext in line with the auth state.

    On every AUTH_STATE_CHANGED the previous context is closed before the
    next one starts its subscription.
    """

    def __init__(
        self,
        bus: EventBus,
        documents: DocumentStore,
        category_store: CategoryStore,
        app_id: str,
    ):
        self._bus = bus
        self._documents = documents
        self._category_store = category_store
        self._app_id = app_id
        self._current: Optional[SessionContext] = None
        bus.subscribe(AUTH_STATE_CHANGED, self._on_auth_state_changed)

    @property
    def current(self) -> Optional[SessionContext]:
        return self._current

    def switch(self, identity: Optional[Identity]) -> Optional[SessionContext]:
        if self._current is not None and self._current.identity == identity:
            return self._current

        previous, self._current = self._current, None
        if previous is not None:
            previous.close()

        if identity is not None:
            context = SessionContext(
                identity, self._documents, self._category_store, self._bus, self._app_id
            )
            self._current = context
            context.start()
        return self._current

    def close(self) -> None:
        self._bus.unsubscribe(AUTH_STATE_CHANGED, self._on_auth_state_changed)
        self.switch(None)

    def _on_auth_state_changed(self, event: Event, payload: dict) -> dict:
        context = self.switch(payload.get("identity"))
        return {"session": context}
