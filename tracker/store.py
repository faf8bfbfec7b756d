import logging
import threading
from typing import Callable, List, Optional, Tuple

from tracker.domain import Identity, Transaction, TransactionEntry
from tracker.events import STORE_ERROR, TRANSACTIONS_UPDATED, EventBus
from tracker.interfaces import DocumentStore
from tracker.transforms import from_document, sort_by_date_desc, to_document

logger = logging.getLogger(__name__)


def transactions_path(app_id: str, uid: str) -> str:
    return f"artifacts/{app_id}/users/{uid}/transactions"


class TransactionStore:
    """Live, date-sorted list of one identity's transactions.

    The list is only ever replaced by snapshots from the document store;
    add() and delete() never touch it directly. Each subscribe() bumps a
    generation counter and snapshot callbacks from an older generation are
    dropped, so a late callback for a previous identity cannot overwrite the
    current list.

    Snapshot callbacks may arrive on a thread owned by the document store.
    The generation check and the assignment it guards happen under one lock;
    listeners are cancelled outside it, since cancelling may wait for that
    thread.
    """

    def __init__(self, documents: DocumentStore, bus: EventBus, app_id: str):
        self._documents = documents
        self._bus = bus
        self._app_id = app_id
        self._lock = threading.RLock()
        self._identity: Optional[Identity] = None
        self._transactions: Tuple[Transaction, ...] = ()
        self._generation = 0
        self._cancel: Optional[Callable[[], None]] = None
        self._awaiting_snapshot = False
        self._in_flight = 0

    @property
    def identity(self) -> Optional[Identity]:
        return self._identity

    @property
    def transactions(self) -> Tuple[Transaction, ...]:
        return self._transactions

    @property
    def generation(self) -> int:
        return self._generation

    @property
    def loading(self) -> bool:
        return self._awaiting_snapshot or self._in_flight > 0

    def subscribe(self, identity: Optional[Identity]) -> int:
        """Switch the live feed to identity and return the new generation."""
        with self._lock:
            previous = self._reset(identity)
            generation = self._generation
            self._awaiting_snapshot = identity is not None
        self._cancel_listener(previous)

        if identity is None:
            return generation

        uid = identity.uid
        try:
            cancel = self._documents.subscribe(
                transactions_path(self._app_id, uid),
                on_change=lambda docs: self._on_snapshot(generation, uid, docs),
                on_error=lambda error: self._on_error(generation, uid, error),
            )
        except Exception as e:
            logger.error("Error setting up transaction listener for %s: %s", uid, e)
            with self._lock:
                if generation != self._generation:
                    return generation
                self._awaiting_snapshot = False
                self._generation += 1
            self._bus.publish(STORE_ERROR, {"uid": uid, "error": e})
            return generation

        with self._lock:
            current = generation == self._generation
            if current:
                self._cancel = cancel
        if not current:
            # the attempt already ended (error callback or another subscribe)
            self._cancel_listener(cancel)
        logger.info("Subscribed to transactions of %s (generation %d)", uid, generation)
        return generation

    def unsubscribe(self) -> None:
        with self._lock:
            previous = self._reset(None)
        self._cancel_listener(previous)

    async def add(self, entry: TransactionEntry) -> bool:
        identity = self._identity
        if identity is None:
            logger.warning("Cannot add transaction: no user authenticated.")
            return False

        self._in_flight += 1
        try:
            doc_id = await self._documents.insert(
                transactions_path(self._app_id, identity.uid), to_document(entry)
            )
            logger.info("Added %s transaction %s", entry.type, doc_id)
            return True
        except Exception as e:
            logger.error("Error adding transaction: %s", e)
            return False
        finally:
            self._in_flight -= 1

    async def delete(self, transaction_id: str) -> bool:
        identity = self._identity
        if identity is None:
            logger.warning("Cannot delete transaction: no user authenticated.")
            return False

        self._in_flight += 1
        try:
            await self._documents.delete(
                transactions_path(self._app_id, identity.uid), transaction_id
            )
            logger.info("Deleted transaction %s", transaction_id)
            return True
        except Exception as e:
            logger.error("Error deleting transaction %s: %s", transaction_id, e)
            return False
        finally:
            self._in_flight -= 1

    def _reset(self, identity: Optional[Identity]) -> Optional[Callable[[], None]]:
        # caller holds the lock; returns the listener to cancel
        cancel, self._cancel = self._cancel, None
        self._generation += 1
        self._identity = identity
        self._transactions = ()
        self._awaiting_snapshot = False
        return cancel

    def _cancel_listener(self, cancel: Optional[Callable[[], None]]) -> None:
        if cancel is None:
            return
        try:
            cancel()
        except Exception as e:
            logger.warning("Error cancelling transaction listener: %s", e)

    def _on_snapshot(self, generation: int, uid: str, docs: List[tuple]) -> None:
        if generation != self._generation:
            logger.debug("Dropping stale snapshot for %s (generation %d)", uid, generation)
            return

        decoded = []
        for doc_id, data in docs:
            try:
                decoded.append(from_document(doc_id, data))
            except (KeyError, TypeError, ValueError, ArithmeticError) as e:
                logger.warning("Skipping malformed transaction %s: %s", doc_id, e)
        ordered = sort_by_date_desc(decoded)

        with self._lock:
            if generation != self._generation:
                logger.debug("Dropping stale snapshot for %s (generation %d)", uid, generation)
                return
            self._transactions = ordered
            self._awaiting_snapshot = False
        self._bus.publish(TRANSACTIONS_UPDATED, {"uid": uid, "transactions": ordered})

    def _on_error(self, generation: int, uid: str, error: Exception) -> None:
        with self._lock:
            if generation != self._generation:
                return
            self._awaiting_snapshot = False
            # terminal for this attempt, the list keeps its last value
            cancel, self._cancel = self._cancel, None
            self._generation += 1
        logger.error("Error loading transactions for %s: %s", uid, error)
        self._cancel_listener(cancel)
        self._bus.publish(STORE_ERROR, {"uid": uid, "error": error})
