import asyncio
import threading
from datetime import datetime
from decimal import Decimal

import pytest

from conftest import make_doc
from tracker.cursor import PeriodCursor
from tracker.domain import EXPENSE, INCOME, Identity, TransactionEntry
from tracker.events import STORE_ERROR, TRANSACTIONS_UPDATED
from tracker.memory import InMemoryDocumentStore
from tracker.overview import DAY, build_overview
from tracker.store import TransactionStore, transactions_path
from tracker.transforms import sort_by_date_desc

APP = "test-app"
ALICE = Identity(uid="alice", display_name="Alice")
BOB = Identity(uid="bob", display_name="Bob")
A_PATH = transactions_path(APP, "alice")
B_PATH = transactions_path(APP, "bob")


def entry(tx_type=EXPENSE, amount="12.00", when=datetime(2025, 7, 1, 12, 0)):
    return TransactionEntry(type=tx_type, amount=Decimal(amount), category="Other", date=when)


def test_path_is_scoped_per_identity():
    assert A_PATH == "artifacts/test-app/users/alice/transactions"


def test_snapshot_is_sorted_newest_first(documents, bus):
    store = TransactionStore(documents, bus, APP)
    store.subscribe(ALICE)
    assert store.loading

    documents.emit(A_PATH, [
        ("old", make_doc(INCOME, 10, datetime(2025, 1, 1, 12))),
        ("new", make_doc(EXPENSE, 5, datetime(2025, 3, 1, 12))),
        ("mid", make_doc(EXPENSE, 7, datetime(2025, 2, 1, 12))),
    ])

    assert [t.id for t in store.transactions] == ["new", "mid", "old"]
    assert store.transactions[0].date == datetime(2025, 3, 1, 12)
    assert not store.loading


def test_snapshot_replaces_whole_list(documents, bus):
    store = TransactionStore(documents, bus, APP)
    store.subscribe(ALICE)
    documents.emit(A_PATH, [("a", make_doc(INCOME, 1, datetime(2025, 1, 1, 12)))])
    documents.emit(A_PATH, [("b", make_doc(INCOME, 2, datetime(2025, 1, 2, 12)))])
    assert [t.id for t in store.transactions] == ["b"]


def test_updates_are_published(documents, bus):
    seen = []
    bus.subscribe(TRANSACTIONS_UPDATED, lambda event, payload: seen.append(payload))
    store = TransactionStore(documents, bus, APP)
    store.subscribe(ALICE)
    documents.emit(A_PATH, [("a", make_doc(INCOME, 1, datetime(2025, 1, 1, 12)))])
    assert len(seen) == 1
    assert seen[0]["uid"] == "alice"
    assert seen[0]["transactions"] == store.transactions


def test_switching_identity_drops_late_callbacks(documents, bus):
    store = TransactionStore(documents, bus, APP)
    store.subscribe(ALICE)
    documents.emit(A_PATH, [("a1", make_doc(INCOME, 100, datetime(2025, 7, 1, 12)))])
    assert [t.id for t in store.transactions] == ["a1"]

    store.subscribe(BOB)
    assert A_PATH in documents.cancelled
    # alice's list is gone as soon as bob's feed starts
    assert store.transactions == ()

    documents.emit(B_PATH, [("b1", make_doc(EXPENSE, 5, datetime(2025, 7, 1, 12)))])
    # a late callback from alice's cancelled listener
    documents.emit(A_PATH, [("a2", make_doc(INCOME, 999, datetime(2025, 7, 1, 12)))])

    assert [t.id for t in store.transactions] == ["b1"]
    assert store.identity == BOB


def test_late_error_from_old_feed_is_ignored(documents, bus):
    errors = []
    bus.subscribe(STORE_ERROR, lambda event, payload: errors.append(payload))
    store = TransactionStore(documents, bus, APP)
    store.subscribe(ALICE)
    store.subscribe(BOB)
    documents.emit(B_PATH, [("b1", make_doc(EXPENSE, 5, datetime(2025, 7, 1, 12)))])
    documents.error(A_PATH, RuntimeError("gone"))
    assert errors == []
    assert [t.id for t in store.transactions] == ["b1"]


def test_subscription_error_keeps_last_list(documents, bus):
    errors = []
    bus.subscribe(STORE_ERROR, lambda event, payload: errors.append(payload))
    store = TransactionStore(documents, bus, APP)
    store.subscribe(ALICE)
    documents.emit(A_PATH, [("a1", make_doc(INCOME, 100, datetime(2025, 7, 1, 12)))])

    documents.error(A_PATH, RuntimeError("permission denied"))

    assert not store.loading
    assert [t.id for t in store.transactions] == ["a1"]
    assert len(errors) == 1
    assert A_PATH in documents.cancelled

    # the failed feed is finished, further snapshots are ignored
    documents.emit(A_PATH, [])
    assert [t.id for t in store.transactions] == ["a1"]


def test_subscribe_setup_failure_is_not_raised(documents, bus):
    documents.fail_subscribe = RuntimeError("offline")
    store = TransactionStore(documents, bus, APP)
    store.subscribe(ALICE)
    assert not store.loading
    assert store.transactions == ()


def test_malformed_documents_are_skipped(documents, bus):
    store = TransactionStore(documents, bus, APP)
    store.subscribe(ALICE)
    documents.emit(A_PATH, [
        ("bad", {"type": INCOME}),
        ("ok", make_doc(INCOME, 3, datetime(2025, 7, 1, 12))),
    ])
    assert [t.id for t in store.transactions] == ["ok"]


def test_unsubscribe_clears_state(documents, bus):
    store = TransactionStore(documents, bus, APP)
    store.subscribe(ALICE)
    documents.emit(A_PATH, [("a1", make_doc(INCOME, 100, datetime(2025, 7, 1, 12)))])
    store.unsubscribe()
    assert store.transactions == ()
    assert store.identity is None
    documents.emit(A_PATH, [("a2", make_doc(INCOME, 1, datetime(2025, 7, 1, 12)))])
    assert store.transactions == ()


@pytest.mark.asyncio
async def test_add_does_not_touch_local_list(documents, bus):
    store = TransactionStore(documents, bus, APP)
    store.subscribe(ALICE)
    documents.emit(A_PATH, [])

    ok = await store.add(entry())

    assert ok is True
    assert store.transactions == ()
    path, doc = documents.inserted[0]
    assert path == A_PATH
    assert doc["amount"] == 12.0
    assert doc["type"] == EXPENSE


@pytest.mark.asyncio
async def test_add_and_delete_without_identity_fail(documents, bus):
    store = TransactionStore(documents, bus, APP)
    assert await store.add(entry()) is False
    assert await store.delete("x") is False
    assert documents.inserted == []
    assert documents.deleted == []


@pytest.mark.asyncio
async def test_transport_failures_become_false(documents, bus):
    store = TransactionStore(documents, bus, APP)
    store.subscribe(ALICE)
    documents.emit(A_PATH, [])
    documents.fail_insert = ConnectionError("network down")
    documents.fail_delete = ConnectionError("network down")

    assert await store.add(entry()) is False
    assert await store.delete("a1") is False
    assert not store.loading


@pytest.mark.asyncio
async def test_concurrent_calls_are_independent(bus):
    class FlakyStore(InMemoryDocumentStore):
        async def insert(self, path, document):
            if document["amount"] < 0.5:
                raise ConnectionError("rejected")
            return await super().insert(path, document)

    documents = FlakyStore()
    store = TransactionStore(documents, bus, APP)
    store.subscribe(ALICE)

    results = await asyncio.gather(
        store.add(entry(amount="0.10")),
        store.add(entry(amount="25.00")),
    )

    assert results == [False, True]
    assert [t.amount for t in store.transactions] == [Decimal("25.0")]
    assert not store.loading


@pytest.mark.asyncio
async def test_live_store_round_trip(bus):
    documents = InMemoryDocumentStore()
    store = TransactionStore(documents, bus, APP)
    store.subscribe(ALICE)
    assert store.transactions == ()

    await store.add(entry(INCOME, "500", datetime(2025, 7, 1, 9)))
    await store.add(entry(EXPENSE, "120.50", datetime(2025, 7, 1, 13)))
    assert [t.amount for t in store.transactions] == [Decimal("120.5"), Decimal("500.0")]

    target = store.transactions[0].id
    assert await store.delete(target) is True
    assert [t.type for t in store.transactions] == [INCOME]


@pytest.mark.asyncio
async def test_deleting_unknown_id_leaves_list_unchanged(bus):
    documents = InMemoryDocumentStore()
    store = TransactionStore(documents, bus, APP)
    store.subscribe(ALICE)
    await store.add(entry())
    before = store.transactions

    await store.delete("does-not-exist")

    assert store.transactions == before


def test_in_memory_feed_failure(bus):
    errors = []
    bus.subscribe(STORE_ERROR, lambda event, payload: errors.append(payload["uid"]))
    documents = InMemoryDocumentStore()
    store = TransactionStore(documents, bus, APP)
    store.subscribe(ALICE)

    documents.fail(A_PATH, PermissionError("denied"))

    assert errors == ["alice"]
    assert documents.listener_count(A_PATH) == 0
    assert not store.loading


def test_non_finite_amounts_are_skipped(documents, bus):
    store = TransactionStore(documents, bus, APP)
    store.subscribe(ALICE)
    documents.emit(A_PATH, [
        ("nan", make_doc(INCOME, float("nan"), datetime(2025, 7, 1, 12))),
        ("inf", make_doc(EXPENSE, float("inf"), datetime(2025, 7, 1, 13))),
        ("ok", make_doc(INCOME, 500, datetime(2025, 7, 1, 9))),
    ])

    assert [t.id for t in store.transactions] == ["ok"]
    overview = build_overview(store.transactions, PeriodCursor(2025, 6, 1), DAY)
    assert overview.balance == Decimal("500")
    assert not overview.is_negative


def test_subscribe_setup_failure_is_published(documents, bus):
    errors = []
    bus.subscribe(STORE_ERROR, lambda event, payload: errors.append(payload))
    documents.fail_subscribe = RuntimeError("offline")
    store = TransactionStore(documents, bus, APP)

    store.subscribe(ALICE)

    assert len(errors) == 1
    assert errors[0]["uid"] == "alice"
    assert str(errors[0]["error"]) == "offline"
    assert store.identity == ALICE


def test_switch_during_threaded_snapshot_keeps_new_list(documents, bus, monkeypatch):
    sorting = threading.Event()
    release = threading.Event()

    def slow_sort(trans):
        sorting.set()
        release.wait(timeout=5)
        return sort_by_date_desc(trans)

    monkeypatch.setattr("tracker.store.sort_by_date_desc", slow_sort)
    store = TransactionStore(documents, bus, APP)
    store.subscribe(ALICE)

    worker = threading.Thread(
        target=documents.emit,
        args=(A_PATH, [("a1", make_doc(INCOME, 100, datetime(2025, 7, 1, 12)))]),
    )
    worker.start()
    assert sorting.wait(timeout=5)

    store.subscribe(BOB)
    release.set()
    worker.join(timeout=5)

    assert not worker.is_alive()
    assert store.identity == BOB
    assert store.transactions == ()
    assert store.loading
