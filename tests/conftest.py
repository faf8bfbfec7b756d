from datetime import datetime, timezone

import pytest

from tracker.events import EventBus
from tracker.interfaces import DocumentStore


class ManualDocumentStore(DocumentStore):
    """Document store whose snapshots are pushed by hand.

    Cancelling a feed is only recorded, callbacks stay callable, which is
    how a late snapshot from a cancelled listener looks to the caller.
    """

    def __init__(self):
        self.feeds = {}
        self.cancelled = []
        self.inserted = []
        self.deleted = []
        self.fail_insert = None
        self.fail_delete = None
        self.fail_subscribe = None

    def subscribe(self, path, on_change, on_error):
        if self.fail_subscribe is not None:
            raise self.fail_subscribe
        self.feeds.setdefault(path, []).append((on_change, on_error))
        return lambda: self.cancelled.append(path)

    async def insert(self, path, document):
        if self.fail_insert is not None:
            raise self.fail_insert
        self.inserted.append((path, document))
        return f"doc{len(self.inserted)}"

    async def delete(self, path, doc_id):
        if self.fail_delete is not None:
            raise self.fail_delete
        self.deleted.append((path, doc_id))

    def emit(self, path, docs, index=-1):
        on_change, _ = self.feeds[path][index]
        on_change(docs)

    def error(self, path, exc, index=-1):
        _, on_error = self.feeds[path][index]
        on_error(exc)


def make_doc(tx_type, amount, when: datetime, category="Other"):
    return {
        "type": tx_type,
        "amount": amount,
        "category": category,
        "date": when.astimezone(timezone.utc),
        "createdAt": datetime(2025, 1, 1, tzinfo=timezone.utc),
    }


@pytest.fixture
def documents():
    return ManualDocumentStore()


@pytest.fixture
def bus():
    return EventBus()
