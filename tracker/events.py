import logging
from datetime import datetime
from typing import Callable, Dict, List, NamedTuple, Optional

__all__ = [
    'AUTH_STATE_CHANGED', 'TRANSACTIONS_UPDATED', 'STORE_ERROR',
    'Event', 'EventBus', 'Handler',
]

logger = logging.getLogger(__name__)


class Event(NamedTuple):
    name: str
    ts: str
    payload: dict


Handler = Callable[[Event, dict], Optional[dict]]


class EventBus:
    def __init__(self):
        self._subscribers: Dict[str, List[Handler]] = {}

    def subscribe(self, name: str, handler: Handler) -> None:
        if name not in self._subscribers:
            self._subscribers[name] = []
        self._subscribers[name].append(handler)

    def publish(self, name: str, payload: dict) -> List[Optional[dict]]:
        if name not in self._subscribers:
            return []

        event = Event(
            name=name,
            ts=datetime.now().isoformat(),
            payload=payload
        )
        logger.debug("Publishing %s to %d handler(s)", name, len(self._subscribers[name]))

        results = []
        # copy: a handler may unsubscribe itself
        for handler in list(self._subscribers[name]):
            result = handler(event, payload)
            results.append(result)
        return results

    def unsubscribe(self, name: str, handler: Handler) -> None:
        if name in self._subscribers:
            if handler in self._subscribers[name]:
                self._subscribers[name].remove(handler)


# payload: {"identity": Identity | None}
AUTH_STATE_CHANGED = "AUTH_STATE_CHANGED"
# payload: {"uid": str, "transactions": tuple[Transaction, ...]}
TRANSACTIONS_UPDATED = "TRANSACTIONS_UPDATED"
# payload: {"uid": str, "error": Exception}
STORE_ERROR = "STORE_ERROR"
