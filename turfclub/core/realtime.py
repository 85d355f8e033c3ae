"""Real-time query subscriptions.

A subscription delivers the full result set of a Firestore query once when it
starts and again after any write to a document the query matches. Firestore
invokes the callback on its own listener thread.
"""

from __future__ import annotations

import json
import logging
import queue
import threading
from collections.abc import Callable, Iterator
from typing import Any

from turfclub.utils import FirestoreJSONProvider

logger = logging.getLogger(__name__)

Documents = list[dict[str, Any]]

KEEPALIVE_SECONDS = 15.0


def _as_documents(snapshots: Any) -> Documents:
    documents = []
    for snapshot in snapshots:
        data = snapshot.to_dict() or {}
        data["id"] = snapshot.id
        documents.append(data)
    return documents


class Subscription:
    """A live query whose results are pushed to ``on_change``."""

    def __init__(self, query: Any, on_change: Callable[[Documents], None]):
        self._on_change = on_change
        self._lock = threading.Lock()
        self._active = True
        self._watch = query.on_snapshot(self._handle_snapshot)

    @property
    def active(self) -> bool:
        return self._active

    def _handle_snapshot(self, snapshots: Any, changes: Any, read_time: Any) -> None:
        if not self._active:
            return
        self._on_change(_as_documents(snapshots))

    def unsubscribe(self) -> None:
        """Stop receiving updates. Calling this more than once is a no-op."""
        with self._lock:
            if not self._active:
                return
            self._active = False
        self._watch.unsubscribe()

    def __enter__(self) -> Subscription:
        return self

    def __exit__(self, *exc_info: Any) -> None:
        self.unsubscribe()


def watch_query(query: Any, on_change: Callable[[Documents], None]) -> Subscription:
    """Subscribe to ``query``; see Subscription."""
    return Subscription(query, on_change)


def event_stream(
    query: Any,
    transform: Callable[[Documents], Any] | None = None,
    keepalive: float = KEEPALIVE_SECONDS,
) -> Iterator[str]:
    """Yield server-sent events carrying the query results on every change.

    The listener thread hands snapshots to the request thread through a queue.
    The subscription ends when the client disconnects and the generator closes.
    """
    updates: queue.Queue[Documents] = queue.Queue()
    subscription = watch_query(query, updates.put)
    try:
        while True:
            try:
                documents = updates.get(timeout=keepalive)
            except queue.Empty:
                yield ": keepalive\n\n"
                continue
            payload = transform(documents) if transform else documents
            yield f"data: {json.dumps(payload, default=FirestoreJSONProvider.default)}\n\n"
    finally:
        subscription.unsubscribe()
        logger.debug("Closed real-time stream.")
