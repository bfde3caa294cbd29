"""
Event Sink - fan-out of sealed session records to listeners.

Each subscription owns a FIFO queue drained by its own worker thread, so:
- records reach every listener in the order they were published
- a slow listener only delays itself
- an exception raised by one listener is logged and never reaches the
  publisher or the other listeners
"""

from __future__ import annotations

import itertools
import queue
import threading
import time
from dataclasses import dataclass
from typing import Callable, Dict, List, Optional

from mic_guardian.core.logging_utils import get_module_logger

from .types import SessionRecord

logger = get_module_logger("EventSink")

Listener = Callable[[SessionRecord], None]

_STOP = object()


@dataclass(frozen=True)
class SubscriptionHandle:
    """Opaque token returned by ``subscribe``."""
    id: int
    name: str


class _Subscription:

    def __init__(self, handle: SubscriptionHandle, listener: Listener):
        self.handle = handle
        self.listener = listener
        self.queue: "queue.Queue[object]" = queue.Queue()
        self.pending = 0
        self.delivered = 0
        self.failures = 0
        self.thread: Optional[threading.Thread] = None


class EventSink:
    """
    Delivers SessionRecords to subscribed listeners.

    Usage:
        sink = EventSink()
        handle = sink.subscribe(print_record, name="printer")
        sink.publish(record)      # never blocks on listeners
        sink.wait_idle(1.0)       # e.g. in tests
        sink.unsubscribe(handle)
        sink.close()
    """

    def __init__(self):
        self._subscriptions: Dict[int, _Subscription] = {}
        self._draining: List[_Subscription] = []
        self._ids = itertools.count(1)
        self._lock = threading.Lock()
        self._idle = threading.Condition(self._lock)
        self._closed = False
        self._published = 0

    # ------------------------------------------------------------------
    # Subscription management

    def subscribe(self, listener: Listener, name: Optional[str] = None) -> SubscriptionHandle:
        if not callable(listener):
            raise TypeError("listener must be callable")

        with self._lock:
            if self._closed:
                raise RuntimeError("EventSink is closed")
            sub_id = next(self._ids)
            handle = SubscriptionHandle(sub_id, name or getattr(listener, "__name__", f"listener-{sub_id}"))
            subscription = _Subscription(handle, listener)
            subscription.thread = threading.Thread(
                target=self._worker,
                args=(subscription,),
                name=f"EventSink-{handle.name}",
                daemon=True,
            )
            self._subscriptions[sub_id] = subscription

        subscription.thread.start()
        logger.debug("Subscribed listener '%s' (id=%d)", handle.name, handle.id)
        return handle

    def unsubscribe(self, handle: SubscriptionHandle) -> bool:
        """Stop delivering to ``handle``; records already queued still arrive."""
        with self._lock:
            subscription = self._subscriptions.pop(handle.id, None)
            if subscription is None:
                logger.debug("Unsubscribe ignored, unknown handle %s", handle)
                return False
            self._draining.append(subscription)
            subscription.queue.put(_STOP)

        logger.debug("Unsubscribed listener '%s' (id=%d)", handle.name, handle.id)
        return True

    @property
    def listener_count(self) -> int:
        with self._lock:
            return len(self._subscriptions)

    # ------------------------------------------------------------------
    # Delivery

    def publish(self, record: SessionRecord) -> int:
        """Queue ``record`` for every current listener; returns how many."""
        with self._lock:
            if self._closed:
                logger.warning("Publish after close ignored (session %d)", record.id)
                return 0
            self._published += 1
            targets = list(self._subscriptions.values())
            for subscription in targets:
                subscription.pending += 1
                subscription.queue.put(record)
        return len(targets)

    def _worker(self, subscription: _Subscription) -> None:
        name = subscription.handle.name
        while True:
            item = subscription.queue.get()
            if item is _STOP:
                break
            try:
                subscription.listener(item)
                subscription.delivered += 1
            except Exception:
                subscription.failures += 1
                logger.exception("Listener '%s' failed on session %s", name, getattr(item, "id", "?"))
            finally:
                with self._idle:
                    subscription.pending -= 1
                    self._idle.notify_all()

        with self._idle:
            if subscription in self._draining:
                self._draining.remove(subscription)
            self._idle.notify_all()

    def _pending_locked(self) -> int:
        return sum(sub.pending for sub in self._subscriptions.values()) + sum(
            sub.pending for sub in self._draining
        )

    def wait_idle(self, timeout: Optional[float] = None) -> bool:
        """Block until every queued record was handed to its listener."""
        deadline = None if timeout is None else time.monotonic() + timeout
        with self._idle:
            while self._pending_locked():
                remaining = None if deadline is None else deadline - time.monotonic()
                if remaining is not None and remaining <= 0:
                    return False
                self._idle.wait(remaining)
        return True

    def close(self, timeout: Optional[float] = 5.0) -> None:
        """Drain and stop every worker. Idempotent."""
        with self._lock:
            if self._closed:
                return
            self._closed = True
            subscriptions = list(self._subscriptions.values())
            self._subscriptions.clear()
            self._draining.extend(subscriptions)
            for subscription in subscriptions:
                subscription.queue.put(_STOP)
            workers = [sub.thread for sub in self._draining if sub.thread is not None]

        current = threading.current_thread()
        for worker in workers:
            if worker is not current:
                worker.join(timeout)
                if worker.is_alive():
                    logger.warning("Listener thread %s did not finish within %.1fs", worker.name, timeout)

        logger.debug("Event sink closed")

    def stats(self) -> Dict[str, object]:
        with self._lock:
            return {
                "published": self._published,
                "listeners": [
                    {
                        "name": sub.handle.name,
                        "delivered": sub.delivered,
                        "failures": sub.failures,
                        "pending": sub.pending,
                    }
                    for sub in self._subscriptions.values()
                ],
            }
