"""Progress events and the in-process broker that relays them.

Workers publish :class:`ProgressEvent` objects on a topic (the job id);
live listeners subscribe to that topic and receive events published after
they subscribed. The broker keeps nothing: an event with no subscriber is
dropped.
"""

from __future__ import annotations

import json
import queue
import threading
from dataclasses import dataclass, field
from typing import Any, Callable, Iterator

from subsmith.utils.console import console

PROGRESS = "progress"
BLUEPRINT_READY = "blueprint_ready"
COMPLETED = "completed"
FAILED = "failed"

TERMINAL_TYPES = frozenset({COMPLETED, FAILED})


@dataclass(frozen=True)
class ProgressEvent:
    """A tagged event emitted while a job runs.

    Attributes:
        type: One of progress, blueprint_ready, completed, failed.
        payload: ``{"stage"}``, the blueprint, ``{"result"}`` or ``{"error"}``.
    """

    type: str
    payload: dict[str, Any] = field(default_factory=dict)

    @classmethod
    def progress(cls, stage: str) -> ProgressEvent:
        return cls(PROGRESS, {"stage": stage})

    @classmethod
    def blueprint_ready(cls, blueprint: dict[str, Any]) -> ProgressEvent:
        return cls(BLUEPRINT_READY, blueprint)

    @classmethod
    def completed(cls, result: str) -> ProgressEvent:
        return cls(COMPLETED, {"result": result})

    @classmethod
    def failed(cls, error: str) -> ProgressEvent:
        return cls(FAILED, {"error": error})

    @property
    def is_terminal(self) -> bool:
        return self.type in TERMINAL_TYPES

    def to_dict(self) -> dict[str, Any]:
        return {"type": self.type, "payload": self.payload}

    def to_json(self) -> str:
        return json.dumps(self.to_dict(), ensure_ascii=False)


EventCallback = Callable[[ProgressEvent], None]


class Subscription:
    """Handle for one listener on one topic.

    Iterating yields events until :meth:`close` is called or a terminal
    event has been delivered. Closing removes the listener from the broker.
    """

    _SENTINEL = object()

    def __init__(self, broker: EventBroker, topic: str) -> None:
        self.topic = topic
        self._broker = broker
        self._queue: queue.Queue[object] = queue.Queue()
        self._closed = False

    @property
    def closed(self) -> bool:
        return self._closed

    def _deliver(self, event: ProgressEvent) -> None:
        if not self._closed:
            self._queue.put(event)

    def get(self, timeout: float | None = None) -> ProgressEvent | None:
        """Return the next event, or None on timeout or after close."""
        if self._closed:
            return None
        try:
            item = self._queue.get(timeout=timeout)
        except queue.Empty:
            return None
        if item is self._SENTINEL:
            return None
        return item  # type: ignore[return-value]

    def __iter__(self) -> Iterator[ProgressEvent]:
        while True:
            event = self.get()
            if event is None:
                return
            yield event
            if event.is_terminal:
                self.close()
                return

    def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        self._broker._remove(self)
        self._queue.put(self._SENTINEL)

    def __enter__(self) -> Subscription:
        return self

    def __exit__(self, *exc: object) -> None:
        self.close()


class EventBroker:
    """Process-wide publish/subscribe keyed by topic."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._subscribers: dict[str, list[Subscription]] = {}
        self._callbacks: dict[str, list[EventCallback]] = {}

    def subscribe(self, topic: str) -> Subscription:
        """Start receiving events published on ``topic`` from now on."""
        sub = Subscription(self, topic)
        with self._lock:
            self._subscribers.setdefault(topic, []).append(sub)
        return sub

    def listen(self, topic: str, callback: EventCallback) -> Callable[[], None]:
        """Register a push-style listener; returns the function that removes it."""
        with self._lock:
            self._callbacks.setdefault(topic, []).append(callback)

        def _unregister() -> None:
            with self._lock:
                callbacks = self._callbacks.get(topic, [])
                if callback in callbacks:
                    callbacks.remove(callback)
                if not callbacks:
                    self._callbacks.pop(topic, None)

        return _unregister

    def publish(self, topic: str, event: ProgressEvent) -> None:
        """Deliver ``event`` to current subscribers of ``topic``; no-op if none."""
        with self._lock:
            subs = tuple(self._subscribers.get(topic, ()))
            callbacks = tuple(self._callbacks.get(topic, ()))
        for sub in subs:
            sub._deliver(event)
        for callback in callbacks:
            try:
                callback(event)
            except Exception as e:
                console.print(f"[yellow]Event listener for {topic} failed:[/yellow] {e}")

    def subscriber_count(self, topic: str) -> int:
        with self._lock:
            return len(self._subscribers.get(topic, ())) + len(self._callbacks.get(topic, ()))

    def _remove(self, sub: Subscription) -> None:
        with self._lock:
            subs = self._subscribers.get(sub.topic)
            if not subs:
                return
            if sub in subs:
                subs.remove(sub)
            if not subs:
                del self._subscribers[sub.topic]
