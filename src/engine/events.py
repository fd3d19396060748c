"""Priority-ordered publish/subscribe bus for host and core events."""

from __future__ import annotations

import logging
from collections import defaultdict
from dataclasses import dataclass
from enum import Enum
from typing import Any, Callable

logger = logging.getLogger(__name__)


def _key(event: str) -> str:
    return event.value if isinstance(event, Enum) else str(event)


@dataclass(slots=True)
class _Subscription:
    callback: Callable[..., Any]
    priority: int
    order: int


class EventBus:
    """Handlers run highest priority first; ties keep registration order.

    A failing handler is logged and counted, and the remaining handlers
    still run.
    """

    __slots__ = ("_handlers", "_counter", "_errors", "_emitted")

    def __init__(self) -> None:
        self._handlers: dict[str, list[_Subscription]] = defaultdict(list)
        self._counter = 0
        self._errors = 0
        self._emitted = 0

    def on(self, event: str, callback: Callable[..., Any], priority: int = 0) -> Callable[[], None]:
        """Register *callback* for *event*. Returns an unsubscribe function."""
        self._counter += 1
        sub = _Subscription(callback, priority, self._counter)
        handlers = self._handlers[_key(event)]
        handlers.append(sub)
        handlers.sort(key=lambda s: (-s.priority, s.order))

        def unsubscribe() -> None:
            try:
                handlers.remove(sub)
            except ValueError:
                pass

        return unsubscribe

    def emit(self, event: str, *args: Any, **kwargs: Any) -> int:
        """Invoke every handler of *event*. Returns how many completed."""
        self._emitted += 1
        completed = 0
        for sub in list(self._handlers.get(_key(event), ())):
            try:
                sub.callback(*args, **kwargs)
                completed += 1
            except Exception:
                self._errors += 1
                logger.warning("Handler for %s failed", event, exc_info=True)
        return completed

    def handler_count(self, event: str) -> int:
        return len(self._handlers.get(_key(event), ()))

    def clear(self, event: str | None = None) -> None:
        if event is None:
            self._handlers.clear()
        else:
            self._handlers.pop(_key(event), None)

    @property
    def error_count(self) -> int:
        return self._errors

    @property
    def emitted_count(self) -> int:
        return self._emitted
