"""In-process publish/subscribe channel for typed sync events."""
from __future__ import annotations

import inspect
from typing import Any, Awaitable, Callable, Dict, List, Type, Union

from core.logs import get_child_logger
from models.events import SyncEvent


Handler = Callable[[Any], Union[None, Awaitable[None]]]

logger = get_child_logger("events")


class EventBus:
    """Dispatches events to handlers subscribed to their class or a base class.

    Handlers may be plain callables or coroutine functions; the latter are
    awaited in subscription order. A failing handler is logged and does not
    stop delivery to the others.
    """

    def __init__(self) -> None:
        self._listeners: Dict[Type[SyncEvent], List[Handler]] = {}

    def subscribe(self, event_type: Type[SyncEvent], callback: Handler) -> Callable[[], None]:
        if not (isinstance(event_type, type) and issubclass(event_type, SyncEvent)):
            raise ValueError(f"Unsupported event: {event_type!r}")
        listeners = self._listeners.setdefault(event_type, [])
        if callback not in listeners:
            listeners.append(callback)
        return lambda: self.unsubscribe(event_type, callback)

    def unsubscribe(self, event_type: Type[SyncEvent], callback: Handler) -> None:
        listeners = self._listeners.get(event_type)
        if not listeners:
            return
        try:
            listeners.remove(callback)
        except ValueError:
            pass

    def clear(self) -> None:
        self._listeners.clear()

    def _handlers_for(self, event: SyncEvent) -> List[Handler]:
        handlers: List[Handler] = []
        for klass in type(event).__mro__:
            if not (isinstance(klass, type) and issubclass(klass, SyncEvent)):
                continue
            for handler in self._listeners.get(klass, ()):
                if handler not in handlers:
                    handlers.append(handler)
        return handlers

    async def publish(self, event: SyncEvent) -> None:
        for listener in self._handlers_for(event):
            try:
                result = listener(event)
                if inspect.isawaitable(result):
                    await result
            except Exception:
                logger.exception("Listener %r failed on %s", listener, type(event).__name__)


__all__ = ["EventBus", "Handler"]
