"""
Events
======

Fire-and-forget event bus shared by the scheduler, the verifier and shapes.

Emission never raises: handler exceptions are logged and swallowed at the bus
boundary so one faulty subscriber cannot stall a turn.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Callable, Dict, List, Optional, Protocol, Set

from shapeflow.pool_core.logging_setup import get_logger

logger = get_logger("events")

Handler = Callable[[Any], None]


class EventSink(Protocol):
    """Anything shapes and the scheduler can emit events into."""

    def emit(self, event: str, payload: Any = None) -> None:
        ...


class EventBus:
    """
    Minimal publish/subscribe bus.

    Handlers are keyed by exact event name. Each emit iterates a snapshot of
    the handler set, so handlers may unsubscribe themselves while running.
    """

    def __init__(self):
        self._handlers: Dict[str, Set[Handler]] = {}

    def on(self, event: str, handler: Handler) -> Callable[[], None]:
        """
        Subscribe to an event.

        Returns:
            Callable that removes the subscription.
        """
        self._handlers.setdefault(event, set()).add(handler)
        return lambda: self.off(event, handler)

    def once(self, event: str, handler: Handler) -> Callable[[], None]:
        """Subscribe for a single delivery."""
        def _wrapper(payload: Any) -> None:
            off()
            handler(payload)

        off = self.on(event, _wrapper)
        return off

    def off(self, event: str, handler: Handler) -> None:
        handlers = self._handlers.get(event)
        if handlers is None:
            return
        handlers.discard(handler)
        if not handlers:
            del self._handlers[event]

    def emit(self, event: str, payload: Any = None) -> None:
        handlers = self._handlers.get(event)
        if not handlers:
            return
        for handler in list(handlers):
            try:
                handler(payload)
            except Exception:
                logger.exception("Handler for %s failed", event)

    def listener_count(self, event: str) -> int:
        return len(self._handlers.get(event, ()))


class NullBus:
    """Bus used when nothing is wired; drops every event."""

    def emit(self, event: str, payload: Any = None) -> None:
        return None


@dataclass
class CapturedEvent:
    """An event recorded by a CapturingSink."""
    event: str
    payload: Any = None


class CapturingSink:
    """
    Records every event and forwards it to an inner sink.

    Injected as the bus of a shape under verification so its emissions can
    be policy-checked afterwards. Forwarding can be disabled to keep a
    sandbox run invisible to real subscribers.
    """

    def __init__(self, inner: Optional[EventSink] = None, forward: bool = True):
        self._inner = inner if inner is not None else NullBus()
        self._forward = forward
        self.captured: List[CapturedEvent] = []

    def emit(self, event: str, payload: Any = None) -> None:
        self.captured.append(CapturedEvent(str(event), payload))
        if self._forward:
            try:
                self._inner.emit(event, payload)
            except Exception:
                logger.exception("Forwarding %s failed", event)

    def with_prefix(self, prefix: str) -> List[CapturedEvent]:
        """Captured events whose name starts with prefix."""
        return [e for e in self.captured if e.event.startswith(prefix)]

    def names(self) -> List[str]:
        return [e.event for e in self.captured]

    def clear(self) -> None:
        self.captured.clear()


def safe_emit(bus: Optional[EventSink], event: str, payload: Any = None) -> None:
    """Emit without ever raising, tolerating a missing bus."""
    if bus is None:
        return
    try:
        bus.emit(event, payload)
    except Exception:
        logger.exception("Emit of %s failed", event)
