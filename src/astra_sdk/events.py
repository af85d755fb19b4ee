"""
Command lifecycle events.

Every client, ``Db``, collection, table and admin object owns an
``EventHub`` linked to its parent's. An event emitted by a collection is
delivered to the collection's listeners, then bubbles to its ``Db``, then
to the client, unless a listener calls ``event.stop_propagation()``.

Usage:
    client = DataAPIClient(token)

    @client.events.command_failed.connect
    def on_failure(event):
        print(f"{event.command_name} on {event.target} failed: {event.error}")

    # Only events that originate from tables
    @db.events.command_succeeded.connect(Table)
    async def on_table_command(event):
        await metrics.observe(event.command_name, event.duration_ms)

Listeners may be sync or async. A listener that raises is logged and
never affects the command that emitted the event.
"""

from __future__ import annotations

import asyncio
import inspect
import logging
import threading
import time
import uuid
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable, ClassVar

logger = logging.getLogger(__name__)

# Type alias for event listeners
Listener = Callable[["BaseEvent"], Awaitable[None] | None]


# =============================================================================
# Event payloads
# =============================================================================


def new_request_id() -> str:
    return uuid.uuid4().hex


@dataclass
class BaseEvent:
    """Common event fields. ``timestamp`` is wall-clock seconds at creation."""

    name: ClassVar[str] = "event"

    request_id: str
    timestamp: float = field(default_factory=time.time, init=False)
    _propagation_stopped: bool = field(default=False, init=False, repr=False)

    def stop_propagation(self) -> None:
        """Keep the event from bubbling to ancestor hubs."""
        self._propagation_stopped = True

    @property
    def propagation_stopped(self) -> bool:
        return self._propagation_stopped


@dataclass
class CommandEvent(BaseEvent):
    command_name: str
    target: str
    command: dict[str, Any] = field(repr=False)


@dataclass
class CommandStartedEvent(CommandEvent):
    name: ClassVar[str] = "command_started"

    timeout_ms: int | None = None


@dataclass
class CommandSucceededEvent(CommandEvent):
    name: ClassVar[str] = "command_succeeded"

    duration_ms: float = 0.0
    response: dict[str, Any] = field(default_factory=dict, repr=False)


@dataclass
class CommandFailedEvent(CommandEvent):
    name: ClassVar[str] = "command_failed"

    duration_ms: float = 0.0
    error: Exception | None = None


@dataclass
class CommandWarningsEvent(CommandEvent):
    name: ClassVar[str] = "command_warnings"

    warnings: list[dict[str, Any]] = field(default_factory=list)


@dataclass
class AdminCommandEvent(BaseEvent):
    method: str
    path: str
    long_running: bool = False


@dataclass
class AdminCommandStartedEvent(AdminCommandEvent):
    name: ClassVar[str] = "admin_command_started"

    timeout_ms: int | None = None


@dataclass
class AdminCommandPollingEvent(AdminCommandEvent):
    name: ClassVar[str] = "admin_command_polling"

    poll_count: int = 0
    elapsed_ms: float = 0.0
    status: str | None = None


@dataclass
class AdminCommandSucceededEvent(AdminCommandEvent):
    name: ClassVar[str] = "admin_command_succeeded"

    duration_ms: float = 0.0
    body: Any = field(default=None, repr=False)


@dataclass
class AdminCommandFailedEvent(AdminCommandEvent):
    name: ClassVar[str] = "admin_command_failed"

    duration_ms: float = 0.0
    error: Exception | None = None


EVENT_TYPES: dict[str, type[BaseEvent]] = {
    cls.name: cls
    for cls in (
        CommandStartedEvent,
        CommandSucceededEvent,
        CommandFailedEvent,
        CommandWarningsEvent,
        AdminCommandStartedEvent,
        AdminCommandPollingEvent,
        AdminCommandSucceededEvent,
        AdminCommandFailedEvent,
    )
}


# =============================================================================
# Signal
# =============================================================================


@dataclass
class Signal:
    """
    Listener registry for one event name.

    Attributes:
        name: The event name (for debugging)
    """

    name: str
    _handlers: dict[type | None, list[Listener]] = field(default_factory=dict, repr=False)
    _lock: threading.RLock = field(default_factory=threading.RLock, repr=False)

    def connect(self, sender: type | Listener | None = None) -> Callable[[Listener], Listener] | Listener:
        """
        Connect a listener.

        Can be used as a decorator with or without a sender type:

            # Only events emitted by tables
            @hub.command_started.connect(Table)
            def on_table_command(event): ...

            # Every event
            @hub.command_started.connect
            def on_command(event): ...

        Or as a method call: ``hub.command_started.connect(Table)(listener)``.
        """

        def decorator(func: Listener) -> Listener:
            actual_sender: type | None = sender if isinstance(sender, type) else None

            with self._lock:
                handlers = self._handlers.setdefault(actual_sender, [])
                if func not in handlers:
                    handlers.append(func)

            return func

        # @signal.connect without parentheses: sender is the listener itself
        if sender is not None and callable(sender) and not isinstance(sender, type):
            return decorator(sender)

        return decorator

    def disconnect(self, receiver: Listener, sender: type | None = None) -> bool:
        """
        Disconnect a listener.

        Returns:
            True if the listener was found and removed, False otherwise.
        """
        with self._lock:
            handlers = self._handlers.get(sender)
            if handlers and receiver in handlers:
                handlers.remove(receiver)
                return True
        return False

    def disconnect_all(self, sender: type | None = None) -> int:
        """Disconnect every listener registered for ``sender``; returns how many were removed."""
        with self._lock:
            handlers = self._handlers.pop(sender, [])
            return len(handlers)

    def clear(self) -> None:
        with self._lock:
            self._handlers.clear()

    async def send(self, sender: type, event: BaseEvent) -> list[tuple[Listener, Exception | None]]:
        """
        Deliver ``event`` to the listeners for ``sender`` and to catch-all listeners.

        Async listeners run concurrently. A listener that raises is logged
        and reported in the returned list; it never propagates.

        Returns:
            List of (listener, exception_or_None) tuples.
        """
        handlers: list[Listener] = []

        with self._lock:
            handlers.extend(self._handlers.get(sender, ()))
            handlers.extend(self._handlers.get(None, ()))

        if not handlers:
            return []

        async def run_handler(handler: Listener) -> tuple[Listener, Exception | None]:
            try:
                result = handler(event)
                if inspect.isawaitable(result):
                    await result
                return (handler, None)
            except Exception as e:
                logger.exception(
                    f"Listener {getattr(handler, '__name__', handler)!r} raised an exception "
                    f"for event {self.name} from {sender.__name__}: {e}"
                )
                return (handler, e)

        results = await asyncio.gather(*(run_handler(h) for h in handlers))
        return list(results)

    @property
    def receivers(self) -> dict[type | None, list[Listener]]:
        with self._lock:
            return {k: list(v) for k, v in self._handlers.items()}

    def has_receivers(self, sender: type | None = None) -> bool:
        with self._lock:
            if sender is None:
                return any(self._handlers.values())
            return bool(self._handlers.get(sender)) or bool(self._handlers.get(None))


# =============================================================================
# Hub
# =============================================================================


class EventHub:
    """
    The per-object set of signals, one per event name, linked to a parent hub.

    Signals are reachable by attribute (``hub.command_failed``) or by name
    (``hub.on("command_failed")``).
    """

    def __init__(self, owner: type, parent: EventHub | None = None):
        self.owner = owner
        self.parent = parent
        self._signals = {name: Signal(name) for name in EVENT_TYPES}

    def __getattr__(self, name: str) -> Signal:
        signals = self.__dict__.get("_signals")
        if signals is not None and name in signals:
            return signals[name]
        raise AttributeError(f"{type(self).__name__!r} has no attribute or event {name!r}")

    def signal(self, name: str) -> Signal:
        try:
            return self._signals[name]
        except KeyError:
            raise ValueError(f"Unknown event {name!r}; expected one of {', '.join(self._signals)}") from None

    def on(self, name: str, sender: type | None = None) -> Callable[[Listener], Listener]:
        """Decorator registering a listener for ``name``."""
        return self.signal(name).connect(sender)  # type: ignore[return-value]

    def disconnect(self, name: str, listener: Listener, sender: type | None = None) -> bool:
        return self.signal(name).disconnect(listener, sender)

    def clear(self) -> None:
        for signal in self._signals.values():
            signal.clear()

    def child(self, owner: type) -> EventHub:
        return EventHub(owner, parent=self)

    def has_listeners(self, name: str) -> bool:
        hub: EventHub | None = self
        while hub is not None:
            if hub._signals[name].has_receivers():
                return True
            hub = hub.parent
        return False

    async def emit(self, event: BaseEvent, sender: type | None = None) -> None:
        """Deliver ``event`` here, then to each ancestor until propagation is stopped."""
        sender = sender or self.owner
        hub: EventHub | None = self
        while hub is not None and not event.propagation_stopped:
            await hub._signals[event.name].send(sender, event)
            hub = hub.parent

    def __repr__(self) -> str:
        return f"EventHub({self.owner.__name__})"


__all__ = [
    "EVENT_TYPES",
    "AdminCommandEvent",
    "AdminCommandFailedEvent",
    "AdminCommandPollingEvent",
    "AdminCommandStartedEvent",
    "AdminCommandSucceededEvent",
    "BaseEvent",
    "CommandEvent",
    "CommandFailedEvent",
    "CommandStartedEvent",
    "CommandSucceededEvent",
    "CommandWarningsEvent",
    "EventHub",
    "Listener",
    "Signal",
    "new_request_id",
]
