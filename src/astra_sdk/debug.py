"""
Command capture for debugging and profiling.

``CommandLogger`` collects every Data API command issued inside its
``async with`` block, failed ones included::

    from astra_sdk.debug import CommandLogger

    async with CommandLogger() as log:
        await users.insert_one({"name": "Ada"})
        rows = await users.find({}).to_list()

    print(log.by_command())          # {"insertOne": 1, "find": 1}
    for c in log.slowest(3):
        print(f"{c.command_name} on {c.target}: {c.duration_ms:.1f}ms")
"""

from __future__ import annotations

import time
from collections import Counter
from contextvars import ContextVar, Token
from dataclasses import dataclass
from typing import Any, Callable, Self

_current: ContextVar[CommandLogger | None] = ContextVar("astra_command_logger", default=None)


@dataclass(frozen=True)
class CommandLog:
    """One command as seen by the transport."""

    command_name: str
    target: str
    duration_ms: float
    error: Exception | None = None

    @property
    def succeeded(self) -> bool:
        return self.error is None

    def __repr__(self) -> str:
        outcome = "" if self.succeeded else f", failed: {type(self.error).__name__}"
        return f"CommandLog({self.command_name!r} on {self.target}, {self.duration_ms:.1f}ms{outcome})"


class CommandLogger:
    """
    Collects ``CommandLog`` entries for commands issued in its block.

    Capture follows the ``contextvars`` context, so tasks spawned inside the
    block are included and an inner logger hides commands from an outer one.
    """

    def __init__(self) -> None:
        self.commands: list[CommandLog] = []
        self._token: Token[CommandLogger | None] | None = None

    async def __aenter__(self) -> Self:
        self._token = _current.set(self)
        return self

    async def __aexit__(self, *exc: Any) -> None:
        if self._token is not None:
            _current.reset(self._token)
            self._token = None

    def append(self, entry: CommandLog) -> None:
        self.commands.append(entry)

    @property
    def total_commands(self) -> int:
        return len(self.commands)

    @property
    def total_ms(self) -> float:
        return sum(c.duration_ms for c in self.commands)

    @property
    def failed(self) -> list[CommandLog]:
        return [c for c in self.commands if not c.succeeded]

    def by_command(self) -> dict[str, int]:
        """How many times each command name was issued, most frequent first."""
        return dict(Counter(c.command_name for c in self.commands).most_common())

    def slowest(self, n: int = 5) -> list[CommandLog]:
        return sorted(self.commands, key=lambda c: c.duration_ms, reverse=True)[:n]

    def __repr__(self) -> str:
        return f"CommandLogger({self.total_commands} commands, {self.total_ms:.1f}ms)"


def record_command(entry: CommandLog) -> None:
    """Hand ``entry`` to the logger active in this context, if there is one."""
    active = _current.get()
    if active is not None:
        active.append(entry)


def stopwatch() -> Callable[[], float]:
    """Start timing; the returned function gives the milliseconds elapsed so far."""
    start = time.perf_counter()
    return lambda: (time.perf_counter() - start) * 1000.0


__all__ = ["CommandLog", "CommandLogger", "record_command", "stopwatch"]
