"""
Process-wide change feed.

Row-level INSERT/UPDATE/DELETE events are published here after the database
transaction that produced them commits. Consumers never talk to the feed
directly: a ``SubscriptionManager`` opens one ``FeedChannel`` per distinct
(table, filter) pair and the channel delivers matching events, in publish
order, on the event loop that opened it.
"""

from __future__ import annotations

import asyncio
import inspect
import logging
import threading
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Awaitable, Callable, Union

from handoff.utils.dates import utcnow

logger = logging.getLogger("handoff.realtime.feed")


class ChangeEventType(str, Enum):
    INSERT = "INSERT"
    UPDATE = "UPDATE"
    DELETE = "DELETE"


@dataclass(frozen=True)
class ChangeEvent:
    table: str
    event_type: ChangeEventType
    record: dict[str, Any]
    old_record: dict[str, Any] | None = None
    commit_timestamp: datetime = field(default_factory=utcnow)

    @property
    def row(self) -> dict[str, Any]:
        """The row the event is about: the old values for deletes."""
        if self.event_type == ChangeEventType.DELETE:
            return self.old_record or self.record
        return self.record


EventHandler = Callable[[ChangeEvent], Union[None, Awaitable[None]]]


def _as_filter_value(value: Any) -> str:
    if isinstance(value, bool):
        return "true" if value else "false"
    if value is None:
        return "null"
    return str(value)


@dataclass(frozen=True)
class RowFilter:
    """Equality filter written as ``column=eq.value`` (or ``column=value``)."""

    column: str
    value: str

    @classmethod
    def parse(cls, expression: str | None) -> RowFilter | None:
        if expression is None or not expression.strip():
            return None
        column, sep, raw = expression.strip().partition("=")
        column = column.strip()
        if not sep or not column:
            raise ValueError(f"Invalid filter expression: {expression!r}")
        raw = raw.strip()
        if raw.startswith("eq."):
            raw = raw[3:]
        if not raw:
            raise ValueError(f"Invalid filter expression: {expression!r}")
        return cls(column=column, value=raw)

    @property
    def expression(self) -> str:
        return f"{self.column}=eq.{self.value}"

    def matches(self, row: dict[str, Any]) -> bool:
        if self.column not in row:
            return False
        return _as_filter_value(row[self.column]) == self.value


def normalize_filter(expression: str | None) -> str | None:
    parsed = RowFilter.parse(expression)
    return parsed.expression if parsed else None


class FeedChannel:
    """One feed connection for a (table, filter) pair, bound to one event loop."""

    def __init__(
        self,
        table: str,
        filter_expression: str | None = None,
        loop: asyncio.AbstractEventLoop | None = None,
    ) -> None:
        self.table = table
        self.row_filter = RowFilter.parse(filter_expression)
        self.loop = loop or asyncio.get_running_loop()
        self.queue: asyncio.Queue[ChangeEvent] = asyncio.Queue()
        self.listeners: list[EventHandler] = []
        self.task: asyncio.Task | None = None
        self.closed = False

    @property
    def key(self) -> tuple[str, str | None]:
        return self.table, self.row_filter.expression if self.row_filter else None

    def matches(self, event: ChangeEvent) -> bool:
        if event.table != self.table:
            return False
        if self.row_filter is None:
            return True
        if self.row_filter.matches(event.row):
            return True
        # An update that moves a row out of the filter is still relevant to it.
        return bool(event.old_record) and self.row_filter.matches(event.old_record)

    def start(self) -> None:
        if self.task is None:
            self.task = self.loop.create_task(self._drain(), name=f"feed:{self.table}")

    def offer(self, event: ChangeEvent) -> None:
        """Queue an event for delivery. Safe to call from any thread."""
        if self.closed or self.loop.is_closed():
            return
        try:
            self.loop.call_soon_threadsafe(self._enqueue, event)
        except RuntimeError:
            logger.debug("Event loop of channel %s is gone, dropping event", self.key)

    def _enqueue(self, event: ChangeEvent) -> None:
        if not self.closed:
            self.queue.put_nowait(event)

    async def join(self) -> None:
        """Wait until every queued event has been handed to the listeners."""
        await asyncio.sleep(0)
        if not self.closed:
            await self.queue.join()

    async def _drain(self) -> None:
        while True:
            event = await self.queue.get()
            try:
                for listener in list(self.listeners):
                    if self.closed:
                        break
                    try:
                        result = listener(event)
                        if inspect.isawaitable(result):
                            await result
                    except asyncio.CancelledError:
                        raise
                    except Exception:
                        logger.exception("Change handler failed on %s", self.key)
            finally:
                self.queue.task_done()

    def close(self) -> None:
        if self.closed:
            return
        self.closed = True
        task = self.task
        if task is None or task.done():
            return
        try:
            running = asyncio.get_running_loop()
        except RuntimeError:
            running = None
        if running is self.loop:
            task.cancel()
        elif not self.loop.is_closed():
            self.loop.call_soon_threadsafe(task.cancel)


class ChangeFeed:
    def __init__(self) -> None:
        self._channels: set[FeedChannel] = set()
        self._lock = threading.Lock()

    @property
    def channel_count(self) -> int:
        with self._lock:
            return len(self._channels)

    def attach(self, channel: FeedChannel) -> None:
        with self._lock:
            self._channels.add(channel)

    def detach(self, channel: FeedChannel) -> None:
        with self._lock:
            self._channels.discard(channel)

    def publish(self, event: ChangeEvent) -> int:
        """Fan an event out to every matching channel. Returns the match count."""
        with self._lock:
            targets = [channel for channel in self._channels if channel.matches(event)]
        for channel in targets:
            channel.offer(event)
        if targets:
            logger.debug("%s on %s delivered to %d channel(s)", event.event_type.value, event.table, len(targets))
        return len(targets)
