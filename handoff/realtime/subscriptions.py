from __future__ import annotations

import asyncio
import logging
from typing import Awaitable, Callable

from handoff.realtime.feed import ChangeEvent, ChangeFeed, EventHandler, FeedChannel, normalize_filter

logger = logging.getLogger("handoff.realtime.subscriptions")

ChannelKey = tuple[str, str | None]


class SubscriptionHandle:
    def __init__(self, manager: SubscriptionManager, key: ChannelKey, handler: EventHandler) -> None:
        self._manager = manager
        self.key = key
        self.handler = handler
        self._active = True

    @property
    def active(self) -> bool:
        return self._active

    def unsubscribe(self) -> None:
        """Stop delivery to this subscriber. Calling it again does nothing."""
        if not self._active:
            return
        self._active = False
        self._manager._release(self)


class SubscriptionManager:
    """Per-session view over the change feed.

    Subscribers asking for the same (table, filter) pair share one channel.
    The channel is detached from the feed when its last subscriber leaves.
    """

    def __init__(self, feed: ChangeFeed, name: str = "session") -> None:
        self.feed = feed
        self.name = name
        self._channels: dict[ChannelKey, FeedChannel] = {}
        self._handles: set[SubscriptionHandle] = set()

    @property
    def channel_count(self) -> int:
        return len(self._channels)

    @property
    def subscription_count(self) -> int:
        return len(self._handles)

    def subscribe(self, table: str, filter_expression: str | None, on_event: EventHandler) -> SubscriptionHandle:
        key = (table, normalize_filter(filter_expression))
        channel = self._channels.get(key)
        if channel is None:
            channel = FeedChannel(table, key[1])
            channel.start()
            self.feed.attach(channel)
            self._channels[key] = channel
            logger.debug("[%s] opened channel %s", self.name, key)

        # Wrap so the same callable can be registered twice and removed once.
        def deliver(event: ChangeEvent, _handler: EventHandler = on_event):
            return _handler(event)

        channel.listeners.append(deliver)
        handle = SubscriptionHandle(self, key, deliver)
        self._handles.add(handle)
        return handle

    def _release(self, handle: SubscriptionHandle) -> None:
        self._handles.discard(handle)
        channel = self._channels.get(handle.key)
        if channel is None:
            return
        if handle.handler in channel.listeners:
            channel.listeners.remove(handle.handler)
        if not channel.listeners:
            self.feed.detach(channel)
            channel.close()
            del self._channels[handle.key]
            logger.debug("[%s] closed channel %s", self.name, handle.key)

    async def drain(self) -> None:
        """Wait for every event already published to reach its subscribers."""
        for channel in list(self._channels.values()):
            await channel.join()

    def close(self) -> None:
        for handle in list(self._handles):
            handle.unsubscribe()


class ReloadTrigger:
    """Turns change events into reloads, coalescing bursts.

    At most one reload runs at a time. Events arriving while one is pending or
    running cause exactly one follow-up reload.
    """

    def __init__(self, reload: Callable[[], Awaitable[None]], name: str = "reload") -> None:
        self._reload = reload
        self.name = name
        self._dirty = False
        self._closed = False
        self._task: asyncio.Task | None = None
        self.runs = 0

    def __call__(self, event: ChangeEvent | None = None) -> None:
        if self._closed:
            return
        self._dirty = True
        if self._task is None or self._task.done():
            self._task = asyncio.get_running_loop().create_task(self._run(), name=f"reload:{self.name}")

    async def _run(self) -> None:
        while self._dirty and not self._closed:
            # Let events already queued on this loop pile up first.
            await asyncio.sleep(0)
            self._dirty = False
            self.runs += 1
            try:
                await self._reload()
            except asyncio.CancelledError:
                raise
            except Exception:
                logger.exception("Reload %s failed", self.name)

    async def wait(self) -> None:
        task = self._task
        if task is not None and not task.done():
            await asyncio.wait({task})

    def cancel(self) -> None:
        self._closed = True
        if self._task is not None and not self._task.done():
            self._task.cancel()
