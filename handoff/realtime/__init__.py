from handoff.realtime.feed import ChangeEvent, ChangeEventType, ChangeFeed, FeedChannel, RowFilter
from handoff.realtime.subscriptions import ReloadTrigger, SubscriptionHandle, SubscriptionManager

# Shared by the commit hooks and every live session in this process.
change_feed = ChangeFeed()

__all__ = [
    "ChangeEvent",
    "ChangeEventType",
    "ChangeFeed",
    "FeedChannel",
    "RowFilter",
    "ReloadTrigger",
    "SubscriptionHandle",
    "SubscriptionManager",
    "change_feed",
]
