"""In-process publish/subscribe with glob channel patterns.

Delivery is synchronous: `publish` calls every matching listener in-line and returns once they all
returned. A listener that raises aborts the publish and the exception reaches the publisher.
"""

import logging
from collections.abc import Callable
from typing import Any

from kv_structures.utils.glob import glob_match, has_wildcard

logger = logging.getLogger(__name__)

Listener = Callable[[Any, str], object]
"""Called as `listener(message, channel)`."""


class PubSubBroker:
    """A per-store registry mapping channels or channel patterns to their listeners."""

    def __init__(self) -> None:
        self._subscriptions: dict[str, dict[Listener, None]] = {}

    def subscribe(self, channel: str, listener: Listener) -> int:
        """Register a listener on a channel or glob pattern.

        Subscribing the same listener twice to one channel has no effect.

        Returns:
            The number of listeners now registered on the channel.
        """
        listeners = self._subscriptions.setdefault(channel, {})
        listeners[listener] = None

        logger.debug("Subscribed listener to %r (%d listeners)", channel, len(listeners))
        return len(listeners)

    def unsubscribe(self, channel: str, listener: Listener | None = None) -> int:
        """Remove one listener from a channel, or every listener when `listener` is None.

        Returns:
            The number of listeners removed.
        """
        listeners = self._subscriptions.get(channel)

        if listeners is None:
            return 0

        if listener is None:
            removed = len(listeners)
            listeners.clear()
        elif listener in listeners:
            removed = 1
            del listeners[listener]
        else:
            removed = 0

        if not listeners:
            del self._subscriptions[channel]

        logger.debug("Unsubscribed %d listener(s) from %r", removed, channel)
        return removed

    def publish(self, channel: str, message: Any) -> int:
        """Deliver a message to the channel's listeners and to every matching pattern's listeners.

        Exact subscribers are called first, then the listeners of each other registered wildcard pattern
        that matches `channel`, in registration order.

        Returns:
            The number of deliveries made.
        """
        delivered: int = 0

        for listener in list(self._subscriptions.get(channel, {})):
            listener(message, channel)
            delivered += 1

        for pattern, listeners in list(self._subscriptions.items()):
            if pattern == channel or not has_wildcard(pattern) or not glob_match(pattern, channel):
                continue

            for listener in list(listeners):
                listener(message, channel)
                delivered += 1

        return delivered

    def subscriber_count(self, channel: str) -> int:
        return len(self._subscriptions.get(channel, {}))

    def channels(self) -> list[str]:
        return list(self._subscriptions)

    def clear(self) -> None:
        self._subscriptions.clear()
