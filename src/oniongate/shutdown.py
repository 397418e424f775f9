"""
Shutdown Broadcast

One-shot, multi-subscriber shutdown notification. Either a signal or the
helper supervisor fires it; listeners, the signal forwarder and the
supervisor each hold a subscription and react once it resolves.
"""

import asyncio
import logging
import threading
from typing import List, Optional

logger = logging.getLogger(__name__)


class Subscription:
    """
    Handle that resolves once the broadcaster has fired.

    Bound to the event loop it was created on. Awaiting ``wait()`` after the
    firing returns immediately.
    """

    def __init__(self, loop: asyncio.AbstractEventLoop, name: Optional[str] = None):
        self._loop = loop
        self._event = asyncio.Event()
        self.name = name

    def is_set(self) -> bool:
        return self._event.is_set()

    async def wait(self) -> None:
        await self._event.wait()

    def _notify(self) -> None:
        try:
            running = asyncio.get_running_loop()
        except RuntimeError:
            running = None

        if running is self._loop:
            self._event.set()
        elif self._loop.is_closed():
            logger.debug(f"[shutdown] loop closed, dropping notification for {self.name}")
        else:
            self._loop.call_soon_threadsafe(self._event.set)

    def __repr__(self):
        return f"Subscription(name={self.name!r}, set={self.is_set()})"


class ShutdownBroadcaster:
    """
    Fire-once shutdown event with any number of subscribers.

    ``fire()`` may be called from any thread, any number of times; only the
    first call has an effect. Subscribers created after the firing are
    resolved on creation.
    """

    def __init__(self):
        self._lock = threading.Lock()
        self._fired = False
        self._reason: Optional[str] = None
        self._subscriptions: List[Subscription] = []

    @property
    def fired(self) -> bool:
        with self._lock:
            return self._fired

    @property
    def reason(self) -> Optional[str]:
        with self._lock:
            return self._reason

    def subscribe(self, name: Optional[str] = None) -> Subscription:
        """
        Create a subscription on the running event loop.

        :param name: Label used in log messages
        :raises RuntimeError: If called outside a running event loop
        """
        subscription = Subscription(asyncio.get_running_loop(), name)
        with self._lock:
            self._subscriptions.append(subscription)
            fired = self._fired

        if fired:
            subscription._notify()
        return subscription

    def fire(self, reason: Optional[str] = None) -> bool:
        """
        Request shutdown.

        :param reason: Why shutdown was requested, for logging
        :returns: True if this call fired the broadcast, False if it had
            already been fired
        """
        with self._lock:
            if self._fired:
                return False
            self._fired = True
            self._reason = reason
            subscriptions = list(self._subscriptions)

        logger.info(f"[shutdown] shutdown requested ({reason or 'no reason given'})")
        for subscription in subscriptions:
            subscription._notify()
        return True
