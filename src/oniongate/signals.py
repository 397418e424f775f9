"""
Signal forwarding.

Maps SIGINT and SIGTERM onto the shutdown broadcast.
"""

import logging
import signal
from typing import Sequence

import anyio
from anyio.abc import TaskStatus

from oniongate.shutdown import ShutdownBroadcaster, Subscription

logger = logging.getLogger(__name__)

SHUTDOWN_SIGNALS = (signal.SIGINT, signal.SIGTERM)


class SignalForwarder:
    """
    Fires the broadcaster when one of ``signals`` is delivered.

    Handlers are installed for as long as ``run()`` is active; it returns
    once shutdown has been broadcast, whatever the source.
    """

    def __init__(
        self,
        broadcaster: ShutdownBroadcaster,
        subscription: Subscription,
        signals: Sequence[signal.Signals] = SHUTDOWN_SIGNALS,
    ):
        self._broadcaster = broadcaster
        self._subscription = subscription
        self.signals = tuple(signals)

    async def run(self, *, task_status: TaskStatus = anyio.TASK_STATUS_IGNORED) -> None:
        with anyio.open_signal_receiver(*self.signals) as received:
            async with anyio.create_task_group() as tg:
                async def forward():
                    async for signum in received:
                        name = signal.Signals(signum).name
                        logger.info(f"[signals] received {name}")
                        self._broadcaster.fire(name)

                tg.start_soon(forward)
                task_status.started()

                await self._subscription.wait()
                tg.cancel_scope.cancel()
