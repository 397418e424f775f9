"""
Service Orchestrator

Binds both listeners, starts address discovery, the helper supervisor and
the signal forwarder, serves until shutdown, and folds the results into a
single outcome for the process.

Startup order matters: both sockets are bound before anything else starts,
so a bind failure leaves nothing running. Shutdown comes from a signal or
from the supervisor giving up; listeners drain, the helper is killed and
reaped, and the supervisor's outcome decides the exit status.
"""

import asyncio
import logging
import socket
from typing import List, Optional

import anyio

from oniongate.address import SharedAddressCell
from oniongate.config import Settings
from oniongate.discovery import AddressDiscoveryTask, QueryRunner
from oniongate.listener import ListenerRunner, bind_listener
from oniongate.pages import onion_routes, public_routes
from oniongate.runtime.backends import AnyIOProcessLauncher, run_query
from oniongate.runtime.core import ProcessLauncher
from oniongate.runtime.data import (
    SupervisorOutcome, ServiceRuntimeError, StartupError
)
from oniongate.shutdown import ShutdownBroadcaster
from oniongate.signals import SignalForwarder
from oniongate.supervisor import ProcessSupervisor

logger = logging.getLogger(__name__)


class Orchestrator:
    """
    Owns every component for one run of the service.

    The broadcaster and address cell are exposed so callers (and tests) can
    request shutdown or inspect the discovered address.
    """

    def __init__(
        self,
        settings: Settings,
        launcher: Optional[ProcessLauncher] = None,
        query_runner: QueryRunner = run_query,
        handle_signals: bool = True,
    ):
        self.settings = settings
        self.launcher = launcher or AnyIOProcessLauncher()
        self.query_runner = query_runner
        self.handle_signals = handle_signals

        self.address_cell = SharedAddressCell()
        self.broadcaster = ShutdownBroadcaster()
        self.supervisor: Optional[ProcessSupervisor] = None
        self.onion_socket: Optional[socket.socket] = None
        self.public_socket: Optional[socket.socket] = None

        self._started = asyncio.Event()

    async def wait_started(self) -> None:
        """Wait until both listeners are bound and the helper is supervised."""
        await self._started.wait()

    def bind(self) -> None:
        """
        Bind both listener sockets.

        :raises StartupError: If either socket cannot be bound; a socket
            bound before the failure is closed again
        """
        s = self.settings
        self.onion_socket = bind_listener(s.onion_host, s.onion_port, "onion")
        try:
            self.public_socket = bind_listener(s.public_host, s.public_port, "public")
        except StartupError:
            self.onion_socket.close()
            self.onion_socket = None
            raise

    async def run(self) -> None:
        """
        Run the service until shutdown.

        :raises StartupError: If startup fails; nothing is left running
        :raises ServiceRuntimeError: If a listener fails, the helper
            restart budget is exhausted or the supervisor cannot be joined
        """
        s = self.settings
        self.bind()

        discovery = AddressDiscoveryTask(
            s.query_command,
            self.address_cell,
            runner=self.query_runner,
            initial_delay=s.discovery_initial_delay,
            timeout=s.discovery_timeout,
            retry_interval=s.discovery_retry_interval,
        )
        discovery_task = asyncio.create_task(discovery.run(), name="address-discovery")

        broadcaster = self.broadcaster
        self.supervisor = ProcessSupervisor(
            s.helper_command,
            self.launcher,
            broadcaster.subscribe("supervisor"),
            broadcaster,
            max_attempts=s.max_attempts,
            backoff=s.restart_backoff,
        )
        listeners = [
            (ListenerRunner("onion", self.onion_socket, onion_routes(self.address_cell), s.shutdown_timeout),
             broadcaster.subscribe("onion listener")),
            (ListenerRunner("public", self.public_socket,
                            public_routes(self.address_cell, self.supervisor), s.shutdown_timeout),
             broadcaster.subscribe("public listener")),
        ]

        supervisor_task: Optional[asyncio.Task] = None
        try:
            async with anyio.create_task_group() as tg:
                if self.handle_signals:
                    forwarder = SignalForwarder(broadcaster, broadcaster.subscribe("signal forwarder"))
                    await tg.start(forwarder.run)

                supervisor_task = asyncio.create_task(self.supervisor.run(), name="helper-supervisor")
                supervisor_task.add_done_callback(self._on_supervisor_done)
                self._started.set()

                errors = await self._serve(listeners)
                outcome = await self._join_supervisor(supervisor_task)
        finally:
            if supervisor_task is not None and not supervisor_task.done():
                # Unexpected exit path: still kill and reap the helper
                broadcaster.fire("orchestrator exiting")
                with anyio.CancelScope(shield=True):
                    await self._join_supervisor(supervisor_task)
            if not discovery_task.done():
                discovery_task.cancel()
            for sock in (self.onion_socket, self.public_socket):
                sock.close()

        if errors:
            if outcome is not None:
                logger.info(f"[orchestrator] helper supervisor finished: {outcome.value}")
            raise errors[0]

        if outcome is None:
            raise ServiceRuntimeError("Unable to join the helper supervisor task")
        if outcome is SupervisorOutcome.FAILED:
            raise ServiceRuntimeError(
                f"Helper process failed {self.supervisor.attempts} times, restart budget exhausted"
            )
        logger.info("[orchestrator] shutdown complete")

    async def _serve(self, listeners) -> List[ServiceRuntimeError]:
        """Run all listeners to completion, collecting their runtime errors."""
        errors: List[ServiceRuntimeError] = []

        async def serve_one(runner: ListenerRunner, subscription) -> None:
            try:
                await runner.run(subscription)
            except ServiceRuntimeError as e:
                logger.error(f"[orchestrator] {e}")
                errors.append(e)
                # Stop the peer listener and the helper as well
                self.broadcaster.fire(f"{runner.label} endpoint failed")

        async with anyio.create_task_group() as tg:
            for runner, subscription in listeners:
                tg.start_soon(serve_one, runner, subscription)
        return errors

    def _on_supervisor_done(self, task: asyncio.Task) -> None:
        # A crashed supervisor would otherwise leave the listeners serving forever
        if not task.cancelled() and task.exception() is not None:
            self.broadcaster.fire("helper supervisor crashed")

    async def _join_supervisor(self, task: asyncio.Task) -> Optional[SupervisorOutcome]:
        try:
            return await task
        except Exception:
            logger.exception("[orchestrator] helper supervisor task crashed")
            return None
