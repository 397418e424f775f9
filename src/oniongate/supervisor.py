"""
Helper Process Supervisor

Keeps the external helper (arti) running for the lifetime of the service.
An exit of any kind is treated as a crash and restarted after a fixed
backoff; once the restart budget is spent the supervisor gives up and
requests a global shutdown. A shutdown notification kills the helper and
ends supervision cleanly.
"""

import asyncio
import logging
from typing import List, Optional, Sequence

import anyio

from oniongate.runtime.core import HelperProcess, ProcessLauncher
from oniongate.runtime.data import (
    SupervisorState, SupervisorOutcome, HelperExit, HelperLaunchError, TERMINAL_STATES
)
from oniongate.shutdown import ShutdownBroadcaster, Subscription

logger = logging.getLogger(__name__)

DEFAULT_MAX_ATTEMPTS = 5
DEFAULT_BACKOFF = 3.0


class ProcessSupervisor:
    """
    Supervises a single helper process with a bounded restart budget.

    The attempt counter starts at zero and grows by one after every launch
    failure or helper exit; it never resets during a session. Launching
    with ``attempts >= max_attempts`` moves the supervisor to ``FAILED``.
    """

    def __init__(
        self,
        command: Sequence[str],
        launcher: ProcessLauncher,
        subscription: Subscription,
        broadcaster: ShutdownBroadcaster,
        max_attempts: int = DEFAULT_MAX_ATTEMPTS,
        backoff: float = DEFAULT_BACKOFF,
    ):
        self.command = list(command)
        self.launcher = launcher
        self.max_attempts = max_attempts
        self.backoff = backoff

        self._subscription = subscription
        self._broadcaster = broadcaster

        self.state = SupervisorState.IDLE
        self.attempts = 0
        self.exits: List[HelperExit] = []
        self._process: Optional[HelperProcess] = None

    @property
    def process(self) -> Optional[HelperProcess]:
        """The helper currently owned by the supervisor, if any."""
        return self._process

    @property
    def finished(self) -> bool:
        """True once supervision has stopped or given up."""
        return self.state in TERMINAL_STATES

    def _transition(self, state: SupervisorState) -> None:
        logger.debug(f"[supervisor] {self.state.value} -> {state.value} (attempts={self.attempts})")
        self.state = state

    async def run(self) -> SupervisorOutcome:
        """
        Run the supervision loop until shutdown or budget exhaustion.

        :returns: ``STOPPED`` after a clean shutdown, ``FAILED`` once the
            restart budget has been exceeded
        """
        while True:
            if self._subscription.is_set():
                return self._stopped()

            self._transition(SupervisorState.LAUNCHING)
            if self.attempts >= self.max_attempts:
                return self._failed()

            try:
                process = await self.launcher.launch(self.command)
            except HelperLaunchError as e:
                logger.error(f"[supervisor] launch attempt {self.attempts + 1} failed: {e}")
                if await self._backoff():
                    return self._stopped()
                continue

            self._process = process
            self._transition(SupervisorState.RUNNING)
            logger.info(f"[supervisor] helper running pid={process.pid} "
                        f"(attempt {self.attempts + 1}/{self.max_attempts})")

            returncode = await self._race(process)
            self._process = None

            if returncode is None:
                return self._stopped()

            self.exits.append(HelperExit(attempt=self.attempts, returncode=returncode, pid=process.pid))
            self._transition(SupervisorState.EXITED)
            if returncode == 0:
                logger.warning(f"[supervisor] helper pid={process.pid} exited cleanly, restarting")
            else:
                logger.error(f"[supervisor] helper pid={process.pid} exited with status {returncode}")

            if await self._backoff():
                return self._stopped()

    async def _race(self, process: HelperProcess) -> Optional[int]:
        """
        Wait for the helper to exit or for shutdown, whichever comes first.

        :returns: The helper's exit status, or ``None`` if shutdown won and
            the helper was killed and reaped
        """
        exit_task = asyncio.ensure_future(process.wait())
        shutdown_task = asyncio.ensure_future(self._subscription.wait())
        try:
            await asyncio.wait({exit_task, shutdown_task}, return_when=asyncio.FIRST_COMPLETED)
        except asyncio.CancelledError:
            process.kill()
            with anyio.CancelScope(shield=True):
                await exit_task
            raise
        finally:
            shutdown_task.cancel()

        # Shutdown takes precedence even when the helper died at the same time
        if not self._subscription.is_set():
            return exit_task.result()

        self._transition(SupervisorState.SHUTTING_DOWN)
        logger.info(f"[supervisor] shutdown requested, killing helper pid={process.pid}")
        process.kill()
        returncode = await exit_task
        logger.info(f"[supervisor] helper pid={process.pid} reaped (status {returncode})")
        return None

    async def _backoff(self) -> bool:
        """
        Sleep the fixed backoff, then count the attempt.

        :returns: True if shutdown arrived during the wait
        """
        with anyio.move_on_after(self.backoff):
            await self._subscription.wait()
        self.attempts += 1
        return self._subscription.is_set()

    def _stopped(self) -> SupervisorOutcome:
        self._transition(SupervisorState.STOPPED)
        logger.info("[supervisor] stopped")
        return SupervisorOutcome.STOPPED

    def _failed(self) -> SupervisorOutcome:
        self._transition(SupervisorState.FAILED)
        logger.error(f"[supervisor] helper failed {self.attempts} times, giving up")
        self._broadcaster.fire("helper restart budget exhausted")
        return SupervisorOutcome.FAILED
