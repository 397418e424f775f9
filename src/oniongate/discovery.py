"""
Onion Address Discovery

The helper generates the onion service keys on its own schedule, so the
address is learned by polling a query subcommand until it prints one.
The first well-formed address is published into the shared cell; if none
shows up before the deadline the address simply stays unknown.
"""

import logging
import re
import subprocess
import time
from typing import Awaitable, Callable, Optional, Sequence

import anyio

from oniongate.address import SharedAddressCell
from oniongate.runtime.backends import run_query

logger = logging.getLogger(__name__)

ONION_ADDRESS_RE = re.compile(r"[a-z2-7]{56}\.onion")

DEFAULT_INITIAL_DELAY = 2.0
DEFAULT_TIMEOUT = 30.0
DEFAULT_RETRY_INTERVAL = 5.0

QueryRunner = Callable[[Sequence[str]], Awaitable[subprocess.CompletedProcess]]


def find_onion_address(output: str) -> Optional[str]:
    """
    Return the first line of ``output`` that is exactly a v3 onion address.

    Lines are stripped before matching; anything else on the line, a wrong
    length or an upper-case character disqualifies it.
    """
    for line in output.splitlines():
        candidate = line.strip()
        if ONION_ADDRESS_RE.fullmatch(candidate):
            return candidate
    return None


class AddressDiscoveryTask:
    """Polls the helper's query command and publishes the onion address."""

    def __init__(
        self,
        command: Sequence[str],
        cell: SharedAddressCell,
        runner: QueryRunner = run_query,
        initial_delay: float = DEFAULT_INITIAL_DELAY,
        timeout: float = DEFAULT_TIMEOUT,
        retry_interval: float = DEFAULT_RETRY_INTERVAL,
    ):
        self.command = list(command)
        self.cell = cell
        self.runner = runner
        self.initial_delay = initial_delay
        self.timeout = timeout
        self.retry_interval = retry_interval
        self.attempts = 0

    async def run(self) -> Optional[str]:
        """
        Poll until an address is found or the deadline passes.

        :returns: The published address, or ``None`` if discovery gave up
        """
        await anyio.sleep(self.initial_delay)
        deadline = time.monotonic() + self.timeout

        while True:
            address = await self._attempt()
            if address is not None:
                self.cell.set(address)
                logger.info(f"[discovery] onion address: {address}")
                return address

            if time.monotonic() >= deadline:
                logger.warning(f"[discovery] no onion address after {self.attempts} attempts, giving up")
                return None

            await anyio.sleep(self.retry_interval)

    async def _attempt(self) -> Optional[str]:
        self.attempts += 1
        try:
            result = await self.runner(self.command)
        except OSError as e:
            logger.warning(f"[discovery] query attempt {self.attempts} could not run: {e}")
            return None

        if result.returncode != 0:
            logger.debug(f"[discovery] query attempt {self.attempts} exited with status {result.returncode}")
            return None

        stdout = result.stdout
        if isinstance(stdout, bytes):
            stdout = stdout.decode("utf-8", errors="replace")

        address = find_onion_address(stdout or "")
        if address is None:
            logger.debug(f"[discovery] query attempt {self.attempts} printed no onion address")
        return address
