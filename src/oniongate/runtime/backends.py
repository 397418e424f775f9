"""
Runtime Backend Implementations

Concrete process launchers built on AnyIO subprocess primitives.
"""

import logging
import subprocess
from typing import Optional, Sequence

import anyio
import anyio.abc

from oniongate.runtime.core import HelperProcess, ProcessLauncher
from oniongate.runtime.data import HelperLaunchError

logger = logging.getLogger(__name__)


class AnyIOHelperProcess(HelperProcess):
    """HelperProcess wrapping an ``anyio.abc.Process``."""

    def __init__(self, process: anyio.abc.Process):
        self._process = process

    @property
    def pid(self) -> Optional[int]:
        return self._process.pid

    @property
    def returncode(self) -> Optional[int]:
        return self._process.returncode

    async def wait(self) -> int:
        try:
            return await self._process.wait()
        finally:
            if self._process.returncode is not None:
                await self._process.aclose()

    def kill(self) -> None:
        if self._process.returncode is not None:
            return
        try:
            self._process.kill()
        except ProcessLookupError:
            # Exited between the returncode check and the signal
            logger.debug(f"[backend] pid={self.pid} already gone when killed")


class AnyIOProcessLauncher(ProcessLauncher):
    """
    Launches the helper with ``anyio.open_process``.

    The helper's stdin is closed and its stdout/stderr are inherited so its
    own logging lands next to ours.
    """

    async def launch(self, command: Sequence[str]) -> HelperProcess:
        try:
            process = await anyio.open_process(
                list(command),
                stdin=subprocess.DEVNULL,
                stdout=None,
                stderr=None,
            )
        except OSError as e:
            raise HelperLaunchError(f"Unable to launch {command[0]!r}: {e}") from e

        logger.debug(f"[backend] launched {command[0]} pid={process.pid}")
        return AnyIOHelperProcess(process)


async def run_query(command: Sequence[str]) -> subprocess.CompletedProcess:
    """
    Run a short-lived command to completion and capture its output.

    A non-zero exit status is returned, not raised.

    :raises OSError: If the command cannot be started
    """
    return await anyio.run_process(list(command), check=False)
