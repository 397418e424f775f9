"""
Fake processes, launchers and query runners shared by the test suites.

The supervisor only sees the ``ProcessLauncher``/``HelperProcess`` pair, so
these fakes let tests script helper lifetimes without spawning anything.
"""

import asyncio
import subprocess
from typing import List, Optional, Sequence

from oniongate.runtime.core import HelperProcess, ProcessLauncher
from oniongate.runtime.data import HelperLaunchError

# 56 characters from [a-z2-7] followed by .onion
ONION = "abcdefghijklmnopqrstuvwxyz234567" + "abcdefghijklmnopqrstuvwx" + ".onion"

KILLED = -9


class FakeProcess(HelperProcess):
    """Helper stand-in that exits after ``exit_after`` seconds, or never."""

    def __init__(self, pid: int, exit_after: Optional[float] = None, returncode: int = 1):
        self._pid = pid
        self._returncode: Optional[int] = None
        self._exited = asyncio.Event()
        self.killed = False
        if exit_after is not None:
            asyncio.get_running_loop().call_later(exit_after, self._finish, returncode)

    @property
    def pid(self) -> Optional[int]:
        return self._pid

    @property
    def returncode(self) -> Optional[int]:
        return self._returncode

    def _finish(self, returncode: int) -> None:
        if self._returncode is None:
            self._returncode = returncode
            self._exited.set()

    async def wait(self) -> int:
        await self._exited.wait()
        return self._returncode

    def kill(self) -> None:
        self.killed = True
        self._finish(KILLED)


class FakeLauncher(ProcessLauncher):
    """
    Launches FakeProcesses following a plan.

    Each plan entry is ``(exit_after, returncode)``; ``exit_after=None``
    means the process runs until killed. Launches past the end of the plan
    reuse the last entry.
    """

    def __init__(self, plan: Sequence[tuple] = ((None, 0),)):
        self.plan = list(plan)
        self.processes: List[FakeProcess] = []
        self.commands: List[List[str]] = []
        self.launch_times: List[float] = []
        self.launched = asyncio.Event()

    @property
    def launches(self) -> int:
        return len(self.processes)

    async def launch(self, command: Sequence[str]) -> HelperProcess:
        exit_after, returncode = self.plan[min(self.launches, len(self.plan) - 1)]
        process = FakeProcess(pid=1000 + self.launches, exit_after=exit_after, returncode=returncode)
        self.processes.append(process)
        self.commands.append(list(command))
        self.launch_times.append(asyncio.get_running_loop().time())
        self.launched.set()
        return process


class FailingLauncher(ProcessLauncher):
    """Launcher whose helper binary is missing."""

    def __init__(self):
        self.attempts = 0
        self.attempt_times: List[float] = []

    async def launch(self, command: Sequence[str]) -> HelperProcess:
        self.attempts += 1
        self.attempt_times.append(asyncio.get_running_loop().time())
        raise HelperLaunchError(f"Unable to launch {command[0]!r}: No such file or directory")


class ScriptedQuery:
    """
    Query runner returning scripted results in order.

    Entries are ``(returncode, stdout)`` tuples or exception instances to
    raise. The last entry repeats once the script is exhausted.
    """

    def __init__(self, *script, delay: float = 0.0):
        self.script = list(script)
        self.delay = delay
        self.calls = 0

    async def __call__(self, command: Sequence[str]) -> subprocess.CompletedProcess:
        entry = self.script[min(self.calls, len(self.script) - 1)]
        self.calls += 1
        if self.delay:
            await asyncio.sleep(self.delay)
        if isinstance(entry, BaseException):
            raise entry
        returncode, stdout = entry
        return subprocess.CompletedProcess(list(command), returncode, stdout=stdout.encode(), stderr=b"")
