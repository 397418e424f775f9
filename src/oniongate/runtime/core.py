"""
Runtime Core

Defines the narrow process interface the supervisor depends on. A launcher
spawns one helper instance and hands back a handle that can be waited on
and killed; concrete launchers live in ``oniongate.runtime.backends`` and
tests substitute fakes.
"""

from abc import ABC, abstractmethod
from typing import Optional, Sequence


class HelperProcess(ABC):
    """
    Handle to one running helper process instance.

    Exactly one handle is alive at a time under a supervisor. The handle is
    finished once ``wait()`` has returned.
    """

    @property
    @abstractmethod
    def pid(self) -> Optional[int]:
        """OS process id, if the backend has one."""
        pass

    @property
    @abstractmethod
    def returncode(self) -> Optional[int]:
        """Exit status once reaped, ``None`` while still running."""
        pass

    @abstractmethod
    async def wait(self) -> int:
        """
        Wait for the process to exit and reap it.

        :returns: The process exit status
        """
        pass

    @abstractmethod
    def kill(self) -> None:
        """
        Forcibly terminate the process.

        Does not wait for it; callers must ``await wait()`` afterwards to
        reap it. Killing an already exited process is a no-op.
        """
        pass


class ProcessLauncher(ABC):
    """
    Capability to spawn helper processes.

    Kept separate from the supervisor so the supervision loop can be
    driven by a fake process in tests.
    """

    @abstractmethod
    async def launch(self, command: Sequence[str]) -> HelperProcess:
        """
        Spawn the helper.

        :param command: Full command line, program first
        :returns: Handle to the running process
        :raises HelperLaunchError: If the process cannot be spawned
        """
        pass
