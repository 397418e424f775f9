"""
Runtime Data Types

Common data structures, states and exceptions shared by the supervisor,
the discovery task and the orchestrator.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Optional


class SupervisorState(Enum):
    """Lifecycle state of the helper process supervisor."""
    IDLE = "idle"                    # Constructed, not yet started
    LAUNCHING = "launching"          # Spawning a helper instance
    RUNNING = "running"              # Helper alive, waiting for exit or shutdown
    EXITED = "exited"                # Helper exited on its own, backing off
    SHUTTING_DOWN = "shutting_down"  # Killing and reaping the helper
    STOPPED = "stopped"              # Terminal: clean stop on shutdown
    FAILED = "failed"                # Terminal: restart budget exhausted


class SupervisorOutcome(Enum):
    """Terminal result reported by a supervision session."""
    STOPPED = "stopped"
    FAILED = "failed"


TERMINAL_STATES = frozenset({SupervisorState.STOPPED, SupervisorState.FAILED})


@dataclass
class HelperExit:
    """Record of one helper instance ending on its own."""
    attempt: int
    returncode: Optional[int]
    pid: Optional[int] = None

    @property
    def clean(self) -> bool:
        return self.returncode == 0


class OniongateError(Exception):
    """Base exception for oniongate errors."""
    pass


class StartupError(OniongateError):
    """Raised when the service cannot start (bind, address query, config)."""
    pass


class ServiceRuntimeError(OniongateError):
    """Raised when the service fails after startup."""
    pass


class HelperLaunchError(OniongateError):
    """Raised by a launcher when the helper process cannot be spawned."""
    pass
