"""
oniongate Runtime

Process abstraction layer used by the helper supervisor. The supervisor
only talks to the abstract launcher/handle pair defined in ``core``, so a
real AnyIO subprocess backend and test fakes are interchangeable.
"""

from .core import HelperProcess, ProcessLauncher
from .backends import AnyIOHelperProcess, AnyIOProcessLauncher, run_query
from .data import (
    SupervisorState, SupervisorOutcome, HelperExit, TERMINAL_STATES,
    OniongateError, StartupError, ServiceRuntimeError, HelperLaunchError,
)

__all__ = [
    # Core abstractions
    'HelperProcess',
    'ProcessLauncher',

    # Backend implementations
    'AnyIOHelperProcess',
    'AnyIOProcessLauncher',
    'run_query',

    # Data types
    'SupervisorState',
    'SupervisorOutcome',
    'HelperExit',
    'TERMINAL_STATES',

    # Errors
    'OniongateError',
    'StartupError',
    'ServiceRuntimeError',
    'HelperLaunchError',
]
