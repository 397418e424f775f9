"""
oniongate

Serves a small site on two listeners, a public one and a loopback one
published as an onion service by a supervised arti process.
"""

from .address import SharedAddressCell
from .config import Settings
from .discovery import AddressDiscoveryTask, find_onion_address
from .listener import ListenerRunner, bind_listener
from .orchestrator import Orchestrator
from .shutdown import ShutdownBroadcaster, Subscription
from .signals import SignalForwarder
from .supervisor import ProcessSupervisor
from .runtime.data import (
    SupervisorState, SupervisorOutcome,
    OniongateError, StartupError, ServiceRuntimeError,
)

__version__ = "0.1.0"

__all__ = [
    'SharedAddressCell',
    'Settings',
    'AddressDiscoveryTask',
    'find_onion_address',
    'ListenerRunner',
    'bind_listener',
    'Orchestrator',
    'ShutdownBroadcaster',
    'Subscription',
    'SignalForwarder',
    'ProcessSupervisor',
    'SupervisorState',
    'SupervisorOutcome',
    'OniongateError',
    'StartupError',
    'ServiceRuntimeError',
]
