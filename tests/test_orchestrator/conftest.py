"""
Conftest for orchestrator tests.
"""
import pytest

from oniongate.config import Settings


@pytest.fixture
def settings():
    """Ephemeral ports on loopback and fast timers."""
    return Settings(
        public_host="127.0.0.1",
        public_port=0,
        onion_host="127.0.0.1",
        onion_port=0,
        arti_binary="arti",
        restart_backoff=0.01,
        discovery_initial_delay=0,
        discovery_timeout=1,
        discovery_retry_interval=0.01,
        shutdown_timeout=1,
    )
