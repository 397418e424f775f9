import gc
import logging

import pytest

from oniongate.address import SharedAddressCell
from oniongate.shutdown import ShutdownBroadcaster


@pytest.fixture(autouse=True)
def debug_logging(caplog):
    """Capture oniongate debug logs so failures show the supervisor trail."""
    caplog.set_level(logging.DEBUG, logger="oniongate")
    yield caplog


@pytest.fixture
def broadcaster():
    return ShutdownBroadcaster()


@pytest.fixture
def cell():
    return SharedAddressCell()


@pytest.fixture(autouse=True)
def cleanup_gc():
    """Force garbage collection after each test to surface leaked coroutines."""
    yield
    gc.collect()
