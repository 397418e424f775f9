"""
Shared Address Cell

Holds the onion address once it has been discovered. The discovery task is
the only writer; request handlers on both listeners read it. Access goes
through a readers-writer lock so handlers never see a torn update and
readers do not serialize behind each other.
"""

import logging
import threading
from contextlib import contextmanager
from typing import Iterator, Optional

logger = logging.getLogger(__name__)


class ReadWriteLock:
    """
    Readers-writer lock built on a single condition variable.

    Any number of readers may hold the lock together; a writer holds it
    alone. Waiting writers block new readers so a writer is never starved.
    """

    def __init__(self):
        self._cond = threading.Condition(threading.Lock())
        self._readers = 0
        self._writer = False
        self._writers_waiting = 0

    @contextmanager
    def read(self) -> Iterator[None]:
        with self._cond:
            while self._writer or self._writers_waiting:
                self._cond.wait()
            self._readers += 1
        try:
            yield
        finally:
            with self._cond:
                self._readers -= 1
                if self._readers == 0:
                    self._cond.notify_all()

    @contextmanager
    def write(self) -> Iterator[None]:
        with self._cond:
            self._writers_waiting += 1
            while self._writer or self._readers:
                self._cond.wait()
            self._writers_waiting -= 1
            self._writer = True
        try:
            yield
        finally:
            with self._cond:
                self._writer = False
                self._cond.notify_all()


class SharedAddressCell:
    """
    Write-once slot for the discovered onion address.

    Starts empty. The first ``set()`` wins; later writes never clear or
    replace the value.
    """

    def __init__(self):
        self._lock = ReadWriteLock()
        self._address: Optional[str] = None

    def get(self) -> Optional[str]:
        """Return the address, or ``None`` while it is not yet known."""
        with self._lock.read():
            return self._address

    def set(self, address: str) -> bool:
        """
        Publish the address.

        :returns: True if this call stored the value, False if one was
            already present
        """
        with self._lock.write():
            if self._address is None:
                self._address = address
                return True
            current = self._address

        if current != address:
            logger.warning(f"[address] ignoring {address}, already set to {current}")
        return False

    def is_set(self) -> bool:
        return self.get() is not None

    def __repr__(self):
        return f"SharedAddressCell({self.get()!r})"
