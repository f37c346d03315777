"""
In-flight guard for mutations.

A record that already has a mutation travelling to Syndata rejects a second
one until the first returns. This is a busy flag, not a queue: the second
caller gets an error immediately and may resubmit later.
"""

import logging
import threading
from contextlib import contextmanager
from typing import Hashable

logger = logging.getLogger(__name__)


class OperationInProgressError(Exception):
    """Another mutation on the same record has not returned yet."""

    def __init__(self, key: Hashable):
        self.key = key
        super().__init__(f"Operation already in progress for {key}")


class BusyGuard:
    """Process-wide set of keys with a mutation in flight."""

    def __init__(self):
        self._lock = threading.Lock()
        self._busy: set[Hashable] = set()

    def is_busy(self, key: Hashable) -> bool:
        with self._lock:
            return key in self._busy

    @contextmanager
    def hold(self, key: Hashable):
        """
        Mark key busy for the duration of the block.

        Raises:
            OperationInProgressError: If key is already held
        """
        with self._lock:
            if key in self._busy:
                logger.warning(f"Rejected duplicate submission for {key}")
                raise OperationInProgressError(key)
            self._busy.add(key)
        try:
            yield
        finally:
            with self._lock:
                self._busy.discard(key)
