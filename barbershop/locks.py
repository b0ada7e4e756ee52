# barbershop/locks.py
"""
Per-barber mutual exclusion for the booking write path.

One ``threading.Lock`` per barber id, created on first use. Holding it
serialises check + insert + commit for that barber only; other barbers
book in parallel.
"""

import logging
import threading
from contextlib import contextmanager
from typing import Dict, Iterator

logger = logging.getLogger(__name__)


class BarberLocks:
    def __init__(self) -> None:
        self._locks: Dict[int, threading.Lock] = {}
        self._registry_lock = threading.Lock()

    def _lock_for(self, barber_id: int) -> threading.Lock:
        with self._registry_lock:
            lock = self._locks.get(barber_id)
            if lock is None:
                lock = threading.Lock()
                self._locks[barber_id] = lock
            return lock

    @contextmanager
    def hold(self, barber_id: int) -> Iterator[None]:
        lock = self._lock_for(barber_id)
        lock.acquire()
        logger.debug("barber_lock_acquired barber_id=%s", barber_id)
        try:
            yield
        finally:
            lock.release()
            logger.debug("barber_lock_released barber_id=%s", barber_id)

    def __len__(self) -> int:
        with self._registry_lock:
            return len(self._locks)


barber_locks = BarberLocks()
