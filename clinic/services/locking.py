from contextlib import contextmanager
import threading
from typing import Dict, Iterator


class DoctorLockRegistry:
    """In-process mutexes keyed by doctor id.

    ``hold`` takes its locks in ascending id order so that a request
    needing two doctors (moving an appointment between them) cannot
    deadlock against another request holding the same pair.
    """

    def __init__(self):
        self._guard = threading.Lock()
        self._locks: Dict[int, threading.Lock] = {}

    def _lock_for(self, doctor_id: int) -> threading.Lock:
        with self._guard:
            return self._locks.setdefault(doctor_id, threading.Lock())

    def forget(self, doctor_id: int) -> None:
        """Drop the mutex of a removed doctor unless a request still holds it."""
        with self._guard:
            lock = self._locks.get(doctor_id)
            if lock is not None and not lock.locked():
                del self._locks[doctor_id]

    @contextmanager
    def hold(self, *doctor_ids: int) -> Iterator[None]:
        acquired = []
        try:
            for doctor_id in sorted(set(doctor_ids)):
                lock = self._lock_for(doctor_id)
                lock.acquire()
                acquired.append(lock)
            yield
        finally:
            for lock in reversed(acquired):
                lock.release()


# Shared by every request handled in this process
doctor_locks = DoctorLockRegistry()
