"""
Per-student locks for award serialization.
Awards for one student run one at a time; awards for different students never
wait on each other.
"""
import threading
from collections import defaultdict
from contextlib import contextmanager


class StudentLockRegistry:
    """In-process registry of one lock per student.

    Note: locks are created on first use and kept for the life of the process.
    The registry lock only guards the dict lookup, never an award.
    """

    def __init__(self):
        self._locks = defaultdict(threading.Lock)
        self._registry_lock = threading.Lock()

    def get(self, student_id: str) -> threading.Lock:
        with self._registry_lock:
            return self._locks[student_id]

    @contextmanager
    def hold(self, student_id: str):
        """Hold the student's lock for the duration of the block"""
        lock = self.get(student_id)
        with lock:
            yield


student_locks = StudentLockRegistry()
