"""
semaphore.py
============

A lock per key, used to let only one thread download a given artifact.
"""
import contextlib
import threading


class Semaphore:
    """
    Mutual exclusion per key.

    Waiters of the same key are woken all at once when the key is
    released, whichever of them runs first takes the key. There is no
    ordering among waiters. Keys are independent of each other.

    Example:
        >>> sem = Semaphore()
        >>> with sem.hold("etcd/v3.5.16"):
        ...     download()
    """

    def __init__(self):
        self._cond = threading.Condition()
        self._keys = set()

    def acquire(self, key):
        """block until nobody holds key, then hold it"""
        with self._cond:
            while key in self._keys:
                self._cond.wait()
            self._keys.add(key)

    def release(self, key):
        """release key, releasing a key which is not held is a no-op"""
        with self._cond:
            self._keys.discard(key)
            self._cond.notify_all()

    @contextlib.contextmanager
    def hold(self, key):
        """hold key for the duration of the with block, released on errors too"""
        self.acquire(key)
        try:
            yield key
        finally:
            self.release(key)

    def in_flight(self, key):
        """tell whether someone holds key right now"""
        with self._cond:
            return key in self._keys
