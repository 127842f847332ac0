"""
The single cancellation signal shared by every load task.
"""
import multiprocessing
import time


class Deadline:
    """Fires when `duration` seconds have passed or `cancel()` is called.

    Backed by a multiprocessing.Event so CPU worker processes can poll
    the same flag the in-process controllers wait on.
    """

    def __init__(self, duration, event=None):
        self.duration = duration
        self.started = time.monotonic()
        self._event = event if event is not None else multiprocessing.Event()

    @property
    def event(self):
        return self._event

    def cancel(self):
        self._event.set()

    @property
    def cancelled(self):
        if self._event.is_set():
            return True
        return self._expire_if_due()

    def elapsed(self):
        return time.monotonic() - self.started

    def remaining(self):
        return max(0.0, self.duration - self.elapsed())

    def wait(self, timeout=None):
        """Sleep up to `timeout` seconds. Returns True once the deadline has fired."""
        remaining = self.remaining()
        if remaining <= 0:
            self.cancel()
            return True
        if timeout is None or timeout > remaining:
            timeout = remaining
        if self._event.wait(timeout):
            return True
        return self._expire_if_due()

    def _expire_if_due(self):
        if self.remaining() <= 0:
            self.cancel()
            return True
        return False
