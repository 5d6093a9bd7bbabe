"""Fixed-interval driver for an update cycle.

State machine:
  idle -> running (first pass fires immediately) -> waiting -> running -> ...
  any -> cancelled once stop() has been called and the current pass is done

stop() is only observed at the sleep boundary. A pass already in flight runs
to completion; it is never interrupted half way.
"""

import logging
import threading

log = logging.getLogger(__name__)

IDLE = "idle"
RUNNING = "running"
WAITING = "waiting"
CANCELLED = "cancelled"


class Scheduler:
    """Runs cycle() every interval seconds on a background thread."""

    def __init__(self, name, cycle, interval):
        self.name = name
        self.cycle = cycle
        self.interval = interval
        self.state = IDLE
        self.passes = 0
        self._stop = threading.Event()
        self._thread = None

    def start(self):
        if self._thread is not None:
            raise RuntimeError(f"scheduler {self.name} already started")
        self._thread = threading.Thread(target=self.run, name=f"scheduler-{self.name}", daemon=True)
        self._thread.start()
        return self

    def run(self):
        """Loop until stop() is called. Blocks the calling thread."""
        log.info("Starting %s job (interval: %.1fs)", self.name, self.interval)
        while not self._stop.is_set():
            self.state = RUNNING
            try:
                self.cycle()
            except Exception:
                log.exception("Unhandled error in %s update", self.name)
            self.passes += 1

            # Full interval after every pass, however long the pass took
            self.state = WAITING
            if self._stop.wait(self.interval):
                break

        self.state = CANCELLED
        log.info("Stopped %s job after %d pass(es)", self.name, self.passes)

    def stop(self):
        self._stop.set()

    @property
    def stopping(self):
        return self._stop.is_set()

    def join(self, timeout=None):
        """Wait for the loop thread. Returns True if it has exited."""
        if self._thread is None:
            return True
        self._thread.join(timeout)
        return not self._thread.is_alive()
