"""Work-unit health tracking and the failure-absorbing call wrapper."""

import logging
import threading
from dataclasses import dataclass
from datetime import datetime, timezone

log = logging.getLogger(__name__)


@dataclass
class UnitHealth:
    name: str
    last_success: datetime = None
    last_failure: datetime = None
    last_error: str = None
    consecutive_failures: int = 0

    def record_success(self):
        self.last_success = datetime.now(timezone.utc)
        self.consecutive_failures = 0
        self.last_error = None

    def record_failure(self, error):
        self.last_failure = datetime.now(timezone.utc)
        self.last_error = f"{type(error).__name__}: {error}"
        self.consecutive_failures += 1

    def as_dict(self):
        return {
            "name": self.name,
            "last_success": self.last_success.isoformat() if self.last_success else None,
            "last_failure": self.last_failure.isoformat() if self.last_failure else None,
            "last_error": self.last_error,
            "consecutive_failures": self.consecutive_failures,
        }


class HealthBook:
    """Per-work-unit health, written by update cycles and read by the web app."""

    def __init__(self):
        self._units = {}
        self._lock = threading.Lock()

    def _entry(self, name):
        if name not in self._units:
            self._units[name] = UnitHealth(name=name)
        return self._units[name]

    def record_success(self, name):
        with self._lock:
            self._entry(name).record_success()

    def record_failure(self, name, error):
        """Record a failure and return the unit's consecutive failure count."""
        with self._lock:
            entry = self._entry(name)
            entry.record_failure(error)
            return entry.consecutive_failures

    def snapshot(self):
        with self._lock:
            return [h.as_dict() for h in sorted(self._units.values(), key=lambda h: h.name)]


def guarded(call, unit_name, health=None):
    """Call call(). Never raises: failures are logged and recorded.

    No retry; a failing unit simply contributes nothing to this pass.
    Returns (value, error) tuple, exactly one of them is None.
    """
    try:
        value = call()
    except Exception as e:
        failures = health.record_failure(unit_name, e) if health is not None else 1
        log.error("%s: fetch failed (%s: %s), %d consecutive failure(s)",
                  unit_name, type(e).__name__, e, failures)
        return None, e

    if health is not None:
        health.record_success(unit_name)
    return value, None
