# src/expected_failures/clock.py
# -*- coding: utf-8 -*-

"""
Clock abstraction used to timestamp failure records and pick date buckets.
"""

import abc
import threading
from datetime import datetime, timedelta
from typing import Optional

DATE_FORMAT = "%Y-%m-%d"
TIMESTAMP_FORMAT = "%Y-%m-%d %H:%M:%S %Z"


class Clock(abc.ABC):
    """Supplies the current local time. Subclasses implement `now()`."""

    @abc.abstractmethod
    def now(self) -> datetime:
        raise NotImplementedError

    def today(self) -> str:
        """Current bucket date as YYYY-MM-DD."""
        return self.now().strftime(DATE_FORMAT)

    def timestamp(self) -> str:
        """Current time, second precision, as stored in a FailureRecord."""
        return self.now().strftime(TIMESTAMP_FORMAT).strip()


class SystemClock(Clock):
    def now(self) -> datetime:
        return datetime.now().astimezone()


class FrozenClock(Clock):
    """
    A clock that only moves when told to.
    Thread-safe so that concurrent workers under test see a consistent date.
    """

    def __init__(self, moment: Optional[datetime] = None):
        self._lock = threading.Lock()
        self._moment = moment or datetime.now()

    def now(self) -> datetime:
        with self._lock:
            return self._moment

    def freeze(self, moment: datetime) -> None:
        with self._lock:
            self._moment = moment

    def advance(self, **delta) -> None:
        with self._lock:
            self._moment = self._moment + timedelta(**delta)
