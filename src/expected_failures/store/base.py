# src/expected_failures/store/base.py
# -*- coding: utf-8 -*-

"""
Abstract record store: date buckets of FailureRecords, the set of bucket
dates, and the durable per-class occurrence counter.
"""

import abc
import logging
from typing import Dict, List, Optional, Set, Tuple

from ..clock import Clock, SystemClock
from ..models import FailureRecord

logger = logging.getLogger(__name__)  # expected_failures.store.base


class RecordStore(abc.ABC):
    """
    Storage contract used by the middleware and the dashboard API.

    Implementations guarantee that concurrent `append` calls on one bucket
    never lose records and that `increment_counter` never loses updates.
    """

    def __init__(self, clock: Optional[Clock] = None):
        self.clock: Clock = clock or SystemClock()

    @abc.abstractmethod
    def append(self, date: str, record: FailureRecord) -> None:
        """Prepends `record` to the bucket for `date`, indexing the date."""
        raise NotImplementedError

    @abc.abstractmethod
    def list_dates(self) -> Set[str]:
        raise NotImplementedError

    @abc.abstractmethod
    def list_records(
        self, date: str, offset: int = 0, limit: int = 50
    ) -> Tuple[List[FailureRecord], int]:
        """A newest-first page of a bucket plus the bucket's total size."""
        raise NotImplementedError

    @abc.abstractmethod
    def delete_bucket(self, date: str) -> None:
        """Removes a bucket and its date. Deleting an unknown date is a no-op."""
        raise NotImplementedError

    @abc.abstractmethod
    def increment_counter(self, class_name: str) -> int:
        """Adds one to the class counter and returns the new value."""
        raise NotImplementedError

    @abc.abstractmethod
    def counters(self) -> Dict[str, int]:
        raise NotImplementedError

    @abc.abstractmethod
    def reset_counters(self) -> None:
        raise NotImplementedError

    def delete_all_except_today(self) -> List[str]:
        """Deletes every bucket dated strictly before today. Returns the deleted dates."""
        today = self.clock.today()
        # YYYY-MM-DD strings order chronologically
        stale = sorted(date for date in self.list_dates() if date < today)
        for date in stale:
            self.delete_bucket(date)
        logger.info(f"Deleted {len(stale)} bucket(s) older than {today}.")
        return stale

    def delete_all_buckets(self) -> List[str]:
        dates = sorted(self.list_dates())
        for date in dates:
            self.delete_bucket(date)
        logger.info(f"Deleted all {len(dates)} bucket(s).")
        return dates

    def reset_all(self) -> None:
        self.delete_all_buckets()
        self.reset_counters()
