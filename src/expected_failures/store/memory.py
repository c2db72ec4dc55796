# src/expected_failures/store/memory.py
# -*- coding: utf-8 -*-

"""Single-process record store for development and tests."""

import threading
from collections import defaultdict
from typing import Dict, List, Optional, Set, Tuple

from ..clock import Clock
from ..models import FailureRecord
from .base import RecordStore


class InMemoryRecordStore(RecordStore):
    """Keeps buckets and counters in dicts guarded by one lock."""

    def __init__(self, clock: Optional[Clock] = None):
        super().__init__(clock)
        self._lock = threading.Lock()
        self._buckets: Dict[str, List[str]] = {}
        self._counters: Dict[str, int] = defaultdict(int)

    def append(self, date: str, record: FailureRecord) -> None:
        # Serialized like the Redis store so both return equal records
        payload = record.to_json()
        with self._lock:
            self._buckets.setdefault(date, []).insert(0, payload)

    def list_dates(self) -> Set[str]:
        with self._lock:
            return set(self._buckets)

    def list_records(
        self, date: str, offset: int = 0, limit: int = 50
    ) -> Tuple[List[FailureRecord], int]:
        with self._lock:
            bucket = list(self._buckets.get(date, ()))
        page = bucket[offset : offset + limit] if limit > 0 else []
        return [FailureRecord.from_json(raw) for raw in page], len(bucket)

    def delete_bucket(self, date: str) -> None:
        with self._lock:
            self._buckets.pop(date, None)

    def increment_counter(self, class_name: str) -> int:
        with self._lock:
            self._counters[class_name] += 1
            return self._counters[class_name]

    def counters(self) -> Dict[str, int]:
        with self._lock:
            return dict(self._counters)

    def reset_counters(self) -> None:
        with self._lock:
            self._counters.clear()

    def reset_all(self) -> None:
        with self._lock:
            self._buckets.clear()
            self._counters.clear()
