# src/expected_failures/throttle.py
# -*- coding: utf-8 -*-

"""
Per-process notification throttling.

Counts matches per exception class in memory and lets every Nth one through.
These counts are process-local and reset on restart. The durable
occurrence counters live in the record store and are never touched from here.
"""

import logging
import threading
from collections import defaultdict
from typing import Dict

logger = logging.getLogger(__name__)  # expected_failures.throttle


class ThrottlePolicy:
    """Decides whether a notification hook fires for a given match."""

    def __init__(self):
        self._lock = threading.Lock()
        self._counts: Dict[str, int] = defaultdict(int)

    def should_notify(self, class_name: str, threshold: int) -> bool:
        """
        Records one more match of `class_name` and reports whether it is an
        Nth occurrence (threshold=3 -> True on the 3rd, 6th, 9th call).
        """
        with self._lock:
            self._counts[class_name] += 1
            count = self._counts[class_name]
        notify = threshold == 1 or count % threshold == 0
        logger.debug(
            f"Throttle '{class_name}': occurrence {count}, threshold {threshold}, notify={notify}"
        )
        return notify

    def count(self, class_name: str) -> int:
        with self._lock:
            return self._counts.get(class_name, 0)

    def reset(self) -> None:
        with self._lock:
            self._counts.clear()
