# -*- coding: utf-8 -*-

"""
Expected failure tracking for background jobs.

Exceptions configured as "expected" are recorded in date buckets, counted per
class, optionally reported through a throttled hook, and kept away from the
job pipeline's normal retry/alerting path. Everything else passes through.
"""

from .clock import Clock, FrozenClock, SystemClock
from .config import ExpectedFailuresConfig
from .exceptions import (
    ConfigurationError,
    ExpectedFailuresError,
    NotificationError,
    StorageError,
)
from .matcher import UNMATCHED, ExceptionMatcher, Matched, MatchRule, Unmatched
from .middleware import FailureMiddleware
from .models import FailureRecord, JobInfo
from .registry import register_hook, register_job
from .store import InMemoryRecordStore, RecordStore, RedisRecordStore
from .throttle import ThrottlePolicy

__version__ = "0.3.0"

__all__ = [
    "Clock",
    "FrozenClock",
    "SystemClock",
    "ExpectedFailuresConfig",
    "ConfigurationError",
    "ExpectedFailuresError",
    "NotificationError",
    "StorageError",
    "ExceptionMatcher",
    "Matched",
    "MatchRule",
    "Unmatched",
    "UNMATCHED",
    "FailureMiddleware",
    "FailureRecord",
    "JobInfo",
    "register_hook",
    "register_job",
    "RecordStore",
    "InMemoryRecordStore",
    "RedisRecordStore",
    "ThrottlePolicy",
]
