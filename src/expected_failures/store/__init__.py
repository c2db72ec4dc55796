# -*- coding: utf-8 -*-

"""Record stores for suppressed failures."""

from .base import RecordStore
from .memory import InMemoryRecordStore
from .redis_store import RedisRecordStore

__all__ = [
    "RecordStore",
    "InMemoryRecordStore",
    "RedisRecordStore",
]
