# src/expected_failures/store/redis_store.py
# -*- coding: utf-8 -*-

"""
Redis-backed record store.

Key layout (prefix defaults to 'expected'):
    expected:<YYYY-MM-DD>   List of FailureRecord JSON, newest first (LPUSH)
    expected:dates          Set of bucket dates
    expected:count          Hash of exception class name -> occurrence count

Appends and bucket deletions run in MULTI/EXEC so a bucket exists exactly
when its date is indexed; counters use HINCRBY.
"""

import logging
from contextlib import contextmanager
from typing import Any, Dict, List, Optional, Set, Tuple

from redis.exceptions import RedisError

from ..broker.redis_manager import RedisManager, RedisManagerError
from ..clock import Clock
from ..exceptions import StorageError
from ..models import FailureRecord
from .base import RecordStore

logger = logging.getLogger(__name__)  # expected_failures.store.redis_store

DEFAULT_KEY_PREFIX = "expected"


def _decode(value: Any) -> Any:
    if isinstance(value, bytes):
        return value.decode("utf-8")
    return value


@contextmanager
def _storage_errors(operation: str):
    try:
        yield
    except (RedisError, RedisManagerError) as e:
        logger.error(f"Record store operation '{operation}' failed: {e}")
        raise StorageError(f"Record store operation '{operation}' failed: {e}") from e


class RedisRecordStore(RecordStore):
    def __init__(
        self,
        redis_manager: RedisManager,
        clock: Optional[Clock] = None,
        key_prefix: str = DEFAULT_KEY_PREFIX,
    ):
        super().__init__(clock)
        self.redis_manager = redis_manager
        self.key_prefix = key_prefix
        self.dates_key = f"{key_prefix}:dates"
        self.counter_key = f"{key_prefix}:count"

    def bucket_key(self, date: str) -> str:
        return f"{self.key_prefix}:{date}"

    # --- Buckets ---

    def append(self, date: str, record: FailureRecord) -> None:
        payload = record.to_json()
        key = self.bucket_key(date)

        def commands(pipe):
            pipe.lpush(key, payload)
            pipe.sadd(self.dates_key, date)

        with _storage_errors("append"):
            self.redis_manager.execute_transaction(commands)
        logger.debug(f"Appended {record.exception} record to '{key}'.")

    def list_dates(self) -> Set[str]:
        with _storage_errors("list_dates"):
            members = self.redis_manager.ensure_connected().smembers(self.dates_key)
        return {_decode(m) for m in members or ()}

    def list_records(
        self, date: str, offset: int = 0, limit: int = 50
    ) -> Tuple[List[FailureRecord], int]:
        key = self.bucket_key(date)
        offset = max(int(offset), 0)
        limit = int(limit)
        with _storage_errors("list_records"):
            if limit <= 0:
                return [], int(self.redis_manager.ensure_connected().llen(key))
            results = self.redis_manager.execute_transaction(
                lambda pipe: (
                    pipe.lrange(key, offset, offset + limit - 1),
                    pipe.llen(key),
                )
            )
        raw_records, total = results
        return [FailureRecord.from_json(raw) for raw in raw_records], int(total)

    def delete_bucket(self, date: str) -> None:
        key = self.bucket_key(date)

        def commands(pipe):
            pipe.delete(key)
            pipe.srem(self.dates_key, date)

        with _storage_errors("delete_bucket"):
            self.redis_manager.execute_transaction(commands)
        logger.debug(f"Deleted bucket '{key}'.")

    # --- Counters ---

    def increment_counter(self, class_name: str) -> int:
        with _storage_errors("increment_counter"):
            return int(
                self.redis_manager.ensure_connected().hincrby(
                    self.counter_key, class_name, 1
                )
            )

    def counters(self) -> Dict[str, int]:
        with _storage_errors("counters"):
            raw = self.redis_manager.ensure_connected().hgetall(self.counter_key)
        return {_decode(k): int(_decode(v)) for k, v in (raw or {}).items()}

    def reset_counters(self) -> None:
        with _storage_errors("reset_counters"):
            self.redis_manager.ensure_connected().delete(self.counter_key)
        logger.info(f"Cleared counters '{self.counter_key}'.")

    def reset_all(self) -> None:
        dates = sorted(self.list_dates())

        # Only the dates seen above are unindexed; a concurrent append keeps its bucket
        def commands(pipe):
            for date in dates:
                pipe.delete(self.bucket_key(date))
            if dates:
                pipe.srem(self.dates_key, *dates)
            pipe.delete(self.counter_key)

        with _storage_errors("reset_all"):
            self.redis_manager.execute_transaction(commands)
        logger.info(f"Cleared {len(dates)} bucket(s) and all counters.")
