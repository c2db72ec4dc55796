"""Runs the record store and middleware against a live Redis (db 15), if one is reachable."""

from datetime import datetime

import pytest
from redis import Redis
from redis.exceptions import RedisError

from expected_failures.broker.redis_manager import RedisManager
from expected_failures.clock import FrozenClock
from expected_failures.matcher import ExceptionMatcher, MatchRule
from expected_failures.middleware import FailureMiddleware
from expected_failures.models import JobInfo
from expected_failures.store.redis_store import RedisRecordStore

PREFIX = "expected_failures_test"


@pytest.fixture
def redis_client():
    client = Redis(host="localhost", port=6379, db=15, decode_responses=True)
    try:
        client.ping()
    except RedisError:
        pytest.skip("Redis is not available on localhost:6379")
    yield client
    for key in client.scan_iter(f"{PREFIX}:*"):
        client.delete(key)


@pytest.fixture
def redis_store(redis_client):
    clock = FrozenClock(datetime(2013, 9, 10, 9, 0))
    return RedisRecordStore(RedisManager(client=redis_client), clock=clock, key_prefix=PREFIX)


def test_middleware_records_into_redis(redis_store, redis_client):
    middleware = FailureMiddleware(ExceptionMatcher([MatchRule(ZeroDivisionError)]), redis_store)
    job = JobInfo("HardWorker", [{"hash": "options"}, 123])

    for _ in range(3):
        middleware.execute(job, "api_calls", lambda: 1 / 0)

    assert redis_client.smembers(f"{PREFIX}:dates") == {"2013-09-10"}
    assert redis_client.llen(f"{PREFIX}:2013-09-10") == 3
    assert redis_client.hget(f"{PREFIX}:count", "ZeroDivisionError") == "3"

    records, total = redis_store.list_records("2013-09-10", 0, 2)
    assert total == 3
    assert len(records) == 2
    assert records[0].args == [{"hash": "options"}, 123]


def test_sweeps(redis_store):
    middleware = FailureMiddleware(ExceptionMatcher([MatchRule(ZeroDivisionError)]), redis_store)
    job = JobInfo("HardWorker")

    redis_store.clock.freeze(datetime(2013, 9, 9, 9, 0))
    middleware.execute(job, "default", lambda: 1 / 0)
    redis_store.clock.freeze(datetime(2013, 9, 10, 9, 0))
    middleware.execute(job, "default", lambda: 1 / 0)

    assert redis_store.delete_all_except_today() == ["2013-09-09"]
    assert redis_store.list_dates() == {"2013-09-10"}

    redis_store.reset_all()
    assert redis_store.list_dates() == set()
    assert redis_store.counters() == {}
