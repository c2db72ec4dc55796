"""Pytest configuration and shared fixtures."""

from datetime import datetime

import pytest

from expected_failures.clock import FrozenClock
from expected_failures.matcher import ExceptionMatcher
from expected_failures.middleware import FailureMiddleware
from expected_failures.models import JobInfo
from expected_failures.store.memory import InMemoryRecordStore
from expected_failures.throttle import ThrottlePolicy


@pytest.fixture
def clock():
    """Clock frozen at 2013-01-10 00:00 local time."""
    return FrozenClock(datetime(2013, 1, 10))


@pytest.fixture
def store(clock):
    return InMemoryRecordStore(clock=clock)


@pytest.fixture
def job():
    return JobInfo(name="RandomStuff", args=["custom_argument"])


@pytest.fixture
def make_middleware(store, clock):
    """Builds a middleware over the shared in-memory store for a list of rules."""

    def factory(rules=(), throttle=None):
        return FailureMiddleware(
            ExceptionMatcher(rules),
            store,
            throttle=throttle or ThrottlePolicy(),
            clock=clock,
        )

    return factory
