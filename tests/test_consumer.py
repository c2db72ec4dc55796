"""Tests for JobConsumer task handling, enqueue and consumer construction."""

import json
from unittest.mock import MagicMock

import pytest

from expected_failures.broker.redis_manager import RedisOperationError
from expected_failures.consumer import JobConsumer, enqueue
from expected_failures.exceptions import ConfigurationError, TransientError
from expected_failures.matcher import MatchRule
from expected_failures.service import build_consumers


@pytest.fixture
def redis_manager():
    return MagicMock()


@pytest.fixture
def calls():
    return []


@pytest.fixture
def jobs(calls):
    def hard_worker(*args):
        calls.append(args)
        raise ZeroDivisionError("expected")

    def easy_worker(*args):
        calls.append(args)
        return "ok"

    def flaky_worker(*args):
        raise TransientError("try later")

    def broken_worker(*args):
        raise RuntimeError("unexpected")

    return {
        "HardWorker": hard_worker,
        "EasyWorker": easy_worker,
        "FlakyWorker": flaky_worker,
        "BrokenWorker": broken_worker,
    }


@pytest.fixture
def make_consumer(make_middleware, redis_manager, jobs):
    def factory(rules=(), settings=None):
        return JobConsumer(
            "api_calls",
            make_middleware(rules),
            redis_manager,
            jobs=jobs,
            consumer_name="test-consumer",
            settings=settings if settings is not None else {"dlq_enabled": True},
        )

    return factory


def task(name, *args):
    return json.dumps({"class": name, "args": list(args), "jid": "abc123"})


def dlq_entries(redis_manager):
    return [
        (c.args[0], json.loads(c.args[1][0])) for c in redis_manager.lpush.call_args_list
    ]


class TestHandleTask:
    def test_successful_job(self, make_consumer, calls, redis_manager):
        consumer = make_consumer()
        assert consumer.handle_task(task("EasyWorker", 1, "two")) is True
        assert calls == [(1, "two")]
        redis_manager.lpush.assert_not_called()

    def test_bytes_payload_is_decoded(self, make_consumer, calls):
        consumer = make_consumer()
        assert consumer.handle_task(task("EasyWorker", 3).encode("utf-8")) is True
        assert calls == [(3,)]

    def test_expected_failure_is_recorded_and_handled(
        self, make_consumer, store, redis_manager
    ):
        consumer = make_consumer([MatchRule(ZeroDivisionError, job="HardWorker")])

        assert consumer.handle_task(task("HardWorker", {"id": 7})) is True

        records, total = store.list_records("2013-01-10")
        assert total == 1
        assert records[0].worker == "HardWorker"
        assert records[0].queue == "api_calls"
        assert records[0].args == [{"id": 7}]
        redis_manager.lpush.assert_not_called()

    def test_unexpected_failure_goes_to_dlq(self, make_consumer, store, redis_manager):
        consumer = make_consumer()

        assert consumer.handle_task(task("HardWorker")) is False

        assert store.list_dates() == set()
        ((key, entry),) = dlq_entries(redis_manager)
        assert key == "dlq:api_calls"
        assert entry["error"].startswith("ZeroDivisionError")
        assert json.loads(entry["data"])["class"] == "HardWorker"

    def test_transient_failure_is_kept_in_dlq(self, make_consumer, redis_manager):
        consumer = make_consumer()

        assert consumer.handle_task(task("FlakyWorker")) is False

        ((key, entry),) = dlq_entries(redis_manager)
        assert key == "dlq:api_calls"
        assert entry["error"] == "TransientError: try later"
        assert json.loads(entry["data"])["class"] == "FlakyWorker"

    @pytest.mark.parametrize(
        "payload",
        [
            "not json",
            json.dumps(["HardWorker"]),
            json.dumps({"args": []}),
            json.dumps({"class": "HardWorker", "args": "nope"}),
            task("NoSuchWorker"),
        ],
    )
    def test_unrecoverable_payloads_are_discarded(self, make_consumer, redis_manager, payload):
        consumer = make_consumer()
        assert consumer.handle_task(payload) is True
        ((key, entry),) = dlq_entries(redis_manager)
        assert entry["error"].startswith("UnrecoverableError")
        assert entry["data"] == payload

    def test_undecodable_bytes_are_discarded(self, make_consumer, redis_manager):
        consumer = make_consumer()
        assert consumer.handle_task(b"\xff\xfe\xfa") is True
        assert len(dlq_entries(redis_manager)) == 1

    def test_tracking_failure_is_not_handled(self, make_consumer, redis_manager):
        def broken_hook(exc, job):
            raise ConnectionError("webhook down")

        consumer = make_consumer([MatchRule(ZeroDivisionError, hook=broken_hook)])

        assert consumer.handle_task(task("HardWorker")) is False

        ((_, entry),) = dlq_entries(redis_manager)
        assert entry["error"].startswith("NotificationError")

    def test_dlq_disabled(self, make_consumer, redis_manager):
        consumer = make_consumer(settings={})
        assert consumer.handle_task(task("BrokenWorker")) is False
        redis_manager.lpush.assert_not_called()

    def test_custom_dlq_key(self, make_consumer, redis_manager):
        consumer = make_consumer(settings={"dlq_enabled": True, "dlq_key": "dead"})
        consumer.handle_task(task("BrokenWorker"))
        assert dlq_entries(redis_manager)[0][0] == "dead"

    def test_dlq_push_failure_is_logged_not_raised(self, make_consumer, redis_manager):
        redis_manager.lpush.side_effect = RedisOperationError("down")
        consumer = make_consumer()
        assert consumer.handle_task(task("BrokenWorker")) is False


def test_enqueue_pushes_task_payload(redis_manager):
    jid = enqueue(redis_manager, "api_calls", "HardWorker", 1, {"a": "b"})

    redis_manager.lpush.assert_called_once()
    key, values = redis_manager.lpush.call_args.args
    assert key == "api_calls"
    assert json.loads(values[0]) == {"class": "HardWorker", "args": [1, {"a": "b"}], "jid": jid}


def test_run_loop_handles_popped_task_then_stops(make_consumer, redis_manager, calls):
    consumer = make_consumer()

    def brpop(key, timeout):
        consumer.stop()
        return (key, task("EasyWorker", 9))

    redis_manager.brpop.side_effect = brpop

    consumer.run()

    assert calls == [(9,)]


class TestBuildConsumers:
    def test_workers_per_queue(self, make_middleware, redis_manager):
        consumers = build_consumers(
            {
                "queues": {
                    "default": {"workers": 2, "brpop_timeout": 1},
                    "api_calls": {"settings": {"dlq_enabled": True}},
                }
            },
            make_middleware(),
            redis_manager,
        )

        assert [c.listen_key for c in consumers] == ["default", "default", "api_calls"]
        assert consumers[0].brpop_timeout == 1
        assert consumers[2].settings == {"dlq_enabled": True}

    @pytest.mark.parametrize(
        "section",
        [
            {},
            {"queues": []},
            {"queues": {"default": "nope"}},
            {"queues": {"default": {"workers": "many"}}},
            {"queues": {"default": {"brpop_timeout": -1}}},
            {"job_modules": ["no_such_jobs_module"], "queues": {"default": {}}},
        ],
    )
    def test_invalid_sections(self, make_middleware, redis_manager, section):
        with pytest.raises(ConfigurationError):
            build_consumers(section, make_middleware(), redis_manager)
