# src/expected_failures/middleware.py
# -*- coding: utf-8 -*-

"""
Middleware wrapping a single job execution.

    Running -> Succeeded                      job_body() returned
            -> Unmatched-Failure-Propagated   exception re-raised unchanged
            -> Matched-Failure-Suppressed     exception recorded, counted, swallowed

A matched exception is always written to the record store before it is
swallowed. Errors raised by the store (StorageError) or by a notification
hook (wrapped in NotificationError) propagate to the caller.
"""

import logging
from typing import Any, Callable, Optional

from .clock import Clock, SystemClock
from .config import ExpectedFailuresConfig
from .exceptions import NotificationError
from .matcher import ExceptionMatcher, Matched
from .models import FailureRecord, JobInfo
from .store.base import RecordStore
from .throttle import ThrottlePolicy

logger = logging.getLogger(__name__)  # expected_failures.middleware


class FailureMiddleware:
    def __init__(
        self,
        matcher: ExceptionMatcher,
        store: RecordStore,
        throttle: Optional[ThrottlePolicy] = None,
        clock: Optional[Clock] = None,
    ):
        self.matcher = matcher
        self.store = store
        self.throttle = throttle or ThrottlePolicy()
        # Default to the store's clock so records and bucket sweeps agree on "today"
        self.clock = clock or getattr(store, "clock", None) or SystemClock()

    @classmethod
    def from_config(
        cls,
        config: ExpectedFailuresConfig,
        store: RecordStore,
        throttle: Optional[ThrottlePolicy] = None,
        clock: Optional[Clock] = None,
    ) -> "FailureMiddleware":
        return cls(ExceptionMatcher(config.rules), store, throttle=throttle, clock=clock)

    def reconfigure(self, config: ExpectedFailuresConfig) -> None:
        """Swaps in a new rule table; in-flight classifications keep the old one."""
        self.matcher.reconfigure(config.rules)

    def execute(
        self, job: JobInfo, queue_name: str, job_body: Callable[[], Any]
    ) -> Any:
        """
        Runs `job_body()` and returns its result. Expected failures are recorded
        and suppressed (returns None); anything else is re-raised as is.
        """
        try:
            return job_body()
        except Exception as exc:
            result = self.matcher.classify(exc, job)
            if not isinstance(result, Matched):
                raise
            self._suppress(exc, job, queue_name, result)
            return None

    __call__ = execute

    def _suppress(
        self, exc: Exception, job: JobInfo, queue_name: str, result: Matched
    ) -> None:
        record = FailureRecord.capture(exc, job, queue_name, self.clock.timestamp())
        today = self.clock.today()

        self.store.append(today, record)
        self.store.increment_counter(record.exception)
        logger.info(
            f"Suppressed expected {record.exception} in job '{job.name}' on queue '{queue_name}' ({today})."
        )

        hook = result.hook
        if hook is None:
            return
        if not self.throttle.should_notify(record.exception, result.threshold):
            return

        logger.debug(f"Notifying hook {hook!r} for {record.exception}.")
        try:
            hook(exc, job)
        except Exception as hook_err:
            logger.error(
                f"Notification hook {hook!r} failed for {record.exception}: {hook_err}",
                exc_info=True,
            )
            raise NotificationError(
                f"Notification hook failed for {record.exception}: {hook_err}",
                job_exception=exc,
            ) from hook_err
