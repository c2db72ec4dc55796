# src/expected_failures/exceptions.py
# -*- coding: utf-8 -*-

"""
Custom exceptions for the expected_failures package.
"""


class ExpectedFailuresError(Exception):
    """Base exception for all errors raised by the failure-tracking layer itself."""

    pass


class ConfigurationError(ExpectedFailuresError):
    """
    Indicates a malformed rule table or configuration file.
    Raised while loading configuration, before any job executes.
    Example: Unknown exception class path, threshold below 1, unknown hook name.
    """

    pass


class StorageError(ExpectedFailuresError):
    """
    Indicates the record store could not complete an operation.
    Fatal to the current job invocation and never retried by this layer, so
    operators can tell a broken tracking subsystem apart from the job's own failure.
    """

    pass


class NotificationError(ExpectedFailuresError):
    """
    Raised when a notification hook fails after an expected failure was recorded.
    The suppressed job exception stays available as `job_exception`.
    """

    def __init__(self, message: str, job_exception: BaseException = None):
        super().__init__(message)
        self.job_exception = job_exception


class ConsumerError(ExpectedFailuresError):
    """Base exception for worker/consumer related errors."""

    pass


class UnrecoverableError(ConsumerError):
    """
    Indicates an error due to the task payload itself, making retries futile.
    Examples: Malformed JSON, missing 'class' field, unknown job name.
    """

    pass


class TransientError(ConsumerError):
    """
    Indicates a temporary error, usually related to external services or network issues,
    suggesting a retry might succeed.
    """

    pass
