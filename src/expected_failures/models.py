# src/expected_failures/models.py
# -*- coding: utf-8 -*-

"""
Data structures shared by the middleware and the record stores.

FailureRecord is stored as a JSON document in a date bucket; its JSON keys
(failed_at, args, exception, error, worker, queue) are the persisted layout
read back by the dashboard API.
"""

import json
import logging
from dataclasses import dataclass, field
from typing import Any, List, Optional, Type

try:
    from pydantic import BaseModel, Field, field_validator
except ImportError:
    print("ERROR: pydantic package is required. Install using 'pip install pydantic'")
    raise

logger = logging.getLogger(__name__)  # expected_failures.models


def exception_name(exc_class: Type[BaseException]) -> str:
    """
    Name used for records and counters: bare for builtins (`ZeroDivisionError`),
    module-qualified otherwise (`myapp.errors.ApiTimeout`).
    """
    module = exc_class.__module__
    if module == "builtins":
        return exc_class.__qualname__
    return f"{module}.{exc_class.__qualname__}"


@dataclass(frozen=True)
class JobInfo:
    """Metadata of the job being executed: its type name and arguments."""

    name: str
    args: List[Any] = field(default_factory=list)
    jid: Optional[str] = None


class FailureRecord(BaseModel):
    """Immutable snapshot of one suppressed failure."""

    failed_at: str = Field(description="Local time of the failure, second precision.")
    args: List[Any] = Field(default_factory=list, description="Job arguments.")
    exception: str = Field(description="Exception class name.")
    error: str = Field(default="", description="Exception message.")
    worker: str = Field(description="Job type name.")
    queue: str = Field(description="Queue the job ran on.")

    model_config = {"extra": "ignore", "frozen": True}

    @field_validator("args", mode="before")
    @classmethod
    def coerce_args(cls, value: Any) -> List[Any]:
        if value is None:
            return []
        if isinstance(value, tuple):
            return list(value)
        return value

    @classmethod
    def capture(
        cls, exc: BaseException, job: JobInfo, queue: str, failed_at: str
    ) -> "FailureRecord":
        """Builds the record for `exc` raised by `job` on `queue`."""
        return cls(
            failed_at=failed_at,
            args=list(job.args),
            exception=exception_name(type(exc)),
            error=str(exc),
            worker=job.name,
            queue=queue,
        )

    def to_json(self) -> str:
        # default=str keeps non-JSON arguments (datetimes, decimals) storable
        return json.dumps(self.model_dump(), default=str)

    @classmethod
    def from_json(cls, raw: Any) -> "FailureRecord":
        if isinstance(raw, bytes):
            raw = raw.decode("utf-8")
        return cls.model_validate_json(raw)
