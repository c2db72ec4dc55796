# src/expected_failures/matcher.py
# -*- coding: utf-8 -*-

"""
Classification of raised exceptions against the operator's rule table.

A rule table is compiled once into an index from exception class to rules.
Classification walks the raised exception's class hierarchy from most
specific to most general and the first class with an applicable rule wins.
Reconfiguration swaps the whole compiled table.
"""

import logging
import threading
from dataclasses import dataclass, field
from typing import (
    Callable,
    Dict,
    Iterable,
    List,
    Mapping,
    Optional,
    Tuple,
    Type,
    Union,
)

from .exceptions import ConfigurationError
from .models import JobInfo, exception_name

logger = logging.getLogger(__name__)  # expected_failures.matcher

Hook = Callable[[BaseException, JobInfo], None]


@dataclass(frozen=True)
class MatchRule:
    """
    One configuration entry: an exception class (subclasses match too),
    optionally scoped to one job type, with an optional hook and throttle threshold.
    """

    exception: Type[Exception]
    job: Optional[str] = None
    hook: Optional[Hook] = None
    threshold: int = 1

    def __post_init__(self):
        if not isinstance(self.exception, type) or not issubclass(
            self.exception, Exception
        ):
            raise ConfigurationError(
                f"Rule exception must be an Exception subclass, got {self.exception!r}."
            )
        if self.job is not None and (not isinstance(self.job, str) or not self.job):
            raise ConfigurationError(
                f"Rule job scope must be a non-empty string, got {self.job!r}."
            )
        if self.hook is not None and not callable(self.hook):
            raise ConfigurationError(f"Rule hook is not callable: {self.hook!r}.")
        if (
            isinstance(self.threshold, bool)
            or not isinstance(self.threshold, int)
            or self.threshold < 1
        ):
            raise ConfigurationError(
                f"Rule threshold must be an integer >= 1, got {self.threshold!r}."
            )

    def applies_to(self, job: JobInfo) -> bool:
        """Unscoped rules apply to every job; scoped ones only to their job type."""
        return self.job is None or self.job == job.name

    def describe(self) -> str:
        scope = f" (job={self.job})" if self.job else ""
        return f"{exception_name(self.exception)}{scope}"


@dataclass(frozen=True)
class Matched:
    rule: MatchRule

    @property
    def hook(self) -> Optional[Hook]:
        return self.rule.hook

    @property
    def threshold(self) -> int:
        return self.rule.threshold


@dataclass(frozen=True)
class Unmatched:
    pass


UNMATCHED = Unmatched()


Classification = Union[Matched, Unmatched]


@dataclass(frozen=True)
class RuleTable:
    """
    A compiled rule table: the rules as declared, plus an index from exception
    class to its rules with job-scoped entries ahead of unscoped ones.
    """

    rules: Tuple[MatchRule, ...] = ()
    by_class: Mapping[type, Tuple[MatchRule, ...]] = field(default_factory=dict)

    def lookup(self, exc_class: type, job: JobInfo) -> Optional[MatchRule]:
        # Walks the raised class's MRO, so the most specific class wins
        for klass in exc_class.__mro__:
            for rule in self.by_class.get(klass, ()):
                if rule.applies_to(job):
                    return rule
        return None


def compile_rules(rules: Iterable[MatchRule]) -> RuleTable:
    """Validates the rules and indexes them by exception class."""
    declared = tuple(rules)
    grouped: Dict[type, List[MatchRule]] = {}
    for rule in declared:
        if not isinstance(rule, MatchRule):
            raise ConfigurationError(f"Expected a MatchRule, got {rule!r}.")
        grouped.setdefault(rule.exception, []).append(rule)

    # sorted() is stable: declaration order holds within each scope group
    by_class = {
        exc_class: tuple(sorted(entries, key=lambda r: r.job is None))
        for exc_class, entries in grouped.items()
    }
    return RuleTable(rules=declared, by_class=by_class)


class ExceptionMatcher:
    """Holds the compiled rule table and classifies raised exceptions against it."""

    def __init__(self, rules: Iterable[MatchRule] = ()):
        self._lock = threading.Lock()
        self._table: RuleTable = compile_rules(rules)
        logger.info(f"ExceptionMatcher initialized with {len(self._table.rules)} rule(s).")

    @property
    def rules(self) -> Tuple[MatchRule, ...]:
        return self._table.rules

    def reconfigure(self, rules: Iterable[MatchRule]) -> None:
        """Replaces the whole table; takes effect on the next classification."""
        table = compile_rules(rules)
        with self._lock:
            self._table = table
        logger.info(f"ExceptionMatcher reconfigured with {len(table.rules)} rule(s).")

    def classify(self, exc: BaseException, job: JobInfo) -> Classification:
        rule = self._table.lookup(type(exc), job)
        if rule is None:
            return UNMATCHED
        logger.debug(
            f"{type(exc).__name__} raised by '{job.name}' matched rule {rule.describe()}."
        )
        return Matched(rule)
