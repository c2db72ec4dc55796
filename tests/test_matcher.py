"""Tests for rule compilation and exception classification."""

import pytest

from expected_failures.exceptions import ConfigurationError
from expected_failures.matcher import (
    UNMATCHED,
    ExceptionMatcher,
    Matched,
    MatchRule,
    compile_rules,
)
from expected_failures.models import JobInfo


class CustomError(Exception):
    pass


class SpecificError(CustomError):
    pass


def hook_a(exc, job):
    pass


def hook_b(exc, job):
    pass


HARD = JobInfo(name="HardWorker", args=[1])
OTHER = JobInfo(name="OtherWorker", args=[])


class TestMatchRule:
    def test_defaults(self):
        rule = MatchRule(ZeroDivisionError)
        assert rule.job is None
        assert rule.hook is None
        assert rule.threshold == 1

    @pytest.mark.parametrize("threshold", [0, -1, 1.5, "3", True])
    def test_invalid_threshold_fails_fast(self, threshold):
        with pytest.raises(ConfigurationError):
            MatchRule(ZeroDivisionError, threshold=threshold)

    def test_non_exception_class_rejected(self):
        with pytest.raises(ConfigurationError):
            MatchRule(int)
        with pytest.raises(ConfigurationError):
            MatchRule(KeyboardInterrupt)

    def test_non_callable_hook_rejected(self):
        with pytest.raises(ConfigurationError):
            MatchRule(ZeroDivisionError, hook="not callable")

    def test_empty_job_scope_rejected(self):
        with pytest.raises(ConfigurationError):
            MatchRule(ZeroDivisionError, job="")


class TestCompileRules:
    def test_keeps_declaration_order(self):
        rules = [MatchRule(Exception), MatchRule(CustomError), MatchRule(SpecificError)]
        assert compile_rules(rules).rules == tuple(rules)

    def test_indexes_job_scoped_before_unscoped_per_class(self):
        unscoped = MatchRule(CustomError)
        scoped = MatchRule(CustomError, job="HardWorker")
        other = MatchRule(SpecificError)

        table = compile_rules([unscoped, other, scoped])

        assert table.by_class[CustomError] == (scoped, unscoped)
        assert table.by_class[SpecificError] == (other,)

    def test_rejects_non_rules(self):
        with pytest.raises(ConfigurationError):
            compile_rules([ZeroDivisionError])


class TestClassify:
    def test_no_rules_is_unmatched(self):
        matcher = ExceptionMatcher()
        assert matcher.classify(RuntimeError("boom"), HARD) is UNMATCHED

    def test_exact_class_matches(self):
        matcher = ExceptionMatcher([MatchRule(ZeroDivisionError, hook=hook_a, threshold=3)])
        result = matcher.classify(ZeroDivisionError(), HARD)
        assert isinstance(result, Matched)
        assert result.hook is hook_a
        assert result.threshold == 3

    def test_superclass_rule_matches_subclass(self):
        matcher = ExceptionMatcher([MatchRule(ArithmeticError, hook=hook_a)])
        result = matcher.classify(ZeroDivisionError(), HARD)
        assert isinstance(result, Matched)
        assert result.rule.exception is ArithmeticError

    def test_more_specific_rule_wins(self):
        matcher = ExceptionMatcher(
            [MatchRule(CustomError, hook=hook_a), MatchRule(SpecificError, hook=hook_b)]
        )
        assert matcher.classify(SpecificError(), HARD).hook is hook_b
        assert matcher.classify(CustomError(), HARD).hook is hook_a

    def test_subclass_rule_does_not_match_superclass(self):
        matcher = ExceptionMatcher([MatchRule(SpecificError)])
        assert matcher.classify(CustomError(), HARD) is UNMATCHED

    def test_job_scope_restricts_match(self):
        matcher = ExceptionMatcher([MatchRule(ZeroDivisionError, job="HardWorker")])
        assert isinstance(matcher.classify(ZeroDivisionError(), HARD), Matched)
        assert matcher.classify(ZeroDivisionError(), OTHER) is UNMATCHED

    def test_scoped_rule_preferred_then_global_fallback(self):
        matcher = ExceptionMatcher(
            [
                MatchRule(CustomError, hook=hook_a),
                MatchRule(CustomError, job="HardWorker", hook=hook_b),
            ]
        )
        assert matcher.classify(CustomError(), HARD).hook is hook_b
        assert matcher.classify(CustomError(), OTHER).hook is hook_a

    def test_specific_global_rule_beats_scoped_ancestor_rule(self):
        matcher = ExceptionMatcher(
            [
                MatchRule(CustomError, job="HardWorker", hook=hook_a),
                MatchRule(SpecificError, hook=hook_b),
            ]
        )
        assert matcher.classify(SpecificError(), HARD).hook is hook_b

    def test_multiple_inheritance_follows_raised_class_mro(self):
        class Both(LookupError, ConnectionError):
            pass

        matcher = ExceptionMatcher(
            [MatchRule(ConnectionError, hook=hook_b), MatchRule(LookupError, hook=hook_a)]
        )

        result = matcher.classify(Both(), HARD)

        assert result.rule.exception is LookupError
        assert result.hook is hook_a

    def test_mro_walk_skips_scoped_rules_for_other_jobs(self):
        matcher = ExceptionMatcher(
            [
                MatchRule(SpecificError, job="HardWorker", hook=hook_a),
                MatchRule(CustomError, hook=hook_b),
            ]
        )
        assert matcher.classify(SpecificError(), HARD).hook is hook_a
        assert matcher.classify(SpecificError(), OTHER).hook is hook_b


class TestReconfigure:
    def test_replaces_table_for_next_classification(self):
        matcher = ExceptionMatcher([MatchRule(ZeroDivisionError)])
        assert isinstance(matcher.classify(ZeroDivisionError(), HARD), Matched)

        matcher.reconfigure([MatchRule(CustomError)])

        assert matcher.classify(ZeroDivisionError(), HARD) is UNMATCHED
        assert isinstance(matcher.classify(CustomError(), HARD), Matched)

    def test_invalid_table_keeps_previous(self):
        matcher = ExceptionMatcher([MatchRule(ZeroDivisionError)])
        with pytest.raises(ConfigurationError):
            matcher.reconfigure([MatchRule(CustomError), "garbage"])
        assert [r.exception for r in matcher.rules] == [ZeroDivisionError]
