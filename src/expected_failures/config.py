# src/expected_failures/config.py
# -*- coding: utf-8 -*-

"""
Loading and validation of the 'expected_failures' configuration section.

Two ways to declare rules are accepted:

    expected_failures:
      key_prefix: expected
      default_hook: log
      rules:                       # explicit entries
        - exception: ZeroDivisionError
          hook: log
          threshold: 3
        - exception: myapp.errors.ApiTimeout
          job: SyncAccounts
      jobs:                        # per-job shorthand: exception -> threshold
        HardWorker:
          NotImplementedError: null    # record only
          myapp.errors.Throttled: 10   # default_hook on every 10th

Everything is resolved and validated up front; any problem raises
ConfigurationError before a single job runs.
"""

import importlib
import logging
from dataclasses import dataclass
from typing import Any, Callable, Dict, List, Mapping, Optional, Tuple

from pydantic import BaseModel, Field, ValidationError, field_validator

from .exceptions import ConfigurationError
from .matcher import MatchRule
from .registry import HOOK_REGISTRY
from .utils import settings
from .utils.config_loader import ConfigLoader

logger = logging.getLogger(__name__)  # expected_failures.config

SECTION = "expected_failures"


def import_string(path: str) -> Any:
    """Imports `package.module.Attr`; a bare name is looked up in builtins."""
    module_path, _, attr = path.rpartition(".")
    if not module_path:
        module_path = "builtins"
    try:
        module = importlib.import_module(module_path)
        return getattr(module, attr)
    except (ImportError, AttributeError) as e:
        raise ConfigurationError(f"Cannot import '{path}': {e}") from e


def resolve_exception(path: str) -> type:
    exc_class = import_string(path)
    if not isinstance(exc_class, type) or not issubclass(exc_class, Exception):
        raise ConfigurationError(f"'{path}' is not an Exception subclass.")
    return exc_class


def resolve_hook(name: Optional[str]) -> Optional[Callable[..., Any]]:
    """A registered hook name, or a dotted path to a callable."""
    if name is None:
        return None
    if name in HOOK_REGISTRY:
        return HOOK_REGISTRY[name]
    if "." not in name:
        raise ConfigurationError(
            f"Unknown hook '{name}'. Registered: {sorted(HOOK_REGISTRY)}"
        )
    hook = import_string(name)
    if not callable(hook):
        raise ConfigurationError(f"Hook '{name}' is not callable.")
    return hook


class RuleSpec(BaseModel):
    """One entry of the 'rules' list as written in the config file."""

    exception: str = Field(min_length=1)
    job: Optional[str] = None
    hook: Optional[str] = None
    threshold: int = Field(default=1, ge=1)

    model_config = {"extra": "forbid"}

    @field_validator("threshold", mode="before")
    @classmethod
    def reject_bool_threshold(cls, value: Any) -> Any:
        if isinstance(value, bool):
            raise ValueError("threshold must be an integer")
        return value

    def to_rule(self) -> MatchRule:
        return MatchRule(
            exception=resolve_exception(self.exception),
            job=self.job,
            hook=resolve_hook(self.hook),
            threshold=self.threshold,
        )


class SectionSpec(BaseModel):
    key_prefix: str = Field(default="expected", min_length=1)
    default_hook: Optional[str] = "log"
    rules: List[RuleSpec] = Field(default_factory=list)
    jobs: Dict[str, Dict[str, Optional[int]]] = Field(default_factory=dict)

    model_config = {"extra": "forbid"}

    # An empty YAML key ("rules:") loads as None
    @field_validator("rules", mode="before")
    @classmethod
    def empty_rules(cls, value: Any) -> Any:
        return [] if value is None else value

    @field_validator("jobs", mode="before")
    @classmethod
    def empty_jobs(cls, value: Any) -> Any:
        return {} if value is None else value


@dataclass(frozen=True)
class ExpectedFailuresConfig:
    """Resolved configuration handed to the middleware. Replaced, never mutated."""

    rules: Tuple[MatchRule, ...] = ()
    key_prefix: str = "expected"

    @classmethod
    def from_mapping(cls, section: Optional[Mapping[str, Any]]) -> "ExpectedFailuresConfig":
        try:
            section_spec = SectionSpec.model_validate(dict(section or {}))
        except ValidationError as e:
            raise ConfigurationError(f"Invalid '{SECTION}' configuration: {e}") from e

        rules = [rule_spec.to_rule() for rule_spec in section_spec.rules]

        for job_name, exceptions in section_spec.jobs.items():
            for exc_path, threshold in exceptions.items():
                if threshold is None:
                    rules.append(
                        MatchRule(exception=resolve_exception(exc_path), job=job_name)
                    )
                else:
                    rules.append(
                        MatchRule(
                            exception=resolve_exception(exc_path),
                            job=job_name,
                            hook=resolve_hook(section_spec.default_hook),
                            threshold=threshold,
                        )
                    )

        logger.info(f"Loaded {len(rules)} expected failure rule(s).")
        return cls(rules=tuple(rules), key_prefix=section_spec.key_prefix)

    @classmethod
    def load(cls, config_path: Optional[str] = None) -> "ExpectedFailuresConfig":
        config_path = config_path or settings.CONFIG_PATH
        try:
            loader = ConfigLoader(config_path)
        except (FileNotFoundError, ValueError) as e:
            raise ConfigurationError(str(e)) from e
        return cls.from_mapping(loader.config.get(SECTION))
