# src/expected_failures/registry.py
# -*- coding: utf-8 -*-

"""
Name-based registries for notification hooks and job callables, so YAML
configuration and queued task payloads can refer to them by name.
"""

import logging
from typing import Any, Callable, Dict, TypeVar

logger = logging.getLogger(__name__)  # expected_failures.registry

HOOK_REGISTRY: Dict[str, Callable[..., Any]] = {}
JOB_REGISTRY: Dict[str, Callable[..., Any]] = {}

F = TypeVar("F", bound=Callable[..., Any])


def _register(registry: Dict[str, Callable[..., Any]], kind: str, name: str):
    def decorator(func: F) -> F:
        if not callable(func):
            raise TypeError(f"{kind} '{name}' must be callable, got {func!r}.")
        if name in registry:
            logger.warning(
                f"Overwriting {kind} registration for name '{name}'. New: {func.__module__}.{getattr(func, '__qualname__', func)}"
            )
        logger.debug(f"Registering {kind}: '{name}' -> {func!r}")
        registry[name] = func
        return func

    return decorator


def register_hook(name: str) -> Callable[[F], F]:
    """Decorator factory registering a notification hook `hook(exc, job)`."""
    return _register(HOOK_REGISTRY, "hook", name)


def register_job(name: str) -> Callable[[F], F]:
    """Decorator factory registering a job callable under its job type name."""
    return _register(JOB_REGISTRY, "job", name)


@register_hook("log")
def log_exception(exc: BaseException, job) -> None:
    """Default hook: reports the expected failure through logging."""
    logger.warning(
        f"Expected failure in job '{job.name}' (args={job.args}): {type(exc).__name__}: {exc}"
    )
