# -*- coding: utf-8 -*-

"""Redis connection management."""

from .redis_manager import (
    RedisManager,
    RedisManagerError,
    RedisConfigurationError,
    RedisOperationError,
)

__all__ = [
    "RedisManager",
    "RedisManagerError",
    "RedisConfigurationError",
    "RedisOperationError",
]
