# src/expected_failures/broker/redis_manager.py
# -*- coding: utf-8 -*-

"""
Utility class for managing the Redis connection used by the record store and
the job consumers.

Reads connection details from the 'redis' section of the YAML configuration
using ConfigLoader and the password from utils.settings.
"""

import logging
from typing import Any, Callable, Dict, List, Optional, Tuple, Union

# --- Dependencies ---
try:
    from redis import Redis
    from redis.exceptions import (
        RedisError,
        ConnectionError as RedisConnectionError,
        AuthenticationError as RedisAuthenticationError,
    )
except ImportError:
    print(
        "Error: The 'redis' package is required. Please install it using 'pip install redis'"
    )
    raise

# --- Local Imports ---
from ..utils.config_loader import ConfigLoader
from ..utils import settings

# --- Logging ---
logger = logging.getLogger(__name__)


# --- Custom Exceptions ---
class RedisManagerError(Exception):
    """Base exception for RedisManager specific errors."""

    pass


class RedisConfigurationError(RedisManagerError):
    """Error related to RedisManager configuration or connection setup."""

    pass


class RedisOperationError(RedisManagerError):
    """Error occurred during a Redis operation."""

    pass


# --- RedisManager Class ---
class RedisManager:
    """
    Manages the connection and provides the few generic Redis operations the
    failure tracker and its consumers need.

    Connection details come from a config dict, the 'redis' section of a YAML
    file, or an already constructed client (used by tests and embedding hosts).
    """

    def __init__(
        self,
        config_path: Optional[str] = None,
        config: Optional[Dict[str, Any]] = None,
        client: Optional[Redis] = None,
    ):
        """
        Args:
            config_path (str): Path to a YAML/JSON file with a 'redis' section.
            config (dict): The 'redis' section itself; takes precedence over config_path.
            client (Redis): Pre-built client; skips connecting and pinging.

        Raises:
            RedisConfigurationError: If configuration cannot be loaded or connection fails.
        """
        self.redis: Optional[Redis] = client
        if client is not None:
            self.config: Dict[str, Any] = dict(config or {})
            logger.info("RedisManager using provided Redis client.")
            return
        if config is not None:
            self.config = dict(config)
        else:
            self.config = self._load_config(config_path or settings.CONFIG_PATH)
        self._connect()

    def _load_config(self, config_path: str) -> Dict[str, Any]:
        """Loads Redis configuration from the specified YAML file."""
        try:
            loader = ConfigLoader(config_path)
            redis_config = loader.config.get("redis")
            if not redis_config or not isinstance(redis_config, dict):
                raise RedisConfigurationError(
                    f"Invalid or missing 'redis' section in config file: {config_path}"
                )
            logger.info(f"Loaded Redis configuration from {config_path}.")
            return redis_config
        except FileNotFoundError as e:
            logger.critical(f"Redis configuration file not found at: {config_path}")
            raise RedisConfigurationError(
                f"Redis config file not found: {config_path}"
            ) from e
        except RedisConfigurationError:
            raise
        except Exception as e:
            logger.critical(
                f"Failed to load or parse Redis configuration from {config_path}: {e}",
                exc_info=True,
            )
            raise RedisConfigurationError(f"Failed to load Redis config: {e}") from e

    def _connect(self) -> None:
        """Establishes the connection to Redis based on loaded configuration."""
        host = self.config.get("host", "localhost")
        port = self.config.get("port", 6379)
        db = self.config.get("db", 0)
        decode_responses = self.config.get("decode_responses", True)
        redis_url = self.config.get("url")

        # Password comes from the environment, not the YAML file
        password = settings.REDIS_PASSWORD or None

        logger.debug(
            f"Redis connection params: URL={redis_url}, Host={host}, Port={port}, DB={db}, Decode={decode_responses}, Password={'***' if password else 'None'}"
        )

        try:
            if redis_url:
                logger.info(f"Connecting using Redis URL from config: {redis_url}")
                self.redis = Redis.from_url(
                    redis_url, password=password, decode_responses=decode_responses
                )
            else:
                self.redis = Redis(
                    host=host,
                    port=int(port),
                    db=int(db),
                    password=password,
                    decode_responses=decode_responses,
                )

            self.redis.ping()
            logger.info(
                f"Redis connection successful (Host: {host}, Port: {port}, DB: {db})."
            )

        except (RedisConnectionError, RedisAuthenticationError) as e:
            logger.critical(f"Failed to connect to Redis: {e}", exc_info=True)
            raise RedisConfigurationError(f"Failed to connect to Redis: {e}") from e
        except (ValueError, TypeError) as e:
            logger.critical(
                f"Invalid Redis configuration value (e.g., port, db): {e}",
                exc_info=True,
            )
            raise RedisConfigurationError(f"Invalid Redis config value: {e}") from e

    def ensure_connected(self) -> Redis:
        """Returns the client, raising if it was never initialized."""
        if not self.redis:
            logger.error("Redis client is not initialized. Cannot perform operation.")
            raise RedisConfigurationError("Redis client not initialized.")
        return self.redis

    # --- Generic List Operations ---

    def lpush(self, key: str, values: List[str]) -> int:
        """Prepends one or more values to a List. Returns the new length."""
        client = self.ensure_connected()
        if not values:
            return 0
        try:
            return client.lpush(key, *values)
        except RedisError as e:
            logger.error(
                f"Redis error performing LPUSH on key '{key}': {e}", exc_info=True
            )
            raise RedisOperationError(f"Redis error during LPUSH: {e}") from e

    def brpop(
        self, keys: Union[str, List[str]], timeout: int = 0
    ) -> Optional[Tuple[Any, Any]]:
        """Blocking pop from the tail (right side) of one or more Lists."""
        client = self.ensure_connected()
        try:
            return client.brpop(keys, timeout=timeout)
        except RedisError as e:
            logger.error(
                f"Redis error performing BRPOP on key(s) '{keys}': {e}", exc_info=True
            )
            raise RedisOperationError(f"Redis error during BRPOP: {e}") from e

    # --- MULTI/EXEC ---
    def execute_transaction(
        self, transaction_commands: Callable[[Any], None]
    ) -> List[Any]:
        """
        Executes the commands queued by `transaction_commands` within MULTI/EXEC
        and returns their results in order.
        """
        client = self.ensure_connected()
        pipe = client.pipeline()
        try:
            pipe.multi()
            transaction_commands(pipe)
            results = pipe.execute()
            logger.debug(f"Executed transaction. Results count: {len(results)}")
            return results
        except RedisError as e:
            logger.error(f"Redis error during transaction: {e}", exc_info=True)
            raise RedisOperationError(f"Redis error during transaction: {e}") from e
        finally:
            pipe.reset()
