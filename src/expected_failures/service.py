# src/expected_failures/service.py
# -*- coding: utf-8 -*-

"""
Worker service entry point: starts JobConsumers for every queue configured
under 'consumer.queues', all sharing one FailureMiddleware, and shuts them
down gracefully on SIGINT/SIGTERM.

    consumer:
      job_modules: [myapp.jobs]     # imported so @register_job runs
      queues:
        default:
          workers: 2
          brpop_timeout: 5
          settings:
            dlq_enabled: true
"""

import argparse
import importlib
import logging
import signal
import sys
import threading
from typing import Any, Dict, List, Optional

from .broker.redis_manager import RedisManager, RedisConfigurationError
from .config import SECTION, ExpectedFailuresConfig
from .consumer import JobConsumer
from .exceptions import ConfigurationError
from .middleware import FailureMiddleware
from .store.redis_store import RedisRecordStore
from .utils import settings
from .utils.config_loader import ConfigLoader
from .utils.logger import configure_logging

logger = logging.getLogger(__name__)  # expected_failures.service

running_consumer_instances: List[JobConsumer] = []
shutdown_event = threading.Event()


def shutdown_gracefully(signum, frame):
    """Handles SIGINT and SIGTERM signals."""
    signal_name = signal.Signals(signum).name
    if shutdown_event.is_set():
        logger.warning(f"Signal ({signal_name}) received, already shutting down.")
        return
    logger.warning(f"Shutdown signal ({signal_name}) received. Initiating shutdown...")
    shutdown_event.set()
    for instance in list(running_consumer_instances):
        try:
            instance.stop(timeout=15.0)
        except Exception as e:
            logger.error(
                f"Error stopping consumer {instance.consumer_name}: {e}", exc_info=True
            )
    logger.info("All consumer stop sequences completed.")


def build_consumers(
    consumer_config: Dict[str, Any],
    middleware: FailureMiddleware,
    redis_manager: RedisManager,
) -> List[JobConsumer]:
    """Instantiates (without starting) the consumers described by the 'consumer' section."""
    for module_path in consumer_config.get("job_modules") or []:
        try:
            importlib.import_module(module_path)
        except ImportError as e:
            raise ConfigurationError(f"Cannot import job module '{module_path}': {e}") from e

    queues_config = consumer_config.get("queues")
    if not queues_config or not isinstance(queues_config, dict):
        raise ConfigurationError("Missing or invalid 'consumer.queues' section.")

    consumers = []
    for listen_key, queue_data in queues_config.items():
        queue_data = queue_data or {}
        if not isinstance(queue_data, dict):
            raise ConfigurationError(f"Queue config for '{listen_key}' must be a mapping.")
        try:
            workers = int(queue_data.get("workers", 1))
        except (TypeError, ValueError) as e:
            raise ConfigurationError(f"Invalid 'workers' for queue '{listen_key}': {e}") from e
        queue_settings = queue_data.get("settings") or {}
        if not isinstance(queue_settings, dict):
            raise ConfigurationError(f"Invalid 'settings' for queue '{listen_key}'.")

        for _ in range(workers):
            try:
                consumers.append(
                    JobConsumer(
                        listen_key=listen_key,
                        middleware=middleware,
                        redis_manager=redis_manager,
                        settings=queue_settings,
                        brpop_timeout=queue_data.get(
                            "brpop_timeout", JobConsumer.DEFAULT_BRPOP_TIMEOUT
                        ),
                    )
                )
            except RedisConfigurationError as e:
                raise ConfigurationError(str(e)) from e
    return consumers


def main(config_file: Optional[str] = None) -> int:
    """Loads config, connects Redis, starts consumers, waits for shutdown."""
    configure_logging()
    config_file = config_file or settings.CONFIG_PATH
    logger.info(f"Expected failures worker starting. Config: {config_file}")

    try:
        signal.signal(signal.SIGINT, shutdown_gracefully)
        signal.signal(signal.SIGTERM, shutdown_gracefully)
    except ValueError as e:
        logger.warning(f"Could not set signal handlers: {e}.")

    try:
        loader = ConfigLoader(config_file)
        failures_config = ExpectedFailuresConfig.from_mapping(loader.config.get(SECTION))
        redis_manager = RedisManager(config=loader.config.get("redis") or {})
        store = RedisRecordStore(redis_manager, key_prefix=failures_config.key_prefix)
        middleware = FailureMiddleware.from_config(failures_config, store)
        consumers = build_consumers(
            loader.config.get("consumer") or {}, middleware, redis_manager
        )
    except (FileNotFoundError, ValueError, ConfigurationError) as e:
        logger.critical(f"Failed to load config '{config_file}': {e}")
        return 1
    except RedisConfigurationError as e:
        logger.critical(f"Failed to initialize Redis: {e}. Aborting.")
        return 1

    for instance in consumers:
        instance.start()
        running_consumer_instances.append(instance)
    logger.info(f"Started {len(consumers)} consumer(s). Service operational.")

    while not shutdown_event.is_set():
        shutdown_event.wait(timeout=60.0)

    logger.info("Expected failures worker exiting gracefully.")
    return 0


def cli(argv: Optional[List[str]] = None) -> None:
    parser = argparse.ArgumentParser(
        description="Run job consumers with expected failure tracking."
    )
    parser.add_argument(
        "-c",
        "--config",
        default=None,
        help=f"Path to the YAML config (default: {settings.CONFIG_PATH})",
    )
    args = parser.parse_args(argv)
    sys.exit(main(args.config))


if __name__ == "__main__":
    cli()
