# src/expected_failures/consumer.py
# -*- coding: utf-8 -*-

"""
Redis List consumer running queued jobs through the FailureMiddleware.

Task payloads are JSON strings pushed with LPUSH (see `enqueue`):
    {"class": "HardWorker", "args": [1, "two"], "jid": "optional-id"}

Expected failures are recorded and the task is considered handled.
Unexpected job exceptions, and failures of the tracking layer itself, follow
the consumer's normal failure path: logged and pushed to the DLQ if enabled.
"""

import json
import logging
import os
import socket
import threading
import time
import uuid
from typing import Any, Callable, Dict, Optional

from .broker.redis_manager import (
    RedisManager,
    RedisConfigurationError,
    RedisOperationError,
)
from .exceptions import (
    NotificationError,
    StorageError,
    TransientError,
    UnrecoverableError,
)
from .middleware import FailureMiddleware
from .models import JobInfo
from .registry import JOB_REGISTRY

logger = logging.getLogger(__name__)  # expected_failures.consumer


def enqueue(
    redis_manager: RedisManager, queue: str, job_name: str, *args: Any
) -> str:
    """Pushes a job onto `queue` for a JobConsumer. Returns the job id."""
    jid = uuid.uuid4().hex
    payload = json.dumps({"class": job_name, "args": list(args), "jid": jid})
    redis_manager.lpush(queue, [payload])
    logger.debug(f"Enqueued '{job_name}' ({jid}) on '{queue}'.")
    return jid


class JobConsumer:
    """
    Pops tasks from a Redis List with BRPOP and executes the named job.

    Handles the loop, thread management, decoding of task data (UTF-8) and
    graceful shutdown. Job failures are classified by the middleware.
    """

    DEFAULT_BRPOP_TIMEOUT: int = 5
    DEFAULT_ERROR_PAUSE_SECONDS: float = 1.0
    DEFAULT_MAX_REDIS_ERROR_STREAK: int = 5

    def __init__(
        self,
        listen_key: str,
        middleware: FailureMiddleware,
        redis_manager: RedisManager,
        jobs: Optional[Dict[str, Callable[..., Any]]] = None,
        consumer_name: Optional[str] = None,
        settings: Optional[Dict[str, Any]] = None,
        brpop_timeout: int = DEFAULT_BRPOP_TIMEOUT,
    ):
        if not listen_key or not isinstance(listen_key, str):
            raise RedisConfigurationError(
                f"{self.__class__.__name__} requires 'listen_key'."
            )

        self.listen_key: str = listen_key
        self.middleware = middleware
        self.redis_manager = redis_manager
        self.jobs: Dict[str, Callable[..., Any]] = (
            jobs if jobs is not None else JOB_REGISTRY
        )
        self.settings: Dict[str, Any] = settings if settings is not None else {}
        self.consumer_name: str = consumer_name or self._generate_consumer_name()
        try:
            self.brpop_timeout: int = int(brpop_timeout)
            if self.brpop_timeout < 0:
                raise ValueError(">= 0")
        except (ValueError, TypeError) as e:
            raise RedisConfigurationError(f"Invalid 'brpop_timeout': {e}")

        self._running = threading.Event()
        self._running.set()
        self._thread: Optional[threading.Thread] = None

        logger.info(
            f"[{self.consumer_name}] Initialized. Listening Key='{self.listen_key}', "
            f"BRPOP Timeout={self.brpop_timeout}s, Settings={self.settings}"
        )

    def _generate_consumer_name(self) -> str:
        hostname = socket.gethostname()
        pid = os.getpid()
        tid = threading.get_ident()
        safe_key = "".join(
            c if c.isalnum() or c in ("-", "_", ":") else "_" for c in self.listen_key
        )
        return f"{hostname}-{pid}-{tid}-{safe_key}"

    # --- Task Handling ---

    def parse_task(self, task_data: str) -> JobInfo:
        try:
            payload = json.loads(task_data)
        except json.JSONDecodeError as e:
            raise UnrecoverableError(f"Task data is not valid JSON: {e}") from e
        if not isinstance(payload, dict):
            raise UnrecoverableError("Task data must be a JSON object.")

        name = payload.get("class")
        if not name or not isinstance(name, str):
            raise UnrecoverableError("Task data is missing the 'class' field.")
        args = payload.get("args") or []
        if not isinstance(args, list):
            raise UnrecoverableError(f"Task 'args' must be a list, got {type(args).__name__}.")
        return JobInfo(name=name, args=args, jid=payload.get("jid"))

    def process_task(self, task_data: str) -> bool:
        """
        Runs one decoded task through the middleware.

        Returns:
            bool: True if handled (success or expected failure), False if transient failure.
        """
        job = self.parse_task(task_data)
        func = self.jobs.get(job.name)
        if func is None:
            raise UnrecoverableError(
                f"Unknown job '{job.name}'. Registered: {sorted(self.jobs)}"
            )

        try:
            self.middleware.execute(job, self.listen_key, lambda: func(*job.args))
        except TransientError as e:
            logger.warning(
                f"[{self.consumer_name}] Transient failure in job '{job.name}': {e}"
            )
            # BRPOP already removed the task; the DLQ is its only copy
            self._push_to_dlq(task_data, e)
            return False
        return True

    def handle_task(self, task_data_bytes: Any) -> bool:
        """Decodes raw task data and processes it. Returns True when handled."""
        if isinstance(task_data_bytes, bytes):
            try:
                task_data_str = task_data_bytes.decode("utf-8")
            except UnicodeDecodeError as decode_err:
                logger.error(
                    f"[{self.consumer_name}] Unrecoverable Error: Failed to decode task data as UTF-8. Discarding. Error: {decode_err}. Raw head: {task_data_bytes[:100]}"
                )
                self._push_to_dlq(
                    task_data_bytes.decode("latin-1", errors="replace"), decode_err
                )
                return True
        else:
            task_data_str = task_data_bytes

        try:
            is_task_handled = self.process_task(task_data_str)
            if is_task_handled:
                logger.debug(f"[{self.consumer_name}] Task handled by process_task.")
            else:
                logger.warning(
                    f"[{self.consumer_name}] process_task indicated transient failure."
                )
            return is_task_handled
        except UnrecoverableError as ue:
            logger.error(
                f"[{self.consumer_name}] Unrecoverable error processing task: {ue}. Discarding."
            )
            self._push_to_dlq(task_data_str, ue)
            return True
        except (StorageError, NotificationError) as tracking_err:
            logger.critical(
                f"[{self.consumer_name}] Failure tracking broke while handling task: {tracking_err}",
                exc_info=True,
            )
            self._push_to_dlq(task_data_str, tracking_err)
            return False
        except Exception as process_err:
            logger.exception(
                f"[{self.consumer_name}] Unexpected error during process_task."
            )
            self._push_to_dlq(task_data_str, process_err)
            return False

    # --- Loop & Thread Management ---

    def run(self):
        """Main loop using BRPOP."""
        if not self._running.is_set():
            return
        logger.info(
            f"[{self.consumer_name}] Starting task processing loop on '{self.listen_key}'..."
        )
        redis_error_streak = 0
        max_redis_error_streak = self.settings.get(
            "max_redis_error_streak", self.DEFAULT_MAX_REDIS_ERROR_STREAK
        )

        while self._running.is_set():
            try:
                task_tuple = self.redis_manager.brpop(
                    self.listen_key, timeout=self.brpop_timeout
                )
            except RedisOperationError as e:
                redis_error_streak += 1
                logger.error(
                    f"[{self.consumer_name}] Redis error during BRPOP: {e}. Streak: {redis_error_streak}"
                )
                if redis_error_streak >= max_redis_error_streak:
                    pause_duration = min(
                        30, 1 * (2 ** (redis_error_streak - max_redis_error_streak))
                    )
                    logger.warning(
                        f"[{self.consumer_name}] Pausing for {pause_duration:.1f}s."
                    )
                    self._running.wait(timeout=pause_duration)
                else:
                    self._running.wait(timeout=1.0)
                continue

            redis_error_streak = 0
            if not task_tuple:
                continue

            _list_key, task_data = task_tuple
            logger.info(f"[{self.consumer_name}] Received task from '{self.listen_key}'.")
            if not self.handle_task(task_data):
                time.sleep(self.DEFAULT_ERROR_PAUSE_SECONDS)

        logger.info(
            f"[{self.consumer_name}] Task processing loop stopped for '{self.listen_key}'."
        )

    def start(self):
        if self._thread and self._thread.is_alive():
            logger.warning(
                f"[{self.consumer_name}] Start called, but worker thread exists."
            )
            return
        if not self._running.is_set():
            logger.info(f"[{self.consumer_name}] Restarting consumer...")
            self._running.set()
        self._thread = threading.Thread(
            target=self.run, name=self.consumer_name, daemon=True
        )
        self._thread.start()
        logger.info(
            f"[{self.consumer_name}] Worker thread started (ID: {self._thread.ident})."
        )

    def stop(self, timeout: Optional[float] = 10.0):
        thread_id = self._thread.ident if self._thread else "N/A"
        if not self._running.is_set():
            logger.info(
                f"[{self.consumer_name}] Stop called, but already stopped (TID: {thread_id})."
            )
            return
        logger.info(
            f"[{self.consumer_name}] Stop requested. Signaling loop (TID: {thread_id})..."
        )
        self._running.clear()
        if (
            self._thread
            and self._thread.is_alive()
            and threading.current_thread() != self._thread
        ):
            self._thread.join(timeout=timeout)
            if self._thread.is_alive():
                logger.warning(
                    f"[{self.consumer_name}] Thread {thread_id} did not stop within timeout."
                )
            else:
                logger.info(f"[{self.consumer_name}] Thread {thread_id} finished.")
                self._thread = None

    def _push_to_dlq(self, failed_task_data: str, error: BaseException):
        """Pushes failed task data to a configured Dead Letter Queue List."""
        if not self.settings.get("dlq_enabled", False):
            return
        dlq_key = self.settings.get("dlq_key", f"dlq:{self.listen_key}")
        logger.warning(
            f"[{self.consumer_name}] Pushing failed task to DLQ '{dlq_key}'. Error: {type(error).__name__}"
        )
        dlq_entry = {
            "ts": time.time(),
            "consumer": self.consumer_name,
            "key": self.listen_key,
            "error": f"{type(error).__name__}: {error}",
            "data": failed_task_data,
        }
        try:
            self.redis_manager.lpush(dlq_key, [json.dumps(dlq_entry, default=str)])
        except RedisOperationError as e:
            logger.error(f"[{self.consumer_name}] Failed to push to DLQ '{dlq_key}': {e}")
