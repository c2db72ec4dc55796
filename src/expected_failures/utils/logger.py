# src/expected_failures/utils/logger.py

import logging
import sys
from typing import Optional

from . import settings

LOG_FORMAT = "[%(asctime)s] [%(levelname)s] [%(name)s] - %(message)s"


def configure_logging(level_name: Optional[str] = None) -> logging.Logger:
    """
    Configures the root logger with a single stdout handler.
    Called once by the worker service and the API app; library code only
    does `logger = logging.getLogger(__name__)`.
    """
    level_name = (level_name or settings.LOG_LEVEL or "INFO").upper()
    log_level = getattr(logging, level_name, logging.INFO)

    # --- Configure Root Logger ---
    root_logger = logging.getLogger()
    root_logger.setLevel(log_level)

    if root_logger.hasHandlers():
        root_logger.handlers.clear()
    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setLevel(log_level)
    console_handler.setFormatter(logging.Formatter(LOG_FORMAT))
    root_logger.addHandler(console_handler)

    # --- Third-Party Loggers ---
    logging.getLogger("redis").setLevel(logging.WARNING)

    # --- Uvicorn: drop its handlers and rely on propagation to root ---
    for name in ["uvicorn", "uvicorn.error", "uvicorn.access"]:
        uvicorn_logger = logging.getLogger(name)
        uvicorn_logger.handlers.clear()
        uvicorn_logger.propagate = True
        if "access" in name:
            uvicorn_logger.setLevel(max(log_level, logging.INFO))
        else:
            uvicorn_logger.setLevel(log_level)

    logging.info(f"Root logger configured. Level: {level_name}.")
    return root_logger
