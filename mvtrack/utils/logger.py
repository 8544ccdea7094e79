"""Utilities for logging.

Every module gets its logger with `logger = logger_utils.get_logger()`. Records carry the identity of the process that
emitted them, so lines produced by Dask workers during a parallel run can be told apart from the main process.
"""

import logging
import socket
import sys
from datetime import datetime, timezone
from logging import LoggerAdapter
from typing import Optional

from dask import distributed

LOGGER_NAME = "mvtrack"

# Set once per process; the Dask worker context does not change over a process's lifetime.
_WORKER_ID_CACHE: Optional[str] = None


def _detect_worker_id() -> str:
    """Detect the identity of the current process.

    Returns:
        "hostname@port" inside a Dask worker, "hostname-main" otherwise.
    """
    hostname = socket.gethostname()
    try:
        worker = distributed.get_worker()
    except ValueError:
        # Not running inside a worker.
        return f"{hostname}-main"

    port = worker.address.split(":")[-1]
    return f"{hostname}@{port}"


def get_worker_id() -> str:
    """Get the cached worker id for the current process."""
    global _WORKER_ID_CACHE

    if _WORKER_ID_CACHE is None:
        _WORKER_ID_CACHE = _detect_worker_id()

    return _WORKER_ID_CACHE


class WorkerAwareAdapter(LoggerAdapter):
    """LoggerAdapter that injects the worker id into every LogRecord.

    Detection happens lazily at the first log call: the worker context is not available yet at import time.
    """

    def __init__(self, logger: logging.Logger) -> None:
        super().__init__(logger, {})

    def process(self, msg, kwargs):
        kwargs.setdefault("extra", {})["worker_id"] = get_worker_id()
        return msg, kwargs


class UTCFormatter(logging.Formatter):
    """Formatter with UTC timestamps."""

    def formatTime(self, record, datefmt=None):
        dt = datetime.fromtimestamp(record.created, tz=timezone.utc)
        if datefmt:
            return dt.strftime(datefmt)
        return dt.strftime("%Y-%m-%d %H:%M:%S")


def get_logger() -> LoggerAdapter:
    """Get the package logger, wrapped to report the worker id.

    Log format:
        "2025-10-28 00:00:45 [hornet@40665] [ray_extent_search.py] INFO: message"

    Returns:
        LoggerAdapter: Configured logger adapter instance.
    """
    logger = logging.getLogger(LOGGER_NAME)

    if not logger.handlers:
        logger.setLevel(logging.INFO)
        handler = logging.StreamHandler(sys.stdout)
        fmt = "%(asctime)s [%(worker_id)s] [%(filename)s] %(levelname)s: %(message)s"
        handler.setFormatter(UTCFormatter(fmt, datefmt="%Y-%m-%d %H:%M:%S"))
        logger.addHandler(handler)

    return WorkerAwareAdapter(logger)
