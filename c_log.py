# ============================================================
# FILE: c_log.py
# ROLE: Unified logger (RotatingFileHandler + stdout echo) + exception-isolating decorator
# ============================================================

from __future__ import annotations

import pytz
from datetime import datetime
from functools import wraps
from logging.handlers import RotatingFileHandler
from typing import Any, Callable, Optional

from const import (
    LOG_DEBUG,
    LOG_INFO,
    LOG_WARNING,
    LOG_ERROR,
    MAX_LOG_LINES,
    TIME_ZONE,
)

import inspect
import logging
import os
import traceback


# ============================================================
# TIME
# ============================================================

TZ = pytz.timezone(TIME_ZONE)


def log_time(ms: Optional[int] = None) -> str:
    """Wall-clock (or epoch ms) rendered in the configured zone."""
    if ms is None:
        dt = datetime.now(TZ)
    else:
        dt = datetime.fromtimestamp(int(ms) / 1000.0, TZ)
    return dt.strftime("%Y-%m-%d %H:%M:%S")


class _TzFormatter(logging.Formatter):
    def formatTime(self, record, datefmt=None):
        return datetime.fromtimestamp(record.created, TZ).strftime(datefmt or "%Y-%m-%d %H:%M:%S")


# ============================================================
# HELPERS
# ============================================================

def estimate_average_line_length(path: str, sample: int = 200) -> int:
    if not os.path.exists(path):
        return 300
    try:
        with open(path, "r", encoding="utf-8") as f:
            lines = [len(line) for _, line in zip(range(sample), f)]
        return sum(lines) // len(lines) if lines else 300
    except OSError:
        return 300


# ============================================================
# UNIFIED LOGGER
# ============================================================
class UnifiedLogger:
    """
    Project-wide logger:
    - logging + RotatingFileHandler (size derived from max_lines)
    - per-instance context tag (feed name, MAIN, ENGINE ...)
    - echo to stdout
    """

    def __init__(
        self,
        name: str,
        log_dir: str = "./logs",
        max_lines: int = MAX_LOG_LINES,
        context: Optional[str] = None,
    ):
        os.makedirs(log_dir, exist_ok=True)
        log_path = os.path.join(log_dir, f"{name}.log")

        max_bytes = estimate_average_line_length(log_path) * int(max_lines)

        logger = logging.getLogger(name)
        logger.setLevel(logging.DEBUG)
        logger.propagate = False

        # one handler per process-wide logger name
        if not logger.handlers:
            handler = RotatingFileHandler(
                log_path,
                maxBytes=max_bytes,
                backupCount=1,
                encoding="utf-8",
            )
            handler.setFormatter(_TzFormatter(
                "%(asctime)s | %(levelname)s | %(context)s | %(message)s",
                datefmt="%Y-%m-%d %H:%M:%S",
            ))
            logger.addHandler(handler)

        self.name = name
        self.log_dir = log_dir
        self._logger = logging.LoggerAdapter(
            logger,
            extra={"context": context or name},
        )

    def child(self, context: str) -> "UnifiedLogger":
        """Same sink, different context tag."""
        return UnifiedLogger(name=self.name, log_dir=self.log_dir, context=context)

    def debug(self, msg: str, *args, **kwargs):
        if LOG_DEBUG:
            print(msg)
            self._logger.debug(msg, *args, **kwargs)

    def info(self, msg: str, *args, **kwargs):
        if LOG_INFO:
            print(msg)
            self._logger.info(msg, *args, **kwargs)

    def warning(self, msg: str, *args, **kwargs):
        if LOG_WARNING:
            print(msg)
            self._logger.warning(msg, *args, **kwargs)

    def error(self, msg: str, *args, **kwargs):
        if LOG_ERROR:
            print(msg)
            self._logger.error(msg, *args, **kwargs)

    def exception(self, msg: str, *args, **kwargs):
        if LOG_ERROR:
            print(msg)
            self._logger.exception(msg, *args, **kwargs)

    # ======================================================
    # DECORATOR
    # ======================================================
    def total_exception_decor(self, func: Callable, context: Optional[Any] = None) -> Callable:
        """
        Catches ALL exceptions, logs the call context,
        does NOT crash the caller. Returns None on failure.
        """

        if getattr(func, "_is_wrapped", False):
            return func

        @wraps(func)
        async def async_wrapper(*args, **kwargs):
            try:
                return await func(*args, **kwargs)
            except Exception as ex:
                self._log_exception(func, ex, context)
                return None

        @wraps(func)
        def sync_wrapper(*args, **kwargs):
            try:
                return func(*args, **kwargs)
            except Exception as ex:
                self._log_exception(func, ex, context)
                return None

        wrapper = (
            async_wrapper
            if inspect.iscoroutinefunction(func)
            else sync_wrapper
        )
        wrapper._is_wrapped = True
        return wrapper

    def _log_exception(self, func, ex, context: Optional[Any] = None):
        extra = {}
        if context is not None:
            extra["context"] = context

        name = getattr(func, "__qualname__", repr(func))
        print(f"[EXCEPTION] {name} -> {ex}")
        self._logger.error(
            f"[EXCEPTION] {name} -> {ex}\n"
            f"Stack:\n{traceback.format_exc()}",
            extra=extra or None,
        )
