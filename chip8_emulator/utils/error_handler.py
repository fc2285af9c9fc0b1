"""
Error reporting and logging setup for the CHIP-8 emulator.

The interpreter only raises exceptions (see ``common/exceptions.py``). Hosts
pass them to an ``ErrorHandler``, which logs them, files them under a
category, keeps a bounded history for reports and notifies any callback
registered for that category.

This module also owns the handlers of the ``Chip8Emulator`` logger: a
console handler on stdout and an optional log file.
"""

import logging
import sys
import os
import traceback
import json
import datetime
import threading
from collections import deque, Counter
from enum import Enum
from functools import wraps
from typing import Dict, List, Any, Optional, Callable

from ..common.exceptions import (
    Chip8Error, UnimplementedOpcodeError, MachineFault
)

logger = logging.getLogger("Chip8Emulator")

LOG_FORMAT = '%(asctime)s - %(name)s - %(levelname)s - %(message)s'

class ErrorLevel(Enum):
    """Severity, mapped onto logging levels."""
    DEBUG = logging.DEBUG
    INFO = logging.INFO
    WARNING = logging.WARNING
    ERROR = logging.ERROR
    CRITICAL = logging.CRITICAL

class ErrorCategory(Enum):
    """Where an error came from."""
    SYSTEM = "system"
    CONFIGURATION = "configuration"
    INPUT = "input"
    MACHINE = "machine"
    OPCODE = "opcode"
    IO = "io"
    UNKNOWN = "unknown"

# Checked in order, so subclasses come before their bases
_CATEGORY_BY_TYPE = [
    (UnimplementedOpcodeError, ErrorCategory.OPCODE),
    (MachineFault, ErrorCategory.MACHINE),
    (Chip8Error, ErrorCategory.SYSTEM),
    (OSError, ErrorCategory.IO),
    (ValueError, ErrorCategory.INPUT),
]

def categorize(exception: BaseException) -> ErrorCategory:
    """Pick the error category for an exception."""
    for exception_type, category in _CATEGORY_BY_TYPE:
        if isinstance(exception, exception_type):
            return category
    return ErrorCategory.UNKNOWN

ErrorCallback = Callable[[Dict[str, Any]], None]

class ErrorHandler:
    """
    Central error sink.

    Every reported error becomes a plain dictionary (timestamp, level,
    category, message, exception type, traceback, context) that is logged,
    stored and handed to the category callback if one is registered.
    """

    def __init__(self,
                 log_file: Optional[str] = None,
                 console_level: int = logging.INFO,
                 file_level: int = logging.DEBUG,
                 max_error_history: int = 100):
        """
        Args:
            log_file: Also log to this file (None for console only)
            console_level: Level for the stdout handler
            file_level: Level for the file handler
            max_error_history: Number of reports kept
        """
        self.log_file = log_file
        self.console_level = console_level
        self.file_level = file_level
        self.max_error_history = max_error_history

        self._history = deque(maxlen=max_error_history)
        self._lock = threading.Lock()
        self._callbacks: Dict[ErrorCategory, ErrorCallback] = {}

        self._configure_logging()

    def _configure_logging(self) -> None:
        for handler in list(logger.handlers):
            logger.removeHandler(handler)
        logger.setLevel(logging.DEBUG)
        logger.propagate = False

        console = logging.StreamHandler(sys.stdout)
        console.setLevel(self.console_level)
        console.setFormatter(logging.Formatter(LOG_FORMAT))
        logger.addHandler(console)

        if self.log_file:
            self._add_file_handler(self.log_file)

    def _add_file_handler(self, log_file: str) -> None:
        directory = os.path.dirname(log_file)
        if directory:
            os.makedirs(directory, exist_ok=True)

        file_handler = logging.FileHandler(log_file)
        file_handler.setLevel(self.file_level)
        file_handler.setFormatter(logging.Formatter(LOG_FORMAT))
        logger.addHandler(file_handler)

    def handle_error(self,
                     exception: Optional[BaseException] = None,
                     message: Optional[str] = None,
                     level: ErrorLevel = ErrorLevel.ERROR,
                     category: Optional[ErrorCategory] = None,
                     context: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
        """
        Report an error.

        Args:
            exception: The exception, if there is one
            message: Text to log (defaults to the exception message)
            level: Severity
            category: Category (derived from the exception if None)
            context: Extra data stored with the report

        Returns:
            The stored report
        """
        if category is None:
            category = categorize(exception) if exception is not None else ErrorCategory.UNKNOWN
        if message is None:
            message = str(exception) if exception is not None else "Unknown error"

        report = {
            "timestamp": datetime.datetime.now().isoformat(),
            "level": level.name,
            "category": category.name,
            "message": message,
            "exception_type": None,
            "traceback": None,
            "context": context or {},
        }
        if exception is not None:
            report["exception_type"] = type(exception).__name__
            report["traceback"] = "".join(traceback.format_exception(
                type(exception), exception, exception.__traceback__))

        logger.log(level.value, f"[{category.name}] {message}")
        if report["traceback"] and level.value >= logging.ERROR:
            logger.debug(report["traceback"])

        with self._lock:
            self._history.append(report)

        callback = self._callbacks.get(category)
        if callback is not None:
            try:
                callback(report)
            except Exception as e:
                logger.error(f"Error callback for {category.name} failed: {e}")

        return report

    def log_exception(self, exception: BaseException,
                      message: Optional[str] = None,
                      category: Optional[ErrorCategory] = None,
                      context: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
        return self.handle_error(exception, message, ErrorLevel.ERROR, category, context)

    def log_error(self, message: str,
                  category: ErrorCategory = ErrorCategory.UNKNOWN,
                  context: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
        return self.handle_error(None, message, ErrorLevel.ERROR, category, context)

    def log_warning(self, message: str,
                    category: ErrorCategory = ErrorCategory.UNKNOWN,
                    context: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
        return self.handle_error(None, message, ErrorLevel.WARNING, category, context)

    def register_handler(self, category: ErrorCategory, handler: ErrorCallback) -> None:
        """Call ``handler`` with the report of every error in ``category``."""
        self._callbacks[category] = handler

    def unregister_handler(self, category: ErrorCategory) -> bool:
        return self._callbacks.pop(category, None) is not None

    def clear_error_history(self) -> None:
        with self._lock:
            self._history.clear()

    def get_error_history(self,
                          level: Optional[ErrorLevel] = None,
                          category: Optional[ErrorCategory] = None) -> List[Dict[str, Any]]:
        """Stored reports, oldest first, optionally filtered."""
        with self._lock:
            reports = list(self._history)

        if level is not None:
            reports = [r for r in reports if r["level"] == level.name]
        if category is not None:
            reports = [r for r in reports if r["category"] == category.name]
        return reports

    def get_error_summary(self) -> Dict[str, Any]:
        """Counts of stored reports by category, level and exception type."""
        reports = self.get_error_history()
        return {
            "total": len(reports),
            "by_category": dict(Counter(r["category"] for r in reports)),
            "by_level": dict(Counter(r["level"] for r in reports)),
            "by_exception": dict(Counter(r["exception_type"] for r in reports if r["exception_type"])),
            "latest": reports[-1] if reports else None,
        }

    def export_error_report(self, filename: str) -> bool:
        """
        Write the summary and all stored reports to a JSON file.

        Returns:
            True if the file was written
        """
        report = {
            "generated": datetime.datetime.now().isoformat(),
            "summary": self.get_error_summary(),
            "errors": self.get_error_history(),
        }

        try:
            directory = os.path.dirname(filename)
            if directory:
                os.makedirs(directory, exist_ok=True)
            with open(filename, 'w') as f:
                json.dump(report, f, indent=2, default=str)
        except OSError as e:
            logger.error(f"Error exporting error report: {e}")
            return False

        return True

    def set_log_levels(self, console_level: int, file_level: Optional[int] = None) -> None:
        """Change handler levels; the file level is kept if not given."""
        self.console_level = console_level
        if file_level is not None:
            self.file_level = file_level

        for handler in logger.handlers:
            # FileHandler subclasses StreamHandler
            if isinstance(handler, logging.FileHandler):
                handler.setLevel(self.file_level)
            elif isinstance(handler, logging.StreamHandler):
                handler.setLevel(self.console_level)

    def set_log_file(self, log_file: Optional[str]) -> None:
        """Replace the log file (None stops file logging)."""
        for handler in list(logger.handlers):
            if isinstance(handler, logging.FileHandler):
                logger.removeHandler(handler)
                handler.close()

        self.log_file = log_file
        if log_file:
            self._add_file_handler(log_file)


# Shared instance used by the command line host
error_handler = ErrorHandler()

def error_boundary(category: Optional[ErrorCategory] = None, reraise: bool = False):
    """
    Decorator that reports exceptions through the shared error handler.

    The wrapped function returns None after an error unless ``reraise`` is
    set.
    """
    def decorator(func):
        @wraps(func)
        def wrapper(*args, **kwargs):
            try:
                return func(*args, **kwargs)
            except Exception as e:
                error_handler.log_exception(
                    e, f"Error in {func.__name__}: {e}", category,
                    {"function": func.__qualname__, "module": func.__module__}
                )
                if reraise:
                    raise
                return None

        return wrapper
    return decorator
