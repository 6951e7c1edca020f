"""
Copyright (c) Microsoft Corporation.
Licensed under the MIT license.

Logging module for native_pack.
Logging is disabled by default and has near-zero overhead until
setup_logging() is called.
"""

import contextvars
import datetime
import logging
import os
import sys
import threading
from logging.handlers import RotatingFileHandler
from typing import Optional


DEBUG = logging.DEBUG

# Output destination constants
STDOUT = 'stdout'  # Log to stdout only
FILE = 'file'      # Log to file only (default)
BOTH = 'both'      # Log to both file and stdout

LOG_DIR_NAME = "native_pack_logs"

# Module-level context variable for trace IDs (thread-safe, async-safe)
_trace_id_var = contextvars.ContextVar('trace_id', default=None)


class TraceIDFilter(logging.Filter):
    """Filter that adds trace_id to all log records."""

    def filter(self, record):
        trace_id = _trace_id_var.get()
        record.trace_id = trace_id if trace_id else '-'
        return True


class NativePackLogger:
    """
    Singleton logger for native_pack.

    Features:
    - Disabled by default (CRITICAL), enabled via setup_logging()
    - Automatic file rotation (64MB, 5 backups)
    - Trace ID support with contextvars, so each build worker's records
      can be told apart in an interleaved log
    - Thread-safe operation
    """

    _instance: Optional['NativePackLogger'] = None
    _lock = threading.Lock()

    def __new__(cls) -> 'NativePackLogger':
        """Ensure singleton pattern"""
        if cls._instance is None:
            with cls._lock:
                if cls._instance is None:
                    cls._instance = super(NativePackLogger, cls).__new__(cls)
        return cls._instance

    def __init__(self):
        # Skip if already initialized
        if hasattr(self, '_initialized'):
            return

        self._initialized = True

        self._logger = logging.getLogger('native_pack')
        self._logger.setLevel(logging.CRITICAL)  # Disabled by default
        self._logger.propagate = False
        self._logger.addFilter(TraceIDFilter())

        self._trace_counter = 0
        self._trace_lock = threading.Lock()

        self._output_mode = FILE
        self._file_handler = None
        self._stdout_handler = None
        self._log_file = None
        self._custom_log_path = None
        self._handlers_initialized = False

        # Handlers are created lazily in _setLevel so that changing the output
        # mode before enabling logging never creates a stray log file

    def _setup_handlers(self):
        """
        Setup handlers based on output mode.
        Creates file handler and/or stdout handler as needed.
        """
        for handler in self._logger.handlers[:]:
            handler.close()
            self._logger.removeHandler(handler)

        self._file_handler = None
        self._stdout_handler = None

        formatter = logging.Formatter(
            '%(asctime)s [%(trace_id)s] - %(levelname)s - %(filename)s:%(lineno)d - %(message)s'
        )

        if self._output_mode in (FILE, BOTH):
            if self._custom_log_path:
                self._log_file = self._custom_log_path
                log_dir = os.path.dirname(self._custom_log_path)
                if log_dir:
                    os.makedirs(log_dir, exist_ok=True)
            else:
                log_dir = os.path.join(os.getcwd(), LOG_DIR_NAME)
                os.makedirs(log_dir, exist_ok=True)

                timestamp = datetime.datetime.now().strftime("%Y%m%d_%H%M%S")
                self._log_file = os.path.join(
                    log_dir,
                    f"native_pack_{timestamp}_{os.getpid()}.log"
                )

            self._file_handler = RotatingFileHandler(
                self._log_file,
                maxBytes=64 * 1024 * 1024,
                backupCount=5
            )
            self._file_handler.setFormatter(formatter)
            self._logger.addHandler(self._file_handler)
        else:
            self._log_file = None

        if self._output_mode in (STDOUT, BOTH):
            self._stdout_handler = logging.StreamHandler(sys.stdout)
            self._stdout_handler.setFormatter(formatter)
            self._logger.addHandler(self._stdout_handler)

    def generate_trace_id(self, prefix: str = "TRACE") -> str:
        """
        Generate a unique trace ID for correlating log messages.

        Format: PREFIX-PID-ThreadID-Counter, e.g. BUILD-x64-release-12345-67890-3
        """
        with self._trace_lock:
            self._trace_counter += 1
            counter = self._trace_counter

        return f"{prefix}-{os.getpid()}-{threading.get_ident()}-{counter}"

    def set_trace_id(self, trace_id: Optional[str]):
        """Set the trace ID for the current context."""
        _trace_id_var.set(trace_id)

    def get_trace_id(self) -> Optional[str]:
        return _trace_id_var.get()

    def clear_trace_id(self):
        _trace_id_var.set(None)

    def _log(self, level: int, msg: str, *args, **kwargs):
        # Fast level check (zero overhead if disabled)
        if not self._logger.isEnabledFor(level):
            return

        if args:
            msg = msg % args

        self._logger.log(level, msg, **kwargs)

    def debug(self, msg: str, *args, **kwargs):
        self._log(logging.DEBUG, f"[native_pack] {msg}", *args, **kwargs)

    def info(self, msg: str, *args, **kwargs):
        self._log(logging.INFO, f"[native_pack] {msg}", *args, **kwargs)

    def warning(self, msg: str, *args, **kwargs):
        self._log(logging.WARNING, f"[native_pack] {msg}", *args, **kwargs)

    def error(self, msg: str, *args, **kwargs):
        self._log(logging.ERROR, f"[native_pack] {msg}", *args, **kwargs)

    def _setLevel(self, level: int, output: Optional[str] = None, log_file_path: Optional[str] = None):
        """
        Internal method to set logging level (use setup_logging() instead).

        Raises:
            ValueError: If output mode is invalid
        """
        if output is not None:
            if output not in (FILE, STDOUT, BOTH):
                raise ValueError(
                    f"Invalid output mode: {output}. "
                    f"Must be one of: {FILE}, {STDOUT}, {BOTH}"
                )
            self._output_mode = output

        if log_file_path is not None:
            self._custom_log_path = log_file_path

        if not self._handlers_initialized or output is not None or log_file_path is not None:
            self._setup_handlers()
            self._handlers_initialized = True

        self._logger.setLevel(level)

    def getLevel(self) -> int:
        return self._logger.level

    def isEnabledFor(self, level: int) -> bool:
        return self._logger.isEnabledFor(level)

    def addHandler(self, handler: logging.Handler):
        self._logger.addHandler(handler)

    def removeHandler(self, handler: logging.Handler):
        self._logger.removeHandler(handler)

    @property
    def handlers(self) -> list:
        return self._logger.handlers

    @property
    def output(self) -> str:
        return self._output_mode

    @property
    def log_file(self) -> Optional[str]:
        """Current log file path (None if file output is disabled)"""
        return self._log_file

    @property
    def level(self) -> int:
        return self._logger.level


# Singleton logger instance
logger = NativePackLogger()


def setup_logging(output: str = 'file', log_file_path: Optional[str] = None, level: int = DEBUG):
    """
    Enable logging for build and placement troubleshooting.

    Args:
        output: Where to send logs: 'file' (default), 'stdout' or 'both'
        log_file_path: Optional custom path for the log file. If not
                       specified, one is created in ./native_pack_logs/
        level: Logging level, DEBUG unless told otherwise

    Examples:
        import native_pack

        native_pack.setup_logging()                  # file only
        native_pack.setup_logging(output='stdout')   # CI
        native_pack.setup_logging(output='both', log_file_path="/tmp/pack.log")
    """
    logger._setLevel(level, output, log_file_path)
    return logger
