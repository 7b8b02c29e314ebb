"""
Logger - tunelib's one logging channel

Usage:
    from tunelib.utils.logger import logger

    logger.tuning("12tet", "regenerated", details="group_size=24")
    logger.codec("Read v5 tuning '12tet'")
    logger.rejected("CODEC", "Tuning stream", "truncated stream")

Every line carries a component tag (TUN, CODEC, FILES). Lines also go out
on a Qt signal so a tuning editor's console can show them thread-safely.
"""

import logging
import sys
from datetime import datetime
from enum import IntEnum
from typing import Iterable, Optional, Union
from PyQt5.QtCore import QObject, pyqtSignal


class LogLevel(IntEnum):
    DEBUG = logging.DEBUG
    INFO = logging.INFO
    WARNING = logging.WARNING
    ERROR = logging.ERROR


class LogSignalEmitter(QObject):
    """Carries formatted log lines to the GUI thread."""
    log_message = pyqtSignal(str, int, str)  # message, level, timestamp


class QtSignalHandler(logging.Handler):
    """Logging handler that re-emits records on a LogSignalEmitter."""

    def __init__(self, emitter: LogSignalEmitter):
        super().__init__()
        self.emitter = emitter

    def emit(self, record: logging.LogRecord):
        try:
            timestamp = datetime.now().strftime("%H:%M:%S")
            self.emitter.log_message.emit(self.format(record), record.levelno, timestamp)
        except Exception:
            self.handleError(record)


class TuningLogger:
    """
    Component-tagged logger for tunelib.

    Console output starts at INFO so loads and saves show up while the
    per-tuning DEBUG chatter stays on the Qt signal only.
    """

    def __init__(self):
        self._logger = logging.getLogger("tunelib")
        self._logger.setLevel(logging.DEBUG)
        self._logger.propagate = False

        self.signal_emitter = LogSignalEmitter()

        self._console_handler = logging.StreamHandler(sys.stdout)
        self._console_handler.setLevel(logging.INFO)
        self._console_handler.setFormatter(logging.Formatter(
            "%(asctime)s [%(levelname)s] %(message)s",
            datefmt="%H:%M:%S"
        ))
        self._logger.addHandler(self._console_handler)

        self._qt_handler = QtSignalHandler(self.signal_emitter)
        self._qt_handler.setLevel(logging.DEBUG)
        self._qt_handler.setFormatter(logging.Formatter("%(message)s"))
        self._logger.addHandler(self._qt_handler)

    @property
    def console_level(self) -> int:
        return self._console_handler.level

    def set_level(self, level: LogLevel):
        """Set minimum level for console output."""
        self._console_handler.setLevel(level)

    def _format_message(self, msg: str, component: Optional[str] = None,
                        details: Optional[str] = None) -> str:
        parts = []
        if component:
            parts.append(f"[{component}]")
        parts.append(msg)
        if details:
            parts.append(f"- {details}")
        return " ".join(parts)

    def debug(self, msg: str, component: Optional[str] = None,
              details: Optional[str] = None):
        self._logger.debug(self._format_message(msg, component, details))

    def info(self, msg: str, component: Optional[str] = None,
             details: Optional[str] = None):
        self._logger.info(self._format_message(msg, component, details))

    def warning(self, msg: str, component: Optional[str] = None,
                details: Optional[str] = None):
        self._logger.warning(self._format_message(msg, component, details))

    def error(self, msg: str, component: Optional[str] = None,
              details: Optional[str] = None):
        self._logger.error(self._format_message(msg, component, details))

    def rejected(self, component: str, what: str, reasons: Union[str, Iterable[str]]):
        """Warn that `what` was refused; several reasons are joined with '; '."""
        if not isinstance(reasons, str):
            reasons = "; ".join(reasons)
        self.warning(f"{what} rejected", component=component, details=reasons)

    def tuning(self, name: str, msg: str, details: Optional[str] = None):
        """Per-tuning lifecycle message (created, regenerated, ...)."""
        self.debug(f"Tuning '{name}': {msg}", component="TUN", details=details)

    def codec(self, msg: str, details: Optional[str] = None):
        self.debug(msg, component="CODEC", details=details)

    def files(self, msg: str, details: Optional[str] = None):
        self.info(msg, component="FILES", details=details)


# Global logger instance
logger = TuningLogger()
