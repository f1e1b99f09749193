"""
Backend logging

One line per event, tagged with the API area it came from:

    [14:02:11.532] 🧠 INFO     backend.explain | 📥 POST /api/explain user=guest language=python

Areas are the last component of the logger name (explain, snippets,
ratings, progress, auth, main). Key/value context passed as `data` is
appended to the message. LOG_LEVEL sets the threshold; NO_COLOR or a
non-terminal stdout disables ANSI colours.
"""

import logging
import os
import sys
import time
from contextlib import contextmanager
from datetime import datetime
from typing import Any, Dict, Iterator, Optional

RESET = '\033[0m'
DIM = '\033[90m'
BOLD = '\033[1m'

# levelname -> (ansi colour, fallback icon)
LEVEL_STYLES = {
    'DEBUG': ('\033[36m', '·'),
    'INFO': ('\033[32m', '•'),
    'WARNING': ('\033[33m', '⚠️'),
    'ERROR': ('\033[31m', '❌'),
    'CRITICAL': ('\033[35m', '🚨'),
}

AREA_ICONS = {
    'explain': '🧠',
    'snippets': '📄',
    'ratings': '⭐',
    'progress': '📈',
    'auth': '🔑',
    'main': '🌐',
}

QUIET_LOGGERS = ('asyncio', 'httpx', 'httpcore', 'hpack', 'openai', 'urllib3')


def _format_data(data: Optional[Dict[str, Any]]) -> str:
    if not data:
        return ""
    return " ".join(f"{key}={value}" for key, value in data.items() if value is not None)


class AreaFormatter(logging.Formatter):
    """Formats records as `[time] icon LEVEL name | message key=value...`."""

    def __init__(self, use_colors: bool = True):
        super().__init__()
        self.use_colors = use_colors and sys.stdout.isatty() and not os.getenv("NO_COLOR")

    def _paint(self, text: str, colour: str) -> str:
        return f"{colour}{text}{RESET}" if self.use_colors else text

    def format(self, record: logging.LogRecord) -> str:
        colour, level_icon = LEVEL_STYLES.get(record.levelname, (RESET, '•'))
        icon = AREA_ICONS.get(record.name.rsplit('.', 1)[-1], level_icon)
        clock = datetime.fromtimestamp(record.created).strftime('%H:%M:%S.%f')[:-3]

        line = (
            f"{self._paint(f'[{clock}]', DIM)} {icon} "
            f"{self._paint(f'{record.levelname:<8}', colour)} "
            f"{self._paint(record.name, BOLD)} | {record.getMessage()}"
        )

        extra = _format_data(getattr(record, "data", None))
        if extra:
            line = f"{line} {extra}"
        if record.exc_info:
            line = f"{line}\n{self.formatException(record.exc_info)}"
        return line


class StructuredLogger:
    """Wraps a logging.Logger so every call can carry a `data` dict."""

    def __init__(self, name: str, logger: Optional[logging.Logger] = None):
        self.name = name
        self.logger = logger or logging.getLogger(name)

    def _log(self, level: int, message: str, data: Optional[Dict[str, Any]] = None, **kwargs):
        self.logger.log(level, message, extra={"data": data}, **kwargs)

    def debug(self, message: str, data: Optional[Dict[str, Any]] = None):
        self._log(logging.DEBUG, message, data)

    def info(self, message: str, data: Optional[Dict[str, Any]] = None):
        self._log(logging.INFO, message, data)

    def warning(self, message: str, data: Optional[Dict[str, Any]] = None):
        self._log(logging.WARNING, message, data)

    def error(self, message: str, error: Optional[Exception] = None, data: Optional[Dict[str, Any]] = None):
        """Log an error; the exception's traceback is attached when given."""
        if error is not None:
            message = f"{message}: {type(error).__name__}: {error}"
        self._log(logging.ERROR, message, data, exc_info=error)

    def success(self, message: str, data: Optional[Dict[str, Any]] = None):
        self._log(logging.INFO, f"✅ {message}", data)

    def request(self, method: str, path: str, user_id: Optional[str] = None, data: Optional[Dict[str, Any]] = None):
        context = {"user": user_id[:20] if user_id else "guest"}
        context.update(data or {})
        self._log(logging.INFO, f"📥 {method} {path}", context)

    def response(self, status: int, path: str, duration: Optional[float] = None, data: Optional[Dict[str, Any]] = None):
        context = {"ms": round(duration * 1000, 1) if duration is not None else None}
        context.update(data or {})
        self._log(logging.INFO, f"📤 {status} {path}", context)

    @contextmanager
    def timed(self, path: str, status: int = 200, data: Optional[Dict[str, Any]] = None) -> Iterator[Dict[str, Any]]:
        """
        Log a response line with the elapsed time when the block exits
        normally. The yielded dict can be filled with extra context.
        """
        context: Dict[str, Any] = dict(data or {})
        started = time.perf_counter()
        yield context
        self.response(status, path, duration=time.perf_counter() - started, data=context)


def setup_logging(level: Optional[int] = None, use_colors: bool = True) -> logging.Logger:
    """Route all logging through one stdout handler using AreaFormatter."""
    if level is None:
        level = logging.getLevelName(os.getenv("LOG_LEVEL", "INFO").upper())
        if not isinstance(level, int):
            level = logging.INFO

    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(AreaFormatter(use_colors=use_colors))

    root = logging.getLogger()
    for existing in list(root.handlers):
        root.removeHandler(existing)
    root.addHandler(handler)
    root.setLevel(level)

    for name in QUIET_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)
    return root


def get_logger(name: str) -> StructuredLogger:
    return StructuredLogger(name)
