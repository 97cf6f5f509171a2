"""
Logging for verifystate.

Every module asks for its logger through :func:`get_logger`. A logger gets two
handlers the first time it is requested:

- console output through prompt_toolkit, coloured when stderr is a terminal,
  at the level named by ``VERIFYSTATE_LOG_LEVEL`` (INFO when unset)
- a size-rotated file under ``logs/`` that records everything from DEBUG up

All loggers of one process write to the same session file.
"""

import logging
import os
import sys
from datetime import datetime
from logging.handlers import RotatingFileHandler
from pathlib import Path

from prompt_toolkit import print_formatted_text
from prompt_toolkit.formatted_text import ANSI

LOGS_DIR: Path = (Path(__file__).parents[3] / "logs").resolve()
LOGS_DIR.mkdir(parents=True, exist_ok=True)

LOG_FORMAT = "[%(asctime)s] [%(levelname)s] [%(name)s:%(funcName)s:%(lineno)d] %(message)s"
DATE_FORMAT = "%Y-%m-%d %H-%M-%S"

LOG_LEVEL_ENV = "VERIFYSTATE_LOG_LEVEL"
LOG_MAX_BYTES = 5 * 1024 * 1024
LOG_BACKUP_COUNT = 3

# A log from today modified this recently is continued instead of starting a new one
SESSION_REUSE_SECONDS = 60

LEVEL_COLORS = {
    logging.DEBUG: "\033[36m",
    logging.INFO: "\033[32m",
    logging.WARNING: "\033[33m",
    logging.ERROR: "\033[31m",
    logging.CRITICAL: "\033[38;5;88m",
}
RESET_COLOR = "\033[0m"

NOISY_LOGGERS = (
    "discord",
    "discord.client",
    "discord.gateway",
    "discord.http",
    "websockets",
    "aiohttp",
    "aiosqlite",
    "asyncio",
)

_session_log: Path | None = None


class ColorFormatter(logging.Formatter):
    """Formatter that paints the whole line in the colour of its level."""

    def format(self, record: logging.LogRecord) -> str:
        text = super().format(record)
        color = LEVEL_COLORS.get(record.levelno)
        if color is None:
            return text
        return color + text + RESET_COLOR


class PromptToolkitHandler(logging.Handler):
    """
    Console handler writing through ``print_formatted_text``.

    Lines printed this way do not corrupt a prompt_toolkit prompt that is
    being edited, and ANSI colour codes are rendered instead of echoed.
    """

    def __init__(self, formatter: logging.Formatter | None = None):
        super().__init__()
        if formatter is not None:
            self.setFormatter(formatter)

    def emit(self, record: logging.LogRecord) -> None:
        try:
            print_formatted_text(ANSI(self.format(record)))
        except Exception:
            self.handleError(record)


def should_use_color() -> bool:
    """True when stderr is an interactive terminal."""
    try:
        return bool(sys.stderr.isatty())
    except Exception:
        return False


def console_level() -> int:
    """Console threshold from ``VERIFYSTATE_LOG_LEVEL``; unknown names mean INFO."""
    name = os.getenv(LOG_LEVEL_ENV, "").strip().upper()
    level = logging.getLevelName(name) if name else logging.INFO
    return level if isinstance(level, int) else logging.INFO


def get_log_filepath() -> Path:
    """
    Return the log file shared by every logger of this process.

    The path is chosen once. A quick restart keeps appending to the most
    recent log of the day; otherwise a new file named after the current time
    is used.
    """
    global _session_log

    if _session_log is not None:
        return _session_log

    now = datetime.now()
    todays_logs = [p for p in LOGS_DIR.glob(f"{now:%Y-%m-%d}*.log") if p.is_file()]
    latest = max(todays_logs, key=lambda p: p.stat().st_mtime, default=None)

    if latest is not None and now.timestamp() - latest.stat().st_mtime < SESSION_REUSE_SECONDS:
        _session_log = latest
    else:
        _session_log = LOGS_DIR / f"{now.strftime(DATE_FORMAT)}.log"
    return _session_log


def _console_handler() -> logging.Handler:
    if should_use_color():
        formatter: logging.Formatter = ColorFormatter(LOG_FORMAT, datefmt=DATE_FORMAT)
    else:
        formatter = logging.Formatter(LOG_FORMAT, datefmt=DATE_FORMAT)
    handler = PromptToolkitHandler(formatter)
    handler.setLevel(console_level())
    return handler


def _file_handler() -> logging.Handler:
    handler = RotatingFileHandler(
        get_log_filepath(),
        maxBytes=LOG_MAX_BYTES,
        backupCount=LOG_BACKUP_COUNT,
        encoding="utf-8",
    )
    handler.setLevel(logging.DEBUG)
    handler.setFormatter(logging.Formatter(LOG_FORMAT, datefmt=DATE_FORMAT))
    return handler


def setup_logger(logger_name: str) -> logging.Logger:
    """
    Attach the console and file handlers to ``logger_name``.

    Loggers that already have handlers are returned untouched, so repeated
    calls never duplicate output. Records do not propagate to the root
    logger.
    """
    logger = logging.getLogger(logger_name)
    if logger.handlers:
        return logger

    logger.setLevel(logging.DEBUG)
    logger.propagate = False
    logger.addHandler(_console_handler())
    logger.addHandler(_file_handler())
    return logger


def get_logger(logger_name: str) -> logging.Logger:
    """Return the verifystate logger called ``logger_name``."""
    return setup_logger(logger_name)


def handle_exception(exception_type, exception_instance, exception_traceback) -> None:
    """``sys.excepthook`` that logs crashes; Ctrl+C keeps its default behaviour."""
    if issubclass(exception_type, KeyboardInterrupt):
        sys.__excepthook__(exception_type, exception_instance, exception_traceback)
        return
    logging.error("Uncaught exception", exc_info=(exception_type, exception_instance, exception_traceback))


def quiet_noisy_loggers() -> None:
    """Limit chatty third-party loggers to errors and strip their own handlers."""
    for name in NOISY_LOGGERS:
        noisy = logging.getLogger(name)
        noisy.setLevel(logging.ERROR)
        noisy.propagate = False
        noisy.handlers = []


quiet_noisy_loggers()
sys.excepthook = handle_exception
