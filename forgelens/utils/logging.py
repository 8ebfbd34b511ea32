"""Logging configuration for ForgeLens.

Library modules log through ``logging.getLogger(__name__)`` and never add
handlers. The CLI calls :func:`setup_logging` once, which attaches a Rich
console handler (on stderr, so JSON output on stdout stays parseable) and an
optional debug-level file handler to the ``forgelens`` logger.
"""

import logging
from pathlib import Path
from typing import Optional, Union

from rich.console import Console
from rich.logging import RichHandler

ROOT_LOGGER = "forgelens"

CONSOLE_FORMAT = "%(message)s"
CONSOLE_DATE_FORMAT = "[%X]"
FILE_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
FILE_DATE_FORMAT = "%Y-%m-%d %H:%M:%S"


def _coerce_level(level: Union[int, str]) -> int:
    if isinstance(level, int):
        return level
    resolved = logging.getLevelName(level.upper())
    if not isinstance(resolved, int):
        raise ValueError(f"unknown log level: {level!r}")
    return resolved


def _console_handler(level: int, verbose: bool) -> logging.Handler:
    handler = RichHandler(
        console=Console(stderr=True),
        show_time=True,
        show_path=verbose,
        rich_tracebacks=True,
        tracebacks_show_locals=verbose,
        # git stderr and branch names may contain [brackets]
        markup=False,
    )
    handler.setLevel(level)
    handler.setFormatter(logging.Formatter(CONSOLE_FORMAT, datefmt=CONSOLE_DATE_FORMAT))
    return handler


def _file_handler(log_file: Path) -> logging.Handler:
    log_file.parent.mkdir(parents=True, exist_ok=True)
    handler = logging.FileHandler(log_file, encoding="utf-8")
    handler.setLevel(logging.DEBUG)
    handler.setFormatter(logging.Formatter(FILE_FORMAT, datefmt=FILE_DATE_FORMAT))
    return handler


def setup_logging(
    level: Union[int, str] = logging.WARNING,
    log_file: Optional[Path] = None,
    verbose: bool = False,
) -> logging.Logger:
    """Configure the ``forgelens`` logger.

    Args:
        level: Console level, as a number or a name such as "info".
        log_file: Optional file that receives every record at DEBUG.
        verbose: Force DEBUG on the console and show source paths.

    Returns:
        The configured ``forgelens`` logger.
    """
    console_level = logging.DEBUG if verbose else _coerce_level(level)

    logger = logging.getLogger(ROOT_LOGGER)
    logger.handlers.clear()
    logger.setLevel(logging.DEBUG if log_file else console_level)
    logger.addHandler(_console_handler(console_level, verbose))
    if log_file:
        logger.addHandler(_file_handler(log_file))

    return logger


def get_logger(name: Optional[str] = None) -> logging.Logger:
    """Get ``forgelens`` or one of its children, e.g. ``get_logger("cli")``."""
    return logging.getLogger(f"{ROOT_LOGGER}.{name}" if name else ROOT_LOGGER)


class _ListHandler(logging.Handler):
    def __init__(self, records: list[logging.LogRecord]):
        super().__init__()
        self.records = records

    def emit(self, record: logging.LogRecord) -> None:
        self.records.append(record)


class LogCapture:
    """Collect records from a logger for the duration of a ``with`` block.

    The logger's level is lowered to ``level`` while capturing and restored
    afterwards.
    """

    def __init__(self, logger_name: str = ROOT_LOGGER, level: int = logging.DEBUG):
        self.logger_name = logger_name
        self.level = level
        self.records: list[logging.LogRecord] = []
        self._handler = _ListHandler(self.records)
        self._previous_level = logging.NOTSET

    def __enter__(self) -> "LogCapture":
        logger = logging.getLogger(self.logger_name)
        self._previous_level = logger.level
        logger.setLevel(self.level)
        logger.addHandler(self._handler)
        return self

    def __exit__(self, *args) -> None:
        logger = logging.getLogger(self.logger_name)
        logger.removeHandler(self._handler)
        logger.setLevel(self._previous_level)

    @property
    def messages(self) -> list[str]:
        return [record.getMessage() for record in self.records]

    def at_level(self, level: int) -> list[str]:
        """Messages logged at exactly ``level``."""
        return [record.getMessage() for record in self.records if record.levelno == level]

    def has_message(self, substring: str) -> bool:
        return any(substring in message for message in self.messages)
