"""
Centralized Logging Configuration
==================================
Every module logs through a child of the ``bazaarflow_ai`` package logger.
Only the package logger owns handlers, so records from the aggregator, the
adjusters and the cycle engine share one stdout stream (and one log file
when LoggingConfig names one).

Usage:
    from bazaarflow_ai.utils.logger import get_logger, LogContext
    logger = get_logger(__name__)

    with LogContext(logger, "Allocation", business="biz-001"):
        ...
"""

import logging
import sys
import time
from pathlib import Path
from typing import Optional, Union

PACKAGE_LOGGER = 'bazaarflow_ai'
LOG_FORMAT = '%(asctime)s | %(levelname)-8s | %(name)s | %(message)s'
LOG_DATE_FORMAT = '%Y-%m-%d %H:%M:%S'


def _formatter() -> logging.Formatter:
    return logging.Formatter(fmt=LOG_FORMAT, datefmt=LOG_DATE_FORMAT)


def _file_handler(log_file: str, level: Union[int, str]) -> logging.FileHandler:
    path = Path(log_file)
    path.parent.mkdir(parents=True, exist_ok=True)
    handler = logging.FileHandler(path, encoding='utf-8')
    handler.setLevel(level)
    handler.setFormatter(_formatter())
    return handler


def _package_logger() -> logging.Logger:
    root = logging.getLogger(PACKAGE_LOGGER)
    if not root.handlers:
        console = logging.StreamHandler(sys.stdout)
        console.setFormatter(_formatter())
        root.addHandler(console)
        root.setLevel(logging.INFO)
        root.propagate = False
    return root


def get_logger(name: str) -> logging.Logger:
    """
    Return the logger for a module.

    Parameters
    ----------
    name : str
        Usually ``__name__``. Names outside the package are nested under
        it so they still reach the package handlers.

    Returns
    -------
    logging.Logger
        Handler-free child of the package logger.
    """
    _package_logger()
    if name != PACKAGE_LOGGER and not name.startswith(PACKAGE_LOGGER + '.'):
        name = f"{PACKAGE_LOGGER}.{name}"
    return logging.getLogger(name)


def configure_logging(level: Union[int, str] = logging.INFO, log_file: Optional[str] = None) -> None:
    """
    Apply LoggingConfig to the package logger.

    Calling it again replaces the file handler rather than adding a second one.
    """
    root = _package_logger()
    root.setLevel(level)
    for handler in list(root.handlers):
        if isinstance(handler, logging.FileHandler):
            root.removeHandler(handler)
            handler.close()
        else:
            handler.setLevel(level)
    if log_file:
        root.addHandler(_file_handler(log_file, level))


def log_frame_summary(logger: logging.Logger, label: str, df, time_column: str = 'timestamp') -> None:
    """
    Log the size of an input frame, its missing cells and its time span.

    Parameters
    ----------
    logger : logging.Logger
    label : str
        Name used in the message, e.g. ``"transactions"``.
    df : pd.DataFrame
    time_column : str
        Column whose min/max is reported when present.
    """
    logger.info(f"{label}: {len(df):,} rows, {len(df.columns)} columns")

    missing = int(df.isnull().sum().sum())
    if missing:
        logger.warning(f"{label} has {missing:,} missing cells")

    if time_column in df.columns and len(df):
        logger.debug(f"{label} spans {df[time_column].min()} .. {df[time_column].max()}")


class LogContext:
    """
    Logs start, completion with elapsed seconds, or failure of one step.

    Extra keyword fields are appended to every message as ``key=value``.
    Exceptions are never suppressed.
    """

    def __init__(self, logger: logging.Logger, operation: str, **fields):
        self.logger = logger
        self.operation = operation
        self.suffix = ''.join(f" {k}={v}" for k, v in fields.items())
        self.started = None
        self.elapsed = None

    def __enter__(self):
        self.started = time.perf_counter()
        self.logger.info(f"Starting: {self.operation}{self.suffix}")
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.elapsed = time.perf_counter() - self.started
        if exc_type is None:
            self.logger.info(f"Completed: {self.operation} ({self.elapsed:.2f}s){self.suffix}")
        else:
            self.logger.error(
                f"Failed: {self.operation} ({self.elapsed:.2f}s){self.suffix} - "
                f"{exc_type.__name__}: {exc_val}"
            )
        return False
