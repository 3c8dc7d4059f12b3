"""
Logging setup for printer-link.

Two kinds of output are configured here:
- Application logs on the root logger, with an extra VERBOSE level (9) below
  DEBUG for per-line protocol chatter.
- The 'serial' logger, a transcript of every line exchanged with the printer.
  It never reaches the console and is written only when a log file is given.

Usage:
    from printer_link.core.logging import setup_logging, get_logger

    setup_logging(verbosity_level=2, serial_log_file="serial.log")

    logger = get_logger()
    logger.verbose("N12 G1 X10*87")
"""

import logging
from pathlib import Path
from typing import Any

VERBOSE = 9
logging.addLevelName(VERBOSE, "VERBOSE")

SERIAL_LOGGER_ID = "serial"

DATE_FMT = "%Y-%m-%d %H:%M:%S"
LOG_FMT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
SERIAL_LOG_FMT = "%(asctime)s - %(direction)s: %(message)s"


class VerboseLogger(logging.Logger):
    def verbose(self, message: str, *args: Any, **kwargs: Any) -> None:
        """Log a message at the VERBOSE level."""
        if self.isEnabledFor(VERBOSE):
            self._log(VERBOSE, message, args, **kwargs)


def setup_logging(
    verbosity_level: int = 0,
    quiet: bool = False,
    serial_log_file: str | None = None,
) -> None:
    """
    Configure logging based on verbosity settings.

    Args:
        verbosity_level: Verbosity counter from CLI (Click's count=True).
            0 is INFO, 1 is DEBUG, 2 or more is VERBOSE.
        quiet: If True, only log errors (takes precedence over verbosity_level).
        serial_log_file: Optional transcript file for the serial logger.
    """
    if quiet:
        level = logging.ERROR
    elif verbosity_level >= 2:
        level = VERBOSE
    elif verbosity_level == 1:
        level = logging.DEBUG
    else:
        level = logging.INFO

    logging.setLoggerClass(VerboseLogger)
    logging.basicConfig(level=level, format=LOG_FMT, datefmt=DATE_FMT)

    attach_serial_log(serial_log_file)


def attach_serial_log(log_file: str | None) -> None:
    """
    Route the serial transcript to log_file. Without a file the transcript is
    discarded. Attaching the same file twice has no effect.
    """
    serial_logger = logging.getLogger(SERIAL_LOGGER_ID)
    serial_logger.setLevel(logging.INFO)
    serial_logger.propagate = False

    if not log_file:
        if not serial_logger.handlers:
            serial_logger.addHandler(logging.NullHandler())
        return

    log_path = Path(log_file).expanduser().resolve()
    for handler in serial_logger.handlers:
        if isinstance(handler, logging.FileHandler) and Path(handler.baseFilename) == log_path:
            return

    try:
        log_path.parent.mkdir(parents=True, exist_ok=True)
        handler = logging.FileHandler(str(log_path), encoding="utf-8", mode="a")
    except OSError as e:
        logging.getLogger(__name__).error(f"Failed to open serial log file '{log_file}': {e}")
        return

    handler.setFormatter(logging.Formatter(SERIAL_LOG_FMT, datefmt=DATE_FMT))
    serial_logger.addHandler(handler)


def get_logger(name: str | None = None) -> VerboseLogger:
    """
    Get a VerboseLogger, named after the calling module by default.

    Loggers created before setup_logging() installed the logger class are
    converted in place.
    """
    if name is None:
        import inspect

        frame = inspect.stack()[1]
        module = inspect.getmodule(frame[0])
        name = module.__name__ if module else "__main__"

    logger = logging.getLogger(name)
    if not isinstance(logger, VerboseLogger):
        logger.__class__ = VerboseLogger

    return logger  # type: ignore


def log_serial_sent(line: str) -> None:
    logging.getLogger(SERIAL_LOGGER_ID).info(line, extra={"direction": "Sent"})


def log_serial_recv(line: str) -> None:
    logging.getLogger(SERIAL_LOGGER_ID).info(line, extra={"direction": "Recv"})
