from __future__ import annotations

import logging
import sys
from pathlib import Path

LOGGER_NAME = "lainux_installer"
DEFAULT_LOG_FILE = Path("/var/log/lainux-installer.log")
FALLBACK_LOG_FILE = Path("/tmp/lainux-installer.log")


def setup_logging(path: Path | None = None, verbose: bool = False, stderr: bool = True) -> logging.Logger:
    """Attach a file handler (and optionally a stderr handler) to the package logger.

    Falls back to /tmp when the requested log file cannot be opened. Pass
    ``stderr=False`` while a full-screen interface owns the terminal.
    """
    logger = logging.getLogger(LOGGER_NAME)
    logger.setLevel(logging.DEBUG)
    if logger.handlers:
        return logger

    fmt = logging.Formatter(
        "%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        datefmt="%Y-%m-%dT%H:%M:%S",
    )

    target = path or DEFAULT_LOG_FILE
    try:
        target.parent.mkdir(parents=True, exist_ok=True)
        fh = logging.FileHandler(target, encoding="utf-8")
    except OSError:
        fh = logging.FileHandler(FALLBACK_LOG_FILE, encoding="utf-8")
    fh.setLevel(logging.DEBUG if verbose else logging.INFO)
    fh.setFormatter(fmt)
    logger.addHandler(fh)

    if stderr:
        sh = logging.StreamHandler(sys.stderr)
        sh.setLevel(logging.DEBUG if verbose else logging.WARNING)
        sh.setFormatter(fmt)
        logger.addHandler(sh)
    return logger


def reset_logging() -> None:
    logger = logging.getLogger(LOGGER_NAME)
    for handler in list(logger.handlers):
        logger.removeHandler(handler)
        handler.close()
