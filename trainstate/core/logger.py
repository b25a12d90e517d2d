"""Loguru sinks for the TrainState CLI."""

import sys
from pathlib import Path
from typing import Any

from loguru import logger

CONSOLE_FORMAT = (
    "<green>{time:HH:mm:ss}</green> | <level>{level: <8}</level> | "
    "<cyan>{name}</cyan>:<cyan>{line}</cyan> - <level>{message}</level>"
)
FILE_FORMAT = "{time:YYYY-MM-DD HH:mm:ss.SSS} | {level: <8} | {name}:{function}:{line} - {message}"


def _file_handler(log_file: str, level: str, rotation: str, retention: str) -> dict[str, Any]:
    path = Path(log_file).expanduser()
    path.parent.mkdir(parents=True, exist_ok=True)
    return {
        "sink": path,
        "format": FILE_FORMAT,
        "level": level,
        "rotation": rotation,
        "retention": retention,
        "compression": "zip",
        "encoding": "utf-8",
        "enqueue": True,
        "diagnose": False,
    }


def setup_logger(
    level: str = "INFO",
    log_file: str | None = None,
    rotation: str = "10 MB",
    retention: str = "7 days",
) -> None:
    """Replace all sinks with a stderr sink and, if ``log_file`` is set, a rotating file.

    Calling it again reconfigures from scratch, so the CLI can switch to
    DEBUG per invocation.
    """
    handlers: list[dict[str, Any]] = [
        {"sink": sys.stderr, "format": CONSOLE_FORMAT, "level": level, "colorize": True},
    ]
    if log_file:
        handlers.append(_file_handler(log_file, level, rotation, retention))

    logger.configure(handlers=handlers)
    logger.debug(f"[LOGGING] level={level}, file={log_file or '-'}")
