# stemness_index/core/logging.py
"""Logging setup: rich console output plus a dated, rotating log file."""

import logging
import sys
from datetime import UTC, datetime
from logging.handlers import RotatingFileHandler
from pathlib import Path

import rich.traceback
from rich.console import Console
from rich.logging import RichHandler

from stemness_index.core.config import get_logging_config, get_path

DATE_FORMAT = "%Y-%m-%d %H:%M:%S"
MAX_LOG_BYTES = 5 * 1024 * 1024
LOG_BACKUPS = 3


def _level_from_name(name: str) -> int:
    level = logging.getLevelName(str(name).upper())
    if isinstance(level, int):
        return level
    logging.getLogger(__name__).warning(f"Unknown log level '{name}'; using INFO.")
    return logging.INFO


def _log_file_for(logs_dir: Path, logger_name: str) -> Path:
    stamp = datetime.now(tz=UTC).strftime("%Y-%m-%d")
    safe_name = "".join(c if c.isalnum() else "_" for c in logger_name)
    return logs_dir / f"{stamp}_{safe_name}.log"


def _file_handler(logger_name: str, level: int, formatter: logging.Formatter):
    logs_dir = get_path("logs_dir")
    try:
        logs_dir.mkdir(parents=True, exist_ok=True)
        handler = RotatingFileHandler(
            _log_file_for(logs_dir, logger_name),
            maxBytes=MAX_LOG_BYTES,
            backupCount=LOG_BACKUPS,
            encoding="utf-8",
        )
    except OSError as e:
        logging.getLogger(__name__).warning(f"File logging disabled ({logs_dir}): {e}")
        return None
    handler.setLevel(level)
    handler.setFormatter(formatter)
    return handler


def setup_logging(module_name: str | None = None) -> logging.Logger:
    """Configure and return a logger.

    Without `module_name` the package root logger is configured, which every
    `logging.getLogger(__name__)` logger in the package propagates to.
    Calling this twice for the same name replaces the earlier handlers.
    """
    config = get_logging_config()
    level = _level_from_name(config["level"])
    formatter = logging.Formatter(config["format"], datefmt=DATE_FORMAT)

    name = module_name or config["root_logger_name"]
    logger = logging.getLogger(name)
    logger.handlers.clear()
    logger.setLevel(level)
    logger.propagate = False

    if config["console_logging"]:
        logger.addHandler(
            RichHandler(
                level=level,
                console=Console(stderr=True),
                show_path=False,
                markup=True,
                rich_tracebacks=True,
            )
        )
    if config["file_logging"]:
        handler = _file_handler(name, level, formatter)
        if handler is not None:
            logger.addHandler(handler)
    if not logger.handlers:
        fallback = logging.StreamHandler(sys.stderr)
        fallback.setFormatter(formatter)
        logger.addHandler(fallback)

    rich.traceback.install(show_locals=False)
    logger.debug(f"Logger '{name}' ready at {config['level']} with {len(logger.handlers)} handlers.")
    return logger
