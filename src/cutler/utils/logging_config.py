"""Logging configuration for cutler.

Provides configurable logging with:
- File-based logging with rotation
- Console output at the configured level
- Timing helpers for apply/unapply/reset phases

Environment Variables:
    CUTLER_LOG_LEVEL: DEBUG, INFO, WARNING, ERROR (default: INFO)
    CUTLER_LOG_FILE: Path to log file (default: ~/.cutler/cutler.log)
    CUTLER_LOG_MAX_SIZE: Max log file size in MB (default: 10)
    CUTLER_LOG_BACKUPS: Number of backup files to keep (default: 5)

Usage:
    from cutler.utils.logging_config import setup_logging, timed_section

    setup_logging()  # Call once at startup

    async with timed_section("apply", jobs=12):
        ...
"""
import logging
import os
import time
from contextlib import asynccontextmanager
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import Optional

# Performance logger - separate from main logger for easy filtering
perf_logger = logging.getLogger("cutler.perf")


def get_log_level(verbose: bool = False) -> int:
    """Get log level from environment (``verbose`` forces DEBUG)."""
    if verbose:
        return logging.DEBUG
    level_str = os.environ.get("CUTLER_LOG_LEVEL", "INFO").upper()
    return getattr(logging, level_str, logging.INFO)


def get_log_file() -> Path:
    """Get log file path from environment."""
    default_path = Path.home() / ".cutler" / "cutler.log"
    path_str = os.environ.get("CUTLER_LOG_FILE", str(default_path))
    return Path(path_str)


def setup_logging(verbose: bool = False, log_file: Optional[Path] = None) -> None:
    """Configure logging for the application.

    Sets up:
    - Console handler (INFO+ by default, respects CUTLER_LOG_LEVEL)
    - File handler with rotation (DEBUG level - captures everything)
    - Performance logger for timing metrics (file only)
    """
    log_level = get_log_level(verbose)
    log_file = log_file or get_log_file()
    max_size_mb = int(os.environ.get("CUTLER_LOG_MAX_SIZE", "10"))
    backup_count = int(os.environ.get("CUTLER_LOG_BACKUPS", "5"))

    log_file.parent.mkdir(parents=True, exist_ok=True)

    file_format = logging.Formatter(
        "%(asctime)s.%(msecs)03d | %(name)-28s | %(levelname)-7s | %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S"
    )
    # Console output is meant for humans running the tool
    console_format = logging.Formatter("%(levelname)-7s %(message)s")
    perf_format = logging.Formatter(
        "%(asctime)s.%(msecs)03d | PERF | %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S"
    )

    console_handler = logging.StreamHandler()
    console_handler.setLevel(log_level)
    console_handler.setFormatter(console_format)

    file_handler = RotatingFileHandler(
        log_file,
        maxBytes=max_size_mb * 1024 * 1024,
        backupCount=backup_count,
        encoding="utf-8"
    )
    file_handler.setLevel(logging.DEBUG)
    file_handler.setFormatter(file_format)

    perf_log_file = log_file.parent / "cutler-perf.log"
    perf_handler = RotatingFileHandler(
        perf_log_file,
        maxBytes=max_size_mb * 1024 * 1024,
        backupCount=backup_count,
        encoding="utf-8"
    )
    perf_handler.setLevel(logging.DEBUG)
    perf_handler.setFormatter(perf_format)

    root_logger = logging.getLogger("cutler")
    root_logger.setLevel(logging.DEBUG)  # Capture all, handlers filter
    root_logger.handlers.clear()
    root_logger.addHandler(console_handler)
    root_logger.addHandler(file_handler)

    perf_logger.setLevel(logging.DEBUG)
    perf_logger.handlers.clear()
    perf_logger.addHandler(perf_handler)
    perf_logger.propagate = False

    root_logger.debug(
        f"Logging initialized: level={logging.getLevelName(log_level)}, file={log_file}"
    )


@asynccontextmanager
async def timed_section(operation: str, **extra):
    """Async context manager for timing code sections.

    Usage:
        async with timed_section("unapply", entries=4):
            await engine.unapply(config)
    """
    start = time.perf_counter()
    extra_str = " | ".join(f"{k}={v}" for k, v in extra.items()) if extra else ""

    try:
        yield
        elapsed = (time.perf_counter() - start) * 1000
        msg = f"{operation:20s} | {elapsed:8.2f}ms | OK"
        if extra_str:
            msg += f" | {extra_str}"
        perf_logger.info(msg)
    except Exception as e:
        elapsed = (time.perf_counter() - start) * 1000
        msg = f"{operation:20s} | {elapsed:8.2f}ms | FAIL: {e}"
        if extra_str:
            msg += f" | {extra_str}"
        perf_logger.warning(msg)
        raise
