"""
Logging setup for the dashboard.

Every module logs through logging.getLogger(__name__), so records can be
filtered by hierarchy (e.g. "motion_demo.motion_service").
"""
from __future__ import annotations

import logging
import os
import time
from logging.handlers import RotatingFileHandler
from typing import Optional

LOG_FORMAT = "%(asctime)s | %(name)-32s | %(levelname)-8s | %(message)s"
DATE_FORMAT = "%Y-%m-%d %H:%M:%S"


def setup_logging(
    level: str = "INFO",
    log_dir: Optional[str] = None,
    max_bytes: int = 5 * 1024 * 1024,
    backup_count: int = 3,
) -> Optional[str]:
    """
    Configure the root logger: console always, plus a per-session rotating
    file when log_dir is given.

    Returns the log file path, or None without a file handler.
    """
    numeric_level = getattr(logging, level.upper(), None)
    if not isinstance(numeric_level, int):
        raise ValueError(f"unknown log level: {level!r}")

    root = logging.getLogger()
    root.setLevel(numeric_level)
    for h in root.handlers[:]:
        root.removeHandler(h)
        h.close()

    formatter = logging.Formatter(LOG_FORMAT, datefmt=DATE_FORMAT)

    console = logging.StreamHandler()
    console.setFormatter(formatter)
    root.addHandler(console)

    log_file = None
    if log_dir:
        os.makedirs(log_dir, exist_ok=True)
        ts = time.strftime("%Y%m%d_%H%M%S")
        log_file = os.path.join(log_dir, f"motion_demo_{ts}.log")
        fh = RotatingFileHandler(log_file, maxBytes=max_bytes, backupCount=backup_count, encoding="utf-8")
        fh.setFormatter(formatter)
        root.addHandler(fh)

    root.info("logging configured (level=%s, file=%s)", level.upper(), log_file)
    return log_file


def close_logging() -> None:
    root = logging.getLogger()
    for h in root.handlers[:]:
        h.close()
        root.removeHandler(h)
