"""
Logger factory shared by the analytics core, the CLI runner and the API.

Every module calls ``setup_logger(__name__)`` once at import. Records go to
stdout and, unless ``LOG_TO_FILE=false``, to ``logs/YYYYMMDD_crm_analytics.log``
so a CLI run and the API server append to the same daily file.

Environment:
    LOG_LEVEL    DEBUG / INFO / WARNING / ERROR (default INFO)
    LOG_TO_FILE  "false" keeps output on the console only
"""
import logging
import os
import sys
from datetime import datetime
from pathlib import Path

LOG_DIR = Path(__file__).resolve().parent.parent.parent / "logs"
LOG_FORMAT = "%(asctime)s | %(levelname)-8s | %(name)s | %(message)s"
DATE_FORMAT = "%Y-%m-%d %H:%M:%S"


def _resolve_level(level: str = None) -> int:
    name = (level or os.getenv("LOG_LEVEL") or "INFO").upper()
    return getattr(logging, name, logging.INFO)


def _file_logging_enabled() -> bool:
    return os.getenv("LOG_TO_FILE", "true").lower() == "true"


def _daily_file_handler(log_dir: Path) -> logging.Handler:
    log_dir.mkdir(parents=True, exist_ok=True)
    path = log_dir / f"{datetime.now():%Y%m%d}_crm_analytics.log"
    return logging.FileHandler(path, encoding="utf-8")


def setup_logger(
    name: str,
    level: str = None,
    log_to_file: bool = True,
    log_dir: Path = None,
) -> logging.Logger:
    """
    Return the named logger, attaching handlers on first use.

    Args:
        name: Usually the caller's ``__name__``.
        level: Level name; falls back to $LOG_LEVEL.
        log_to_file: Set False to skip the daily file even when enabled by env.
        log_dir: Override for the log directory (tests point this at tmp_path).
    """
    logger = logging.getLogger(name)
    if logger.handlers:
        return logger

    logger.setLevel(_resolve_level(level))
    formatter = logging.Formatter(fmt=LOG_FORMAT, datefmt=DATE_FORMAT)

    handlers = [logging.StreamHandler(sys.stdout)]
    if log_to_file and _file_logging_enabled():
        handlers.append(_daily_file_handler(Path(log_dir) if log_dir else LOG_DIR))

    for handler in handlers:
        handler.setLevel(logging.DEBUG)
        handler.setFormatter(formatter)
        logger.addHandler(handler)
    return logger
