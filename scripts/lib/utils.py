"""
Utility functions for CRM Analytics Hub.
Atomic file writes for exports and JSON snapshot loading.

Usage:
    from scripts.lib.utils import atomic_write_text, load_json_file
"""
import json
import os
from pathlib import Path
from typing import Any

from scripts.lib.logger import setup_logger

logger = setup_logger(__name__)


def ensure_directory(path: str | Path) -> Path:
    """Ensure directory exists, create if needed."""
    path = Path(path)
    path.mkdir(parents=True, exist_ok=True)
    return path


def atomic_write_text(text: str, file_path: str | Path) -> bool:
    """
    Write text to file atomically using temp file + rename.
    Prevents a half-written export if the program crashes during write.

    Args:
        text: Content to write.
        file_path: Target file path.

    Returns:
        True if successful, False otherwise.
    """
    file_path = Path(file_path)
    temp_path = file_path.with_suffix(file_path.suffix + ".tmp")

    try:
        ensure_directory(file_path.parent)

        with open(temp_path, "w", encoding="utf-8", newline="") as f:
            f.write(text)

        os.replace(temp_path, file_path)
        logger.debug("Atomically wrote %d chars to %s", len(text), file_path)
        return True

    except OSError as e:
        logger.error("Failed to write %s: %s", file_path, e)
        if temp_path.exists():
            temp_path.unlink(missing_ok=True)
        return False


def load_json_file(file_path: str | Path) -> Any:
    """Read a JSON document from disk."""
    with open(Path(file_path), "r", encoding="utf-8") as f:
        return json.load(f)
