"""
File helpers for the Signup Analytics Hub.

Usage:
    from scripts.lib.utils import atomic_write_json
"""
import json
import os
from pathlib import Path
from typing import Any, Dict, Union

from scripts.lib.logger import setup_logger

logger = setup_logger(__name__)


def atomic_write_json(data: Dict[str, Any], file_path: Union[str, Path], indent: int = 2) -> bool:
    """
    Write *data* as JSON via a temp file + rename, so readers never see a
    half-written report.

    Returns:
        True if written, False otherwise (the error is logged).
    """
    file_path = Path(file_path)
    temp_path = file_path.with_suffix(file_path.suffix + ".tmp")

    try:
        file_path.parent.mkdir(parents=True, exist_ok=True)
        with open(temp_path, "w", encoding="utf-8") as f:
            json.dump(data, f, ensure_ascii=False, indent=indent, default=str)
        os.replace(temp_path, file_path)
        logger.debug("Wrote %s", file_path)
        return True
    except OSError as e:
        logger.error("Failed to write JSON to %s: %s", file_path, e)
        temp_path.unlink(missing_ok=True)
        return False
