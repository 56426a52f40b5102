"""
Utility functions for report formatting and saving.

This module provides functions to:
- Format byte counts for humans
- Render the deletion plan as a table
- Save run reports as JSON (optionally timestamped)
"""
import json
from dataclasses import asdict, is_dataclass
from datetime import date, datetime
from enum import Enum
from pathlib import Path
from typing import Any, Optional

from tabulate import tabulate

from tag_cleaner.logging_utils import get_logger
from tag_cleaner.retention import MB, RetentionPlan

logger = get_logger(__name__)


# ============================================================================
# Formatting Utilities
# ============================================================================

def sizeof_fmt(num: float, suffix: str = "B") -> str:
    """Format bytes into human-readable size.

    Args:
        num: Number of bytes
        suffix: Suffix to append (default: "B")

    Returns:
        Formatted string like "1.5GiB", "500.0MiB", etc.
    """
    for unit in ("", "Ki", "Mi", "Gi", "Ti", "Pi", "Ei", "Zi"):
        if abs(num) < 1024.0:
            return f"{num:3.1f}{unit}{suffix}"
        num /= 1024.0
    return f"{num:.1f}Yi{suffix}"


def format_mb(num_bytes: int) -> str:
    """Bytes as megabytes with two decimals, e.g. "150.00 MB"."""
    return f"{num_bytes / MB:.2f} MB"


def format_plan_table(plan: RetentionPlan) -> str:
    """Render planned deletions as a table, oldest decision first."""
    if not plan.deletions:
        return "No tags scheduled for deletion"

    rows = [
        [
            i,
            d.tag.name,
            d.tag.last_updated.strftime("%Y-%m-%d %H:%M:%S"),
            sizeof_fmt(d.tag.size_bytes),
            d.reason.value,
        ]
        for i, d in enumerate(plan.deletions, 1)
    ]
    return tabulate(rows, headers=["#", "Tag", "Last Updated (UTC)", "Size", "Reason"], tablefmt="simple")


# ============================================================================
# Timestamp Utilities
# ============================================================================

def get_timestamp_suffix() -> str:
    """
    Generate a timestamp suffix for report filenames.

    Returns:
        String in format: YYYY-MM-DD-HH-MM-SS
    """
    return datetime.now().strftime("%Y-%m-%d-%H-%M-%S")


def add_timestamp_to_path(path: str, timestamp: Optional[str] = None) -> str:
    """
    Add a timestamp to a file path before the extension.

    Args:
        path: Original file path (e.g., 'reports/cleanup.json')
        timestamp: Optional timestamp string (defaults to current time)

    Returns:
        Path with timestamp inserted (e.g., 'reports/cleanup-2026-01-15-14-30-00.json')
    """
    if timestamp is None:
        timestamp = get_timestamp_suffix()

    p = Path(path)
    return str(p.parent / f"{p.stem}-{timestamp}{p.suffix}")


# ============================================================================
# Report Saving
# ============================================================================

def _to_jsonable(data: Any) -> Any:
    """Recursively convert values json can't serialize.

    Converts:
    - dataclasses to dicts
    - datetime/date objects to ISO format strings
    - enums to their values
    - set/frozenset to sorted lists
    """
    if is_dataclass(data) and not isinstance(data, type):
        return _to_jsonable(asdict(data))
    elif isinstance(data, (datetime, date)):
        return data.isoformat()
    elif isinstance(data, Enum):
        return data.value
    elif isinstance(data, (set, frozenset)):
        try:
            return [_to_jsonable(item) for item in sorted(data)]
        except TypeError:
            return [_to_jsonable(item) for item in data]
    elif isinstance(data, dict):
        return {k: _to_jsonable(v) for k, v in data.items()}
    elif isinstance(data, (list, tuple)):
        return [_to_jsonable(item) for item in data]
    return data


def save_json(path: str, data: Any, timestamp: bool = False) -> str:
    """
    Write JSON data to a file with indentation.

    Args:
        path: Path to save the JSON file
        data: Data to save
        timestamp: If True, add timestamp to filename (default: False)

    Returns:
        Path to the saved file
    """
    p = Path(path)

    if timestamp:
        p = Path(add_timestamp_to_path(str(p)))

    p.parent.mkdir(parents=True, exist_ok=True)

    with open(p, "w") as f:
        json.dump(_to_jsonable(data), f, indent=2)
    logger.info(f"Saved JSON to {p}")
    return str(p)
