"""Shared builders for tests"""

import sys
from datetime import datetime, timedelta, timezone
from pathlib import Path
from unittest.mock import MagicMock

_python_dir = Path(__file__).parent.parent / "python"
if str(_python_dir.absolute()) not in sys.path:
    sys.path.insert(0, str(_python_dir.absolute()))

from tag_cleaner.models import Tag  # noqa: E402

MB = 1024 * 1024
BASE_TIME = datetime(2024, 1, 1, tzinfo=timezone.utc)


def make_tag(name: str, t: int, size_mb: float = 100) -> Tag:
    """Tag updated t hours after BASE_TIME with the given size in MB"""
    return Tag(name=name, last_updated=BASE_TIME + timedelta(hours=t), size_bytes=int(size_mb * MB))


def make_response(status_code: int = 200, json_data=None, text: str = "", reason: str = ""):
    """Mock requests.Response usable as a context manager"""
    response = MagicMock()
    response.status_code = status_code
    response.reason = reason
    response.text = text
    if json_data is None:
        response.json.side_effect = ValueError("No JSON")
    else:
        response.json.return_value = json_data
    response.__enter__.return_value = response
    response.__exit__.return_value = False
    return response


def tag_record(name: str, last_updated: str = "2024-01-01T00:00:00.000000Z", full_size: int = 100):
    """Docker Hub tag listing record"""
    return {"name": name, "last_updated": last_updated, "full_size": full_size}
