"""
Pytest configuration file.

Sets up the Python path so test files can import from the python/ directory.
"""
import sys
from pathlib import Path

import pytest

# Add python directory to path for all tests
_python_dir = Path(__file__).parent.parent / 'python'
_python_dir_abs = str(_python_dir.absolute())
if _python_dir_abs not in sys.path:
    sys.path.insert(0, _python_dir_abs)

from helpers import make_tag  # noqa: E402


@pytest.fixture
def abc_tags():
    """Three 100MB tags: a (newest), b, c (oldest)"""
    return [make_tag("a", 5), make_tag("b", 4), make_tag("c", 3)]
