"""Loading of the protected-tags list (tags that must never be deleted)."""

import logging
from typing import FrozenSet, Iterable, Optional

from tag_cleaner.error_utils import create_protection_load_error

logger = logging.getLogger(__name__)


def parse_protected_tags(lines: Iterable[str]) -> FrozenSet[str]:
    """Parse tag names, one per entry.

    Surrounding whitespace is trimmed; blank entries and '#' comments are ignored.
    """
    tags = set()
    for raw in lines:
        line = raw.strip()
        if not line or line.startswith("#"):
            continue
        tags.add(line)
    return frozenset(tags)


def load_protected_tags(source: Optional[str], extra_tags: Iterable[str] = ()) -> FrozenSet[str]:
    """Load the protection set for a run.

    Args:
        source: Path of a file with one tag per line, or None when no file is configured
        extra_tags: Tags listed inline in the configuration, merged with the file

    Returns:
        Frozen set of protected tag names (empty when nothing is configured)

    Raises:
        ProtectionLoadError: If source is configured but cannot be read
    """
    protected = parse_protected_tags(extra_tags)

    if not source:
        if not protected:
            logger.info("No protection list configured, all tags are eligible for deletion")
        return protected

    try:
        with open(source, "r", encoding="utf-8") as f:
            from_file = parse_protected_tags(f)
    except (OSError, UnicodeDecodeError) as e:
        raise create_protection_load_error(source, e) from e

    logger.info(f"Loaded {len(from_file)} protected tags from {source}")
    return protected | from_file
