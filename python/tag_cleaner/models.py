"""Data classes shared by the registry client, the planner and the reports."""

import re
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Dict, Optional

import dateutil.parser

# Tags without a timestamp sort as the oldest possible entries
EPOCH_MIN = datetime.min.replace(tzinfo=timezone.utc)

_REPOSITORY_PART = re.compile(r"^[a-z0-9]+(?:[._-][a-z0-9]+)*$")


def parse_timestamp(value: Optional[str]) -> datetime:
    """Parse a Docker Hub ISO-8601 timestamp into an aware UTC datetime.

    A missing or null value maps to EPOCH_MIN.

    Raises:
        ValueError: If a value is present but is not an ISO-8601 timestamp
    """
    if value is None or value == "":
        return EPOCH_MIN
    parsed = dateutil.parser.isoparse(value)
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed.astimezone(timezone.utc)


@dataclass(frozen=True)
class Tag:
    """One image tag as reported by the registry"""

    name: str
    last_updated: datetime
    size_bytes: int = 0

    @classmethod
    def from_api(cls, record: Dict[str, Any]) -> "Tag":
        """Build a Tag from a Docker Hub tag record (name, last_updated, full_size)."""
        size = record.get("full_size") or 0
        return cls(
            name=record["name"],
            last_updated=parse_timestamp(record.get("last_updated")),
            size_bytes=max(int(size), 0),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "name": self.name,
            "last_updated": self.last_updated.isoformat(),
            "size_bytes": self.size_bytes,
        }


@dataclass(frozen=True)
class Repository:
    """A Docker Hub repository, addressed as namespace/name"""

    namespace: str
    name: str

    @classmethod
    def parse(cls, value: str, default_namespace: Optional[str] = None) -> "Repository":
        """Parse "name" or "namespace/name".

        A bare name lives under default_namespace (normally the login user).

        Raises:
            ValueError: If the value is not a valid repository reference
        """
        value = (value or "").strip()
        if "/" in value:
            namespace, _, name = value.partition("/")
        else:
            namespace, name = (default_namespace or "").strip(), value

        namespace = namespace.lower()
        if not name:
            raise ValueError("repository name is empty")
        if not namespace:
            raise ValueError(f"repository '{value}' has no namespace and no default namespace is available")
        for part in (namespace, name):
            if not _REPOSITORY_PART.match(part):
                raise ValueError(
                    f"'{part}' is not a valid repository component "
                    "(lowercase alphanumerics separated by '.', '_' or '-')"
                )
        return cls(namespace=namespace, name=name)

    def __str__(self) -> str:
        return f"{self.namespace}/{self.name}"
