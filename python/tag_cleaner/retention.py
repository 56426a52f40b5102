"""
Retention planning: decide which tags to delete for a count and/or size policy.

Everything here is pure computation over Tag lists; nothing talks to the
registry. The planner orders tags newest first, then applies the count policy
and afterwards the size policy to what the count policy left behind. Protected
tags are never scheduled for deletion.

Size policy and protected tags: the size pass keeps a comparison window that
starts as the full surviving set. While the window's total size is above the
limit, the oldest entry leaves the window. A protected entry leaving the
window is kept in the surviving set, but its bytes no longer count towards
the comparison. The surviving set can therefore stay above the limit when
protected tags are large.
"""

import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import AbstractSet, Iterable, List, Optional, Tuple

from tag_cleaner.models import Tag

logger = logging.getLogger(__name__)

MB = 1024 * 1024


class DeletionReason(Enum):
    COUNT = "count"
    SIZE = "size"


@dataclass(frozen=True)
class RetentionPolicy:
    """Limits a repository must satisfy. None means unbounded."""

    max_count: Optional[int] = None
    max_total_size_bytes: Optional[int] = None

    def __post_init__(self):
        if self.max_count is not None and self.max_count < 0:
            raise ValueError(f"max_count must be >= 0, got {self.max_count}")
        if self.max_total_size_bytes is not None and self.max_total_size_bytes < 0:
            raise ValueError(f"max_total_size_bytes must be >= 0, got {self.max_total_size_bytes}")

    @property
    def limits_count(self) -> bool:
        return self.max_count is not None

    @property
    def limits_size(self) -> bool:
        # A zero size limit is treated as "no limit"
        return bool(self.max_total_size_bytes)

    def describe(self) -> str:
        count = str(self.max_count) if self.limits_count else "unbounded"
        size = f"{self.max_total_size_bytes / MB:.2f} MB" if self.limits_size else "unbounded"
        return f"keep count: {count}, max total size: {size}"


@dataclass(frozen=True)
class PlannedDeletion:
    tag: Tag
    reason: DeletionReason
    # Size of the comparison window when a size deletion was decided
    window_size_bytes: Optional[int] = None


@dataclass
class RetentionPlan:
    """Outcome of a planning pass"""

    deletions: List[PlannedDeletion] = field(default_factory=list)
    survivors: List[Tag] = field(default_factory=list)
    protected_skips: List[Tag] = field(default_factory=list)

    @property
    def deleted_names(self) -> List[str]:
        return [d.tag.name for d in self.deletions]

    @property
    def total_size(self) -> int:
        """Total size of the surviving tags"""
        return total_size(self.survivors)

    @property
    def deleted_size(self) -> int:
        return sum(d.tag.size_bytes for d in self.deletions)


def total_size(tags: Iterable[Tag]) -> int:
    """Compute the total volume occupied by the given tags"""
    return sum(t.size_bytes for t in tags)


def sort_by_recency(tags: Iterable[Tag]) -> List[Tag]:
    """Newest first. Equal timestamps keep their input order."""
    return sorted(tags, key=lambda t: t.last_updated, reverse=True)


def _ensure_unique(tags: List[Tag]) -> None:
    seen = set()
    for tag in tags:
        if tag.name in seen:
            raise ValueError(f"Duplicate tag name in tag set: {tag.name}")
        seen.add(tag.name)


def apply_count_policy(
    ordered: List[Tag], protected: AbstractSet[str], max_count: int
) -> Tuple[List[Tag], List[PlannedDeletion], List[Tag]]:
    """Keep the max_count newest tags; schedule the rest unless protected.

    Protected candidates stay in the surviving set without using up the quota,
    so the result may hold more than max_count tags.

    Returns:
        (survivors, deletions, protected candidates that were skipped)
    """
    if len(ordered) <= max_count:
        return list(ordered), [], []

    survivors = list(ordered[:max_count])
    deletions: List[PlannedDeletion] = []
    skipped: List[Tag] = []

    for tag in ordered[max_count:]:
        if tag.name in protected:
            logger.info(f"Skipping protected tag: {tag.name}")
            skipped.append(tag)
            survivors.append(tag)
            continue
        deletions.append(PlannedDeletion(tag=tag, reason=DeletionReason.COUNT))

    return survivors, deletions, skipped


def apply_size_policy(
    ordered: List[Tag], protected: AbstractSet[str], max_total_size_bytes: int
) -> Tuple[List[Tag], List[PlannedDeletion], List[Tag]]:
    """Drop the oldest tags until the comparison window fits max_total_size_bytes.

    Returns:
        (survivors, deletions, protected tags that were skipped)
    """
    window = list(ordered)
    window_total = total_size(window)
    deletions: List[PlannedDeletion] = []
    skipped: List[Tag] = []
    deleted = set()

    while window and window_total > max_total_size_bytes:
        oldest = window.pop()
        size_before = window_total
        window_total -= oldest.size_bytes

        if oldest.name in protected:
            logger.info(f"Skipping protected tag: {oldest.name}")
            skipped.append(oldest)
            continue

        deletions.append(PlannedDeletion(tag=oldest, reason=DeletionReason.SIZE, window_size_bytes=size_before))
        deleted.add(oldest.name)

    survivors = [t for t in ordered if t.name not in deleted]
    return survivors, deletions, skipped


def plan_retention(
    tags: Iterable[Tag], protected: AbstractSet[str], policy: RetentionPolicy
) -> RetentionPlan:
    """Compute the deletions needed for the tag set to satisfy policy.

    Args:
        tags: All tags of the repository, in any order
        protected: Tag names that must never be deleted
        policy: Count and size limits; count is applied first

    Returns:
        RetentionPlan with deletions in the order they were decided and
        survivors ordered newest first
    """
    ordered = sort_by_recency(tags)
    _ensure_unique(ordered)

    plan = RetentionPlan(survivors=ordered)

    if policy.limits_count:
        survivors, deletions, skipped = apply_count_policy(plan.survivors, protected, policy.max_count)
        plan.survivors = survivors
        plan.deletions.extend(deletions)
        plan.protected_skips.extend(skipped)

    if policy.limits_size:
        survivors, deletions, skipped = apply_size_policy(plan.survivors, protected, policy.max_total_size_bytes)
        plan.survivors = survivors
        plan.deletions.extend(deletions)
        already_skipped = {t.name for t in plan.protected_skips}
        plan.protected_skips.extend(t for t in skipped if t.name not in already_skipped)

    logger.debug(
        f"Planned {len(plan.deletions)} deletions, {len(plan.survivors)} tags survive "
        f"({total_size(plan.survivors) / MB:.2f} MB)"
    )
    return plan
