"""Unit tests for tag_cleaner/retention.py"""

import random

import pytest

from helpers import BASE_TIME, MB, make_tag
from tag_cleaner.models import Tag
from tag_cleaner.retention import (
    DeletionReason,
    RetentionPolicy,
    apply_count_policy,
    apply_size_policy,
    plan_retention,
    sort_by_recency,
    total_size,
)


def names(tags):
    return [t.name for t in tags]


def random_tags(rng: random.Random, count: int):
    """Tags with distinct timestamps and random sizes, shuffled"""
    hours = rng.sample(range(10_000), count)
    tags = [make_tag(f"tag-{i}", h, size_mb=rng.randint(0, 500)) for i, h in enumerate(hours)]
    rng.shuffle(tags)
    return tags


class TestRetentionPolicy:
    """Tests for RetentionPolicy"""

    def test_unbounded_by_default(self):
        policy = RetentionPolicy()
        assert not policy.limits_count
        assert not policy.limits_size

    def test_zero_size_is_unbounded(self):
        assert not RetentionPolicy(max_total_size_bytes=0).limits_size

    def test_zero_count_is_a_limit(self):
        assert RetentionPolicy(max_count=0).limits_count

    def test_rejects_negative_values(self):
        with pytest.raises(ValueError):
            RetentionPolicy(max_count=-1)
        with pytest.raises(ValueError):
            RetentionPolicy(max_total_size_bytes=-5)

    def test_describe(self):
        assert RetentionPolicy(max_count=3, max_total_size_bytes=150 * MB).describe() == (
            "keep count: 3, max total size: 150.00 MB"
        )
        assert RetentionPolicy().describe() == "keep count: unbounded, max total size: unbounded"


class TestOrdering:
    """Tests for sort_by_recency"""

    def test_newest_first(self):
        tags = [make_tag("old", 1), make_tag("new", 9), make_tag("mid", 5)]
        assert names(sort_by_recency(tags)) == ["new", "mid", "old"]

    def test_does_not_mutate_input(self):
        tags = [make_tag("old", 1), make_tag("new", 9)]
        sort_by_recency(tags)
        assert names(tags) == ["old", "new"]


class TestScenarios:
    """The reference scenarios with three 100MB tags a (newest), b, c (oldest)"""

    def test_count_limit_deletes_oldest(self, abc_tags):
        plan = plan_retention(abc_tags, frozenset(), RetentionPolicy(max_count=2))

        assert plan.deleted_names == ["c"]
        assert names(plan.survivors) == ["a", "b"]
        assert plan.deletions[0].reason is DeletionReason.COUNT

    def test_size_limit_deletes_oldest_until_under_limit(self, abc_tags):
        plan = plan_retention(abc_tags, frozenset(), RetentionPolicy(max_total_size_bytes=150 * MB))

        assert plan.deleted_names == ["c", "b"]
        assert names(plan.survivors) == ["a"]
        assert plan.total_size == 100 * MB
        assert all(d.reason is DeletionReason.SIZE for d in plan.deletions)

    def test_size_limit_skips_protected_oldest(self, abc_tags):
        plan = plan_retention(abc_tags, frozenset({"c"}), RetentionPolicy(max_total_size_bytes=150 * MB))

        assert plan.deleted_names == ["b"]
        assert names(plan.survivors) == ["a", "c"]
        assert names(plan.protected_skips) == ["c"]
        # The protected tag keeps the real total above the limit
        assert plan.total_size == 200 * MB

    def test_zero_count_with_everything_protected_deletes_nothing(self, abc_tags):
        plan = plan_retention(abc_tags, frozenset({"a", "b", "c"}), RetentionPolicy(max_count=0))

        assert plan.deletions == []
        assert names(plan.survivors) == ["a", "b", "c"]
        assert names(plan.protected_skips) == ["a", "b", "c"]


class TestCountPolicy:
    """Tests for the count pass"""

    def test_no_op_when_under_limit(self, abc_tags):
        survivors, deletions, skipped = apply_count_policy(sort_by_recency(abc_tags), frozenset(), 3)
        assert names(survivors) == ["a", "b", "c"]
        assert deletions == []
        assert skipped == []

    def test_protected_candidates_do_not_use_quota(self):
        tags = [make_tag(n, t) for n, t in [("a", 5), ("b", 4), ("c", 3), ("d", 2)]]
        plan = plan_retention(tags, frozenset({"c"}), RetentionPolicy(max_count=2))

        assert plan.deleted_names == ["d"]
        assert names(plan.survivors) == ["a", "b", "c"]

    def test_protected_tag_within_quota_still_counts(self):
        tags = [make_tag(n, t) for n, t in [("a", 5), ("b", 4), ("c", 3)]]
        plan = plan_retention(tags, frozenset({"a"}), RetentionPolicy(max_count=1))

        assert plan.deleted_names == ["b", "c"]
        assert names(plan.survivors) == ["a"]
        assert plan.protected_skips == []

    def test_input_order_is_irrelevant(self, abc_tags):
        plan = plan_retention(list(reversed(abc_tags)), frozenset(), RetentionPolicy(max_count=1))
        assert plan.deleted_names == ["b", "c"]

    @pytest.mark.parametrize("seed", range(10))
    def test_keeps_min_of_limit_and_total(self, seed):
        rng = random.Random(seed)
        tags = random_tags(rng, rng.randint(0, 40))
        k = rng.randint(0, 50)

        plan = plan_retention(tags, frozenset(), RetentionPolicy(max_count=k))

        assert len(plan.survivors) == min(k, len(tags))
        newest = sorted(tags, key=lambda t: t.last_updated, reverse=True)[:k]
        assert set(names(plan.survivors)) == set(names(newest))


class TestSizePolicy:
    """Tests for the size pass"""

    def test_no_op_when_under_limit(self, abc_tags):
        survivors, deletions, skipped = apply_size_policy(sort_by_recency(abc_tags), frozenset(), 300 * MB)
        assert names(survivors) == ["a", "b", "c"]
        assert deletions == []

    def test_records_window_size_at_decision(self, abc_tags):
        plan = plan_retention(abc_tags, frozenset(), RetentionPolicy(max_total_size_bytes=150 * MB))
        assert [d.window_size_bytes for d in plan.deletions] == [300 * MB, 200 * MB]

    def test_can_empty_repository(self):
        tags = [make_tag("huge", 1, size_mb=500)]
        plan = plan_retention(tags, frozenset(), RetentionPolicy(max_total_size_bytes=100 * MB))
        assert plan.deleted_names == ["huge"]
        assert plan.survivors == []

    def test_protected_tag_leaves_comparison_window(self):
        # p is large and protected; once it leaves the window only a and b are compared
        tags = [make_tag("a", 5, 50), make_tag("b", 4, 50), make_tag("p", 3, 1000)]
        plan = plan_retention(tags, frozenset({"p"}), RetentionPolicy(max_total_size_bytes=150 * MB))

        assert plan.deletions == []
        assert names(plan.survivors) == ["a", "b", "p"]
        assert names(plan.protected_skips) == ["p"]

    def test_zero_sized_tags_are_kept_when_limit_met(self):
        tags = [make_tag("a", 5, 0), make_tag("b", 4, 200), make_tag("c", 3, 0)]
        plan = plan_retention(tags, frozenset(), RetentionPolicy(max_total_size_bytes=100 * MB))
        # c goes first (oldest), then b brings the total under the limit
        assert plan.deleted_names == ["c", "b"]
        assert names(plan.survivors) == ["a"]

    @pytest.mark.parametrize("seed", range(10))
    def test_result_fits_or_is_empty(self, seed):
        rng = random.Random(seed)
        tags = random_tags(rng, rng.randint(0, 40))
        limit = rng.randint(1, 5000) * MB

        plan = plan_retention(tags, frozenset(), RetentionPolicy(max_total_size_bytes=limit))

        assert total_size(plan.survivors) <= limit or plan.survivors == []


class TestCombinedPolicies:
    """Tests for count and size applied together"""

    def test_count_then_size(self):
        tags = [make_tag(n, t) for n, t in [("a", 5), ("b", 4), ("c", 3), ("d", 2), ("e", 1)]]
        plan = plan_retention(tags, frozenset(), RetentionPolicy(max_count=4, max_total_size_bytes=250 * MB))

        assert plan.deleted_names == ["e", "d", "c"]
        assert [d.reason for d in plan.deletions] == [
            DeletionReason.COUNT,
            DeletionReason.SIZE,
            DeletionReason.SIZE,
        ]
        assert names(plan.survivors) == ["a", "b"]

    def test_protected_tag_skipped_by_both_passes_reported_once(self):
        tags = [make_tag(n, t) for n, t in [("a", 5), ("b", 4), ("c", 3), ("d", 2)]]
        plan = plan_retention(tags, frozenset({"d"}), RetentionPolicy(max_count=2, max_total_size_bytes=150 * MB))

        assert plan.deleted_names == ["c", "b"]
        assert names(plan.survivors) == ["a", "d"]
        assert names(plan.protected_skips) == ["d"]
        assert plan.deleted_size == 200 * MB

    @pytest.mark.parametrize("seed", range(20))
    def test_never_deletes_protected_tags(self, seed):
        rng = random.Random(seed)
        tags = random_tags(rng, rng.randint(0, 30))
        protected = frozenset(t.name for t in tags if rng.random() < 0.3)
        policy = RetentionPolicy(
            max_count=rng.choice([None, 0, 1, 5, 20]),
            max_total_size_bytes=rng.choice([None, 0, 100 * MB, 1000 * MB]),
        )

        plan = plan_retention(tags, protected, policy)

        assert not protected & set(plan.deleted_names)
        # Every tag ends up exactly once in either list
        assert sorted(plan.deleted_names + names(plan.survivors)) == sorted(names(tags))

    @pytest.mark.parametrize("seed", range(10))
    def test_compliant_set_needs_no_deletions(self, seed):
        rng = random.Random(seed)
        tags = random_tags(rng, rng.randint(1, 30))
        policy = RetentionPolicy(max_count=rng.randint(0, 20), max_total_size_bytes=rng.randint(1, 3000) * MB)

        first = plan_retention(tags, frozenset(), policy)
        second = plan_retention(first.survivors, frozenset(), policy)

        assert second.deletions == []
        assert names(second.survivors) == names(first.survivors)

    def test_same_input_same_plan(self):
        rng = random.Random(42)
        tags = random_tags(rng, 25)
        protected = frozenset(names(tags[:5]))
        policy = RetentionPolicy(max_count=10, max_total_size_bytes=1500 * MB)

        assert plan_retention(tags, protected, policy) == plan_retention(list(tags), protected, policy)


class TestValidation:
    def test_duplicate_names_rejected(self):
        tags = [make_tag("a", 1), make_tag("a", 2)]
        with pytest.raises(ValueError, match="Duplicate"):
            plan_retention(tags, frozenset(), RetentionPolicy(max_count=1))

    def test_empty_repository(self):
        plan = plan_retention([], frozenset(), RetentionPolicy(max_count=0, max_total_size_bytes=MB))
        assert plan.deletions == []
        assert plan.survivors == []

    def test_ties_keep_every_tag_accounted_for(self):
        tags = [Tag(name=f"t{i}", last_updated=BASE_TIME, size_bytes=MB) for i in range(5)]
        plan = plan_retention(tags, frozenset(), RetentionPolicy(max_count=2))
        assert len(plan.survivors) == 2
        assert len(plan.deletions) == 3
