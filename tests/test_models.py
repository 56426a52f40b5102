"""Unit tests for tag_cleaner/models.py"""

from datetime import datetime, timezone

import pytest

from tag_cleaner.models import EPOCH_MIN, Repository, Tag, parse_timestamp


class TestParseTimestamp:
    def test_zulu_suffix(self):
        assert parse_timestamp("2024-05-01T12:30:00Z") == datetime(2024, 5, 1, 12, 30, tzinfo=timezone.utc)

    def test_offset_is_normalized_to_utc(self):
        parsed = parse_timestamp("2024-05-01T14:30:00+02:00")
        assert parsed == datetime(2024, 5, 1, 12, 30, tzinfo=timezone.utc)
        assert parsed.tzinfo == timezone.utc

    def test_naive_value_is_assumed_utc(self):
        assert parse_timestamp("2024-05-01T12:30:00") == datetime(2024, 5, 1, 12, 30, tzinfo=timezone.utc)

    @pytest.mark.parametrize("value", [None, ""])
    def test_missing_is_oldest(self, value):
        assert parse_timestamp(value) == EPOCH_MIN

    def test_five_digit_fraction(self):
        assert parse_timestamp("2024-05-01T12:30:40.28547Z") == datetime(
            2024, 5, 1, 12, 30, 40, 285470, tzinfo=timezone.utc
        )

    @pytest.mark.parametrize("value", ["yesterday", "2026-10-18 12:00:00 UTC"])
    def test_invalid_is_rejected(self, value):
        with pytest.raises(ValueError):
            parse_timestamp(value)


class TestTag:
    def test_from_api(self):
        tag = Tag.from_api({"name": "v1", "last_updated": "2024-05-01T12:30:00Z", "full_size": 1234})

        assert tag == Tag("v1", datetime(2024, 5, 1, 12, 30, tzinfo=timezone.utc), 1234)

    def test_from_api_without_size(self):
        assert Tag.from_api({"name": "v1", "last_updated": None, "full_size": None}).size_bytes == 0

    def test_from_api_negative_size_clamped(self):
        assert Tag.from_api({"name": "v1", "full_size": -10}).size_bytes == 0

    def test_from_api_without_timestamp_sorts_oldest(self):
        assert Tag.from_api({"name": "v1"}).last_updated == EPOCH_MIN

    def test_from_api_rejects_bad_timestamp(self):
        with pytest.raises(ValueError):
            Tag.from_api({"name": "v1", "last_updated": "not a date"})

    def test_from_api_requires_name(self):
        with pytest.raises(KeyError):
            Tag.from_api({"full_size": 1})

    def test_to_dict(self):
        tag = Tag("v1", datetime(2024, 5, 1, tzinfo=timezone.utc), 10)
        assert tag.to_dict() == {"name": "v1", "last_updated": "2024-05-01T00:00:00+00:00", "size_bytes": 10}


class TestRepository:
    def test_namespace_and_name(self):
        assert Repository.parse("myorg/myapp") == Repository("myorg", "myapp")

    def test_bare_name_uses_default_namespace(self):
        assert Repository.parse("myapp", default_namespace="MyUser") == Repository("myuser", "myapp")

    def test_explicit_namespace_wins(self):
        assert Repository.parse("myorg/myapp", default_namespace="myuser").namespace == "myorg"

    def test_str(self):
        assert str(Repository("myorg", "my-app.v2")) == "myorg/my-app.v2"

    @pytest.mark.parametrize("value", ["", "myorg/", "myorg/My_App", "myorg/app/extra", "my org/app", "-app"])
    def test_invalid(self, value):
        with pytest.raises(ValueError):
            Repository.parse(value, default_namespace="myuser")

    def test_bare_name_without_namespace(self):
        with pytest.raises(ValueError, match="no namespace"):
            Repository.parse("myapp")
