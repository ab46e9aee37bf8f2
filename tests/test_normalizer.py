"""
Tests for the review normalizer.

Covers rating/date parsing, id synthesis stability and the single
reference time used for undated reviews.
"""

import pytest
from datetime import datetime, timezone

from src.data.normalizer import (
    AUTHOR_MAX_LENGTH,
    TITLE_MAX_LENGTH,
    ReviewNormalizer,
    parse_bool,
    parse_date,
    parse_rating,
    synthesize_review_id,
)


NOW = datetime(2025, 3, 1, 12, 0, tzinfo=timezone.utc)


class TestParseRating:
    """Tests for rating parsing and clamping."""

    def test_integer_in_range(self):
        assert parse_rating(4) == 4

    def test_string_rating(self):
        assert parse_rating("3") == 3

    def test_fraction_is_truncated(self):
        assert parse_rating("4.7") == 4
        assert parse_rating(1.9) == 1

    def test_out_of_range_is_clamped(self):
        assert parse_rating(9) == 5
        assert parse_rating(0) == 1
        assert parse_rating(-3) == 1

    def test_missing_uses_default(self):
        assert parse_rating(None) == 1
        assert parse_rating(None, default=3) == 3

    def test_garbage_uses_default(self):
        assert parse_rating("five stars") == 1
        assert parse_rating(True, default=2) == 2


class TestParseDate:
    """Tests for provider date parsing."""

    def test_iso_with_z(self):
        parsed = parse_date("2025-02-20T10:30:00Z")
        assert parsed == datetime(2025, 2, 20, 10, 30, tzinfo=timezone.utc)

    def test_date_only(self):
        assert parse_date("2025-02-20") == datetime(2025, 2, 20, tzinfo=timezone.utc)

    def test_long_month_format(self):
        assert parse_date("February 20, 2025") == datetime(2025, 2, 20, tzinfo=timezone.utc)

    def test_epoch_milliseconds(self):
        assert parse_date(1740047400000) == datetime(2025, 2, 20, 10, 30, tzinfo=timezone.utc)

    def test_offset_is_converted_to_utc(self):
        parsed = parse_date("2025-02-20T10:30:00+02:00")
        assert parsed == datetime(2025, 2, 20, 8, 30, tzinfo=timezone.utc)

    def test_unparseable(self):
        assert parse_date("last tuesday") is None
        assert parse_date("") is None
        assert parse_date(None) is None


class TestParseBool:

    def test_strings(self):
        assert parse_bool("true") is True
        assert parse_bool("Yes") is True
        assert parse_bool("false") is False

    def test_values(self):
        assert parse_bool(1) is True
        assert parse_bool(None) is False


class TestSynthesizeReviewId:
    """Tests for the stable id used when providers omit one."""

    def test_is_stable(self):
        first = synthesize_review_id("amazon", "Jane", "2025-02-20", "Great", 5)
        second = synthesize_review_id("amazon", "Jane", "2025-02-20", "Great", 5)
        assert first == second

    def test_author_case_is_ignored(self):
        assert synthesize_review_id("amazon", "JANE", "2025-02-20", "Great", 5) == \
            synthesize_review_id("amazon", "jane", "2025-02-20", "Great", 5)

    def test_prefixed_with_source(self):
        review_id = synthesize_review_id("bestbuy", "Jane", None, "Great", 5)
        assert review_id.startswith("bestbuy-")
        assert len(review_id) == len("bestbuy-") + 16

    def test_differs_on_content(self):
        assert synthesize_review_id("amazon", "Jane", "2025-02-20", "Great", 5) != \
            synthesize_review_id("amazon", "Jane", "2025-02-20", "Awful", 1)


class TestReviewNormalizer:
    """Tests for payload normalization."""

    def setup_method(self):
        self.normalizer = ReviewNormalizer()

    def test_full_payload(self):
        review = self.normalizer.normalize(
            {
                "id": "R1",
                "author": " Jane ",
                "rating": "4",
                "title": "Solid",
                "content": "Works well",
                "date": "2025-02-20",
                "verified_purchase": True,
            },
            "42",
            "amazon",
            now=NOW,
        )

        assert review.identity_key == ("42", "amazon", "R1")
        assert review.author == "Jane"
        assert review.rating == 4
        assert review.title == "Solid"
        assert review.body == "Works well"
        assert review.authored_at == datetime(2025, 2, 20, tzinfo=timezone.utc)
        assert review.verified_purchase is True

    def test_alias_fields(self):
        review = self.normalizer.normalize(
            {"reviewId": "X9", "userId": "bob", "ratingScore": 2, "reviewDescription": "meh"},
            7,
            "bestbuy",
            now=NOW,
        )
        assert review.product_id == "7"
        assert review.external_review_id == "X9"
        assert review.author == "bob"
        assert review.rating == 2
        assert review.body == "meh"

    def test_missing_rating_defaults_to_one(self):
        review = self.normalizer.normalize({"id": "R1"}, "42", "amazon", now=NOW)
        assert review.rating == 1

    def test_configured_default_rating(self):
        review = ReviewNormalizer(default_rating=3).normalize({"id": "R1"}, "42", "amazon", now=NOW)
        assert review.rating == 3

    def test_invalid_default_rating_rejected(self):
        with pytest.raises(ValueError):
            ReviewNormalizer(default_rating=0)

    def test_missing_date_uses_reference_time(self):
        review = self.normalizer.normalize({"id": "R1"}, "42", "amazon", now=NOW)
        assert review.authored_at == NOW

    def test_batch_shares_reference_time(self):
        reviews = self.normalizer.normalize_batch(
            [{"id": "R1"}, {"id": "R2"}, {"id": "R3"}], "42", "amazon", now=NOW,
        )
        assert {r.authored_at for r in reviews} == {NOW}

    def test_missing_id_is_synthesized_stably(self):
        payload = {"author": "Jane", "rating": 5, "content": "Great", "date": "2025-02-20"}
        first = self.normalizer.normalize(payload, "42", "amazon", now=NOW)
        second = self.normalizer.normalize(dict(payload), "42", "amazon", now=datetime.now(timezone.utc))
        assert first.external_review_id == second.external_review_id
        assert first.external_review_id.startswith("amazon-")

    def test_synthesized_id_ignores_author_casing(self):
        lower = self.normalizer.normalize({"author": "jane", "rating": 5, "content": "Great"}, "42", "amazon", now=NOW)
        upper = self.normalizer.normalize({"author": "JANE", "rating": 5, "content": "Great"}, "42", "amazon", now=NOW)
        assert lower.external_review_id == upper.external_review_id

    def test_title_used_when_body_missing(self):
        with_title = self.normalizer.normalize({"title": "Nice", "rating": 4}, "42", "amazon", now=NOW)
        other_title = self.normalizer.normalize({"title": "Bad", "rating": 4}, "42", "amazon", now=NOW)
        assert with_title.external_review_id != other_title.external_review_id

    def test_author_and_title_fit_their_columns(self):
        review = self.normalizer.normalize(
            {"id": "R1", "author": "a" * 150, "title": "t" * 400, "content": "b" * 5000},
            "42",
            "amazon",
            now=NOW,
        )

        assert len(review.author) == AUTHOR_MAX_LENGTH
        assert len(review.title) == TITLE_MAX_LENGTH
        assert len(review.body) == 5000

    def test_truncation_keeps_synthesized_id_stable(self):
        payload = {"author": "x" * 300, "rating": 4, "title": "y" * 300}
        first = self.normalizer.normalize(payload, "42", "amazon", now=NOW)
        second = self.normalizer.normalize(dict(payload), "42", "amazon", now=NOW)

        assert first.external_review_id == second.external_review_id
        assert first.title == "y" * TITLE_MAX_LENGTH
