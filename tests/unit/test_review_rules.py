"""
Tests for review validation, moderation and rating aggregation.
"""

import pytest

from sayso.api.services.reviews import (
    ContentModerator,
    normalize_tags,
    sanitize_text,
    update_business_stats,
    validate_review_data,
)
from sayso.db.models import Review


class TestValidation:
    def test_valid_review(self):
        result = validate_review_data(4, "Lovely coffee and quick service.", "Great", ["coffee"])
        assert result.is_valid

    @pytest.mark.parametrize("rating", [None, 0, 6, True])
    def test_bad_ratings(self, rating):
        result = validate_review_data(rating, "Lovely coffee and quick service.")
        assert not result.is_valid

    def test_content_length_is_measured_after_trimming(self):
        result = validate_review_data(3, "   short    ")
        assert "Review content must be at least 10 characters" in result.errors

    def test_content_too_long(self):
        assert not validate_review_data(3, "x" * 5001).is_valid

    def test_tag_limits(self):
        assert not validate_review_data(3, "Lovely coffee here.", tags=["t"] * 11).is_valid
        assert not validate_review_data(3, "Lovely coffee here.", tags=["x" * 31]).is_valid


def test_sanitize_strips_markup():
    assert sanitize_text("  <b>Great</b> &amp; cheap <script>x</script> ") == "Great & cheap x"
    assert sanitize_text(None) == ""


def test_normalize_tags_dedupes():
    assert normalize_tags(["coffee", " coffee ", "<i>wifi</i>", ""]) == ["coffee", "wifi"]


class TestModeration:
    def test_clean_text(self):
        is_clean, reasons = ContentModerator.moderate("The staff were friendly and the food was fresh.")
        assert is_clean
        assert reasons == []

    def test_profanity(self):
        is_clean, reasons = ContentModerator.moderate("This place is shit")
        assert not is_clean
        assert "Contains inappropriate language" in reasons

    def test_spam(self):
        is_clean, reasons = ContentModerator.moderate("Click here for cheap deals!!!")
        assert not is_clean
        assert "Looks like spam" in reasons

    def test_shouting(self):
        is_clean, reasons = ContentModerator.moderate("THIS IS THE WORST SERVICE I HAVE EVER HAD")
        assert not is_clean
        assert "Excessive capital letters" in reasons


def test_business_stats_ignore_hidden_reviews(db_session, make_profile, make_business):
    business = make_business()
    for rating, hidden in [(5, False), (4, False), (1, True)]:
        db_session.add(Review(business_id=business.id, user_id=make_profile().user_id,
                              rating=rating, content="Some review text here.", is_hidden=hidden))

    stats = update_business_stats(db_session, business.id)
    db_session.commit()

    assert stats == {"review_count": 2, "average_rating": 4.5}
    assert business.review_count == 2
    assert business.average_rating == 4.5
