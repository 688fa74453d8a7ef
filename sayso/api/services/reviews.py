"""
Review validation, sanitization, content moderation and business stats.
"""

import html
import logging
import re
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Tuple
from uuid import UUID

from sqlalchemy import func
from sqlalchemy.orm import Session

from ...db.models import Business, Review

logger = logging.getLogger(__name__)

MIN_CONTENT_LENGTH = 10
MAX_CONTENT_LENGTH = 5000
MAX_TITLE_LENGTH = 100
MAX_TAGS = 10
MAX_TAG_LENGTH = 30

_TAG_RE = re.compile(r"<[^>]*>")


def sanitize_text(text: Optional[str]) -> str:
    """Strip HTML tags, decode entities and trim whitespace."""
    if not text:
        return ""
    stripped = _TAG_RE.sub("", text)
    return html.unescape(stripped).replace("\xa0", " ").strip()


@dataclass
class ValidationResult:
    errors: List[str] = field(default_factory=list)

    @property
    def is_valid(self) -> bool:
        return not self.errors


def validate_review_data(
    rating: Optional[int],
    content: Optional[str],
    title: Optional[str] = None,
    tags: Optional[List[str]] = None,
) -> ValidationResult:
    """Check a review payload. Lengths are measured after trimming."""
    result = ValidationResult()

    if rating is None:
        result.errors.append("Rating is required")
    elif isinstance(rating, bool) or not isinstance(rating, int) or not 1 <= rating <= 5:
        result.errors.append("Rating must be an integer between 1 and 5")

    text = (content or "").strip()
    if not text:
        result.errors.append("Review content is required")
    elif len(text) < MIN_CONTENT_LENGTH:
        result.errors.append(f"Review content must be at least {MIN_CONTENT_LENGTH} characters")
    elif len(text) > MAX_CONTENT_LENGTH:
        result.errors.append(f"Review content must be at most {MAX_CONTENT_LENGTH} characters")

    if title and len(title.strip()) > MAX_TITLE_LENGTH:
        result.errors.append(f"Title must be at most {MAX_TITLE_LENGTH} characters")

    tags = tags or []
    if len(tags) > MAX_TAGS:
        result.errors.append(f"At most {MAX_TAGS} tags are allowed")
    for tag in tags:
        if len(tag.strip()) > MAX_TAG_LENGTH:
            result.errors.append(f"Tags must be at most {MAX_TAG_LENGTH} characters")
            break

    return result


class ContentModerator:
    """Screen review text for abusive or spammy content."""

    BLOCKED_TERMS = [
        "fuck",
        "shit",
        "bitch",
        "cunt",
        "asshole",
        "motherfucker",
    ]

    SPAM_PATTERNS = [
        r"(click here|buy now|act now|limited time)",
        r"https?://\S+.*https?://\S+",  # more than one link
        r"(.)\1{9,}",  # same character 10+ times
        r"\b(whatsapp|telegram)\b.*\+?\d{9,}",
    ]

    @classmethod
    def moderate(cls, text: str) -> Tuple[bool, List[str]]:
        """
        Check text for blocked terms and spam.

        Returns (is_clean, reasons)
        """
        reasons = []
        lowered = text.lower()

        for term in cls.BLOCKED_TERMS:
            if re.search(rf"\b{re.escape(term)}\b", lowered):
                reasons.append("Contains inappropriate language")
                break

        for pattern in cls.SPAM_PATTERNS:
            if re.search(pattern, text, re.IGNORECASE):
                reasons.append("Looks like spam")
                break

        letters = [ch for ch in text if ch.isalpha()]
        if len(letters) >= 20 and sum(ch.isupper() for ch in letters) / len(letters) > 0.7:
            reasons.append("Excessive capital letters")

        return not reasons, reasons


def normalize_tags(tags: Optional[List[str]]) -> List[str]:
    cleaned = []
    for tag in tags or []:
        tag = sanitize_text(tag)
        if tag and tag not in cleaned:
            cleaned.append(tag)
    return cleaned


def update_business_stats(db: Session, business_id: UUID) -> Dict[str, float]:
    """Recompute review_count and average_rating from visible reviews. Caller commits."""
    db.flush()
    count, average = (
        db.query(func.count(Review.id), func.avg(Review.rating))
        .filter(Review.business_id == business_id, Review.is_hidden == False)  # noqa: E712
        .one()
    )

    business = db.query(Business).filter(Business.id == business_id).first()
    if business is None:
        return {"review_count": 0, "average_rating": 0.0}

    business.review_count = int(count or 0)
    business.average_rating = round(float(average), 2) if average is not None else 0.0
    return {"review_count": business.review_count, "average_rating": business.average_rating}
