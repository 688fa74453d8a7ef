"""
Business lookup and slug helpers.
"""

import math
import re
import unicodedata
from typing import List, Optional, Tuple
from uuid import UUID

from sqlalchemy import func, or_
from sqlalchemy.orm import Session

from ...db.models import Business


def parse_uuid(value) -> Optional[UUID]:
    """UUID for ``value``, or None when it is not one (slugs, client-side ids)."""
    if isinstance(value, UUID):
        return value
    try:
        return UUID(str(value))
    except (ValueError, TypeError, AttributeError):
        return None


def slugify(text: str) -> str:
    normalized = unicodedata.normalize("NFKD", text).encode("ascii", "ignore").decode("ascii")
    slug = re.sub(r"[^a-z0-9]+", "-", normalized.lower()).strip("-")
    return slug or "business"


def unique_slug(db: Session, name: str) -> str:
    base = slugify(name)[:240]
    slug = base
    suffix = 2
    while db.query(Business.id).filter(Business.slug == slug).first() is not None:
        slug = f"{base}-{suffix}"
        suffix += 1
    return slug


def find_business(db: Session, identifier: str) -> Optional[Business]:
    """Look a business up by UUID or slug."""
    business_id = parse_uuid(identifier)
    if business_id is not None:
        return db.query(Business).filter(Business.id == business_id).first()
    return db.query(Business).filter(Business.slug == identifier).first()


def is_public(business: Business) -> bool:
    return business.status == "active" and not business.is_hidden


def distance_km(lat1: float, lng1: float, lat2: float, lng2: float) -> float:
    """Great-circle distance in kilometres."""
    phi1, phi2 = math.radians(lat1), math.radians(lat2)
    dphi = phi2 - phi1
    dlambda = math.radians(lng2 - lng1)
    a = math.sin(dphi / 2) ** 2 + math.cos(phi1) * math.cos(phi2) * math.sin(dlambda / 2) ** 2
    return 6371.0 * 2 * math.asin(min(1.0, math.sqrt(a)))


def _similarity(target: Business, candidate: Business, radius_km: float) -> Tuple[float, Optional[float]]:
    score = 60.0
    distance = None
    if None not in (target.lat, target.lng, candidate.lat, candidate.lng):
        distance = distance_km(target.lat, target.lng, candidate.lat, candidate.lng)
        score += max(0.0, 10 - distance / (radius_km / 10))

    if candidate.average_rating >= 4.0 and candidate.review_count >= 5:
        score += 4
    elif candidate.average_rating >= 3.5 and candidate.review_count >= 3:
        score += 2
    return round(score, 2), distance


def similar_businesses(
    db: Session, target: Business, limit: int = 12, radius_km: float = 50.0
) -> List[Tuple[Business, float]]:
    """
    Public listings in the target's category, best match first.

    Listings with coordinates further than ``radius_km`` away are left out;
    listings without coordinates are kept. Ties go to the better rated and
    more reviewed listing.
    """
    filters = []
    if target.primary_category_slug:
        filters.append(Business.primary_category_slug == target.primary_category_slug)
    if target.category:
        filters.append(func.lower(Business.category) == target.category.lower())
    if not filters:
        return []

    candidates = (
        db.query(Business)
        .filter(
            Business.id != target.id,
            Business.status == "active",
            Business.is_hidden == False,  # noqa: E712
            or_(*filters),
        )
        .all()
    )

    scored = []
    for candidate in candidates:
        score, distance = _similarity(target, candidate, radius_km)
        if distance is not None and distance > radius_km:
            continue
        scored.append((candidate, score))

    scored.sort(key=lambda pair: (-pair[1], -pair[0].average_rating, -pair[0].review_count, pair[0].name))
    return scored[:limit]
