"""
Onboarding step state machine.

Steps run interests -> subcategories -> deal-breakers -> complete. A profile's
``onboarding_step`` is the furthest step it may visit; it only moves forward
after the previous step's selections are saved.
"""

import logging
from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Sequence

from sqlalchemy.orm import Session

from ..errors import ConflictError, InvalidRequestError
from ...db.models import Profile, UserDealbreaker, UserInterest, UserSubcategory, utcnow

logger = logging.getLogger(__name__)

STEP_ORDER = ["interests", "subcategories", "deal-breakers", "complete"]

STEP_ROUTES = {step: f"/{step}" for step in STEP_ORDER}

HOME_ROUTE = "/home"

INTERESTS: Dict[str, str] = {
    "food-drink": "Food & Drink",
    "beauty-wellness": "Beauty & Wellness",
    "professional-services": "Professional Services",
    "outdoors-adventure": "Outdoors & Adventure",
    "experiences-entertainment": "Entertainment & Experiences",
    "arts-culture": "Arts & Culture",
    "family-pets": "Family & Pets",
    "shopping-lifestyle": "Shopping & Lifestyle",
}

# subcategory -> parent interest
SUBCATEGORY_MAPPING: Dict[str, str] = {
    "restaurants": "food-drink",
    "cafes": "food-drink",
    "bars": "food-drink",
    "fast-food": "food-drink",
    "fine-dining": "food-drink",
    "gyms": "beauty-wellness",
    "spas": "beauty-wellness",
    "salons": "beauty-wellness",
    "wellness": "beauty-wellness",
    "nail-salons": "beauty-wellness",
    "education-learning": "professional-services",
    "transport-travel": "professional-services",
    "finance-insurance": "professional-services",
    "plumbers": "professional-services",
    "electricians": "professional-services",
    "legal-services": "professional-services",
    "hiking": "outdoors-adventure",
    "cycling": "outdoors-adventure",
    "water-sports": "outdoors-adventure",
    "camping": "outdoors-adventure",
    "events-festivals": "experiences-entertainment",
    "sports-recreation": "experiences-entertainment",
    "nightlife": "experiences-entertainment",
    "comedy-clubs": "experiences-entertainment",
    "cinemas": "experiences-entertainment",
    "museums": "arts-culture",
    "galleries": "arts-culture",
    "theaters": "arts-culture",
    "concerts": "arts-culture",
    "family-activities": "family-pets",
    "pet-services": "family-pets",
    "childcare": "family-pets",
    "veterinarians": "family-pets",
    "fashion": "shopping-lifestyle",
    "electronics": "shopping-lifestyle",
    "home-decor": "shopping-lifestyle",
    "books": "shopping-lifestyle",
}

DEALBREAKERS: Dict[str, str] = {
    "trustworthiness": "Trustworthiness",
    "punctuality": "Punctuality",
    "friendliness": "Friendliness",
    "value-for-money": "Value for Money",
    "expensive": "Expensive",
    "slow-service": "Slow Service",
    "no-parking": "No Parking",
    "cash-only": "Cash Only",
    "bad-hygiene": "Bad Hygiene",
}

INTEREST_LIMITS = (3, 6)
SUBCATEGORY_LIMITS = (1, 10)
DEALBREAKER_LIMITS = (1, 3)


@dataclass
class AccessDecision:
    allowed: bool
    step: str
    current_route: Optional[str]
    redirect: Optional[str] = None


def step_index(step: str) -> int:
    return STEP_ORDER.index(step)


def required_step(profile: Profile) -> str:
    if profile.onboarding_complete:
        return "complete"
    step = profile.onboarding_step
    return step if step in STEP_ORDER else "interests"


def step_for_path(path: str) -> Optional[str]:
    normalized = "/" + path.strip().strip("/")
    for step, route in STEP_ROUTES.items():
        if normalized == route:
            return step
    return None


def check_access(profile: Profile, path: str) -> AccessDecision:
    """
    Decide whether ``profile`` may open ``path``.

    Finished profiles are kept out of every onboarding route. Otherwise a route
    is open when its step is at or before the required step; later steps
    redirect back to the required one.
    """
    step = required_step(profile)
    route_step = step_for_path(path)

    if route_step is None:
        return AccessDecision(allowed=True, step=step, current_route=None)

    if profile.onboarding_complete:
        return AccessDecision(allowed=False, step=step, current_route=STEP_ROUTES[route_step],
                              redirect=HOME_ROUTE)

    if step_index(route_step) <= step_index(step):
        return AccessDecision(allowed=True, step=step, current_route=STEP_ROUTES[route_step])

    return AccessDecision(allowed=False, step=step, current_route=STEP_ROUTES[route_step],
                          redirect=STEP_ROUTES[step])


def _clean_ids(ids: Sequence[str], item_name: str, limits: tuple) -> List[str]:
    if any(not isinstance(i, str) or not i.strip() for i in ids):
        raise InvalidRequestError(f"Invalid {item_name} IDs found")

    cleaned = []
    for i in ids:
        i = i.strip()
        if i not in cleaned:
            cleaned.append(i)

    low, high = limits
    if len(cleaned) < low:
        raise InvalidRequestError(f"Please select at least {low} {item_name}")
    if len(cleaned) > high:
        raise InvalidRequestError(f"Maximum {high} {item_name} allowed")
    return cleaned


def validate_interests(ids: Sequence[str]) -> List[str]:
    cleaned = _clean_ids(ids, "interests", INTEREST_LIMITS)
    unknown = [i for i in cleaned if i not in INTERESTS]
    if unknown:
        raise InvalidRequestError(f"Invalid interest IDs: {', '.join(unknown)}")
    return cleaned


def validate_subcategories(ids: Sequence[str], interest_ids: Sequence[str]) -> List[str]:
    cleaned = _clean_ids(ids, "subcategories", SUBCATEGORY_LIMITS)
    unknown = [i for i in cleaned if i not in SUBCATEGORY_MAPPING]
    if unknown:
        raise InvalidRequestError(f"Invalid subcategory IDs: {', '.join(unknown)}")
    outside = [i for i in cleaned if SUBCATEGORY_MAPPING[i] not in interest_ids]
    if outside:
        raise InvalidRequestError(
            f"Subcategories do not match selected interests: {', '.join(outside)}"
        )
    return cleaned


def validate_dealbreakers(ids: Sequence[str]) -> List[str]:
    cleaned = _clean_ids(ids, "deal-breakers", DEALBREAKER_LIMITS)
    unknown = [i for i in cleaned if i not in DEALBREAKERS]
    if unknown:
        raise InvalidRequestError(f"Invalid deal-breaker IDs: {', '.join(unknown)}")
    return cleaned


def selections(db: Session, profile: Profile) -> Dict[str, List[str]]:
    uid = profile.user_id
    return {
        "interests": [r.interest_id for r in
                      db.query(UserInterest).filter(UserInterest.user_id == uid).all()],
        "subcategories": [r.subcategory_id for r in
                          db.query(UserSubcategory).filter(UserSubcategory.user_id == uid).all()],
        "dealbreakers": [r.dealbreaker_id for r in
                         db.query(UserDealbreaker).filter(UserDealbreaker.user_id == uid).all()],
    }


def _ensure_reachable(profile: Profile, step: str) -> None:
    if profile.onboarding_complete:
        raise ConflictError("Onboarding is already complete", code="ONBOARDING_COMPLETE")
    current = required_step(profile)
    if step_index(step) > step_index(current):
        raise ConflictError(
            f"Complete the {current} step first",
            code="STEP_NOT_REACHABLE",
            details={"required_step": current, "redirect": STEP_ROUTES[current]},
        )


def _advance(profile: Profile, step: str) -> None:
    if step_index(step) > step_index(required_step(profile)):
        profile.onboarding_step = step


def _replace_interests(db: Session, profile: Profile, interest_ids: List[str]) -> None:
    db.query(UserInterest).filter(UserInterest.user_id == profile.user_id).delete()
    for interest_id in interest_ids:
        db.add(UserInterest(user_id=profile.user_id, interest_id=interest_id))


def _replace_subcategories(db: Session, profile: Profile, subcategory_ids: List[str]) -> None:
    db.query(UserSubcategory).filter(UserSubcategory.user_id == profile.user_id).delete()
    for subcategory_id in subcategory_ids:
        db.add(UserSubcategory(
            user_id=profile.user_id,
            subcategory_id=subcategory_id,
            interest_id=SUBCATEGORY_MAPPING[subcategory_id],
        ))


def _replace_dealbreakers(db: Session, profile: Profile, dealbreaker_ids: List[str]) -> None:
    db.query(UserDealbreaker).filter(UserDealbreaker.user_id == profile.user_id).delete()
    for dealbreaker_id in dealbreaker_ids:
        db.add(UserDealbreaker(user_id=profile.user_id, dealbreaker_id=dealbreaker_id))


def save_interests(db: Session, profile: Profile, interest_ids: Sequence[str]) -> List[str]:
    """Save interests and open the subcategories step."""
    _ensure_reachable(profile, "interests")
    cleaned = validate_interests(interest_ids)

    _replace_interests(db, profile, cleaned)
    # Drop subcategories whose interest was deselected
    (
        db.query(UserSubcategory)
        .filter(UserSubcategory.user_id == profile.user_id,
                UserSubcategory.interest_id.notin_(cleaned))
        .delete(synchronize_session=False)
    )
    _advance(profile, "subcategories")
    db.commit()
    return cleaned


def save_subcategories(db: Session, profile: Profile, subcategory_ids: Sequence[str]) -> List[str]:
    """Save subcategories and open the deal-breakers step."""
    _ensure_reachable(profile, "subcategories")
    interests = selections(db, profile)["interests"]
    if not interests:
        raise ConflictError("Interests are required", code="STEP_NOT_REACHABLE")
    cleaned = validate_subcategories(subcategory_ids, interests)

    _replace_subcategories(db, profile, cleaned)
    _advance(profile, "deal-breakers")
    db.commit()
    return cleaned


def save_dealbreakers(db: Session, profile: Profile, dealbreaker_ids: Sequence[str]) -> List[str]:
    """Save deal-breakers and open the final step."""
    _ensure_reachable(profile, "deal-breakers")
    if not selections(db, profile)["subcategories"]:
        raise ConflictError("Subcategories are required", code="STEP_NOT_REACHABLE")
    cleaned = validate_dealbreakers(dealbreaker_ids)

    _replace_dealbreakers(db, profile, cleaned)
    _advance(profile, "complete")
    db.commit()
    return cleaned


def _mark_complete(profile: Profile) -> None:
    profile.onboarding_step = "complete"
    profile.onboarding_complete = True
    profile.onboarding_completed_at = utcnow()


def complete_onboarding(db: Session, profile: Profile) -> None:
    _ensure_reachable(profile, "complete")
    current = selections(db, profile)
    missing = [name for name in ("interests", "subcategories", "dealbreakers") if not current[name]]
    if missing:
        raise ConflictError(
            f"Missing onboarding selections: {', '.join(missing)}",
            code="STEP_NOT_REACHABLE",
        )

    _mark_complete(profile)
    db.commit()
    logger.info(f"Onboarding complete for user {profile.user_id}")


def save_all(
    db: Session,
    profile: Profile,
    interest_ids: Sequence[str],
    subcategory_ids: Sequence[str],
    dealbreaker_ids: Sequence[str],
) -> Dict[str, List[str]]:
    """Validate and store every selection at once, then finish onboarding."""
    interests = validate_interests(interest_ids)
    subcategories = validate_subcategories(subcategory_ids, interests)
    dealbreakers = validate_dealbreakers(dealbreaker_ids)

    _replace_interests(db, profile, interests)
    _replace_subcategories(db, profile, subcategories)
    _replace_dealbreakers(db, profile, dealbreakers)
    _mark_complete(profile)
    db.commit()

    logger.info(f"Onboarding saved in one step for user {profile.user_id}")
    return {"interests": interests, "subcategories": subcategories, "dealbreakers": dealbreakers}


DEFAULT_PRIVACY_SETTINGS: Dict[str, bool] = {
    "showActivity": True,
    "showStats": True,
    "showSavedBusinesses": False,
}


def _label(item_id: str) -> str:
    return " ".join(part.capitalize() for part in item_id.replace("_", "-").split("-") if part)


def privacy_settings(profile: Profile) -> Dict[str, bool]:
    return {**DEFAULT_PRIVACY_SETTINGS, **(profile.privacy_settings or {})}


def preferences(db: Session, profile: Profile) -> Dict[str, Any]:
    """Saved selections with display names, plus privacy settings."""
    current = selections(db, profile)
    return {
        "interests": [{"id": i, "name": INTERESTS.get(i, _label(i))} for i in current["interests"]],
        "subcategories": [{"id": i, "name": _label(i)} for i in current["subcategories"]],
        "dealbreakers": [{"id": i, "name": DEALBREAKERS.get(i, _label(i))} for i in current["dealbreakers"]],
        "privacy_settings": privacy_settings(profile),
    }


def update_preferences(
    db: Session,
    profile: Profile,
    interest_ids: Optional[Sequence[str]] = None,
    subcategory_ids: Optional[Sequence[str]] = None,
    dealbreaker_ids: Optional[Sequence[str]] = None,
    privacy: Optional[Dict[str, bool]] = None,
) -> Dict[str, Any]:
    """
    Edit selections after onboarding.

    Only the lists that are passed are replaced, each under the same limits as
    onboarding. Changing interests drops subcategories that no longer belong
    to a selected interest. Privacy flags are merged into the stored ones.
    """
    if interest_ids is not None:
        interests = validate_interests(interest_ids)
    else:
        interests = selections(db, profile)["interests"]

    subcategories = None
    if subcategory_ids is not None:
        subcategories = validate_subcategories(subcategory_ids, interests)
    dealbreakers = validate_dealbreakers(dealbreaker_ids) if dealbreaker_ids is not None else None

    if interest_ids is not None:
        _replace_interests(db, profile, interests)
        (
            db.query(UserSubcategory)
            .filter(UserSubcategory.user_id == profile.user_id,
                    UserSubcategory.interest_id.notin_(interests))
            .delete(synchronize_session=False)
        )
    if subcategories is not None:
        _replace_subcategories(db, profile, subcategories)
    if dealbreakers is not None:
        _replace_dealbreakers(db, profile, dealbreakers)
    if privacy:
        profile.privacy_settings = {**privacy_settings(profile), **privacy}

    db.commit()
    db.refresh(profile)
    logger.info(f"Preferences updated for user {profile.user_id}")
    return preferences(db, profile)
