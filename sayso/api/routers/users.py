"""
User Endpoints
GET    /api/user/me             - Current profile
PATCH  /api/user/me             - Edit profile
POST   /api/user/onboarding     - Save every onboarding selection at once
GET    /api/user/preferences    - Selections and privacy settings
PUT    /api/user/preferences    - Edit selections and privacy settings
DELETE /api/user/delete-account - Delete the account and everything it owns
"""

import logging
from typing import Optional

from fastapi import APIRouter, Depends
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from ..dependencies import get_current_user, get_current_user_optional, get_db, get_storage_client
from ..errors import ConflictError, InvalidRequestError
from ..schemas.onboarding import LegacyOnboardingRequest
from ..schemas.user import PreferencesResponse, PreferencesUpdate, ProfileResponse, ProfileUpdate
from ..services import accounts as account_service
from ..services import onboarding as onboarding_service
from ..services.storage import StorageClient
from ...db.models import Profile

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/user", tags=["Users"])


@router.get("/me", response_model=ProfileResponse)
async def get_me(current_user: Profile = Depends(get_current_user)) -> ProfileResponse:
    return ProfileResponse.model_validate(current_user)


@router.patch("/me", response_model=ProfileResponse)
async def update_me(
    request: ProfileUpdate,
    current_user: Profile = Depends(get_current_user),
    db: Session = Depends(get_db),
) -> ProfileResponse:
    updates = request.model_dump(exclude_unset=True)

    username = updates.get("username")
    if username:
        taken = (
            db.query(Profile)
            .filter(Profile.username == username, Profile.user_id != current_user.user_id)
            .first()
        )
        if taken is not None:
            raise ConflictError("Username is already taken", code="USERNAME_TAKEN")

    for key, value in updates.items():
        setattr(current_user, key, value)

    try:
        db.commit()
    except IntegrityError:
        db.rollback()
        raise ConflictError("Username is already taken", code="USERNAME_TAKEN")

    db.refresh(current_user)
    return ProfileResponse.model_validate(current_user)


@router.post("/onboarding")
async def save_onboarding(
    request: LegacyOnboardingRequest,
    current_user: Profile = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    """
    Save every onboarding selection in one request.

    Kept for older clients; the step-by-step routes under /api/onboarding are
    preferred. Either everything is stored and onboarding is marked complete,
    or nothing is.
    """
    if request.step != "complete":
        raise InvalidRequestError("Only the complete step is supported")
    if request.interests is None or request.subcategories is None or request.dealbreakers is None:
        raise InvalidRequestError("interests, subcategories and dealbreakers are required")

    saved = onboarding_service.save_all(
        db, current_user, request.interests, request.subcategories, request.dealbreakers
    )
    return {"success": True, "onboarding_complete": True, **saved}


@router.get("/preferences", response_model=PreferencesResponse)
async def get_preferences(
    current_user: Optional[Profile] = Depends(get_current_user_optional),
    db: Session = Depends(get_db),
) -> PreferencesResponse:
    """Anonymous callers get empty lists so preference widgets still render."""
    if current_user is None:
        return PreferencesResponse()
    return PreferencesResponse(**onboarding_service.preferences(db, current_user))


@router.put("/preferences", response_model=PreferencesResponse)
async def update_preferences(
    request: PreferencesUpdate,
    current_user: Profile = Depends(get_current_user),
    db: Session = Depends(get_db),
) -> PreferencesResponse:
    privacy = request.privacy_settings.model_dump(exclude_none=True) if request.privacy_settings else None
    updated = onboarding_service.update_preferences(
        db,
        current_user,
        interest_ids=request.interests,
        subcategory_ids=request.subcategories,
        dealbreaker_ids=request.dealbreakers,
        privacy=privacy,
    )
    return PreferencesResponse(**updated)


@router.delete("/delete-account")
async def delete_account(
    current_user: Profile = Depends(get_current_user),
    db: Session = Depends(get_db),
    storage: StorageClient = Depends(get_storage_client),
):
    """
    Delete the caller's profile and everything it owns.

    Reviews, replies, votes, flags, saved businesses, notifications and claims
    go with it; listings the user owned stay up without an owner.
    """
    account_service.delete_account(db, storage, current_user)
    return {"success": True}
