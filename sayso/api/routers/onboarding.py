"""
Onboarding Endpoints
GET  /api/onboarding                 - Current step and saved selections
GET  /api/onboarding/access          - Route guard for onboarding pages
POST /api/onboarding/interests       - Save interests
POST /api/onboarding/subcategories   - Save subcategories
POST /api/onboarding/deal-breakers   - Save deal-breakers
POST /api/onboarding/complete        - Finish onboarding
"""

import logging

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from ..dependencies import get_current_user, get_db
from ..schemas.onboarding import (
    DealbreakersRequest,
    InterestsRequest,
    OnboardingAccessResponse,
    OnboardingCompleteResponse,
    OnboardingStateResponse,
    StepSavedResponse,
    SubcategoriesRequest,
)
from ..services import onboarding as onboarding_service
from ...db.models import Profile

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/onboarding", tags=["Onboarding"])


@router.get("", response_model=OnboardingStateResponse)
async def get_onboarding_state(
    current_user: Profile = Depends(get_current_user),
    db: Session = Depends(get_db),
) -> OnboardingStateResponse:
    step = onboarding_service.required_step(current_user)
    redirect = (
        onboarding_service.HOME_ROUTE
        if current_user.onboarding_complete
        else onboarding_service.STEP_ROUTES[step]
    )
    return OnboardingStateResponse(
        step=step,
        onboarding_complete=bool(current_user.onboarding_complete),
        redirect=redirect,
        **onboarding_service.selections(db, current_user),
    )


@router.get("/access", response_model=OnboardingAccessResponse)
async def check_onboarding_access(
    path: str = Query(..., description="Route the client is about to open"),
    current_user: Profile = Depends(get_current_user),
) -> OnboardingAccessResponse:
    """Tell the client whether ``path`` is open or where to redirect."""
    decision = onboarding_service.check_access(current_user, path)
    return OnboardingAccessResponse(
        allowed=decision.allowed,
        redirect=decision.redirect,
        step=decision.step,
        current_route=decision.current_route,
    )


@router.post("/interests", response_model=StepSavedResponse)
async def save_interests(
    request: InterestsRequest,
    current_user: Profile = Depends(get_current_user),
    db: Session = Depends(get_db),
) -> StepSavedResponse:
    saved = onboarding_service.save_interests(db, current_user, request.interests)
    return StepSavedResponse(
        step="interests",
        next=onboarding_service.STEP_ROUTES["subcategories"],
        saved=saved,
    )


@router.post("/subcategories", response_model=StepSavedResponse)
async def save_subcategories(
    request: SubcategoriesRequest,
    current_user: Profile = Depends(get_current_user),
    db: Session = Depends(get_db),
) -> StepSavedResponse:
    saved = onboarding_service.save_subcategories(db, current_user, request.subcategories)
    return StepSavedResponse(
        step="subcategories",
        next=onboarding_service.STEP_ROUTES["deal-breakers"],
        saved=saved,
    )


@router.post("/deal-breakers", response_model=StepSavedResponse)
async def save_dealbreakers(
    request: DealbreakersRequest,
    current_user: Profile = Depends(get_current_user),
    db: Session = Depends(get_db),
) -> StepSavedResponse:
    saved = onboarding_service.save_dealbreakers(db, current_user, request.dealbreakers)
    return StepSavedResponse(
        step="deal-breakers",
        next=onboarding_service.STEP_ROUTES["complete"],
        saved=saved,
    )


@router.post("/complete", response_model=OnboardingCompleteResponse)
async def complete_onboarding(
    current_user: Profile = Depends(get_current_user),
    db: Session = Depends(get_db),
) -> OnboardingCompleteResponse:
    onboarding_service.complete_onboarding(db, current_user)
    return OnboardingCompleteResponse(redirect=onboarding_service.HOME_ROUTE)
