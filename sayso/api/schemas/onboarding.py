"""
Onboarding schemas.
"""

from typing import List, Optional

from pydantic import BaseModel, Field


class OnboardingStateResponse(BaseModel):
    step: str = Field(..., description="Furthest step the user may open")
    onboarding_complete: bool
    redirect: str = Field(..., description="Route to continue onboarding from")
    interests: List[str]
    subcategories: List[str]
    dealbreakers: List[str]


class OnboardingAccessResponse(BaseModel):
    allowed: bool
    redirect: Optional[str] = None
    step: str
    current_route: Optional[str] = None


class InterestsRequest(BaseModel):
    interests: List[str]


class SubcategoriesRequest(BaseModel):
    subcategories: List[str]


class DealbreakersRequest(BaseModel):
    dealbreakers: List[str]


class StepSavedResponse(BaseModel):
    success: bool = True
    step: str
    next: str = Field(..., description="Route of the next step")
    saved: List[str]


class OnboardingCompleteResponse(BaseModel):
    success: bool = True
    onboarding_complete: bool = True
    redirect: str = "/home"


class LegacyOnboardingRequest(BaseModel):
    """Atomic save of every onboarding selection."""
    step: Optional[str] = None
    interests: Optional[List[str]] = None
    subcategories: Optional[List[str]] = None
    dealbreakers: Optional[List[str]] = None
