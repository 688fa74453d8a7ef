"""
User profile schemas.
"""

from datetime import datetime
from typing import Dict, List, Optional
from uuid import UUID

from pydantic import AliasChoices, BaseModel, Field, field_validator


class ProfileResponse(BaseModel):
    user_id: UUID
    email: Optional[str] = None
    username: Optional[str] = None
    display_name: Optional[str] = None
    avatar_url: Optional[str] = None
    role: str
    account_role: str
    onboarding_step: str
    onboarding_complete: bool
    reviews_count: int
    created_at: datetime

    model_config = {"from_attributes": True}


class ProfileUpdate(BaseModel):
    """Profile fields the user can change."""
    display_name: Optional[str] = Field(None, max_length=100)
    username: Optional[str] = Field(None, min_length=3, max_length=50)
    avatar_url: Optional[str] = None

    @field_validator("username")
    @classmethod
    def validate_username(cls, v: Optional[str]) -> Optional[str]:
        """Lowercase letters, digits, dots and underscores only."""
        if v is None:
            return v
        v = v.strip().lower()
        if not all(ch.isalnum() or ch in "._" for ch in v):
            raise ValueError("Username may only contain letters, numbers, dots and underscores")
        return v


class PrivacySettings(BaseModel):
    showActivity: Optional[bool] = None
    showStats: Optional[bool] = None
    showSavedBusinesses: Optional[bool] = None


class PreferenceItem(BaseModel):
    id: str
    name: str


class PreferencesResponse(BaseModel):
    interests: List[PreferenceItem] = []
    subcategories: List[PreferenceItem] = []
    dealbreakers: List[PreferenceItem] = []
    privacy_settings: Optional[Dict[str, bool]] = None


class PreferencesUpdate(BaseModel):
    """Lists that are left out keep their saved values."""
    interests: Optional[List[str]] = None
    subcategories: Optional[List[str]] = None
    dealbreakers: Optional[List[str]] = Field(
        None, validation_alias=AliasChoices("dealbreakers", "dealBreakers")
    )
    privacy_settings: Optional[PrivacySettings] = None
