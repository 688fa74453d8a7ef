"""
Business listing schemas.
"""

from datetime import datetime
from typing import List, Optional
from uuid import UUID

from pydantic import BaseModel, EmailStr, Field, field_validator


class BusinessResponse(BaseModel):
    id: UUID
    name: str
    slug: str
    description: Optional[str] = None
    category: Optional[str] = None
    primary_category_slug: Optional[str] = None
    location: Optional[str] = None
    address: Optional[str] = None
    phone: Optional[str] = None
    email: Optional[str] = None
    website: Optional[str] = None
    image_url: Optional[str] = None
    lat: Optional[float] = None
    lng: Optional[float] = None
    status: str
    verified: bool
    owner_id: Optional[UUID] = None
    review_count: int
    average_rating: float
    created_at: datetime

    model_config = {"from_attributes": True}


class SimilarBusiness(BusinessResponse):
    similarity_score: float


class SimilarBusinessesResponse(BaseModel):
    businesses: List[SimilarBusiness]


class BusinessListResponse(BaseModel):
    businesses: List[BusinessResponse]
    count: int
    total: int
    limit: int
    offset: int


class BusinessCreate(BaseModel):
    """Request to add a new listing (reviewed by an admin before going live)."""
    name: str = Field(..., min_length=2, max_length=255)
    description: Optional[str] = Field(None, max_length=5000)
    category: str = Field(..., min_length=1, max_length=100)
    primary_category_slug: Optional[str] = Field(None, max_length=100)
    location: Optional[str] = Field(None, max_length=255)
    address: Optional[str] = Field(None, max_length=500)
    phone: Optional[str] = Field(None, max_length=50)
    email: Optional[EmailStr] = None
    website: Optional[str] = Field(None, max_length=500)
    image_url: Optional[str] = None
    lat: Optional[float] = Field(None, ge=-90, le=90)
    lng: Optional[float] = Field(None, ge=-180, le=180)

    @field_validator("name")
    @classmethod
    def strip_name(cls, v: str) -> str:
        v = v.strip()
        if len(v) < 2:
            raise ValueError("Business name must be at least 2 characters")
        return v


class BusinessUpdate(BaseModel):
    description: Optional[str] = Field(None, max_length=5000)
    location: Optional[str] = Field(None, max_length=255)
    address: Optional[str] = Field(None, max_length=500)
    phone: Optional[str] = Field(None, max_length=50)
    email: Optional[EmailStr] = None
    website: Optional[str] = Field(None, max_length=500)
    image_url: Optional[str] = None
    lat: Optional[float] = Field(None, ge=-90, le=90)
    lng: Optional[float] = Field(None, ge=-180, le=180)


class SaveBusinessRequest(BaseModel):
    business_id: UUID


class SavedBusinessItem(BaseModel):
    saved_at: datetime
    business: BusinessResponse


class SavedBusinessesResponse(BaseModel):
    businesses: List[SavedBusinessItem]
    page: int
    limit: int
    total: int
    has_more: bool
