"""
Review, reply, flag and helpful-vote schemas.
"""

from datetime import datetime
from typing import List, Optional
from uuid import UUID

from pydantic import BaseModel, Field


class ReviewAuthor(BaseModel):
    id: UUID
    name: str
    avatar_url: Optional[str] = None


class ReviewResponse(BaseModel):
    id: UUID
    business_id: UUID
    user_id: UUID
    rating: int
    title: Optional[str] = None
    content: str
    tags: List[str] = []
    helpful_count: int = 0
    is_hidden: bool = False
    reply_count: int = 0
    created_at: datetime
    updated_at: datetime
    user: Optional[ReviewAuthor] = None


class ReviewListResponse(BaseModel):
    reviews: List[ReviewResponse]
    count: int
    total: int


class ReviewCreate(BaseModel):
    """Request to create a review."""
    business_id: str = Field(..., min_length=1, description="Business UUID or slug")
    rating: Optional[int] = Field(None, description="1-5 stars")
    title: Optional[str] = None
    content: Optional[str] = None
    tags: List[str] = Field(default_factory=list)


class ReviewUpdate(BaseModel):
    rating: Optional[int] = None
    title: Optional[str] = None
    content: Optional[str] = None
    tags: Optional[List[str]] = None


class ReviewEnvelope(BaseModel):
    success: bool = True
    review: ReviewResponse
    message: Optional[str] = None


class ReplyResponse(BaseModel):
    id: UUID
    review_id: UUID
    user_id: UUID
    content: str
    created_at: datetime
    updated_at: datetime
    user: ReviewAuthor


class ReplyListResponse(BaseModel):
    replies: List[ReplyResponse]


class ReplyEnvelope(BaseModel):
    reply: ReplyResponse


class ReplyRequest(BaseModel):
    content: Optional[str] = None


class FlagRequest(BaseModel):
    reason: Optional[str] = None
    details: Optional[str] = Field(None, max_length=1000)
