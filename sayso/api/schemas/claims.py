"""
Business claim and verification schemas.
"""

from datetime import datetime
from typing import List, Optional
from uuid import UUID

from pydantic import AliasChoices, BaseModel, Field


class ClaimRequest(BaseModel):
    """Request to claim a business listing."""
    business_id: Optional[str] = None
    role: Optional[str] = Field(None, description="owner or manager")
    phone: Optional[str] = None
    email: Optional[str] = None
    note: Optional[str] = Field(None, max_length=2000)
    cipc_registration_number: Optional[str] = None
    cipc_company_name: Optional[str] = None


class ClaimSubmitResponse(BaseModel):
    success: bool = True
    claim_id: UUID
    status: str
    display_status: str
    method_attempted: Optional[str] = None
    next_step: str
    message: str


class ClaimBusinessInfo(BaseModel):
    id: UUID
    name: str
    slug: Optional[str] = None
    category: Optional[str] = None
    location: Optional[str] = None


class ClaimSummary(BaseModel):
    id: UUID
    business_id: UUID
    status: str
    display_status: str
    method_attempted: Optional[str] = None
    next_step: str
    rejection_reason: Optional[str] = None
    submitted_at: Optional[datetime] = None
    created_at: datetime
    updated_at: datetime
    business: Optional[ClaimBusinessInfo] = None


class ClaimListResponse(BaseModel):
    claims: List[ClaimSummary]


class OtpSendRequest(BaseModel):
    claim_id: Optional[UUID] = Field(None, validation_alias=AliasChoices("claimId", "claim_id"))


class OtpSendResponse(BaseModel):
    ok: bool = True
    maskedPhone: str
    expiresInSeconds: int


class OtpVerifyRequest(BaseModel):
    claim_id: Optional[UUID] = Field(None, validation_alias=AliasChoices("claimId", "claim_id"))
    code: Optional[str] = None


class OkResponse(BaseModel):
    ok: bool = True
    message: Optional[str] = None


class AdminClaimItem(BaseModel):
    id: UUID
    business_id: UUID
    business_name: Optional[str] = None
    business_slug: Optional[str] = None
    claimant_user_id: UUID
    claimant_email: Optional[str] = None
    claimant_role: str
    status: str
    method_attempted: Optional[str] = None
    verification_level: Optional[str] = None
    verification_data: dict = {}
    document_count: int = 0
    submitted_at: Optional[datetime] = None
    reviewed_at: Optional[datetime] = None
    rejection_reason: Optional[str] = None
    admin_notes: Optional[str] = None
    created_at: datetime


class AdminClaimListResponse(BaseModel):
    claims: List[AdminClaimItem]
    total: int
    limit: int
    offset: int


class ClaimRejectRequest(BaseModel):
    reason: Optional[str] = Field(None, max_length=1000)
    admin_notes: Optional[str] = Field(None, max_length=2000)


class DocumentsRequest(BaseModel):
    message: Optional[str] = Field(None, max_length=1000)


class AdminActionResponse(BaseModel):
    success: bool = True
    message: str
