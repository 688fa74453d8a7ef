"""
Admin Endpoints
GET  /api/admin/claims                              - Claim queue with filters
POST /api/admin/claims/{id}/approve                 - Approve a claim
POST /api/admin/claims/{id}/reject                  - Reject a claim
POST /api/admin/claims/{id}/request-documents       - Ask the claimant for documents
GET  /api/admin/businesses/pending                  - Listings awaiting approval
POST /api/admin/businesses/{id}/approve             - Publish a listing
POST /api/admin/businesses/{id}/reject              - Reject a listing
GET  /api/admin/flagged-reviews                     - Reviews with pending flags
POST /api/admin/flagged-reviews/{review_id}/dismiss - Clear flags, restore review
POST /api/admin/flagged-reviews/{review_id}/remove  - Hide review, action flags
"""

import logging
from datetime import date, datetime, time, timedelta
from typing import List, Optional
from uuid import UUID

from fastapi import APIRouter, BackgroundTasks, Depends, Query
from pydantic import BaseModel, Field
from sqlalchemy import desc, func
from sqlalchemy.orm import Session

from ..dependencies import get_db, get_email_service, get_storage_client, require_admin
from ..errors import InvalidRequestError, PermissionDeniedError, ResourceNotFoundError
from ..schemas.businesses import BusinessResponse
from ..schemas.claims import (
    AdminActionResponse,
    AdminClaimItem,
    AdminClaimListResponse,
    ClaimRejectRequest,
    DocumentsRequest,
)
from ..services.claims import (
    APPROVABLE_STATUSES,
    CLAIM_METHODS,
    CLAIM_STATUSES,
    TERMINAL_STATUSES,
    grant_ownership,
    purge_claim_documents,
)
from ..services.email_service import EmailService
from ..services.notifications import (
    notify_business_approved,
    notify_business_rejected,
    notify_claim_event,
)
from ..services.reviews import update_business_stats
from ..services.storage import StorageClient
from ...db.models import (
    Business,
    BusinessClaim,
    BusinessClaimDocument,
    Profile,
    Review,
    ReviewFlag,
    utcnow,
)

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/admin", tags=["Admin"])


class BusinessRejectRequest(BaseModel):
    reason: Optional[str] = Field(None, max_length=1000)


class FlagSummary(BaseModel):
    id: UUID
    reason: str
    details: Optional[str] = None
    flagged_by: UUID
    created_at: datetime


class FlaggedReviewItem(BaseModel):
    review_id: UUID
    business_id: UUID
    business_name: Optional[str] = None
    author_id: UUID
    rating: int
    content: str
    is_hidden: bool
    pending_flags: int
    reasons: List[str]
    flags: List[FlagSummary]


class FlaggedReviewListResponse(BaseModel):
    reviews: List[FlaggedReviewItem]
    total: int


def _split(value: Optional[str], allowed) -> List[str]:
    if not value:
        return []
    return [v.strip() for v in value.split(",") if v.strip() in allowed]


def _get_claim(db: Session, claim_id: UUID) -> BusinessClaim:
    claim = db.query(BusinessClaim).filter(BusinessClaim.id == claim_id).first()
    if claim is None:
        raise ResourceNotFoundError("Claim", claim_id, message="Claim request not found")
    return claim


def _claimant(db: Session, claim: BusinessClaim) -> Optional[Profile]:
    return db.query(Profile).filter(Profile.user_id == claim.claimant_user_id).first()


# Claims

@router.get("/claims", response_model=AdminClaimListResponse)
async def list_claims(
    status: Optional[str] = Query(None, description="Comma-separated statuses"),
    method: Optional[str] = Query(None, description="Comma-separated verification methods"),
    date_from: Optional[date] = Query(None, alias="from"),
    date_to: Optional[date] = Query(None, alias="to"),
    limit: int = Query(50),
    offset: int = Query(0, ge=0),
    admin: Profile = Depends(require_admin),
    db: Session = Depends(get_db),
) -> AdminClaimListResponse:
    """Claim queue, newest first."""
    limit = max(1, min(limit, 100))

    query = (
        db.query(BusinessClaim, Business, Profile)
        .outerjoin(Business, BusinessClaim.business_id == Business.id)
        .outerjoin(Profile, BusinessClaim.claimant_user_id == Profile.user_id)
    )

    statuses = _split(status, CLAIM_STATUSES)
    if statuses:
        query = query.filter(BusinessClaim.status.in_(statuses))
    methods = _split(method, CLAIM_METHODS)
    if methods:
        query = query.filter(BusinessClaim.method_attempted.in_(methods))
    if date_from:
        query = query.filter(BusinessClaim.created_at >= datetime.combine(date_from, time.min))
    if date_to:
        query = query.filter(BusinessClaim.created_at < datetime.combine(date_to + timedelta(days=1), time.min))

    total = query.count()
    rows = query.order_by(desc(BusinessClaim.created_at)).offset(offset).limit(limit).all()

    doc_counts = {}
    if rows:
        doc_counts = dict(
            db.query(BusinessClaimDocument.claim_id, func.count(BusinessClaimDocument.id))
            .filter(BusinessClaimDocument.claim_id.in_([c.id for c, _, _ in rows]))
            .group_by(BusinessClaimDocument.claim_id)
            .all()
        )

    claims = [
        AdminClaimItem(
            id=claim.id,
            business_id=claim.business_id,
            business_name=business.name if business else None,
            business_slug=business.slug if business else None,
            claimant_user_id=claim.claimant_user_id,
            claimant_email=profile.email if profile else None,
            claimant_role=claim.claimant_role,
            status=claim.status,
            method_attempted=claim.method_attempted,
            verification_level=claim.verification_level,
            verification_data=claim.verification_data or {},
            document_count=doc_counts.get(claim.id, 0),
            submitted_at=claim.submitted_at,
            reviewed_at=claim.reviewed_at,
            rejection_reason=claim.rejection_reason,
            admin_notes=claim.admin_notes,
            created_at=claim.created_at,
        )
        for claim, business, profile in rows
    ]

    return AdminClaimListResponse(claims=claims, total=total, limit=limit, offset=offset)


@router.post("/claims/{claim_id}/approve", response_model=AdminActionResponse)
async def approve_claim(
    claim_id: UUID,
    background_tasks: BackgroundTasks,
    admin: Profile = Depends(require_admin),
    db: Session = Depends(get_db),
    storage: StorageClient = Depends(get_storage_client),
    email_service: EmailService = Depends(get_email_service),
) -> AdminActionResponse:
    """Approve a claim and hand the listing to the claimant."""
    claim = db.query(BusinessClaim).filter(
        BusinessClaim.id == claim_id, BusinessClaim.status.in_(APPROVABLE_STATUSES)
    ).first()
    if claim is None:
        raise ResourceNotFoundError(
            "Claim", claim_id, message="Claim request not found or already processed"
        )

    purge_claim_documents(db, storage, claim)
    grant_ownership(db, claim, reviewer_id=admin.user_id)
    db.commit()

    business = db.query(Business).filter(Business.id == claim.business_id).first()
    business_name = business.name if business else "your business"

    notify_claim_event(
        db, claim,
        notification_type="claim_approved",
        title="Claim approved",
        message=f"Your claim for {business_name} has been approved. You can now manage the listing.",
        event="approved",
        link=f"/my-businesses/businesses/{claim.business_id}",
    )

    claimant = _claimant(db, claim)
    if claimant is not None and claimant.email:
        background_tasks.add_task(
            email_service.send_claim_approved,
            claimant.email, claimant.display_name or claimant.username,
            business_name, str(claim.business_id),
        )

    logger.info(f"Claim {claim.id} approved by {admin.user_id}")
    return AdminActionResponse(message="Claim approved")


@router.post("/claims/{claim_id}/reject", response_model=AdminActionResponse)
async def reject_claim(
    claim_id: UUID,
    request: ClaimRejectRequest,
    background_tasks: BackgroundTasks,
    admin: Profile = Depends(require_admin),
    db: Session = Depends(get_db),
    storage: StorageClient = Depends(get_storage_client),
    email_service: EmailService = Depends(get_email_service),
) -> AdminActionResponse:
    claim = _get_claim(db, claim_id)
    if claim.status in TERMINAL_STATUSES:
        raise InvalidRequestError("Claim already processed")

    reason = (request.reason or "").strip() or None
    now = utcnow()

    purge_claim_documents(db, storage, claim)
    claim.status = "rejected"
    claim.rejection_reason = reason
    claim.admin_notes = request.admin_notes
    claim.reviewed_at = now
    claim.reviewed_by = admin.user_id
    claim.updated_at = now
    db.commit()

    business = db.query(Business).filter(Business.id == claim.business_id).first()
    business_name = business.name if business else "this business"
    detail = f"Reason: {reason}" if reason else "Contact support for details."

    notify_claim_event(
        db, claim,
        notification_type="claim_status_changed",
        title="Claim not approved",
        message=f"Your claim for {business_name} was not approved. {detail}",
        event="rejected",
    )

    claimant = _claimant(db, claim)
    if claimant is not None and claimant.email:
        background_tasks.add_task(
            email_service.send_claim_rejected,
            claimant.email, claimant.display_name or claimant.username, business_name, reason,
        )

    logger.info(f"Claim {claim.id} rejected by {admin.user_id}")
    return AdminActionResponse(message="Claim rejected")


@router.post("/claims/{claim_id}/request-documents", response_model=AdminActionResponse)
async def request_documents(
    claim_id: UUID,
    request: DocumentsRequest,
    background_tasks: BackgroundTasks,
    admin: Profile = Depends(require_admin),
    db: Session = Depends(get_db),
    email_service: EmailService = Depends(get_email_service),
) -> AdminActionResponse:
    """Move a claim to ``action_required`` so the claimant can upload documents."""
    claim = _get_claim(db, claim_id)
    if claim.status not in ("pending", "under_review"):
        raise InvalidRequestError(f"Cannot request documents for a claim that is {claim.status}")

    claim.status = "action_required"
    claim.updated_at = utcnow()
    if request.message:
        claim.admin_notes = request.message
    db.commit()

    business = db.query(Business).filter(Business.id == claim.business_id).first()
    business_name = business.name if business else "your business"
    message = request.message or (
        f"Please upload a letterhead authorization or the first page of your lease for {business_name}."
    )

    notify_claim_event(
        db, claim,
        notification_type="docs_requested",
        title="Documents needed",
        message=message,
        link=f"/claim-business?claimId={claim.id}",
    )

    claimant = _claimant(db, claim)
    if claimant is not None and claimant.email:
        background_tasks.add_task(
            email_service.send_docs_requested,
            claimant.email, claimant.display_name or claimant.username, business_name, str(claim.id),
        )

    return AdminActionResponse(message="Documents requested")


# Businesses

@router.get("/businesses/pending")
async def list_pending_businesses(
    limit: int = Query(50, ge=1, le=100),
    offset: int = Query(0, ge=0),
    admin: Profile = Depends(require_admin),
    db: Session = Depends(get_db),
):
    query = db.query(Business).filter(Business.status == "pending_approval")
    total = query.count()
    rows = query.order_by(Business.created_at).offset(offset).limit(limit).all()
    return {
        "businesses": [BusinessResponse.model_validate(b).model_dump(mode="json") for b in rows],
        "total": total,
    }


def _missing_required_fields(business: Business) -> List[str]:
    missing = []
    if not (business.name or "").strip():
        missing.append("name")
    if not (business.category or "").strip():
        missing.append("category")
    if not (business.address or "").strip() and not (business.location or "").strip():
        missing.append("address")
    if business.lat is None:
        missing.append("lat")
    if business.lng is None:
        missing.append("lng")
    return missing


@router.post("/businesses/{business_id}/approve", response_model=AdminActionResponse)
async def approve_business(
    business_id: UUID,
    admin: Profile = Depends(require_admin),
    db: Session = Depends(get_db),
) -> AdminActionResponse:
    """Publish a pending listing."""
    business = db.query(Business).filter(Business.id == business_id).first()
    if business is None:
        raise ResourceNotFoundError("Business", business_id, message="Business not found")

    if business.status != "pending_approval":
        raise InvalidRequestError("Business is not pending approval")

    missing = _missing_required_fields(business)
    if missing:
        raise InvalidRequestError("Validation failed", details={"missing": missing})

    if business.owner_id == admin.user_id:
        raise PermissionDeniedError("You cannot approve your own business")

    now = utcnow()
    business.status = "active"
    business.is_hidden = False
    business.verified = True
    business.approved_at = now
    business.approved_by = admin.user_id
    business.rejection_reason = None
    db.commit()

    notify_business_approved(db, business)

    logger.info(f"Business {business.id} approved by {admin.user_id}")
    return AdminActionResponse(message="Business approved")


@router.post("/businesses/{business_id}/reject", response_model=AdminActionResponse)
async def reject_business(
    business_id: UUID,
    request: BusinessRejectRequest,
    admin: Profile = Depends(require_admin),
    db: Session = Depends(get_db),
) -> AdminActionResponse:
    business = db.query(Business).filter(Business.id == business_id).first()
    if business is None:
        raise ResourceNotFoundError("Business", business_id, message="Business not found")
    if business.status != "pending_approval":
        raise InvalidRequestError("Business is not pending approval")

    reason = (request.reason or "").strip() or None
    business.status = "rejected"
    business.is_hidden = True
    business.rejection_reason = reason
    db.commit()

    notify_business_rejected(db, business, reason)

    logger.info(f"Business {business.id} rejected by {admin.user_id}")
    return AdminActionResponse(message="Business rejected")


# Flagged reviews

@router.get("/flagged-reviews", response_model=FlaggedReviewListResponse)
async def list_flagged_reviews(
    limit: int = Query(50, ge=1, le=100),
    offset: int = Query(0, ge=0),
    admin: Profile = Depends(require_admin),
    db: Session = Depends(get_db),
) -> FlaggedReviewListResponse:
    """Reviews with pending flags, most-flagged first."""
    counts = (
        db.query(ReviewFlag.review_id, func.count(ReviewFlag.id).label("flag_count"))
        .filter(ReviewFlag.status == "pending")
        .group_by(ReviewFlag.review_id)
        .subquery()
    )
    base = (
        db.query(Review, counts.c.flag_count)
        .join(counts, Review.id == counts.c.review_id)
    )
    total = base.count()
    rows = base.order_by(desc(counts.c.flag_count), desc(Review.created_at)).offset(offset).limit(limit).all()

    items = []
    for review, flag_count in rows:
        flags = [f for f in review.flags if f.status == "pending"]
        items.append(FlaggedReviewItem(
            review_id=review.id,
            business_id=review.business_id,
            business_name=review.business.name if review.business else None,
            author_id=review.user_id,
            rating=review.rating,
            content=review.content,
            is_hidden=review.is_hidden,
            pending_flags=flag_count,
            reasons=sorted({f.reason for f in flags}),
            flags=[
                FlagSummary(id=f.id, reason=f.reason, details=f.details,
                            flagged_by=f.flagged_by, created_at=f.created_at)
                for f in flags
            ],
        ))

    return FlaggedReviewListResponse(reviews=items, total=total)


def _resolve_flags(db: Session, review_id: UUID, admin: Profile, new_status: str) -> int:
    return (
        db.query(ReviewFlag)
        .filter(ReviewFlag.review_id == review_id, ReviewFlag.status == "pending")
        .update(
            {
                ReviewFlag.status: new_status,
                ReviewFlag.reviewed_at: utcnow(),
                ReviewFlag.reviewed_by: admin.user_id,
            },
            synchronize_session=False,
        )
    )


@router.post("/flagged-reviews/{review_id}/dismiss", response_model=AdminActionResponse)
async def dismiss_flags(
    review_id: UUID,
    admin: Profile = Depends(require_admin),
    db: Session = Depends(get_db),
) -> AdminActionResponse:
    """
    Dismiss pending flags and make the review visible again.

    A review an admin already removed stays hidden.
    """
    review = db.query(Review).filter(Review.id == review_id).first()
    if review is None:
        raise ResourceNotFoundError("Review", review_id, message="Review not found")

    dismissed = _resolve_flags(db, review.id, admin, "dismissed")
    if dismissed == 0:
        db.rollback()
        raise InvalidRequestError("No pending flags")

    actioned = (
        db.query(ReviewFlag)
        .filter(ReviewFlag.review_id == review.id, ReviewFlag.status == "actioned")
        .count()
    )
    if review.is_hidden and actioned == 0:
        review.is_hidden = False
        update_business_stats(db, review.business_id)
    db.commit()

    return AdminActionResponse(message=f"Dismissed {dismissed} flag(s)")


@router.post("/flagged-reviews/{review_id}/remove", response_model=AdminActionResponse)
async def remove_flagged_review(
    review_id: UUID,
    admin: Profile = Depends(require_admin),
    db: Session = Depends(get_db),
) -> AdminActionResponse:
    """Hide a review and mark its pending flags actioned."""
    review = db.query(Review).filter(Review.id == review_id).first()
    if review is None:
        raise ResourceNotFoundError("Review", review_id, message="Review not found")

    actioned = _resolve_flags(db, review.id, admin, "actioned")
    review.is_hidden = True
    update_business_stats(db, review.business_id)
    db.commit()

    logger.info(f"Review {review.id} removed by {admin.user_id} ({actioned} flag(s) actioned)")
    return AdminActionResponse(message="Review removed")
