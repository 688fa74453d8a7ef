"""
Business claim routes.
POST /api/business/claim  - Start (or resume) a claim on a listing
GET  /api/business/claims - The caller's recent claims
"""

import logging
from typing import Optional

from fastapi import APIRouter, BackgroundTasks, Depends, status
from fastapi.responses import JSONResponse
from sqlalchemy import desc
from sqlalchemy.orm import Session, joinedload

from ..dependencies import get_current_user, get_current_user_optional, get_db, get_email_service
from ..errors import AuthenticationError, InvalidRequestError, ResourceNotFoundError
from ..schemas.claims import (
    ClaimBusinessInfo,
    ClaimListResponse,
    ClaimRequest,
    ClaimSubmitResponse,
    ClaimSummary,
)
from ..services.businesses import parse_uuid
from ..services.claims import (
    CLAIMANT_ROLES,
    CLAIM_STATUSES,
    choose_method,
    email_domain_matches_website,
    grant_ownership,
    is_business_owner,
    is_valid_email,
    is_valid_phone,
    next_step_key,
    next_step_message,
    start_claim,
    to_display_status,
)
from ..services.email_service import EmailService
from ...db.models import Business, BusinessClaim, Profile, utcnow

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/business", tags=["Claims"])


@router.post("/claim", response_model=ClaimSubmitResponse, status_code=status.HTTP_201_CREATED)
async def submit_claim(
    request: ClaimRequest,
    background_tasks: BackgroundTasks,
    current_user: Optional[Profile] = Depends(get_current_user_optional),
    db: Session = Depends(get_db),
    email_service: EmailService = Depends(get_email_service),
):
    """
    Claim a business listing.

    A business email whose domain matches the listing's website verifies the
    claim immediately. Otherwise the claim goes to ``pending`` with the strongest
    verification method the claimant supplied: CIPC, then phone, then email,
    then documents.
    """
    if current_user is None:
        raise AuthenticationError("Please log in to claim this business.", code="NOT_AUTHENTICATED")

    if not request.business_id:
        raise InvalidRequestError("Business ID is required.", code="MISSING_FIELDS")

    email = (request.email or "").strip()
    if email and not is_valid_email(email):
        raise InvalidRequestError("Please enter a valid email address.", code="INVALID_EMAIL")

    phone = (request.phone or "").strip()
    if phone and not is_valid_phone(phone):
        raise InvalidRequestError(
            "Please enter a valid phone number (at least 8 digits).", code="INVALID_PHONE"
        )

    cipc_number = (request.cipc_registration_number or "").strip()
    cipc_name = (request.cipc_company_name or "").strip()
    has_cipc = bool(cipc_number and cipc_name)
    if not email and not phone and not has_cipc:
        raise InvalidRequestError(
            "Please provide a business email, phone number, or CIPC details.",
            code="MISSING_FIELDS",
        )

    role = request.role if request.role in CLAIMANT_ROLES else "owner"

    business_id = parse_uuid(request.business_id)
    business = None
    if business_id is not None:
        business = db.query(Business).filter(Business.id == business_id).first()
    if business is None:
        raise ResourceNotFoundError(
            "Business", request.business_id,
            message="We couldn't find that business. Please try again.",
            code="BUSINESS_NOT_FOUND",
        )

    if is_business_owner(db, business, current_user.user_id):
        raise InvalidRequestError("You already own this business.", code="ALREADY_OWNER")

    claim = start_claim(db, business, current_user)

    verification_data = {
        "role": role,
        "email": email or None,
        "phone": phone or business.phone or None,
        "notes": request.note or None,
        "cipc_registration_number": cipc_number or None,
        "cipc_company_name": cipc_name or None,
    }
    verification_data = {k: v for k, v in verification_data.items() if v is not None}

    claim.claimant_role = role
    claim.contact_email = email or None
    claim.contact_phone = phone or None
    claim.note = request.note
    claim.verification_data = verification_data
    claim.submitted_at = utcnow()

    recipient = current_user.email or email
    if recipient:
        background_tasks.add_task(
            email_service.send_claim_received,
            recipient, current_user.display_name or current_user.username,
            business.name, business.category, business.location,
        )

    business_email = email or (business.email or "").strip()
    website = (business.website or "").strip()
    if business_email and website and email_domain_matches_website(business_email, website):
        grant_ownership(db, claim, method="email")
        claim.verification_level = "level_1"
        db.commit()
        logger.info(f"Claim {claim.id} auto-verified by email domain for business {business.id}")

        return ClaimSubmitResponse(
            claim_id=claim.id,
            status="verified",
            display_status="Verified",
            method_attempted="email",
            next_step="dashboard",
            message="Business email verified. You can now manage your listing.",
        )

    method = choose_method(cipc_number, cipc_name, verification_data.get("phone"), email)
    claim.status = "pending"
    claim.method_attempted = method
    claim.verification_level = "level_2" if method == "cipc" else "level_1"
    db.commit()

    logger.info(f"Claim {claim.id} submitted for business {business.id} via {method}")

    return ClaimSubmitResponse(
        claim_id=claim.id,
        status="pending",
        display_status=to_display_status("pending", method),
        method_attempted=method,
        next_step=next_step_key(method),
        message=(
            "Claim submitted. We'll review your CIPC details shortly."
            if method == "cipc"
            else "Claim submitted. Complete the requested verification step."
        ),
    )


@router.get("/claims", response_model=ClaimListResponse)
async def list_my_claims(
    current_user: Profile = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    """The caller's 20 most recent claims."""
    claims = (
        db.query(BusinessClaim)
        .options(joinedload(BusinessClaim.business))
        .filter(
            BusinessClaim.claimant_user_id == current_user.user_id,
            BusinessClaim.status.in_(CLAIM_STATUSES),
        )
        .order_by(desc(BusinessClaim.created_at))
        .limit(20)
        .all()
    )

    items = []
    for claim in claims:
        business = claim.business
        items.append(ClaimSummary(
            id=claim.id,
            business_id=claim.business_id,
            status=claim.status,
            display_status=to_display_status(claim.status, claim.method_attempted),
            method_attempted=claim.method_attempted,
            next_step=next_step_message(claim.status, claim.method_attempted),
            rejection_reason=claim.rejection_reason,
            submitted_at=claim.submitted_at,
            created_at=claim.created_at,
            updated_at=claim.updated_at,
            business=ClaimBusinessInfo(
                id=business.id,
                name=business.name,
                slug=business.slug,
                category=business.category,
                location=business.location,
            ) if business else None,
        ))

    return JSONResponse(
        content=ClaimListResponse(claims=items).model_dump(mode="json"),
        headers={"Cache-Control": "no-store"},
    )
