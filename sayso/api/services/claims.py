"""
Business claim workflow.

Claim statuses move draft -> pending -> under_review -> verified | rejected.
An admin can move a pending or under-review claim to action_required to ask
for documents; an upload moves it back to under_review.
"""

import logging
import re
from typing import Optional
from urllib.parse import urlparse

from sqlalchemy.orm import Session

from ..errors import ConflictError
from .storage import StorageClient, remove_quietly
from ...db.models import Business, BusinessClaim, BusinessClaimDocument, BusinessOwner, Profile, utcnow

logger = logging.getLogger(__name__)

CLAIM_STATUSES = ("draft", "pending", "action_required", "under_review", "verified", "rejected")
TERMINAL_STATUSES = ("verified", "rejected")
IN_PROGRESS_STATUSES = ("pending", "action_required", "under_review")
APPROVABLE_STATUSES = ("pending", "under_review", "action_required")
CLAIM_METHODS = ("email", "phone", "cipc", "documents")
CLAIMANT_ROLES = ("owner", "manager")

_EMAIL_RE = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")


def is_valid_email(email: str) -> bool:
    return bool(_EMAIL_RE.match(email))


def is_valid_phone(phone: str) -> bool:
    """At least 8 digits once formatting is removed."""
    return len(re.sub(r"\D", "", phone)) >= 8


def email_domain_matches_website(email: str, website: str) -> bool:
    """True when ``info@acme.co.za`` belongs to ``https://www.acme.co.za``."""
    if "@" not in email:
        return False
    email_domain = email.rsplit("@", 1)[1].strip().lower()

    candidate = website.strip()
    if "://" not in candidate:
        candidate = f"http://{candidate}"
    host = (urlparse(candidate).hostname or "").lower()
    if host.startswith("www."):
        host = host[4:]

    if not email_domain or not host:
        return False
    return host == email_domain or host.endswith(f".{email_domain}")


def to_display_status(status: str, method_attempted: Optional[str]) -> str:
    if status == "verified":
        return "Verified"
    if status == "rejected":
        return "Rejected"
    if status == "action_required":
        return "Action Required"
    if status == "under_review":
        return "Under Review"
    if method_attempted == "cipc":
        return "Under Review"
    if method_attempted in ("email", "phone"):
        return "Action Required"
    return "Pending Verification"


def next_step_key(method_attempted: str) -> str:
    if method_attempted == "cipc":
        return "under_review"
    if method_attempted in ("email", "phone"):
        return "action_required"
    return "pending_verification"


def next_step_message(status: str, method_attempted: Optional[str]) -> str:
    if status == "verified":
        return "You can manage your listing in My Businesses."
    if status == "rejected":
        return "Contact support if you believe this was an error."
    if status == "action_required":
        return "Please upload the requested documents or complete the requested step."
    if status == "under_review":
        return "We're reviewing your claim. We'll email you when done."
    if status in ("pending", "draft"):
        if method_attempted == "cipc":
            return "We're reviewing your CIPC details. We'll email you when done."
        if method_attempted == "phone":
            return "Check the business phone for an OTP and enter it when prompted."
        if method_attempted == "email":
            return "Check your business email or complete the next verification step."
        return "We're checking your details. You may need to complete a verification step."
    return ""


def choose_method(
    cipc_registration_number: Optional[str],
    cipc_company_name: Optional[str],
    phone: Optional[str],
    email: Optional[str],
) -> str:
    if cipc_registration_number and cipc_company_name:
        return "cipc"
    if phone:
        return "phone"
    if email:
        return "email"
    return "documents"


def is_business_owner(db: Session, business: Business, user_id) -> bool:
    if business.owner_id == user_id:
        return True
    return (
        db.query(BusinessOwner)
        .filter(BusinessOwner.business_id == business.id, BusinessOwner.user_id == user_id)
        .first()
        is not None
    )


def start_claim(db: Session, business: Business, claimant: Profile) -> BusinessClaim:
    """
    Start a claim, or reuse the claimant's open draft for this business.

    Raises:
        ConflictError: the claimant already has a submitted claim in progress
    """
    existing = (
        db.query(BusinessClaim)
        .filter(
            BusinessClaim.business_id == business.id,
            BusinessClaim.claimant_user_id == claimant.user_id,
            BusinessClaim.status.notin_(TERMINAL_STATUSES),
        )
        .order_by(BusinessClaim.created_at.desc())
        .first()
    )

    if existing is not None:
        if existing.status != "draft":
            raise ConflictError(
                "You already have a claim in progress for this business.",
                code="DUPLICATE_CLAIM",
                details={"claim_id": str(existing.id), "status": existing.status},
            )
        return existing

    claim = BusinessClaim(
        business_id=business.id,
        claimant_user_id=claimant.user_id,
        status="draft",
    )
    db.add(claim)
    db.flush()
    return claim


def grant_ownership(
    db: Session,
    claim: BusinessClaim,
    method: Optional[str] = None,
    reviewer_id=None,
) -> None:
    """Mark a claim verified and make the claimant an owner of the business. Caller commits."""
    now = utcnow()
    claim.status = "verified"
    claim.reviewed_at = now
    claim.updated_at = now
    if reviewer_id is not None:
        claim.reviewed_by = reviewer_id
    if method:
        claim.method_attempted = method

    business = db.query(Business).filter(Business.id == claim.business_id).first()
    if business is not None:
        business.owner_id = claim.claimant_user_id
        business.verified = True

    owner_row = (
        db.query(BusinessOwner)
        .filter(
            BusinessOwner.business_id == claim.business_id,
            BusinessOwner.user_id == claim.claimant_user_id,
        )
        .first()
    )
    if owner_row is None:
        db.add(BusinessOwner(
            business_id=claim.business_id,
            user_id=claim.claimant_user_id,
            role=claim.claimant_role or "owner",
            verified_at=now,
        ))

    claimant = db.query(Profile).filter(Profile.user_id == claim.claimant_user_id).first()
    if claimant is not None and not claimant.is_admin:
        claimant.account_role = "business_owner"

    logger.info(f"Ownership granted: claim={claim.id} business={claim.business_id}")


def purge_claim_documents(db: Session, storage: StorageClient, claim: BusinessClaim) -> int:
    """Delete a claim's documents from storage and the database. Caller commits."""
    documents = (
        db.query(BusinessClaimDocument)
        .filter(BusinessClaimDocument.claim_id == claim.id)
        .all()
    )
    if not documents:
        return 0

    remove_quietly(storage, [doc.storage_path for doc in documents])
    for doc in documents:
        db.delete(doc)

    logger.info(f"Purged {len(documents)} document(s) for claim {claim.id}")
    return len(documents)
