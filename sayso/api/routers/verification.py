"""
Claim verification routes.
POST /api/verification/otp/send    - Text a one-time code to the business phone
POST /api/verification/otp/verify  - Check a code and move the claim to review
POST /api/verification/docs/upload - Upload a supporting document
"""

import logging
import uuid
from datetime import timedelta
from typing import Optional

from fastapi import APIRouter, BackgroundTasks, Depends, File, Form, UploadFile
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from ..config import APISettings, get_settings
from ..dependencies import (
    get_current_user_optional,
    get_db,
    get_email_service,
    get_sms_sender,
    get_storage_client,
)
from ..errors import (
    AuthenticationError,
    InvalidRequestError,
    PermissionDeniedError,
    RateLimitError,
    ResourceNotFoundError,
    UpstreamServiceError,
)
from ..schemas.claims import OkResponse, OtpSendRequest, OtpSendResponse, OtpVerifyRequest
from ..services import otp as otp_service
from ..services.businesses import parse_uuid
from ..services.email_service import EmailService
from ..services.notifications import notify_claim_event
from ..services.sms import SmsDeliveryError, SmsSender, mask_phone
from ..services.storage import StorageClient, StorageError, remove_quietly
from ...db.models import Business, BusinessClaim, BusinessClaimDocument, Profile, utcnow

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/verification", tags=["Verification"])

DOC_TYPES = ("letterhead_authorization", "lease_first_page")

ALLOWED_UPLOADS = {
    "application/pdf": "pdf",
    "image/jpeg": "jpg",
    "image/jpg": "jpg",
    "image/png": "png",
}


def _load_claim(db: Session, claim_id) -> BusinessClaim:
    claim = db.query(BusinessClaim).filter(BusinessClaim.id == claim_id).first()
    if claim is None:
        raise ResourceNotFoundError("Claim", claim_id, message="Claim not found")
    return claim


def _claimant(db: Session, claim: BusinessClaim) -> Optional[Profile]:
    return db.query(Profile).filter(Profile.user_id == claim.claimant_user_id).first()


def _claimant_name(user: Profile) -> Optional[str]:
    return user.display_name or user.username


@router.post("/otp/send", response_model=OtpSendResponse)
async def send_otp(
    request: OtpSendRequest,
    background_tasks: BackgroundTasks,
    current_user: Optional[Profile] = Depends(get_current_user_optional),
    db: Session = Depends(get_db),
    settings: APISettings = Depends(get_settings),
    sms: SmsSender = Depends(get_sms_sender),
    email_service: EmailService = Depends(get_email_service),
) -> OtpSendResponse:
    """Send a verification code to the phone number on the business listing."""
    if current_user is None:
        raise AuthenticationError("Unauthorized")
    if request.claim_id is None:
        raise InvalidRequestError("claimId is required")

    claim = _load_claim(db, request.claim_id)
    if claim.claimant_user_id != current_user.user_id and not current_user.is_admin:
        raise PermissionDeniedError("You can only verify your own claims")

    business = db.query(Business).filter(Business.id == claim.business_id).first()
    phone = (business.phone or "").strip() if business else ""
    if not phone:
        raise InvalidRequestError("Business phone number is required for phone verification")

    now = utcnow()
    recent = otp_service.count_recent_sends(db, claim.id, settings.otp_send_window_minutes, now)
    if recent >= settings.otp_max_sends:
        raise RateLimitError(
            f"Too many OTP requests. Please try again in {settings.otp_send_window_minutes} minutes."
        )

    phone_e164 = otp_service.to_e164(phone)
    code = otp_service.issue_code(
        db, claim.id, phone_e164, settings.otp_pepper, settings.otp_ttl_seconds, now
    )

    minutes = settings.otp_ttl_seconds // 60
    try:
        sms.send(phone_e164, f"Your SaySo verification code is {code}. It expires in {minutes} minutes.")
    except SmsDeliveryError as e:
        db.rollback()
        logger.error(f"OTP SMS failed for claim {claim.id}: {e}")
        raise UpstreamServiceError("Failed to send verification code. Please try again.")

    db.commit()

    masked = mask_phone(phone_e164)
    notify_claim_event(
        db,
        claim,
        notification_type="otp_sent",
        title="Verification code sent",
        message=f"We sent a code to {masked} for {business.name}. Enter it in the app.",
    )

    # Admins may send the code on a claimant's behalf; the claimant still gets the email
    claimant = current_user if claim.claimant_user_id == current_user.user_id else _claimant(db, claim)
    if claimant is not None and claimant.email:
        background_tasks.add_task(
            email_service.send_otp_sent,
            claimant.email, _claimant_name(claimant), business.name, masked,
        )

    logger.info(f"OTP issued for claim {claim.id}")
    return OtpSendResponse(ok=True, maskedPhone=masked, expiresInSeconds=settings.otp_ttl_seconds)


@router.post("/otp/verify", response_model=OkResponse)
async def verify_otp(
    request: OtpVerifyRequest,
    background_tasks: BackgroundTasks,
    current_user: Optional[Profile] = Depends(get_current_user_optional),
    db: Session = Depends(get_db),
    settings: APISettings = Depends(get_settings),
    email_service: EmailService = Depends(get_email_service),
) -> OkResponse:
    """
    Verify a code.

    Each code allows a fixed number of attempts; the attempt is counted before
    the comparison so wrong guesses always use one up.
    """
    if current_user is None:
        raise AuthenticationError("Unauthorized")
    code = (request.code or "").strip()
    if request.claim_id is None or not code:
        raise InvalidRequestError("claimId and code are required")
    if not otp_service.CODE_RE.match(code):
        raise InvalidRequestError("Code must be 6 digits")

    claim = _load_claim(db, request.claim_id)
    if claim.claimant_user_id != current_user.user_id:
        raise PermissionDeniedError("You can only verify your own claims")

    record = otp_service.latest_active_code(db, claim.id)
    if record is None:
        raise InvalidRequestError("No valid verification code. Please request a new one.")

    if record.attempts >= settings.otp_max_attempts:
        raise RateLimitError("Too many attempts. Please request a new code.")

    record.attempts += 1
    db.commit()

    if not otp_service.code_matches(code, record.code_hash, settings.otp_pepper):
        logger.info(f"OTP mismatch for claim {claim.id} (attempt {record.attempts})")
        raise InvalidRequestError(
            "Invalid code",
            details={"attemptsRemaining": max(settings.otp_max_attempts - record.attempts, 0)},
        )

    now = utcnow()
    record.verified_at = now
    claim.status = "under_review"
    claim.method_attempted = "phone"
    claim.updated_at = now
    verification_data = dict(claim.verification_data or {})
    verification_data["phone_verified_at"] = now.isoformat()
    claim.verification_data = verification_data
    db.commit()

    business = db.query(Business).filter(Business.id == claim.business_id).first()
    business_name = business.name if business else "your business"

    notify_claim_event(
        db, claim,
        notification_type="otp_verified",
        title="Phone verified",
        message=f"Your phone number was verified for {business_name}.",
        event="otp_verified",
    )
    notify_claim_event(
        db, claim,
        notification_type="claim_status_changed",
        title="Claim under review",
        message=f"Your claim for {business_name} is now under review.",
    )

    if current_user.email:
        background_tasks.add_task(
            email_service.send_otp_verified,
            current_user.email, _claimant_name(current_user), business_name,
        )

    logger.info(f"OTP verified for claim {claim.id}; claim under review")
    return OkResponse(ok=True)


@router.post("/docs/upload", response_model=OkResponse)
async def upload_document(
    background_tasks: BackgroundTasks,
    claimId: Optional[str] = Form(None),
    docType: Optional[str] = Form(None),
    file: Optional[UploadFile] = File(None),
    current_user: Optional[Profile] = Depends(get_current_user_optional),
    db: Session = Depends(get_db),
    settings: APISettings = Depends(get_settings),
    storage: StorageClient = Depends(get_storage_client),
    email_service: EmailService = Depends(get_email_service),
) -> OkResponse:
    """Upload a letterhead authorization or lease page for a claim awaiting documents."""
    if current_user is None:
        raise AuthenticationError("Unauthorized")
    if not claimId or not docType:
        raise InvalidRequestError("claimId and docType are required")
    if docType not in DOC_TYPES:
        raise InvalidRequestError(f"docType must be one of: {', '.join(DOC_TYPES)}")
    if file is None:
        raise InvalidRequestError("File is required")

    content_type = (file.content_type or "").lower()
    extension = ALLOWED_UPLOADS.get(content_type)
    if extension is None:
        raise InvalidRequestError("File must be PDF, JPEG or PNG")

    data = await file.read()
    if not data:
        raise InvalidRequestError("File is empty")
    if len(data) > settings.claim_doc_max_bytes:
        raise InvalidRequestError(
            f"File must be at most {settings.claim_doc_max_bytes // (1024 * 1024)}MB"
        )

    claim_uuid = parse_uuid(claimId)
    if claim_uuid is None:
        raise InvalidRequestError("Invalid claimId")
    claim = _load_claim(db, claim_uuid)
    if claim.claimant_user_id != current_user.user_id:
        raise PermissionDeniedError("You can only upload documents for your own claims")
    if claim.status != "action_required":
        raise InvalidRequestError("Documents can only be uploaded when requested")

    path = f"claims/{claim.id}/{docType}/{uuid.uuid4()}.{extension}"
    try:
        storage.upload_bytes(path, data, content_type)
    except StorageError as e:
        logger.error(f"Document upload failed for claim {claim.id}: {e}")
        raise UpstreamServiceError("Failed to store document. Please try again.")

    now = utcnow()
    try:
        db.add(BusinessClaimDocument(
            claim_id=claim.id,
            doc_type=docType,
            storage_path=path,
            mime_type=content_type,
            size_bytes=len(data),
            status="uploaded",
            uploaded_at=now,
            delete_after=now + timedelta(days=settings.claim_doc_retention_days),
        ))
        claim.status = "under_review"
        claim.method_attempted = "documents"
        claim.updated_at = now
        db.commit()
    except SQLAlchemyError:
        db.rollback()
        remove_quietly(storage, [path])
        raise

    business = db.query(Business).filter(Business.id == claim.business_id).first()
    business_name = business.name if business else "your business"
    notify_claim_event(
        db, claim,
        notification_type="docs_received",
        title="Document received",
        message=f"We received your document for {business_name}. Your claim is now under review.",
    )

    if current_user.email:
        background_tasks.add_task(
            email_service.send_docs_received,
            current_user.email, _claimant_name(current_user), business_name,
        )

    logger.info(f"Document {docType} uploaded for claim {claim.id}")
    return OkResponse(ok=True, message="Document uploaded. Your claim is now under review.")
