"""
Dependency Injection
FastAPI dependencies for database, auth, and outbound services.
"""

import hmac
import logging
from typing import Generator, Optional
from uuid import UUID

from fastapi import Cookie, Depends, Header, HTTPException, status
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from .config import get_settings, APISettings
from .security import verify_token
from .services.email_service import EmailService
from .services.sms import LoggingSmsSender, SmsSender, TwilioSmsSender
from .services.storage import InMemoryStorageClient, S3StorageClient, StorageClient
from ..db.models import Profile
from ..db.session import get_session_factory

logger = logging.getLogger(__name__)

_storage_client: Optional[StorageClient] = None
_sms_sender: Optional[SmsSender] = None
_email_service: Optional[EmailService] = None


def get_db() -> Generator[Session, None, None]:
    """
    Get database session.

    Use as FastAPI dependency:
        @app.get("/endpoint")
        def endpoint(db: Session = Depends(get_db)):
            ...
    """
    SessionLocal = get_session_factory()
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


def get_storage_client() -> StorageClient:
    """Get the claim-document storage client (singleton)."""
    global _storage_client
    if _storage_client is None:
        settings = get_settings()
        if settings.storage_backend == "s3":
            _storage_client = S3StorageClient(
                bucket=settings.claim_docs_bucket,
                region=settings.s3_region,
                endpoint=settings.s3_endpoint_url,
                access_key_id=settings.s3_access_key_id,
                secret_access_key=settings.s3_secret_access_key,
            )
        else:
            _storage_client = InMemoryStorageClient(bucket=settings.claim_docs_bucket)
            logger.warning("Using in-memory storage for claim documents")
    return _storage_client


def get_sms_sender() -> SmsSender:
    """Get the SMS sender (singleton)."""
    global _sms_sender
    if _sms_sender is None:
        settings = get_settings()
        if settings.twilio_account_sid and settings.twilio_auth_token and settings.twilio_from_number:
            _sms_sender = TwilioSmsSender(
                account_sid=settings.twilio_account_sid,
                auth_token=settings.twilio_auth_token,
                from_number=settings.twilio_from_number,
                api_base=settings.twilio_api_base,
                timeout=settings.outbound_timeout_seconds,
            )
        else:
            _sms_sender = LoggingSmsSender()
    return _sms_sender


def get_email_service() -> EmailService:
    """Get the email service (singleton)."""
    global _email_service
    if _email_service is None:
        settings = get_settings()
        _email_service = EmailService(
            api_key=settings.resend_api_key,
            sender=settings.email_from,
            api_base=settings.resend_api_base,
            public_base_url=settings.public_base_url,
            timeout=settings.outbound_timeout_seconds,
        )
    return _email_service


def _extract_token(authorization: Optional[str], access_token: Optional[str]) -> Optional[str]:
    if authorization:
        scheme, _, credentials = authorization.partition(" ")
        if scheme.lower() == "bearer" and credentials.strip():
            return credentials.strip()
    return access_token or None


def _load_profile(db: Session, payload: dict) -> Optional[Profile]:
    """Resolve the token subject to a profile row, creating it on first sight."""
    user_id_str = payload.get("sub")
    if not user_id_str:
        return None
    try:
        user_id = UUID(user_id_str)
    except ValueError:
        return None

    profile = db.query(Profile).filter(Profile.user_id == user_id).first()
    if profile:
        return profile

    profile = Profile(user_id=user_id, email=payload.get("email"))
    db.add(profile)
    try:
        db.commit()
    except IntegrityError:
        # Concurrent first request created it
        db.rollback()
        return db.query(Profile).filter(Profile.user_id == user_id).first()
    logger.info(f"Created profile for user {user_id}")
    return profile


def get_current_user_optional(
    authorization: Optional[str] = Header(None),
    access_token: Optional[str] = Cookie(None),
    db: Session = Depends(get_db),
) -> Optional[Profile]:
    """
    Get current authenticated user, or None for anonymous requests.

    Accepts ``Authorization: Bearer <token>`` or the ``access_token`` cookie.
    """
    token = _extract_token(authorization, access_token)
    if not token:
        return None

    payload = verify_token(token)
    if not payload:
        return None

    return _load_profile(db, payload)


def get_current_user(
    current_user: Optional[Profile] = Depends(get_current_user_optional),
) -> Profile:
    """
    Get current authenticated user.

    Raises:
        HTTPException: 401 if not authenticated or token invalid
    """
    if current_user is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Unauthorized",
            headers={"WWW-Authenticate": "Bearer"},
        )
    return current_user


def require_admin(current_user: Profile = Depends(get_current_user)) -> Profile:
    """Allow only admin profiles."""
    if not current_user.is_admin:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Admin only")
    return current_user


def require_business_owner(current_user: Profile = Depends(get_current_user)) -> Profile:
    """Allow business-owner accounts (and admins)."""
    if current_user.account_role != "business_owner" and not current_user.is_admin:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Business account required",
        )
    return current_user


def verify_cron_secret(
    authorization: Optional[str] = Header(None),
    settings: APISettings = Depends(get_settings),
) -> bool:
    """Check the scheduler's ``Authorization: Bearer <CRON_SECRET>`` header."""
    if not settings.cron_secret:
        logger.error("CRON_SECRET is not configured; refusing cron request")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Cron secret not configured",
        )

    expected = f"Bearer {settings.cron_secret}"
    if not authorization or not hmac.compare_digest(authorization.encode(), expected.encode()):
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Unauthorized")

    return True
