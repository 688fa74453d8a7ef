"""
One-time codes for phone verification of business claims.

Codes are six digits drawn from ``secrets`` and stored only as
sha256(pepper + code). Each claim keeps at most one active code: issuing a new
one invalidates the rest.
"""

import hashlib
import hmac
import re
import secrets
from datetime import datetime, timedelta
from typing import Optional

from sqlalchemy.orm import Session

from ...db.models import BusinessClaimOtp, utcnow

CODE_RE = re.compile(r"^\d{6}$")


def generate_code() -> str:
    return f"{secrets.randbelow(1_000_000):06d}"


def hash_code(code: str, pepper: str) -> str:
    return hashlib.sha256(f"{pepper}{code}".encode("utf-8")).hexdigest()


def code_matches(code: str, code_hash: str, pepper: str) -> bool:
    return hmac.compare_digest(hash_code(code, pepper), code_hash)


def to_e164(phone: str, default_country_code: str = "27") -> str:
    """Normalise a phone number to E.164, treating a leading 0 as a local number."""
    digits = re.sub(r"\D", "", phone or "")
    if (phone or "").strip().startswith("+"):
        return f"+{digits}"
    if digits.startswith("00"):
        return f"+{digits[2:]}"
    if digits.startswith("0"):
        return f"+{default_country_code}{digits[1:]}"
    return f"+{digits}"


def count_recent_sends(db: Session, claim_id, window_minutes: int, now: Optional[datetime] = None) -> int:
    now = now or utcnow()
    since = now - timedelta(minutes=window_minutes)
    return (
        db.query(BusinessClaimOtp)
        .filter(BusinessClaimOtp.claim_id == claim_id, BusinessClaimOtp.last_sent_at >= since)
        .count()
    )


def issue_code(
    db: Session,
    claim_id,
    phone: str,
    pepper: str,
    ttl_seconds: int,
    now: Optional[datetime] = None,
) -> str:
    """Invalidate the claim's active codes and store a new one. Caller commits."""
    now = now or utcnow()

    (
        db.query(BusinessClaimOtp)
        .filter(
            BusinessClaimOtp.claim_id == claim_id,
            BusinessClaimOtp.verified_at.is_(None),
            BusinessClaimOtp.invalidated_at.is_(None),
        )
        .update({BusinessClaimOtp.invalidated_at: now}, synchronize_session=False)
    )

    code = generate_code()
    db.add(BusinessClaimOtp(
        claim_id=claim_id,
        phone=phone,
        code_hash=hash_code(code, pepper),
        attempts=0,
        expires_at=now + timedelta(seconds=ttl_seconds),
        last_sent_at=now,
        created_at=now,
    ))
    db.flush()
    return code


def latest_active_code(db: Session, claim_id, now: Optional[datetime] = None) -> Optional[BusinessClaimOtp]:
    now = now or utcnow()
    return (
        db.query(BusinessClaimOtp)
        .filter(
            BusinessClaimOtp.claim_id == claim_id,
            BusinessClaimOtp.verified_at.is_(None),
            BusinessClaimOtp.invalidated_at.is_(None),
            BusinessClaimOtp.expires_at > now,
        )
        .order_by(BusinessClaimOtp.created_at.desc())
        .first()
    )
