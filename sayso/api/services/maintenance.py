"""
Cleanup sweeps run by the cron endpoint and Celery beat.

Both sweeps are idempotent: running them twice in a row removes nothing the
second time.
"""

import logging
from datetime import datetime, timedelta
from typing import Dict, Optional

from sqlalchemy.orm import Session

from .storage import StorageClient, remove_quietly
from ...db.models import BusinessClaimDocument, BusinessClaimOtp, utcnow

logger = logging.getLogger(__name__)

DOCUMENT_BATCH_SIZE = 500


def sweep_expired_claim_documents(
    db: Session,
    storage: StorageClient,
    now: Optional[datetime] = None,
) -> Dict[str, int]:
    """
    Delete claim documents whose ``delete_after`` has passed.

    Rows are only deleted when their storage objects were removed, so a storage
    outage leaves them for the next run.
    """
    now = now or utcnow()
    deleted = 0
    failed = 0

    while True:
        batch = (
            db.query(BusinessClaimDocument)
            .filter(BusinessClaimDocument.delete_after <= now)
            .order_by(BusinessClaimDocument.delete_after)
            .limit(DOCUMENT_BATCH_SIZE)
            .all()
        )
        if not batch:
            break

        if not remove_quietly(storage, [doc.storage_path for doc in batch]):
            failed += len(batch)
            break

        for doc in batch:
            db.delete(doc)
        db.commit()
        deleted += len(batch)

        if len(batch) < DOCUMENT_BATCH_SIZE:
            break

    logger.info(f"Claim document sweep: deleted={deleted} failed={failed}")
    return {"deleted": deleted, "failed": failed}


def purge_stale_otps(db: Session, retention_hours: int = 24, now: Optional[datetime] = None) -> int:
    """Delete OTP rows that expired more than ``retention_hours`` ago."""
    now = now or utcnow()
    cutoff = now - timedelta(hours=retention_hours)

    purged = (
        db.query(BusinessClaimOtp)
        .filter(BusinessClaimOtp.expires_at < cutoff)
        .delete(synchronize_session=False)
    )
    db.commit()

    logger.info(f"Purged {purged} stale OTP record(s)")
    return purged
