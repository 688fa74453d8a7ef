"""
Scheduled maintenance routes, called by an external scheduler with the cron secret.
"""

import logging

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from ..config import APISettings, get_settings
from ..dependencies import get_db, get_storage_client, verify_cron_secret
from ..services.maintenance import purge_stale_otps, sweep_expired_claim_documents
from ..services.storage import StorageClient

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/cron", tags=["Cron"], dependencies=[Depends(verify_cron_secret)])


@router.post("/cleanup")
async def run_cleanup(
    db: Session = Depends(get_db),
    storage: StorageClient = Depends(get_storage_client),
    settings: APISettings = Depends(get_settings),
):
    """Remove expired claim documents and stale OTP records."""
    documents = sweep_expired_claim_documents(db, storage)
    otps = purge_stale_otps(db, retention_hours=settings.otp_retention_hours)

    logger.info(f"Cron cleanup finished: documents={documents} otps={otps}")
    return {
        "success": True,
        "documents_deleted": documents["deleted"],
        "documents_failed": documents["failed"],
        "otps_purged": otps,
    }


@router.post("/cleanup-claim-documents")
async def cleanup_claim_documents(
    db: Session = Depends(get_db),
    storage: StorageClient = Depends(get_storage_client),
):
    result = sweep_expired_claim_documents(db, storage)
    return {"success": True, "deleted": result["deleted"], "failed": result["failed"]}
