"""
Maintenance Tasks
Scheduled cleanup of claim documents and OTP records.
"""

import logging
from typing import Any, Dict, Optional

from .celery_app import app

logger = logging.getLogger(__name__)


@app.task(bind=True, name="tasks.cleanup_claim_documents", max_retries=3, default_retry_delay=300)
def cleanup_claim_documents(self) -> Dict[str, Any]:
    """
    Delete claim documents past their retention date.

    Documents whose storage objects could not be removed stay in place and are
    retried on the next run.
    """
    from ..api.dependencies import get_storage_client
    from ..api.services.maintenance import sweep_expired_claim_documents
    from ..db.session import session_scope

    try:
        with session_scope() as db:
            result = sweep_expired_claim_documents(db, get_storage_client())
    except Exception as e:
        logger.error(f"Claim document cleanup failed: {e}", exc_info=True)
        raise self.retry(exc=e)

    return {"status": "success", **result}


@app.task(bind=True, name="tasks.purge_stale_otps")
def purge_stale_otps(self, retention_hours: Optional[int] = None) -> Dict[str, Any]:
    from ..api.config import get_settings
    from ..api.services.maintenance import purge_stale_otps as purge
    from ..db.session import session_scope

    hours = retention_hours or get_settings().otp_retention_hours
    try:
        with session_scope() as db:
            purged = purge(db, retention_hours=hours)
    except Exception as e:
        logger.error(f"OTP purge failed: {e}", exc_info=True)
        return {"status": "error", "error": str(e), "purged": 0}

    return {"status": "success", "purged": purged}
