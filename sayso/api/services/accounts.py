"""
Account deletion.

Removes every row the user owns, releases listings they own and recomputes
stats on the businesses they reviewed. Claim documents are removed from
storage after the database commit; a storage failure is logged and left to
the document sweep.
"""

import logging
from typing import Dict

from sqlalchemy.orm import Session

from .reviews import update_business_stats
from .storage import StorageClient, remove_quietly
from ...db.models import (
    Business,
    BusinessClaim,
    BusinessClaimDocument,
    BusinessOwner,
    Notification,
    Profile,
    Review,
    ReviewFlag,
    ReviewHelpfulVote,
    ReviewReply,
    SavedBusiness,
)

logger = logging.getLogger(__name__)


def delete_account(db: Session, storage: StorageClient, profile: Profile) -> Dict[str, int]:
    user_id = profile.user_id

    claim_ids = [
        row.id for row in
        db.query(BusinessClaim.id).filter(BusinessClaim.claimant_user_id == user_id).all()
    ]
    document_paths = []
    if claim_ids:
        document_paths = [
            row.storage_path for row in
            db.query(BusinessClaimDocument.storage_path)
            .filter(BusinessClaimDocument.claim_id.in_(claim_ids))
            .all()
        ]

    # Votes the user cast on other people's reviews
    voted = (
        db.query(Review)
        .join(ReviewHelpfulVote, ReviewHelpfulVote.review_id == Review.id)
        .filter(ReviewHelpfulVote.user_id == user_id, Review.user_id != user_id)
        .all()
    )
    for review in voted:
        review.helpful_count = max((review.helpful_count or 0) - 1, 0)
    db.flush()

    db.query(ReviewHelpfulVote).filter(ReviewHelpfulVote.user_id == user_id).delete(synchronize_session=False)
    db.query(ReviewFlag).filter(ReviewFlag.flagged_by == user_id).delete(synchronize_session=False)
    db.query(ReviewReply).filter(ReviewReply.user_id == user_id).delete(synchronize_session=False)
    db.query(SavedBusiness).filter(SavedBusiness.user_id == user_id).delete(synchronize_session=False)
    db.query(Notification).filter(Notification.user_id == user_id).delete(synchronize_session=False)
    db.query(BusinessOwner).filter(BusinessOwner.user_id == user_id).delete(synchronize_session=False)
    released = (
        db.query(Business)
        .filter(Business.owner_id == user_id)
        .update({Business.owner_id: None}, synchronize_session=False)
    )
    db.expire_all()

    reviews = db.query(Review).filter(Review.user_id == user_id).all()
    reviewed_businesses = {review.business_id for review in reviews}
    for review in reviews:
        db.delete(review)

    for claim in db.query(BusinessClaim).filter(BusinessClaim.claimant_user_id == user_id).all():
        db.delete(claim)

    db.delete(db.get(Profile, user_id))

    for business_id in reviewed_businesses:
        update_business_stats(db, business_id)
    db.commit()

    remove_quietly(storage, document_paths)

    summary = {
        "reviews": len(reviews),
        "claims": len(claim_ids),
        "documents": len(document_paths),
        "businesses_released": released,
    }
    logger.info(f"Deleted account {user_id}: {summary}")
    return summary
