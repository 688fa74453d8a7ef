"""
Notification Service
Creates in-app notifications and computes fan-out recipients for events.

Events that must notify a recipient at most once carry an ``entity_id``
(for example ``reply:<reply_id>:author``). Creation first looks for an existing
row with the same (user_id, type, entity_id); the table's unique constraint
covers the window between that lookup and the insert.
"""

import logging
from typing import Dict, Optional
from uuid import UUID

from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from ...db.models import Business, BusinessClaim, Notification, Profile, Review, utcnow

logger = logging.getLogger(__name__)

NOTIFICATION_TYPES = frozenset([
    "review",
    "business",
    "user",
    "highlyRated",
    "message",
    "otp_sent",
    "otp_verified",
    "claim_status_changed",
    "docs_requested",
    "docs_received",
    "gamification",
    "badge_earned",
    "review_helpful",
    "business_approved",
    "claim_approved",
    "comment_reply",
    "photo_approved",
    "milestone_achievement",
    "event_reminder",
])


def _find_existing(db: Session, user_id: UUID, notification_type: str, entity_id: str) -> Optional[Notification]:
    return (
        db.query(Notification)
        .filter(
            Notification.user_id == user_id,
            Notification.type == notification_type,
            Notification.entity_id == entity_id,
        )
        .first()
    )


def create_notification(
    db: Session,
    user_id: UUID,
    notification_type: str,
    title: str,
    message: str,
    entity_id: Optional[str] = None,
    link: Optional[str] = None,
    image: Optional[str] = None,
    image_alt: Optional[str] = None,
) -> Optional[UUID]:
    """
    Create a notification and commit it.

    Returns:
        The new (or already existing, for a repeated ``entity_id``) notification id,
        or None if the insert failed.

    Raises:
        ValueError: for an unknown notification type
    """
    if notification_type not in NOTIFICATION_TYPES:
        raise ValueError(f"Invalid notification type: {notification_type}")

    if entity_id:
        existing = _find_existing(db, user_id, notification_type, entity_id)
        if existing:
            logger.debug(f"Notification already exists for {notification_type}/{entity_id}")
            return existing.id

    notification = Notification(
        user_id=user_id,
        type=notification_type,
        title=title,
        message=message,
        entity_id=entity_id,
        link=link,
        image=image,
        image_alt=image_alt,
        read=False,
    )

    try:
        db.add(notification)
        db.commit()
    except IntegrityError:
        db.rollback()
        if entity_id:
            existing = _find_existing(db, user_id, notification_type, entity_id)
            if existing:
                logger.info(f"Concurrent duplicate notification absorbed: {notification_type}/{entity_id}")
                return existing.id
        logger.error(f"Failed to create {notification_type} notification for {user_id}", exc_info=True)
        return None
    except SQLAlchemyError:
        db.rollback()
        logger.error(f"Failed to create {notification_type} notification for {user_id}", exc_info=True)
        return None

    return notification.id


def notify_reply_recipients(
    db: Session,
    review_id: UUID,
    reply_id: UUID,
    replier_id: UUID,
    replier_name: Optional[str],
) -> Dict[str, Optional[UUID]]:
    """
    Notify the review author and the business owner about a new reply.

    Recipients are {review author, business owner} minus the replier; the owner
    is also skipped when they wrote the review, so nobody is notified twice.
    """
    result: Dict[str, Optional[UUID]] = {
        "author_notification_id": None,
        "owner_notification_id": None,
    }

    review = db.query(Review).filter(Review.id == review_id).first()
    if review is None:
        logger.warning(f"Reply notification skipped: review {review_id} not found")
        return result

    business = db.query(Business).filter(Business.id == review.business_id).first()
    if business is None:
        logger.warning(f"Reply notification skipped: business {review.business_id} not found")
        return result

    name = (replier_name or "").strip() or "Someone"
    business_name = business.name or "a business"

    if review.user_id and review.user_id != replier_id:
        result["author_notification_id"] = create_notification(
            db,
            user_id=review.user_id,
            notification_type="comment_reply",
            title="New Reply",
            message=f"{name} replied to your review",
            entity_id=f"reply:{reply_id}:author",
            link=f"/business/{business.slug or business.id}",
        )

    owner_id = business.owner_id
    if owner_id and owner_id != replier_id and owner_id != review.user_id:
        result["owner_notification_id"] = create_notification(
            db,
            user_id=owner_id,
            notification_type="review",
            title="Reply on Review",
            message=f"{name} replied to a review on {business_name}",
            entity_id=f"reply:{reply_id}:owner",
            link=f"/my-businesses/businesses/{business.id}/reviews",
        )

    return result


def notify_helpful_vote(db: Session, review: Review, voter: Profile) -> Optional[UUID]:
    """Tell a review's author someone found it helpful. Never notifies self-votes."""
    if review.user_id == voter.user_id:
        return None

    business = db.query(Business).filter(Business.id == review.business_id).first()
    business_name = business.name if business else "a business"
    return create_notification(
        db,
        user_id=review.user_id,
        notification_type="review_helpful",
        title="Review marked helpful",
        message=f"{voter.name} found your review of {business_name} helpful",
        entity_id=f"helpful:{review.id}:{voter.user_id}",
        link=f"/business/{business.slug}" if business else None,
    )


def notify_business_approved(db: Session, business: Business) -> Optional[UUID]:
    if not business.owner_id:
        return None
    return create_notification(
        db,
        user_id=business.owner_id,
        notification_type="business_approved",
        title="Business approved",
        message=f"{business.name} is now live on SaySo.",
        entity_id=str(business.id),
        link=f"/business/{business.slug}",
    )


def notify_business_rejected(db: Session, business: Business, reason: Optional[str]) -> Optional[UUID]:
    if not business.owner_id:
        return None
    detail = f" Reason: {reason}" if reason else ""
    return create_notification(
        db,
        user_id=business.owner_id,
        notification_type="business",
        title="Business not approved",
        message=f"{business.name} was not approved.{detail}",
        entity_id=f"business:{business.id}:rejected",
        link="/my-businesses",
    )


def notify_claim_event(
    db: Session,
    claim: BusinessClaim,
    notification_type: str,
    title: str,
    message: str,
    event: Optional[str] = None,
    link: Optional[str] = "/claim-business",
) -> Optional[UUID]:
    """
    Notify a claimant about their claim and stamp ``last_notified_at``.

    ``event`` makes the notification one-shot (entity ``claim:<id>:<event>``);
    leave it out for events that may legitimately repeat, such as a resent code.
    """
    entity_id = f"claim:{claim.id}:{event}" if event else None
    notification_id = create_notification(
        db,
        user_id=claim.claimant_user_id,
        notification_type=notification_type,
        title=title,
        message=message,
        entity_id=entity_id,
        link=link,
    )

    if notification_id is not None:
        claim.last_notified_at = utcnow()
        db.commit()

    return notification_id
