"""
Review Endpoints
Reviews, replies, flags and helpful votes.
"""

import logging
from datetime import timedelta
from typing import Dict, List, Optional
from uuid import UUID

from fastapi import APIRouter, Depends, Query, Response, status
from sqlalchemy import desc, func
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from ..config import APISettings, get_settings
from ..dependencies import get_current_user, get_current_user_optional, get_db
from ..errors import (
    AuthenticationError,
    InvalidRequestError,
    PermissionDeniedError,
    RateLimitError,
    ResourceNotFoundError,
)
from ..schemas.reviews import (
    FlagRequest,
    ReplyEnvelope,
    ReplyListResponse,
    ReplyRequest,
    ReplyResponse,
    ReviewAuthor,
    ReviewCreate,
    ReviewEnvelope,
    ReviewListResponse,
    ReviewResponse,
    ReviewUpdate,
)
from ..services.businesses import find_business, is_public, parse_uuid
from ..services.notifications import notify_helpful_vote, notify_reply_recipients
from ..services.reviews import (
    ContentModerator,
    normalize_tags,
    sanitize_text,
    update_business_stats,
    validate_review_data,
)
from ...db.models import Profile, Review, ReviewFlag, ReviewHelpfulVote, ReviewReply, utcnow

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/reviews", tags=["Reviews"])

FLAG_REASONS = ("spam", "inappropriate", "harassment", "off_topic", "other")
MAX_REPLY_LENGTH = 2000


def _author(profile: Optional[Profile], user_id: UUID) -> ReviewAuthor:
    if profile is None:
        return ReviewAuthor(id=user_id, name="Anonymous")
    return ReviewAuthor(id=profile.user_id, name=profile.name, avatar_url=profile.avatar_url)


def _review_response(review: Review, reply_count: int = 0) -> ReviewResponse:
    return ReviewResponse(
        id=review.id,
        business_id=review.business_id,
        user_id=review.user_id,
        rating=review.rating,
        title=review.title,
        content=review.content,
        tags=review.tags or [],
        helpful_count=review.helpful_count,
        is_hidden=review.is_hidden,
        reply_count=reply_count,
        created_at=review.created_at,
        updated_at=review.updated_at,
        user=_author(review.author, review.user_id),
    )


def _reply_response(reply: ReviewReply) -> ReplyResponse:
    return ReplyResponse(
        id=reply.id,
        review_id=reply.review_id,
        user_id=reply.user_id,
        content=reply.content,
        created_at=reply.created_at,
        updated_at=reply.updated_at,
        user=_author(reply.author, reply.user_id),
    )


def _get_review(db: Session, review_id: UUID) -> Review:
    review = db.query(Review).filter(Review.id == review_id).first()
    if review is None:
        raise ResourceNotFoundError("Review", review_id, message="Review not found")
    return review


def _clean_review_fields(
    rating: Optional[int],
    content: Optional[str],
    title: Optional[str],
    tags: Optional[List[str]],
) -> Dict:
    """Validate, sanitize and moderate review text. Raises InvalidRequestError."""
    validation = validate_review_data(rating=rating, content=content, title=title, tags=tags)
    if not validation.is_valid:
        raise InvalidRequestError("Validation failed", details={"errors": validation.errors})

    clean_content = sanitize_text(content)
    clean_title = sanitize_text(title) or None
    if len(clean_content) < 10:
        raise InvalidRequestError(
            "Validation failed",
            details={"errors": ["Review content must be at least 10 characters"]},
        )

    is_clean, reasons = ContentModerator.moderate(f"{clean_title or ''} {clean_content}")
    if not is_clean:
        raise InvalidRequestError("Content moderation failed", details={"reasons": reasons})

    return {
        "rating": rating,
        "content": clean_content,
        "title": clean_title,
        "tags": normalize_tags(tags),
    }


# Reviews

@router.get("", response_model=ReviewListResponse)
async def list_reviews(
    business_id: str = Query(..., description="Business UUID or slug"),
    limit: int = Query(20, ge=1, le=100),
    offset: int = Query(0, ge=0),
    db: Session = Depends(get_db),
) -> ReviewListResponse:
    """Visible reviews for a business, newest first."""
    business = find_business(db, business_id)
    if business is None:
        raise ResourceNotFoundError("Business", business_id, message="Business not found")

    query = db.query(Review).filter(
        Review.business_id == business.id, Review.is_hidden == False  # noqa: E712
    )
    total = query.count()
    reviews = query.order_by(desc(Review.created_at)).offset(offset).limit(limit).all()

    reply_counts = {}
    if reviews:
        reply_counts = dict(
            db.query(ReviewReply.review_id, func.count(ReviewReply.id))
            .filter(ReviewReply.review_id.in_([r.id for r in reviews]))
            .group_by(ReviewReply.review_id)
            .all()
        )

    return ReviewListResponse(
        reviews=[_review_response(r, reply_counts.get(r.id, 0)) for r in reviews],
        count=len(reviews),
        total=total,
    )


@router.post("", response_model=ReviewEnvelope, status_code=status.HTTP_201_CREATED)
async def create_review(
    request: ReviewCreate,
    current_user: Optional[Profile] = Depends(get_current_user_optional),
    db: Session = Depends(get_db),
) -> ReviewEnvelope:
    """Write a review for an active business."""
    if current_user is None:
        raise AuthenticationError("You must be logged in to write a review")

    business = find_business(db, request.business_id)
    if business is None or not is_public(business):
        raise ResourceNotFoundError("Business", request.business_id, message="Business not found")

    fields = _clean_review_fields(request.rating, request.content, request.title, request.tags)

    review = Review(business_id=business.id, user_id=current_user.user_id, **fields)
    db.add(review)
    current_user.reviews_count = (current_user.reviews_count or 0) + 1
    update_business_stats(db, business.id)
    db.commit()
    db.refresh(review)

    logger.info(f"Review created: review={review.id} business={business.id} rating={review.rating}")
    return ReviewEnvelope(review=_review_response(review), message="Review created successfully")


@router.get("/{review_id}", response_model=ReviewEnvelope)
async def get_review(
    review_id: UUID,
    current_user: Optional[Profile] = Depends(get_current_user_optional),
    db: Session = Depends(get_db),
) -> ReviewEnvelope:
    review = _get_review(db, review_id)
    if review.is_hidden:
        can_see = current_user is not None and (
            current_user.user_id == review.user_id or current_user.is_admin
        )
        if not can_see:
            raise ResourceNotFoundError("Review", review_id, message="Review not found")

    reply_count = db.query(ReviewReply).filter(ReviewReply.review_id == review.id).count()
    return ReviewEnvelope(review=_review_response(review, reply_count))


@router.put("/{review_id}", response_model=ReviewEnvelope)
async def update_review(
    review_id: UUID,
    request: ReviewUpdate,
    current_user: Profile = Depends(get_current_user),
    db: Session = Depends(get_db),
) -> ReviewEnvelope:
    """Edit your own review. Omitted fields keep their current values."""
    review = _get_review(db, review_id)
    if review.user_id != current_user.user_id:
        raise PermissionDeniedError("You can only edit your own reviews")

    fields = _clean_review_fields(
        request.rating if request.rating is not None else review.rating,
        request.content if request.content is not None else review.content,
        request.title if request.title is not None else review.title,
        request.tags if request.tags is not None else review.tags,
    )
    for key, value in fields.items():
        setattr(review, key, value)
    review.updated_at = utcnow()

    update_business_stats(db, review.business_id)
    db.commit()
    db.refresh(review)
    return ReviewEnvelope(review=_review_response(review), message="Review updated successfully")


@router.delete("/{review_id}")
async def delete_review(
    review_id: UUID,
    current_user: Profile = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    review = _get_review(db, review_id)
    if review.user_id != current_user.user_id and not current_user.is_admin:
        raise PermissionDeniedError("You can only delete your own reviews")

    business_id = review.business_id
    author = review.author
    db.delete(review)
    if author is not None and author.reviews_count:
        author.reviews_count -= 1
    update_business_stats(db, business_id)
    db.commit()

    logger.info(f"Review deleted: review={review_id} by={current_user.user_id}")
    return {"success": True, "message": "Review deleted successfully"}


# Flags

@router.post("/{review_id}/flag")
async def flag_review(
    review_id: str,
    request: FlagRequest,
    response: Response,
    current_user: Optional[Profile] = Depends(get_current_user_optional),
    db: Session = Depends(get_db),
    settings: APISettings = Depends(get_settings),
):
    """
    Flag a review for moderation.

    Reviews that collect enough pending flags are hidden until an admin decides.
    """
    review_uuid = parse_uuid(review_id)
    if review_uuid is None:
        # Client-side placeholder id for a review that has not been saved yet
        return {"success": False, "flagged": False, "optimistic": True,
                "message": "This review is still being saved. Try again in a moment."}

    if current_user is None:
        raise AuthenticationError("You must be logged in to flag a review")

    reason = (request.reason or "").strip()
    if reason not in FLAG_REASONS:
        raise InvalidRequestError(
            f"Invalid reason. Must be one of: {', '.join(FLAG_REASONS)}"
        )
    details = (request.details or "").strip() or None
    if reason == "other" and not details:
        raise InvalidRequestError("Please provide details when selecting 'other' as the reason")

    review = _get_review(db, review_uuid)
    if review.user_id == current_user.user_id:
        raise InvalidRequestError("You cannot flag your own review")

    existing = (
        db.query(ReviewFlag)
        .filter(ReviewFlag.review_id == review.id, ReviewFlag.flagged_by == current_user.user_id,
                ReviewFlag.status != "withdrawn")
        .first()
    )
    if existing is not None:
        raise InvalidRequestError("You have already flagged this review")

    now = utcnow()
    window_start = now - timedelta(minutes=settings.review_flag_rate_window_minutes)
    recent = (
        db.query(ReviewFlag)
        .filter(ReviewFlag.flagged_by == current_user.user_id, ReviewFlag.created_at >= window_start)
        .count()
    )
    limit = settings.review_flag_rate_limit
    reset_at = int((now + timedelta(minutes=settings.review_flag_rate_window_minutes)).timestamp())
    if recent >= limit:
        raise RateLimitError(
            "Too many flag requests. Please try again later.",
            headers={
                "X-RateLimit-Limit": str(limit),
                "X-RateLimit-Remaining": "0",
                "X-RateLimit-Reset": str(reset_at),
            },
        )

    flag = ReviewFlag(
        review_id=review.id,
        flagged_by=current_user.user_id,
        reason=reason,
        details=details,
        status="pending",
        created_at=now,
    )
    db.add(flag)
    try:
        db.commit()
    except IntegrityError:
        db.rollback()
        raise InvalidRequestError("You have already flagged this review")

    pending = (
        db.query(ReviewFlag)
        .filter(ReviewFlag.review_id == review.id, ReviewFlag.status == "pending")
        .count()
    )
    auto_hidden = False
    if pending >= settings.review_auto_hide_threshold and not review.is_hidden:
        review.is_hidden = True
        update_business_stats(db, review.business_id)
        db.commit()
        auto_hidden = True
        logger.warning(f"Review {review.id} hidden after {pending} pending flags")

    response.headers["X-RateLimit-Limit"] = str(limit)
    response.headers["X-RateLimit-Remaining"] = str(max(limit - recent - 1, 0))
    response.headers["X-RateLimit-Reset"] = str(reset_at)

    return {
        "success": True,
        "flagged": True,
        "flag_id": str(flag.id),
        "autoHidden": auto_hidden,
        "message": "Review flagged successfully. Our moderation team will review it.",
    }


@router.get("/{review_id}/flag")
async def get_flag_status(
    review_id: str,
    current_user: Optional[Profile] = Depends(get_current_user_optional),
    db: Session = Depends(get_db),
):
    """Whether the caller has flagged this review."""
    review_uuid = parse_uuid(review_id)
    if review_uuid is None:
        return {"flagged": False, "optimistic": True}
    if current_user is None:
        return {"flagged": False}

    flag = (
        db.query(ReviewFlag)
        .filter(ReviewFlag.review_id == review_uuid, ReviewFlag.flagged_by == current_user.user_id,
                ReviewFlag.status != "withdrawn")
        .first()
    )
    if flag is None:
        return {"flagged": False}

    return {
        "flagged": True,
        "flag": {
            "id": str(flag.id),
            "reason": flag.reason,
            "status": flag.status,
            "created_at": flag.created_at.isoformat(),
        },
    }


@router.delete("/{review_id}/flag")
async def remove_flag(
    review_id: str,
    current_user: Optional[Profile] = Depends(get_current_user_optional),
    db: Session = Depends(get_db),
):
    """
    Withdraw the caller's flag while it is still pending.

    The row is kept as ``withdrawn`` so it keeps counting against the flag rate limit.
    """
    review_uuid = parse_uuid(review_id)
    if review_uuid is None:
        return {"success": True, "flagged": False, "optimistic": True}

    if current_user is None:
        raise AuthenticationError("You must be logged in to remove a flag")

    flag = (
        db.query(ReviewFlag)
        .filter(ReviewFlag.review_id == review_uuid, ReviewFlag.flagged_by == current_user.user_id,
                ReviewFlag.status != "withdrawn")
        .first()
    )
    if flag is None:
        raise ResourceNotFoundError("Flag", review_uuid, message="Flag not found")
    if flag.status != "pending":
        raise InvalidRequestError("Cannot remove a flag that has already been reviewed")

    flag.status = "withdrawn"
    db.commit()
    return {"success": True, "flagged": False, "message": "Flag removed"}


# Helpful votes

def _helpful_count(db: Session, review_id: UUID) -> int:
    return db.query(ReviewHelpfulVote).filter(ReviewHelpfulVote.review_id == review_id).count()


@router.post("/{review_id}/helpful")
async def mark_helpful(
    review_id: UUID,
    current_user: Optional[Profile] = Depends(get_current_user_optional),
    db: Session = Depends(get_db),
):
    if current_user is None:
        raise AuthenticationError("You must be logged in to mark reviews as helpful")

    review = _get_review(db, review_id)
    existing = (
        db.query(ReviewHelpfulVote)
        .filter(ReviewHelpfulVote.review_id == review.id,
                ReviewHelpfulVote.user_id == current_user.user_id)
        .first()
    )
    if existing is not None:
        return {"success": True, "helpful": True, "alreadyVoted": True,
                "helpful_count": review.helpful_count}

    db.add(ReviewHelpfulVote(review_id=review.id, user_id=current_user.user_id))
    try:
        db.flush()
    except IntegrityError:
        db.rollback()
        return {"success": True, "helpful": True, "alreadyVoted": True,
                "helpful_count": _helpful_count(db, review_id)}

    review.helpful_count = _helpful_count(db, review.id)
    db.commit()

    notify_helpful_vote(db, review, current_user)
    return {"success": True, "helpful": True, "helpful_count": review.helpful_count}


@router.delete("/{review_id}/helpful")
async def unmark_helpful(
    review_id: UUID,
    current_user: Optional[Profile] = Depends(get_current_user_optional),
    db: Session = Depends(get_db),
):
    if current_user is None:
        raise AuthenticationError("You must be logged in to update helpful votes")

    review = _get_review(db, review_id)
    (
        db.query(ReviewHelpfulVote)
        .filter(ReviewHelpfulVote.review_id == review.id,
                ReviewHelpfulVote.user_id == current_user.user_id)
        .delete(synchronize_session=False)
    )
    review.helpful_count = _helpful_count(db, review.id)
    db.commit()
    return {"success": True, "helpful": False, "helpful_count": review.helpful_count}


@router.get("/{review_id}/helpful")
async def helpful_status(
    review_id: UUID,
    current_user: Optional[Profile] = Depends(get_current_user_optional),
    db: Session = Depends(get_db),
):
    review = _get_review(db, review_id)
    helpful = False
    if current_user is not None:
        helpful = (
            db.query(ReviewHelpfulVote)
            .filter(ReviewHelpfulVote.review_id == review.id,
                    ReviewHelpfulVote.user_id == current_user.user_id)
            .first()
            is not None
        )
    return {"helpful": helpful, "helpful_count": review.helpful_count}


# Replies

@router.get("/{review_id}/replies", response_model=ReplyListResponse)
async def list_replies(review_id: UUID, db: Session = Depends(get_db)) -> ReplyListResponse:
    replies = (
        db.query(ReviewReply)
        .filter(ReviewReply.review_id == review_id)
        .order_by(ReviewReply.created_at)
        .all()
    )
    return ReplyListResponse(replies=[_reply_response(r) for r in replies])


def _reply_content(request: ReplyRequest) -> str:
    content = sanitize_text(request.content)
    if not content:
        raise InvalidRequestError("Reply content is required")
    if len(content) > MAX_REPLY_LENGTH:
        raise InvalidRequestError(f"Reply must be at most {MAX_REPLY_LENGTH} characters")
    return content


@router.post("/{review_id}/replies", response_model=ReplyEnvelope, status_code=status.HTTP_201_CREATED)
async def create_reply(
    review_id: UUID,
    request: ReplyRequest,
    current_user: Optional[Profile] = Depends(get_current_user_optional),
    db: Session = Depends(get_db),
) -> ReplyEnvelope:
    """Reply to a review and notify the review author and business owner."""
    if current_user is None:
        raise AuthenticationError("You must be logged in to reply")

    content = _reply_content(request)
    review = _get_review(db, review_id)

    reply = ReviewReply(review_id=review.id, user_id=current_user.user_id, content=content)
    db.add(reply)
    db.commit()
    db.refresh(reply)

    notify_reply_recipients(
        db,
        review_id=review.id,
        reply_id=reply.id,
        replier_id=current_user.user_id,
        replier_name=current_user.name,
    )

    return ReplyEnvelope(reply=_reply_response(reply))


def _own_reply(db: Session, review_id: UUID, reply_id: UUID, user: Profile, action: str) -> ReviewReply:
    reply = (
        db.query(ReviewReply)
        .filter(ReviewReply.id == reply_id, ReviewReply.review_id == review_id)
        .first()
    )
    if reply is None:
        raise ResourceNotFoundError("Reply", reply_id, message="Reply not found")
    if reply.user_id != user.user_id:
        raise PermissionDeniedError(f"You can only {action} your own replies")
    return reply


@router.put("/{review_id}/replies/{reply_id}", response_model=ReplyEnvelope)
async def update_reply(
    review_id: UUID,
    reply_id: UUID,
    request: ReplyRequest,
    current_user: Optional[Profile] = Depends(get_current_user_optional),
    db: Session = Depends(get_db),
) -> ReplyEnvelope:
    if current_user is None:
        raise AuthenticationError("You must be logged in to edit replies")

    content = _reply_content(request)
    reply = _own_reply(db, review_id, reply_id, current_user, "edit")
    reply.content = content
    reply.updated_at = utcnow()
    db.commit()
    db.refresh(reply)
    return ReplyEnvelope(reply=_reply_response(reply))


@router.delete("/{review_id}/replies/{reply_id}")
async def delete_reply(
    review_id: UUID,
    reply_id: UUID,
    current_user: Optional[Profile] = Depends(get_current_user_optional),
    db: Session = Depends(get_db),
):
    if current_user is None:
        raise AuthenticationError("You must be logged in to delete replies")

    reply = _own_reply(db, review_id, reply_id, current_user, "delete")
    db.delete(reply)
    db.commit()
    return {"success": True}
