"""
SQLAlchemy ORM Models
Database table definitions using SQLAlchemy ORM.

Column types are chosen so the same models run on Postgres in production and
SQLite in tests (``Uuid`` and ``JSON`` with a JSONB variant).
"""

from __future__ import annotations

import uuid
from datetime import datetime, timezone

from sqlalchemy import (
    Column, String, Integer, Float, Boolean, DateTime, ForeignKey, Text, Index,
    UniqueConstraint, JSON, Uuid, text,
)
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import declarative_base, relationship

Base = declarative_base()

JSONType = JSON().with_variant(JSONB(), "postgresql")


def utcnow() -> datetime:
    """Naive UTC timestamp, the form every TIMESTAMP column stores."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


class Profile(Base):
    """
    User profile.

    One row per auth-provider user, created on first authenticated request.
    """
    __tablename__ = 'profiles'

    user_id = Column(Uuid, primary_key=True)
    email = Column(String(255), index=True, nullable=True)
    username = Column(String(50), unique=True, nullable=True)
    display_name = Column(String(100), nullable=True)
    avatar_url = Column(Text, nullable=True)

    role = Column(String(20), nullable=False, default='user',
                  comment='user or admin')
    account_role = Column(String(30), nullable=False, default='user',
                          comment='user, business_owner or admin')

    onboarding_step = Column(String(30), nullable=False, default='interests',
                             comment='interests, subcategories, deal-breakers or complete')
    onboarding_complete = Column(Boolean, nullable=False, default=False)
    onboarding_completed_at = Column(DateTime, nullable=True)

    reviews_count = Column(Integer, nullable=False, default=0)
    privacy_settings = Column(JSONType, nullable=True,
                              comment='showActivity, showStats and showSavedBusinesses flags')

    created_at = Column(DateTime, nullable=False, default=utcnow)
    updated_at = Column(DateTime, nullable=False, default=utcnow, onupdate=utcnow)

    interests = relationship("UserInterest", cascade="all, delete-orphan")
    subcategories = relationship("UserSubcategory", cascade="all, delete-orphan")
    dealbreakers = relationship("UserDealbreaker", cascade="all, delete-orphan")

    @property
    def is_admin(self) -> bool:
        return self.role == 'admin' or self.account_role == 'admin'

    @property
    def name(self) -> str:
        return self.display_name or self.username or (self.email or '').split('@')[0] or 'User'

    def __repr__(self):
        return f"<Profile(user_id={self.user_id}, role={self.role})>"


class UserInterest(Base):
    __tablename__ = 'user_interests'

    user_id = Column(Uuid, ForeignKey('profiles.user_id', ondelete='CASCADE'), primary_key=True)
    interest_id = Column(String(50), primary_key=True)
    created_at = Column(DateTime, nullable=False, default=utcnow)


class UserSubcategory(Base):
    __tablename__ = 'user_subcategories'

    user_id = Column(Uuid, ForeignKey('profiles.user_id', ondelete='CASCADE'), primary_key=True)
    subcategory_id = Column(String(50), primary_key=True)
    interest_id = Column(String(50), nullable=False)
    created_at = Column(DateTime, nullable=False, default=utcnow)


class UserDealbreaker(Base):
    __tablename__ = 'user_dealbreakers'

    user_id = Column(Uuid, ForeignKey('profiles.user_id', ondelete='CASCADE'), primary_key=True)
    dealbreaker_id = Column(String(50), primary_key=True)
    created_at = Column(DateTime, nullable=False, default=utcnow)


class Business(Base):
    """
    Business listing.

    User-submitted listings start as ``pending_approval`` and only become
    publicly visible once an admin approves them.
    """
    __tablename__ = 'businesses'

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    name = Column(String(255), nullable=False)
    slug = Column(String(255), unique=True, index=True, nullable=False)
    description = Column(Text, nullable=True)
    category = Column(String(100), nullable=True)
    primary_category_slug = Column(String(100), nullable=True, index=True)
    location = Column(String(255), nullable=True, comment='Suburb / city')
    address = Column(String(500), nullable=True)
    phone = Column(String(50), nullable=True)
    email = Column(String(255), nullable=True)
    website = Column(String(500), nullable=True)
    image_url = Column(Text, nullable=True)
    lat = Column(Float, nullable=True)
    lng = Column(Float, nullable=True)

    status = Column(String(30), nullable=False, default='active', index=True,
                    comment='active, pending_approval or rejected')
    is_hidden = Column(Boolean, nullable=False, default=False)
    verified = Column(Boolean, nullable=False, default=False)
    owner_id = Column(Uuid, ForeignKey('profiles.user_id', ondelete='SET NULL'), nullable=True)

    review_count = Column(Integer, nullable=False, default=0)
    average_rating = Column(Float, nullable=False, default=0.0)

    approved_at = Column(DateTime, nullable=True)
    approved_by = Column(Uuid, nullable=True)
    rejection_reason = Column(Text, nullable=True)

    created_at = Column(DateTime, nullable=False, default=utcnow)
    updated_at = Column(DateTime, nullable=False, default=utcnow, onupdate=utcnow)

    owners = relationship("BusinessOwner", back_populates="business", cascade="all, delete-orphan")
    reviews = relationship("Review", back_populates="business", cascade="all, delete-orphan")

    def __repr__(self):
        return f"<Business(id={self.id}, slug={self.slug}, status={self.status})>"


class BusinessOwner(Base):
    __tablename__ = 'business_owners'

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    business_id = Column(Uuid, ForeignKey('businesses.id', ondelete='CASCADE'), nullable=False)
    user_id = Column(Uuid, ForeignKey('profiles.user_id', ondelete='CASCADE'), nullable=False)
    role = Column(String(20), nullable=False, default='owner')
    verified_at = Column(DateTime, nullable=True)
    created_at = Column(DateTime, nullable=False, default=utcnow)

    business = relationship("Business", back_populates="owners")

    __table_args__ = (
        UniqueConstraint('business_id', 'user_id', name='uq_business_owners_business_user'),
    )


class Review(Base):
    __tablename__ = 'reviews'

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    business_id = Column(Uuid, ForeignKey('businesses.id', ondelete='CASCADE'), nullable=False, index=True)
    user_id = Column(Uuid, ForeignKey('profiles.user_id', ondelete='CASCADE'), nullable=False, index=True)
    rating = Column(Integer, nullable=False)
    title = Column(String(100), nullable=True)
    content = Column(Text, nullable=False)
    tags = Column(JSONType, nullable=False, default=list)
    helpful_count = Column(Integer, nullable=False, default=0)
    is_hidden = Column(Boolean, nullable=False, default=False,
                       comment='Hidden by moderation or flag threshold')

    created_at = Column(DateTime, nullable=False, default=utcnow)
    updated_at = Column(DateTime, nullable=False, default=utcnow, onupdate=utcnow)

    business = relationship("Business", back_populates="reviews")
    author = relationship("Profile")
    replies = relationship("ReviewReply", back_populates="review", cascade="all, delete-orphan",
                           order_by="ReviewReply.created_at")
    flags = relationship("ReviewFlag", back_populates="review", cascade="all, delete-orphan")
    helpful_votes = relationship("ReviewHelpfulVote", cascade="all, delete-orphan")

    def __repr__(self):
        return f"<Review(id={self.id}, business_id={self.business_id}, rating={self.rating})>"


class ReviewReply(Base):
    __tablename__ = 'review_replies'

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    review_id = Column(Uuid, ForeignKey('reviews.id', ondelete='CASCADE'), nullable=False, index=True)
    user_id = Column(Uuid, ForeignKey('profiles.user_id', ondelete='CASCADE'), nullable=False)
    content = Column(Text, nullable=False)
    created_at = Column(DateTime, nullable=False, default=utcnow)
    updated_at = Column(DateTime, nullable=False, default=utcnow, onupdate=utcnow)

    review = relationship("Review", back_populates="replies")
    author = relationship("Profile")


class ReviewFlag(Base):
    __tablename__ = 'review_flags'

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    review_id = Column(Uuid, ForeignKey('reviews.id', ondelete='CASCADE'), nullable=False, index=True)
    flagged_by = Column(Uuid, ForeignKey('profiles.user_id', ondelete='CASCADE'), nullable=False)
    reason = Column(String(30), nullable=False)
    details = Column(Text, nullable=True)
    status = Column(String(20), nullable=False, default='pending',
                    comment='pending, dismissed, actioned or withdrawn')
    reviewed_at = Column(DateTime, nullable=True)
    reviewed_by = Column(Uuid, nullable=True)
    created_at = Column(DateTime, nullable=False, default=utcnow)

    review = relationship("Review", back_populates="flags")

    __table_args__ = (
        # Withdrawn flags are kept so they still count against the flag rate limit
        Index('uq_review_flags_review_user', 'review_id', 'flagged_by', unique=True,
              postgresql_where=text("status != 'withdrawn'"),
              sqlite_where=text("status != 'withdrawn'")),
        Index('idx_review_flags_user_created', 'flagged_by', 'created_at'),
    )


class ReviewHelpfulVote(Base):
    __tablename__ = 'review_helpful_votes'

    review_id = Column(Uuid, ForeignKey('reviews.id', ondelete='CASCADE'), primary_key=True)
    user_id = Column(Uuid, ForeignKey('profiles.user_id', ondelete='CASCADE'), primary_key=True)
    created_at = Column(DateTime, nullable=False, default=utcnow)


class SavedBusiness(Base):
    __tablename__ = 'saved_businesses'

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    user_id = Column(Uuid, ForeignKey('profiles.user_id', ondelete='CASCADE'), nullable=False, index=True)
    business_id = Column(Uuid, ForeignKey('businesses.id', ondelete='CASCADE'), nullable=False)
    created_at = Column(DateTime, nullable=False, default=utcnow)

    business = relationship("Business")

    __table_args__ = (
        UniqueConstraint('user_id', 'business_id', name='uq_saved_businesses_user_business'),
    )


class Notification(Base):
    """
    In-app notification.

    ``entity_id`` makes an event idempotent per recipient and type: the unique
    constraint on (user_id, type, entity_id) rejects a second row for the same
    event. Rows without an entity_id are never deduplicated.
    """
    __tablename__ = 'notifications'

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    user_id = Column(Uuid, ForeignKey('profiles.user_id', ondelete='CASCADE'), nullable=False, index=True)
    type = Column(String(40), nullable=False)
    title = Column(String(255), nullable=False)
    message = Column(Text, nullable=False)
    entity_id = Column(String(255), nullable=True)
    link = Column(String(500), nullable=True)
    image = Column(Text, nullable=True)
    image_alt = Column(String(255), nullable=True)
    read = Column(Boolean, nullable=False, default=False)
    created_at = Column(DateTime, nullable=False, default=utcnow, index=True)

    __table_args__ = (
        UniqueConstraint('user_id', 'type', 'entity_id', name='uq_notifications_user_type_entity'),
    )


class BusinessClaim(Base):
    """
    Ownership claim on a business listing.

    Status flow: draft -> pending -> under_review -> verified | rejected, with
    action_required when an admin asks for documents.
    """
    __tablename__ = 'business_claims'

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    business_id = Column(Uuid, ForeignKey('businesses.id', ondelete='CASCADE'), nullable=False, index=True)
    claimant_user_id = Column(Uuid, ForeignKey('profiles.user_id', ondelete='CASCADE'),
                              nullable=False, index=True)
    status = Column(String(30), nullable=False, default='draft')
    claimant_role = Column(String(20), nullable=False, default='owner')
    contact_email = Column(String(255), nullable=True)
    contact_phone = Column(String(50), nullable=True)
    note = Column(Text, nullable=True)

    method_attempted = Column(String(20), nullable=True, comment='email, phone, cipc or documents')
    verification_level = Column(String(20), nullable=True, comment='level_1 or level_2')
    verification_data = Column(JSONType, nullable=False, default=dict)

    submitted_at = Column(DateTime, nullable=True)
    reviewed_at = Column(DateTime, nullable=True)
    reviewed_by = Column(Uuid, nullable=True)
    rejection_reason = Column(Text, nullable=True)
    admin_notes = Column(Text, nullable=True)
    last_notified_at = Column(DateTime, nullable=True)

    created_at = Column(DateTime, nullable=False, default=utcnow)
    updated_at = Column(DateTime, nullable=False, default=utcnow, onupdate=utcnow)

    business = relationship("Business")
    claimant = relationship("Profile")
    otps = relationship("BusinessClaimOtp", back_populates="claim", cascade="all, delete-orphan")
    documents = relationship("BusinessClaimDocument", back_populates="claim", cascade="all, delete-orphan")

    def __repr__(self):
        return f"<BusinessClaim(id={self.id}, business_id={self.business_id}, status={self.status})>"


class BusinessClaimOtp(Base):
    __tablename__ = 'business_claim_otp'

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    claim_id = Column(Uuid, ForeignKey('business_claims.id', ondelete='CASCADE'), nullable=False, index=True)
    phone = Column(String(50), nullable=False)
    code_hash = Column(String(128), nullable=False, comment='sha256(pepper + code)')
    attempts = Column(Integer, nullable=False, default=0)
    expires_at = Column(DateTime, nullable=False)
    last_sent_at = Column(DateTime, nullable=False, default=utcnow)
    verified_at = Column(DateTime, nullable=True)
    invalidated_at = Column(DateTime, nullable=True)
    created_at = Column(DateTime, nullable=False, default=utcnow)

    claim = relationship("BusinessClaim", back_populates="otps")


class BusinessClaimDocument(Base):
    __tablename__ = 'business_claim_documents'

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    claim_id = Column(Uuid, ForeignKey('business_claims.id', ondelete='CASCADE'), nullable=False, index=True)
    doc_type = Column(String(40), nullable=False)
    storage_path = Column(String(500), nullable=False)
    mime_type = Column(String(100), nullable=True)
    size_bytes = Column(Integer, nullable=True)
    status = Column(String(20), nullable=False, default='uploaded')
    delete_after = Column(DateTime, nullable=False, index=True)
    uploaded_at = Column(DateTime, nullable=False, default=utcnow)

    claim = relationship("BusinessClaim", back_populates="documents")
