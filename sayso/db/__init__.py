"""
Database ORM Models
SQLAlchemy ORM models for database tables.
"""

from .models import (
    Base,
    Business,
    BusinessClaim,
    BusinessClaimDocument,
    BusinessClaimOtp,
    BusinessOwner,
    Notification,
    Profile,
    Review,
    ReviewFlag,
    ReviewHelpfulVote,
    ReviewReply,
    SavedBusiness,
    UserDealbreaker,
    UserInterest,
    UserSubcategory,
    utcnow,
)

__all__ = [
    "Base",
    "Business",
    "BusinessClaim",
    "BusinessClaimDocument",
    "BusinessClaimOtp",
    "BusinessOwner",
    "Notification",
    "Profile",
    "Review",
    "ReviewFlag",
    "ReviewHelpfulVote",
    "ReviewReply",
    "SavedBusiness",
    "UserDealbreaker",
    "UserInterest",
    "UserSubcategory",
    "utcnow",
]
