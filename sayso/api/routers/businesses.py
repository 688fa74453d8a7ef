"""
Business Endpoints
GET   /api/businesses             - Search active listings
GET   /api/businesses/{id_or_slug} - Listing detail
GET   /api/businesses/{id_or_slug}/similar - Listings like this one
POST  /api/businesses             - Submit a new listing for approval
PATCH /api/businesses/{id}        - Owner/admin edits
"""

import logging
from typing import Optional
from uuid import UUID

from fastapi import APIRouter, Depends, Query, status
from fastapi.responses import JSONResponse
from sqlalchemy import desc, or_
from sqlalchemy.orm import Session

from ..dependencies import get_current_user, get_current_user_optional, get_db
from ..errors import PermissionDeniedError, ResourceNotFoundError
from ..schemas.businesses import (
    BusinessCreate,
    BusinessListResponse,
    BusinessResponse,
    BusinessUpdate,
    SimilarBusiness,
    SimilarBusinessesResponse,
)
from ..services.businesses import find_business, is_public, similar_businesses, unique_slug
from ..services.claims import is_business_owner
from ...db.models import Business, Profile

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/businesses", tags=["Businesses"])

SORT_ORDERS = {
    "rating": (desc(Business.average_rating), desc(Business.review_count)),
    "reviews": (desc(Business.review_count), desc(Business.average_rating)),
    "newest": (desc(Business.created_at),),
    "name": (Business.name,),
}


@router.get("", response_model=BusinessListResponse)
async def search_businesses(
    q: Optional[str] = Query(None, max_length=200, description="Text search on name, category and location"),
    category: Optional[str] = Query(None, description="Category or category slug"),
    sort: str = Query("rating", pattern="^(rating|reviews|newest|name)$"),
    limit: int = Query(20, ge=1, le=100),
    offset: int = Query(0, ge=0),
    db: Session = Depends(get_db),
) -> BusinessListResponse:
    """Search publicly visible businesses."""
    query = db.query(Business).filter(
        Business.status == "active", Business.is_hidden == False  # noqa: E712
    )

    if q and q.strip():
        pattern = f"%{q.strip()}%"
        query = query.filter(
            or_(
                Business.name.ilike(pattern),
                Business.category.ilike(pattern),
                Business.location.ilike(pattern),
                Business.description.ilike(pattern),
            )
        )

    if category:
        query = query.filter(
            or_(Business.primary_category_slug == category, Business.category.ilike(category))
        )

    total = query.count()
    rows = query.order_by(*SORT_ORDERS[sort], Business.id).offset(offset).limit(limit).all()

    return BusinessListResponse(
        businesses=[BusinessResponse.model_validate(b) for b in rows],
        count=len(rows),
        total=total,
        limit=limit,
        offset=offset,
    )


@router.get("/{identifier}", response_model=BusinessResponse)
async def get_business(
    identifier: str,
    current_user: Optional[Profile] = Depends(get_current_user_optional),
    db: Session = Depends(get_db),
) -> BusinessResponse:
    """
    Get one business by id or slug.

    Listings that are not yet public are only visible to their owners and admins.
    """
    business = find_business(db, identifier)
    if business is None:
        raise ResourceNotFoundError("Business", identifier, message="Business not found")

    if not is_public(business):
        allowed = current_user is not None and (
            current_user.is_admin or is_business_owner(db, business, current_user.user_id)
        )
        if not allowed:
            raise ResourceNotFoundError("Business", identifier, message="Business not found")

    return BusinessResponse.model_validate(business)


@router.get("/{identifier}/similar", response_model=SimilarBusinessesResponse)
async def get_similar_businesses(
    identifier: str,
    limit: int = Query(12),
    radius_km: float = Query(50.0),
    db: Session = Depends(get_db),
):
    """Public listings in the same category, scored on distance and rating."""
    business = find_business(db, identifier)
    if business is None or not is_public(business):
        raise ResourceNotFoundError("Business", identifier, message="Business not found")

    limit = min(max(1, limit), 50)
    radius_km = min(max(1.0, radius_km), 500.0)
    matches = similar_businesses(db, business, limit=limit, radius_km=radius_km)

    body = SimilarBusinessesResponse(businesses=[
        SimilarBusiness(
            **BusinessResponse.model_validate(match).model_dump(),
            similarity_score=score,
        )
        for match, score in matches
    ])
    return JSONResponse(
        content=body.model_dump(mode="json"),
        headers={"Cache-Control": "public, s-maxage=3600, stale-while-revalidate=86400"},
    )


@router.post("", response_model=BusinessResponse, status_code=status.HTTP_201_CREATED)
async def create_business(
    request: BusinessCreate,
    current_user: Profile = Depends(get_current_user),
    db: Session = Depends(get_db),
) -> BusinessResponse:
    """Submit a listing. It stays hidden as ``pending_approval`` until an admin approves it."""
    business = Business(
        slug=unique_slug(db, request.name),
        status="pending_approval",
        is_hidden=True,
        verified=False,
        owner_id=current_user.user_id,
        **request.model_dump(),
    )
    db.add(business)
    db.commit()
    db.refresh(business)

    logger.info(f"Business submitted for approval: {business.id} ({business.slug}) by {current_user.user_id}")
    return BusinessResponse.model_validate(business)


@router.patch("/{business_id}", response_model=BusinessResponse)
async def update_business(
    business_id: UUID,
    request: BusinessUpdate,
    current_user: Profile = Depends(get_current_user),
    db: Session = Depends(get_db),
) -> BusinessResponse:
    business = db.query(Business).filter(Business.id == business_id).first()
    if business is None:
        raise ResourceNotFoundError("Business", business_id, message="Business not found")

    if not current_user.is_admin and not is_business_owner(db, business, current_user.user_id):
        raise PermissionDeniedError("You do not have permission to edit this business")

    for key, value in request.model_dump(exclude_unset=True).items():
        setattr(business, key, value)
    db.commit()
    db.refresh(business)
    return BusinessResponse.model_validate(business)
