"""
Saved business routes.
"""

import logging
from uuid import UUID

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy import desc
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from ..dependencies import get_current_user, get_db
from ..errors import ResourceNotFoundError
from ..schemas.businesses import (
    BusinessResponse,
    SaveBusinessRequest,
    SavedBusinessesResponse,
    SavedBusinessItem,
)
from ..services.businesses import is_public
from ...db.models import Business, Profile, SavedBusiness

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/saved", tags=["Saved"])


@router.get("/businesses", response_model=SavedBusinessesResponse)
async def list_saved_businesses(
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=20),
    current_user: Profile = Depends(get_current_user),
    db: Session = Depends(get_db),
) -> SavedBusinessesResponse:
    query = (
        db.query(SavedBusiness, Business)
        .join(Business, SavedBusiness.business_id == Business.id)
        .filter(SavedBusiness.user_id == current_user.user_id)
    )
    total = query.count()
    rows = (
        query.order_by(desc(SavedBusiness.created_at))
        .offset((page - 1) * limit)
        .limit(limit)
        .all()
    )

    return SavedBusinessesResponse(
        businesses=[
            SavedBusinessItem(saved_at=saved.created_at, business=BusinessResponse.model_validate(business))
            for saved, business in rows
        ],
        page=page,
        limit=limit,
        total=total,
        has_more=page * limit < total,
    )


@router.post("/businesses", status_code=status.HTTP_201_CREATED)
async def save_business(
    request: SaveBusinessRequest,
    current_user: Profile = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    """Save a business. Saving twice is a no-op."""
    business = db.query(Business).filter(Business.id == request.business_id).first()
    if business is None or not is_public(business):
        raise ResourceNotFoundError("Business", request.business_id, message="Business not found")

    existing = (
        db.query(SavedBusiness)
        .filter(SavedBusiness.user_id == current_user.user_id,
                SavedBusiness.business_id == business.id)
        .first()
    )
    if existing is not None:
        return {"success": True, "saved": True, "alreadySaved": True}

    db.add(SavedBusiness(user_id=current_user.user_id, business_id=business.id))
    try:
        db.commit()
    except IntegrityError:
        db.rollback()
        return {"success": True, "saved": True, "alreadySaved": True}

    return {"success": True, "saved": True}


@router.delete("/businesses/{business_id}")
async def unsave_business(
    business_id: UUID,
    current_user: Profile = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    deleted = (
        db.query(SavedBusiness)
        .filter(SavedBusiness.user_id == current_user.user_id,
                SavedBusiness.business_id == business_id)
        .delete(synchronize_session=False)
    )
    db.commit()

    if deleted == 0:
        raise ResourceNotFoundError("Saved business", business_id, message="Saved business not found")

    return {"success": True, "saved": False}
