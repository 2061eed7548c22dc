from fastapi import APIRouter, Depends, Query, Response, status
from sqlalchemy.orm import Session
from typing import Optional
import logging

from database.connection import get_db
from models.user import UserRole
from schemas.rating import RatingValue, RatingSubmission, RatingResponse, RatingOutcome, StoreDetail
from schemas.store import StoreCreate, StoreUpdate, StoreResponse, StoreList
from schemas.user import Principal
from services.auth import get_current_principal, get_optional_principal, require_roles, require_rater
from services.rating import RatingService, RatingQueryService
from services import store as store_service

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/stores", tags=["stores"])

@router.get("", response_model=StoreList)
def list_stores(
    name: Optional[str] = Query(None),
    address: Optional[str] = Query(None),
    sort_by: str = Query("name", alias="sortBy"),
    order: str = Query("asc", pattern="^(asc|desc)$"),
    principal: Optional[Principal] = Depends(get_optional_principal),
    db: Session = Depends(get_db)
):
    """List stores; authenticated callers also see their own rating per store."""
    stores = store_service.list_stores(
        db, name=name, address=address, sort_by=sort_by, order=order, principal=principal
    )
    return StoreList(stores=stores, total=len(stores))

@router.get("/{store_id}", response_model=StoreDetail)
def get_store(
    store_id: str,
    principal: Principal = Depends(get_current_principal),
    db: Session = Depends(get_db)
):
    """Store view with aggregate, ratings and the caller's own rating."""
    include_emails = principal.is_admin
    if not include_emails:
        store = store_service.get_store_by_id(db, store_id)
        include_emails = store.owner_id == principal.id

    view = RatingQueryService.get_store_view(db, store_id, include_rater_email=include_emails)
    user_rating = RatingQueryService.get_rating_for_user_and_store(db, principal.id, store_id)
    return StoreDetail(**view.model_dump(), user_rating=user_rating)

@router.post("", response_model=StoreResponse, status_code=status.HTTP_201_CREATED)
def create_store(
    store_data: StoreCreate,
    principal: Principal = Depends(require_roles(UserRole.ADMIN, UserRole.STORE_OWNER)),
    db: Session = Depends(get_db)
):
    return store_service.create_store(db, store_data, principal)

@router.put("/{store_id}", response_model=StoreResponse)
def update_store(
    store_id: str,
    store_data: StoreUpdate,
    principal: Principal = Depends(require_roles(UserRole.ADMIN, UserRole.STORE_OWNER)),
    db: Session = Depends(get_db)
):
    return store_service.update_store(db, store_id, store_data, principal)

@router.delete("/{store_id}")
def delete_store(
    store_id: str,
    principal: Principal = Depends(require_roles(UserRole.ADMIN)),
    db: Session = Depends(get_db)
):
    store_service.delete_store(db, store_id)
    return {"message": "Store deleted successfully"}

@router.post("/{store_id}/rate", response_model=RatingSubmission)
def rate_store(
    store_id: str,
    rating_data: RatingValue,
    response: Response,
    principal: Principal = Depends(require_rater),
    db: Session = Depends(get_db)
):
    """Create or overwrite the caller's rating; 201 when created, 200 when updated."""
    submission = RatingService.submit_rating(
        db, principal.id, store_id, rating_data.value, rating_data.comment
    )
    response.status_code = status.HTTP_201_CREATED if submission.outcome == RatingOutcome.CREATED else status.HTTP_200_OK
    return submission

@router.delete("/{store_id}/rate", response_model=RatingResponse)
def retract_store_rating(
    store_id: str,
    principal: Principal = Depends(require_rater),
    db: Session = Depends(get_db)
):
    return RatingService.retract_rating(db, principal.id, store_id)
