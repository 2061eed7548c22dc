from typing import Optional, Union
from fastapi import APIRouter, Depends, Query, Response, status
from sqlalchemy.orm import Session
import logging

from core.exceptions import InvalidArgumentError, AuthorizationError
from database.connection import get_db
from models.user import UserRole
from schemas.rating import (
    RatingSubmit, RatingSubmission, RatingResponse, RatingOutcome, RatingLookup,
    StoreView, UserRatingsView
)
from schemas.user import Principal
from services.auth import get_current_principal, require_roles, require_rater
from services.rating import RatingService, RatingQueryService
from services.store import get_store_by_id

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/ratings", tags=["ratings"])

@router.post("", response_model=RatingSubmission)
def submit_rating(
    rating_data: RatingSubmit,
    response: Response,
    principal: Principal = Depends(require_rater),
    db: Session = Depends(get_db)
):
    """Create or overwrite the caller's rating; 201 when created, 200 when updated."""
    submission = RatingService.submit_rating(
        db, principal.id, rating_data.store_id, rating_data.value, rating_data.comment
    )
    response.status_code = status.HTTP_201_CREATED if submission.outcome == RatingOutcome.CREATED else status.HTTP_200_OK
    return submission

@router.get("", response_model=Union[StoreView, UserRatingsView])
def get_ratings(
    store_id: Optional[str] = Query(None, alias="storeId"),
    user_id: Optional[str] = Query(None, alias="userId"),
    principal: Principal = Depends(get_current_principal),
    db: Session = Depends(get_db)
):
    """Ratings of one store, or ratings given by one user."""
    if bool(store_id) == bool(user_id):
        raise InvalidArgumentError("Provide exactly one of storeId or userId")

    if store_id:
        include_emails = principal.is_admin or get_store_by_id(db, store_id).owner_id == principal.id
        return RatingQueryService.get_store_view(db, store_id, include_rater_email=include_emails)

    if user_id != principal.id and not principal.is_admin:
        raise AuthorizationError("You can only view your own ratings")
    return RatingQueryService.get_user_view(db, user_id)

@router.get("/mine", response_model=UserRatingsView)
def get_my_ratings(principal: Principal = Depends(get_current_principal), db: Session = Depends(get_db)):
    return RatingQueryService.get_user_view(db, principal.id)

@router.get("/lookup", response_model=RatingLookup)
def lookup_rating(
    store_id: str = Query(..., alias="storeId"),
    principal: Principal = Depends(get_current_principal),
    db: Session = Depends(get_db)
):
    """The caller's rating for a store, or null when they have not rated it."""
    return RatingLookup(
        rating=RatingQueryService.get_rating_for_user_and_store(db, principal.id, store_id)
    )

# Moderation
@router.delete("/{rating_id}", response_model=RatingResponse)
def delete_rating(
    rating_id: str,
    admin: Principal = Depends(require_roles(UserRole.ADMIN)),
    db: Session = Depends(get_db)
):
    logger.info(f"Admin {admin.id} deleting rating {rating_id}")
    return RatingService.delete_rating(db, rating_id)
