from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session
import logging

from database.connection import get_db
from models.user import UserRole
from schemas.dashboard import AdminDashboard, StoreOwnerDashboard
from schemas.user import Principal
from services.auth import require_roles
from services.rating import RatingQueryService
from services.store import count_stores, get_stores_by_owner_id
from services.user import count_users, count_ratings

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/dashboard", tags=["dashboard"])

@router.get("/admin", response_model=AdminDashboard)
def get_admin_dashboard(
    admin: Principal = Depends(require_roles(UserRole.ADMIN)),
    db: Session = Depends(get_db)
):
    """Platform totals"""
    return AdminDashboard(
        total_users=count_users(db),
        total_stores=count_stores(db),
        total_ratings=count_ratings(db)
    )

@router.get("/store-owner", response_model=StoreOwnerDashboard)
def get_store_owner_dashboard(
    owner: Principal = Depends(require_roles(UserRole.STORE_OWNER)),
    db: Session = Depends(get_db)
):
    """Each of the caller's stores with its aggregate and raters"""
    stores = get_stores_by_owner_id(db, owner.id)
    return StoreOwnerDashboard(
        stores=[
            RatingQueryService.get_store_view(db, store.id, include_rater_email=True)
            for store in stores
        ]
    )
