from sqlalchemy.orm import Session
from sqlalchemy.exc import IntegrityError
from sqlalchemy import asc, desc, func
from typing import List, Optional
from datetime import datetime
import logging

from core.exceptions import (
    ResourceNotFoundError, ConflictError, InvalidArgumentError, AuthorizationError
)
from database.connection import transaction
from models.store import Store
from models.user import User, UserRole
from schemas.store import StoreCreate, StoreUpdate, StoreResponse, StoreSummary
from schemas.user import Principal
from services.rating import RatingQueryService

logger = logging.getLogger(__name__)

STORE_SORT_FIELDS = {
    "name": Store.name,
    "email": Store.email,
    "address": Store.address,
    "average_rating": Store.average_rating,
    "rating_count": Store.rating_count,
    "created_at": Store.created_at,
}

def _require_store_owner(db: Session, owner_id: str) -> User:
    owner = db.query(User).filter(User.id == owner_id).first()
    if not owner:
        raise ResourceNotFoundError("User", owner_id)
    if owner.role != UserRole.STORE_OWNER:
        raise InvalidArgumentError("Store owner must be a user with the store_owner role", field="ownerId")
    return owner

def _ensure_email_available(db: Session, email: Optional[str], exclude_store_id: Optional[str] = None):
    if not email:
        return
    query = db.query(Store.id).filter(func.lower(Store.email) == email.lower())
    if exclude_store_id:
        query = query.filter(Store.id != exclude_store_id)
    if query.first():
        raise ConflictError("Store email is already in use", details={"field": "email"})

def get_store_by_id(db: Session, store_id: str) -> Store:
    store = db.query(Store).filter(Store.id == store_id).first()
    if not store:
        raise ResourceNotFoundError("Store", store_id)
    return store

def get_stores_by_owner_id(db: Session, owner_id: str) -> List[Store]:
    """Get all stores by owner ID (supports multiple stores per owner)."""
    return db.query(Store).filter(Store.owner_id == owner_id).order_by(Store.name).all()

def list_stores(
    db: Session,
    name: Optional[str] = None,
    address: Optional[str] = None,
    sort_by: str = "name",
    order: str = "asc",
    principal: Optional[Principal] = None
) -> List[StoreSummary]:
    """List stores with optional substring filters and the caller's own rating."""
    if sort_by not in STORE_SORT_FIELDS:
        raise InvalidArgumentError(
            f"Cannot sort stores by '{sort_by}'. Use one of: {', '.join(STORE_SORT_FIELDS)}",
            field="sortBy"
        )

    query = db.query(Store, User.name).outerjoin(User, Store.owner_id == User.id)
    if name:
        query = query.filter(Store.name.ilike(f"%{name}%"))
    if address:
        query = query.filter(Store.address.ilike(f"%{address}%"))

    sort_column = STORE_SORT_FIELDS[sort_by]
    direction = desc if order == "desc" else asc
    rows = query.order_by(direction(sort_column), asc(Store.id)).all()

    user_ratings = {}
    if principal is not None:
        user_ratings = RatingQueryService.get_user_ratings_by_store(
            db, principal.id, [store.id for store, _ in rows]
        )

    return [
        StoreSummary(
            **StoreResponse.from_orm(store).model_dump(),
            owner_name=owner_name,
            user_rating=user_ratings.get(store.id)
        )
        for store, owner_name in rows
    ]

def create_store(db: Session, store_data: StoreCreate, creator: Principal) -> Store:
    """Create a store; store owners always own what they create."""
    if creator.role == UserRole.STORE_OWNER:
        owner_id = creator.id
    else:
        owner_id = store_data.owner_id

    try:
        with transaction(db):
            if owner_id:
                _require_store_owner(db, owner_id)
            _ensure_email_available(db, store_data.email)

            db_store = Store(
                name=store_data.name,
                email=store_data.email,
                address=store_data.address,
                owner_id=owner_id,
                average_rating=0.0,
                rating_count=0
            )
            db.add(db_store)
            db.flush()
    except IntegrityError as e:
        logger.error(f"Database integrity error creating store: {str(e.orig)}")
        raise ConflictError("Store email is already in use", details={"field": "email"}) from e

    db.refresh(db_store)
    logger.info(f"Store created: {db_store.name} ({db_store.id}) owner={owner_id}")
    return db_store

def update_store(db: Session, store_id: str, store_data: StoreUpdate, actor: Principal) -> Store:
    """Update store fields; only admins or the store's owner may do so."""
    try:
        with transaction(db):
            store = get_store_by_id(db, store_id)
            if not actor.is_admin and store.owner_id != actor.id:
                raise AuthorizationError("You do not have permission to update this store")

            update_data = store_data.model_dump(exclude_unset=True)
            if "owner_id" in update_data:
                if not actor.is_admin:
                    raise AuthorizationError("Only administrators can reassign store ownership")
                if update_data["owner_id"]:
                    _require_store_owner(db, update_data["owner_id"])
            if update_data.get("email"):
                _ensure_email_available(db, update_data["email"], exclude_store_id=store_id)

            # Derived rating columns are never client-writable
            for field, value in update_data.items():
                setattr(store, field, value)
            store.updated_at = datetime.utcnow()
            db.flush()
    except IntegrityError as e:
        logger.error(f"Database integrity error updating store {store_id}: {str(e.orig)}")
        raise ConflictError("Store email is already in use", details={"field": "email"}) from e

    db.refresh(store)
    logger.info(f"Store updated: {store_id} by {actor.id}")
    return store

def delete_store(db: Session, store_id: str) -> None:
    """Delete a store; its ratings are removed with it."""
    with transaction(db):
        store = get_store_by_id(db, store_id)
        db.delete(store)
    logger.info(f"Store deleted: {store_id}")

def count_stores(db: Session) -> int:
    return db.query(func.count(Store.id)).scalar() or 0
