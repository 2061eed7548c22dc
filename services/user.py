from sqlalchemy.orm import Session
from sqlalchemy.exc import IntegrityError, OperationalError
from sqlalchemy import asc, desc, func
from typing import List, Optional
from datetime import datetime
import logging

from core.config import settings
from core.exceptions import (
    ResourceNotFoundError, ConflictError, InvalidArgumentError, AuthenticationError
)
from database.connection import transaction
from models.rating import Rating
from models.store import Store
from models.user import User, UserRole
from schemas.store import StoreResponse
from schemas.user import UserCreate, UserUpdate, ProfileUpdate, UserDetail, UserResponse
from services.auth import get_password_hash, verify_password, get_user_by_email
from services.rating import RatingQueryService, is_isolation_failure, lock_stores, refresh_store_aggregate
from services.store import get_stores_by_owner_id

logger = logging.getLogger(__name__)

USER_SORT_FIELDS = {
    "name": User.name,
    "email": User.email,
    "address": User.address,
    "role": User.role,
    "created_at": User.created_at,
}

def _ensure_email_available(db: Session, email: str, exclude_user_id: Optional[str] = None):
    query = db.query(User.id).filter(User.email == email.lower().strip())
    if exclude_user_id:
        query = query.filter(User.id != exclude_user_id)
    if query.first():
        logger.warning(f"Attempt to use an email that is already registered: {email}")
        raise ConflictError("Email is already in use", details={"field": "email"})

def get_user_by_id(db: Session, user_id: str) -> User:
    user = db.query(User).filter(User.id == user_id).first()
    if not user:
        raise ResourceNotFoundError("User", user_id)
    return user

def lock_user(db: Session, user_id: str) -> User:
    """Load a user row with a write lock held until the transaction ends."""
    user = db.query(User).filter(
        User.id == user_id
    ).populate_existing().with_for_update().first()
    if not user:
        raise ResourceNotFoundError("User", user_id)
    return user

def _release_owned_stores(db: Session, user: User) -> int:
    # A store owner must hold the store_owner role
    released = db.query(Store).filter(Store.owner_id == user.id).update(
        {Store.owner_id: None, Store.updated_at: datetime.utcnow()},
        synchronize_session=False
    )
    if released:
        logger.info(f"Released {released} store(s) from former owner {user.id}")
    return released

def create_user(
    db: Session,
    name: str,
    email: str,
    password: str,
    role: UserRole = UserRole.USER,
    address: Optional[str] = None
) -> User:
    """Create a new user with a unique, lower-cased email."""
    email = email.lower().strip()
    try:
        with transaction(db):
            _ensure_email_available(db, email)
            db_user = User(
                name=name,
                email=email,
                password_hash=get_password_hash(password),
                address=address,
                role=role
            )
            db.add(db_user)
            db.flush()
    except IntegrityError as e:
        logger.error(f"Database integrity error creating user {email}: {str(e.orig)}")
        raise ConflictError("Email is already in use", details={"field": "email"}) from e

    db.refresh(db_user)
    logger.info(f"User created successfully: {email} with role {role.value}")
    return db_user

def create_user_from_schema(db: Session, user_data: UserCreate) -> User:
    return create_user(
        db,
        name=user_data.name,
        email=user_data.email,
        password=user_data.password,
        role=user_data.role,
        address=user_data.address
    )

def list_users(
    db: Session,
    name: Optional[str] = None,
    email: Optional[str] = None,
    address: Optional[str] = None,
    role: Optional[UserRole] = None,
    sort_by: str = "name",
    order: str = "asc"
) -> List[User]:
    """List users with case-insensitive substring filters."""
    if sort_by not in USER_SORT_FIELDS:
        raise InvalidArgumentError(
            f"Cannot sort users by '{sort_by}'. Use one of: {', '.join(USER_SORT_FIELDS)}",
            field="sortBy"
        )

    query = db.query(User)
    if name:
        query = query.filter(User.name.ilike(f"%{name}%"))
    if email:
        query = query.filter(User.email.ilike(f"%{email}%"))
    if address:
        query = query.filter(User.address.ilike(f"%{address}%"))
    if role:
        query = query.filter(User.role == role)

    direction = desc if order == "desc" else asc
    return query.order_by(direction(USER_SORT_FIELDS[sort_by]), asc(User.id)).all()

def get_user_detail(db: Session, user_id: str) -> UserDetail:
    """A user with the ratings they gave and the stores they own."""
    user = get_user_by_id(db, user_id)
    ratings_view = RatingQueryService.get_user_view(db, user_id)
    stores = get_stores_by_owner_id(db, user_id) if user.role == UserRole.STORE_OWNER else []

    return UserDetail(
        **UserResponse.from_orm(user).model_dump(),
        ratings=ratings_view.ratings,
        stores=[StoreResponse.from_orm(store) for store in stores]
    )

def update_user(db: Session, user_id: str, user_data: UserUpdate) -> User:
    """Admin update of any user field, including role and password."""
    update_data = user_data.model_dump(exclude_unset=True, exclude_none=True)
    if not update_data:
        raise InvalidArgumentError("No valid fields to update")

    try:
        with transaction(db):
            user = lock_user(db, user_id)
            if "email" in update_data:
                _ensure_email_available(db, update_data["email"], exclude_user_id=user_id)
            if "password" in update_data:
                user.password_hash = get_password_hash(update_data.pop("password"))
            if user.role == UserRole.STORE_OWNER and update_data.get("role", UserRole.STORE_OWNER) != UserRole.STORE_OWNER:
                _release_owned_stores(db, user)
            for field, value in update_data.items():
                setattr(user, field, value)
            user.updated_at = datetime.utcnow()
            db.flush()
    except IntegrityError as e:
        logger.error(f"Database integrity error updating user {user_id}: {str(e.orig)}")
        raise ConflictError("Email is already in use", details={"field": "email"}) from e

    db.refresh(user)
    logger.info(f"User updated: {user_id}")
    return user

def update_profile(db: Session, user_id: str, profile: ProfileUpdate) -> User:
    """Self-service update of name, email and address."""
    try:
        with transaction(db):
            user = get_user_by_id(db, user_id)
            if profile.email != user.email:
                _ensure_email_available(db, profile.email, exclude_user_id=user_id)
            user.name = profile.name
            user.email = profile.email
            user.address = profile.address
            user.updated_at = datetime.utcnow()
            db.flush()
    except IntegrityError as e:
        raise ConflictError("Email is already in use", details={"field": "email"}) from e

    db.refresh(user)
    logger.info(f"Profile updated for user: {user_id}")
    return user

def change_password(db: Session, user_id: str, current_password: str, new_password: str) -> None:
    with transaction(db):
        user = get_user_by_id(db, user_id)
        if not verify_password(current_password, user.password_hash):
            logger.warning(f"Password change with wrong current password for user: {user_id}")
            raise AuthenticationError("Current password is incorrect")
        user.password_hash = get_password_hash(new_password)
        user.updated_at = datetime.utcnow()
    logger.info(f"Password updated for user: {user_id}")

def delete_user(db: Session, user_id: str) -> None:
    """
    Delete a user together with their ratings.

    Stores they owned lose their owner; every store they rated has its
    aggregate recomputed in the same transaction.
    """
    try:
        with transaction(db):
            # Locked before listing so no new rating for this user can slip in
            user = lock_user(db, user_id)
            rated_store_ids = [
                store_id for (store_id,) in
                db.query(Rating.store_id).filter(Rating.user_id == user_id).all()
            ]
            stores = lock_stores(db, rated_store_ids)

            db.delete(user)
            db.flush()

            for store in stores:
                refresh_store_aggregate(db, store)
    except OperationalError as e:
        if not is_isolation_failure(e):
            raise
        logger.warning(f"User delete isolation failure for user {user_id}: {str(e.orig)}")
        raise ConflictError("The user was being changed concurrently. Please retry.") from e

    logger.info(f"User deleted: {user_id}; recomputed {len(rated_store_ids)} store aggregate(s)")

def ensure_default_admin(db: Session) -> Optional[User]:
    """Create the configured administrator when no admin exists yet."""
    existing_admins = db.query(func.count(User.id)).filter(User.role == UserRole.ADMIN).scalar()
    if existing_admins:
        return None

    if get_user_by_email(db, settings.DEFAULT_ADMIN_EMAIL):
        logger.warning(f"Default admin email {settings.DEFAULT_ADMIN_EMAIL} belongs to a non-admin user")
        return None

    admin = create_user(
        db,
        name=settings.DEFAULT_ADMIN_NAME,
        email=settings.DEFAULT_ADMIN_EMAIL,
        password=settings.DEFAULT_ADMIN_PASSWORD,
        role=UserRole.ADMIN
    )
    logger.info(f"Default admin user created: {admin.email}")
    return admin

def count_users(db: Session) -> int:
    return db.query(func.count(User.id)).scalar() or 0

def count_ratings(db: Session) -> int:
    return db.query(func.count(Rating.id)).scalar() or 0
