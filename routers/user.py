from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session
from typing import List, Optional
import logging

from core.exceptions import AuthorizationError
from database.connection import get_db
from models.user import UserRole
from schemas.user import UserCreate, UserUpdate, UserResponse, UserDetail, Principal
from services.auth import require_roles
from services import user as user_service

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/users", tags=["users"])

require_admin = require_roles(UserRole.ADMIN)

@router.get("", response_model=List[UserResponse])
def list_users(
    name: Optional[str] = Query(None),
    email: Optional[str] = Query(None),
    address: Optional[str] = Query(None),
    role: Optional[UserRole] = Query(None),
    sort_by: str = Query("name", alias="sortBy"),
    order: str = Query("asc", pattern="^(asc|desc)$"),
    admin: Principal = Depends(require_admin),
    db: Session = Depends(get_db)
):
    """List users with filters; admins only."""
    return user_service.list_users(
        db, name=name, email=email, address=address, role=role, sort_by=sort_by, order=order
    )

@router.get("/{user_id}", response_model=UserDetail)
def get_user(user_id: str, admin: Principal = Depends(require_admin), db: Session = Depends(get_db)):
    return user_service.get_user_detail(db, user_id)

@router.post("", response_model=UserResponse, status_code=status.HTTP_201_CREATED)
def create_user(
    user_data: UserCreate,
    admin: Principal = Depends(require_admin),
    db: Session = Depends(get_db)
):
    """Create a user with any role."""
    logger.info(f"Admin {admin.id} creating user {user_data.email} with role {user_data.role.value}")
    return user_service.create_user_from_schema(db, user_data)

@router.put("/{user_id}", response_model=UserResponse)
def update_user(
    user_id: str,
    user_data: UserUpdate,
    admin: Principal = Depends(require_admin),
    db: Session = Depends(get_db)
):
    return user_service.update_user(db, user_id, user_data)

@router.delete("/{user_id}")
def delete_user(user_id: str, admin: Principal = Depends(require_admin), db: Session = Depends(get_db)):
    """Delete a user and every rating they gave."""
    if user_id == admin.id:
        raise AuthorizationError("Administrators cannot delete their own account")

    user_service.delete_user(db, user_id)
    return {"message": "User deleted successfully"}
