from fastapi import APIRouter, Depends, status
from sqlalchemy.orm import Session
import logging

from core.exceptions import AuthenticationError
from database.connection import get_db
from models.user import UserRole
from schemas.user import (
    UserLogin, UserRegister, Token, UserResponse, Principal, PasswordUpdate, ProfileUpdate
)
from services.auth import authenticate_user, create_token_for_user, get_current_principal
from services.user import create_user, get_user_by_id, change_password, update_profile

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/auth", tags=["auth"])

@router.post("/register", response_model=Token, status_code=status.HTTP_201_CREATED)
def register(user_data: UserRegister, db: Session = Depends(get_db)):
    """Self-registration; new accounts always get the ``user`` role."""
    logger.info(f"Registration attempt for email: {user_data.email}")

    user = create_user(
        db,
        name=user_data.name,
        email=user_data.email,
        password=user_data.password,
        role=UserRole.USER,
        address=user_data.address
    )

    return Token(
        access_token=create_token_for_user(user),
        token_type="bearer",
        user=UserResponse.from_orm(user)
    )

@router.post("/login", response_model=Token)
def login(user_credentials: UserLogin, db: Session = Depends(get_db)):
    """Exchange email and password for an access token."""
    logger.info(f"Login attempt for email: {user_credentials.email}")

    user = authenticate_user(db, user_credentials.email, user_credentials.password)
    if not user:
        raise AuthenticationError("Incorrect email or password")

    return Token(
        access_token=create_token_for_user(user),
        token_type="bearer",
        user=UserResponse.from_orm(user)
    )

@router.get("/me", response_model=UserResponse)
def get_me(principal: Principal = Depends(get_current_principal), db: Session = Depends(get_db)):
    return get_user_by_id(db, principal.id)

@router.put("/password")
def update_password(
    password_data: PasswordUpdate,
    principal: Principal = Depends(get_current_principal),
    db: Session = Depends(get_db)
):
    change_password(db, principal.id, password_data.current_password, password_data.new_password)
    return {"message": "Password updated successfully"}

@router.put("/profile", response_model=UserResponse)
def update_my_profile(
    profile: ProfileUpdate,
    principal: Principal = Depends(get_current_principal),
    db: Session = Depends(get_db)
):
    return update_profile(db, principal.id, profile)
