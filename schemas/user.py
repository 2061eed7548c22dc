from pydantic import EmailStr, validator, Field
from typing import Optional, List, Union
from datetime import datetime
from models.user import UserRole
from schemas.common import CamelModel
import re

PASSWORD_SPECIAL_CHARACTERS = "!@#$%^&*"


def _check_password(v: str) -> str:
    if len(v) < 8 or len(v) > 16:
        raise ValueError('Password must be 8-16 characters long')
    if not any(c.isupper() for c in v):
        raise ValueError('Password must contain at least one uppercase letter')
    if not any(c in PASSWORD_SPECIAL_CHARACTERS for c in v):
        raise ValueError(f'Password must contain at least one special character ({PASSWORD_SPECIAL_CHARACTERS})')
    return v


def _check_name(v: str) -> str:
    v = re.sub(r'\s+', ' ', v).strip()
    if len(v) < 2:
        raise ValueError('Name must be at least 2 characters long')
    return v


# Base User Schema
class UserBase(CamelModel):
    name: str = Field(..., min_length=2, max_length=60)
    email: EmailStr
    address: Optional[str] = Field(None, max_length=400)

    @validator('name')
    def validate_name(cls, v):
        return _check_name(v)

    @validator('email')
    def normalize_email(cls, v):
        return v.lower().strip()

# User Registration Schema
class UserRegister(UserBase):
    password: str

    @validator('password')
    def validate_password(cls, v):
        return _check_password(v)

# Admin user creation schema
class UserCreate(UserRegister):
    role: Union[UserRole, str] = UserRole.USER

    @validator('role')
    def validate_role(cls, v):
        if isinstance(v, str):
            try:
                return UserRole(v.lower())
            except ValueError:
                valid_roles = [role.value for role in UserRole]
                raise ValueError(f'Invalid role. Must be one of: {valid_roles}')
        return v

# Admin user update schema
class UserUpdate(CamelModel):
    name: Optional[str] = Field(None, min_length=2, max_length=60)
    email: Optional[EmailStr] = None
    password: Optional[str] = None
    address: Optional[str] = Field(None, max_length=400)
    role: Optional[UserRole] = None

    @validator('name')
    def validate_name(cls, v):
        return _check_name(v) if v is not None else v

    @validator('email')
    def normalize_email(cls, v):
        return v.lower().strip() if v is not None else v

    @validator('password')
    def validate_password(cls, v):
        return _check_password(v) if v is not None else v

# Self-service profile update
class ProfileUpdate(UserBase):
    pass

class PasswordUpdate(CamelModel):
    current_password: str
    new_password: str

    @validator('new_password')
    def validate_new_password(cls, v):
        return _check_password(v)

# User Login Schema
class UserLogin(CamelModel):
    email: EmailStr
    password: str

# User Response Schema
class UserResponse(CamelModel):
    id: str
    name: str
    email: str
    address: Optional[str] = None
    role: UserRole
    created_at: datetime
    updated_at: Optional[datetime] = None

# Token Schema
class Token(CamelModel):
    access_token: str
    token_type: str = "bearer"
    user: UserResponse

# Token Data Schema
class TokenData(CamelModel):
    email: Optional[str] = None
    user_id: Optional[str] = None

# Authenticated identity attached to every request
class Principal(CamelModel):
    id: str
    role: UserRole
    name: str
    email: str

    @property
    def is_admin(self) -> bool:
        return self.role == UserRole.ADMIN

# Admin view of a single user
class UserDetail(UserResponse):
    ratings: List["UserRatingEntry"] = []
    stores: List["StoreResponse"] = []


from schemas.rating import UserRatingEntry  # noqa: E402
from schemas.store import StoreResponse  # noqa: E402

UserDetail.model_rebuild()
