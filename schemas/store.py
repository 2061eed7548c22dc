from pydantic import EmailStr, validator, Field
from typing import Optional, List
from datetime import datetime
from schemas.common import CamelModel
import re

# Base Store Schema
class StoreBase(CamelModel):
    name: str = Field(..., min_length=2, max_length=60)
    email: Optional[EmailStr] = None
    address: Optional[str] = Field(None, max_length=400)

    @validator('name')
    def validate_name(cls, v):
        v = re.sub(r'\s+', ' ', v).strip()
        if len(v) < 2:
            raise ValueError('Store name must be at least 2 characters long')
        return v

    @validator('email')
    def normalize_email(cls, v):
        return v.lower().strip() if v is not None else v

# Store Creation Schema
class StoreCreate(StoreBase):
    owner_id: Optional[str] = None

# Store Update Schema
class StoreUpdate(CamelModel):
    name: Optional[str] = Field(None, min_length=2, max_length=60)
    email: Optional[EmailStr] = None
    address: Optional[str] = Field(None, max_length=400)
    owner_id: Optional[str] = None

    @validator('name')
    def validate_name(cls, v):
        if v is None:
            return v
        v = re.sub(r'\s+', ' ', v).strip()
        if len(v) < 2:
            raise ValueError('Store name must be at least 2 characters long')
        return v

    @validator('email')
    def normalize_email(cls, v):
        return v.lower().strip() if v is not None else v

# Store Response Schema
class StoreResponse(CamelModel):
    id: str
    name: str
    email: Optional[str] = None
    address: Optional[str] = None
    owner_id: Optional[str] = None
    average_rating: float
    rating_count: int
    created_at: datetime
    updated_at: Optional[datetime] = None

# Row of the store listing
class StoreSummary(StoreResponse):
    owner_name: Optional[str] = None
    user_rating: Optional[int] = None

class StoreList(CamelModel):
    stores: List[StoreSummary]
    total: int
