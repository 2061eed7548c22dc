import enum
from datetime import datetime
from typing import Optional, List
from pydantic import Field
from models.rating import MIN_RATING, MAX_RATING
from schemas.common import CamelModel

class RatingOutcome(str, enum.Enum):
    CREATED = "created"
    UPDATED = "updated"

# Rating Schemas
class RatingValue(CamelModel):
    value: int = Field(..., ge=MIN_RATING, le=MAX_RATING, strict=True, description="Rating from 1 to 5 stars")
    comment: Optional[str] = Field(None, max_length=2000, description="Optional comment text")

class RatingSubmit(RatingValue):
    store_id: str = Field(..., min_length=1)

class RatingResponse(CamelModel):
    id: str
    user_id: str
    store_id: str
    value: int
    comment: Optional[str] = None
    created_at: datetime
    updated_at: datetime

class RatingSubmission(CamelModel):
    outcome: RatingOutcome
    rating: RatingResponse

class RatingLookup(CamelModel):
    rating: Optional[RatingResponse] = None

# A rating as listed under its store
class StoreRatingEntry(RatingResponse):
    user_name: str
    user_email: Optional[str] = None

# A rating as listed under its author
class UserRatingEntry(RatingResponse):
    store_name: str

class StoreView(CamelModel):
    id: str
    name: str
    email: Optional[str] = None
    address: Optional[str] = None
    owner_id: Optional[str] = None
    owner_name: Optional[str] = None
    average_rating: float
    rating_count: int
    created_at: datetime
    updated_at: Optional[datetime] = None
    ratings: List[StoreRatingEntry] = []

class StoreDetail(StoreView):
    user_rating: Optional[RatingResponse] = None

class UserRatingsView(CamelModel):
    user_id: str
    ratings: List[UserRatingEntry] = []
