from typing import List
from schemas.common import CamelModel
from schemas.rating import StoreView

class AdminDashboard(CamelModel):
    total_users: int
    total_stores: int
    total_ratings: int

class StoreOwnerDashboard(CamelModel):
    stores: List[StoreView]
