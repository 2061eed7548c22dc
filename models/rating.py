import uuid
from datetime import datetime
from decimal import Decimal, ROUND_HALF_UP
from sqlalchemy import (
    Column, String, Integer, Text, DateTime, ForeignKey, CheckConstraint, UniqueConstraint, func
)
from sqlalchemy.orm import relationship, Session
from database.base import Base

MIN_RATING = 1
MAX_RATING = 5


def round_average(value) -> float:
    """Round an average half-up to one decimal place; no ratings means 0.0."""
    if value is None:
        return 0.0
    return float(Decimal(str(value)).quantize(Decimal("0.1"), rounding=ROUND_HALF_UP))


class Rating(Base):
    __tablename__ = "ratings"
    __table_args__ = (
        UniqueConstraint("user_id", "store_id", name="uq_ratings_user_store"),
        CheckConstraint(f"value >= {MIN_RATING} AND value <= {MAX_RATING}", name="ck_ratings_value_range"),
    )

    id = Column(String, primary_key=True, default=lambda: str(uuid.uuid4()), index=True)
    user_id = Column(String, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    store_id = Column(String, ForeignKey("stores.id", ondelete="CASCADE"), nullable=False, index=True)
    value = Column(Integer, nullable=False)
    comment = Column(Text, nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, index=True)

    # Relationships
    user = relationship("User", back_populates="ratings")
    store = relationship("Store", back_populates="ratings")

    def __repr__(self):
        return f"<Rating(id={self.id}, user_id={self.user_id}, store_id={self.store_id}, value={self.value})>"

    @classmethod
    def get_store_aggregate(cls, db: Session, store_id: str):
        """Average and count for a store, computed by one aggregation query"""
        result = db.query(
            func.avg(cls.value).label('average'),
            func.count(cls.id).label('total')
        ).filter(
            cls.store_id == store_id
        ).one()

        return {
            'average_rating': round_average(result.average),
            'rating_count': int(result.total or 0)
        }
