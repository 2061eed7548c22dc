"""
Rating ledger and aggregate reader.

The ledger is the only writer of ``stores.average_rating`` and
``stores.rating_count``. Every write locks the store row, changes the ratings
relation, and recomputes both columns from one aggregation query before the
transaction commits, so readers only ever see a count/average pair that matches
the committed ratings.
"""
from typing import Optional, Iterable
from datetime import datetime
import logging

from sqlalchemy import desc
from sqlalchemy.orm import Session
from sqlalchemy.exc import IntegrityError, OperationalError

from core.exceptions import InvalidArgumentError, ResourceNotFoundError, ConflictError
from database.connection import transaction
from models.rating import Rating, MIN_RATING, MAX_RATING
from models.store import Store
from models.user import User
from schemas.rating import (
    RatingOutcome, RatingResponse, RatingSubmission, StoreRatingEntry,
    UserRatingEntry, StoreView, UserRatingsView
)

logger = logging.getLogger(__name__)

# SQLSTATEs for serialization failure and deadlock
_ISOLATION_SQLSTATES = {"40001", "40P01"}


def validate_rating_value(value) -> int:
    """Reject anything that is not an integer star value in range."""
    if isinstance(value, bool) or not isinstance(value, int):
        raise InvalidArgumentError(
            f"Rating must be an integer between {MIN_RATING} and {MAX_RATING}", field="value"
        )
    if value < MIN_RATING or value > MAX_RATING:
        raise InvalidArgumentError(
            f"Rating must be an integer between {MIN_RATING} and {MAX_RATING}", field="value"
        )
    return value


def is_isolation_failure(exc: OperationalError) -> bool:
    """True for errors caused by concurrent transactions rather than a broken datastore."""
    orig = getattr(exc, "orig", None)
    if getattr(orig, "pgcode", None) in _ISOLATION_SQLSTATES:
        return True
    return "database is locked" in str(orig).lower()


def lock_store(db: Session, store_id: str) -> Optional[Store]:
    """Load a store row with a write lock held until the transaction ends."""
    return db.query(Store).filter(
        Store.id == store_id
    ).populate_existing().with_for_update().first()


def lock_stores(db: Session, store_ids: Iterable[str]) -> list:
    # Fixed lock order keeps concurrent multi-store writers from deadlocking
    return [store for store in (lock_store(db, store_id) for store_id in sorted(set(store_ids))) if store]


def find_rating(db: Session, user_id: str, store_id: str) -> Optional[Rating]:
    return db.query(Rating).filter(
        Rating.user_id == user_id,
        Rating.store_id == store_id
    ).first()


def refresh_store_aggregate(db: Session, store: Store) -> Store:
    """Recompute a store's derived rating columns from the ratings relation."""
    db.flush()
    aggregate = Rating.get_store_aggregate(db, store.id)
    store.average_rating = aggregate['average_rating']
    store.rating_count = aggregate['rating_count']
    store.updated_at = datetime.utcnow()
    db.flush()
    return store


class RatingService:
    """Atomic create/update/delete of ratings plus aggregate maintenance."""

    @staticmethod
    def submit_rating(
        db: Session,
        user_id: str,
        store_id: str,
        value: int,
        comment: Optional[str] = None
    ) -> RatingSubmission:
        """Create the user's rating for a store, or overwrite it in place."""
        validate_rating_value(value)

        try:
            with transaction(db):
                if db.query(User.id).filter(User.id == user_id).first() is None:
                    raise ResourceNotFoundError("User", user_id)

                store = lock_store(db, store_id)
                if store is None:
                    raise ResourceNotFoundError("Store", store_id)

                rating = find_rating(db, user_id, store_id)
                if rating is None:
                    rating = Rating(
                        user_id=user_id,
                        store_id=store_id,
                        value=value,
                        comment=comment
                    )
                    db.add(rating)
                    outcome = RatingOutcome.CREATED
                else:
                    rating.value = value
                    rating.comment = comment
                    rating.updated_at = datetime.utcnow()
                    outcome = RatingOutcome.UPDATED

                refresh_store_aggregate(db, store)
                average_rating, rating_count = store.average_rating, store.rating_count
                submission = RatingSubmission(
                    outcome=outcome,
                    rating=RatingResponse.from_orm(rating)
                )
        except IntegrityError as e:
            logger.warning(f"Rating conflict for user {user_id} on store {store_id}: {str(e.orig)}")
            raise ConflictError(
                "Another rating for this store was saved at the same time. Please retry.",
                details={"storeId": store_id}
            ) from e
        except OperationalError as e:
            if not is_isolation_failure(e):
                raise
            logger.warning(f"Rating isolation failure for user {user_id} on store {store_id}: {str(e.orig)}")
            raise ConflictError(
                "The store was being rated concurrently. Please retry.",
                details={"storeId": store_id}
            ) from e

        logger.info(
            f"Rating {outcome.value}: user {user_id} rated store {store_id} with {value} "
            f"(store now {average_rating}/{rating_count})"
        )
        return submission

    @staticmethod
    def retract_rating(db: Session, user_id: str, store_id: str) -> RatingResponse:
        """Remove the user's rating for a store and recompute the aggregate."""
        try:
            with transaction(db):
                store = lock_store(db, store_id)
                if store is None:
                    raise ResourceNotFoundError("Store", store_id)

                rating = find_rating(db, user_id, store_id)
                if rating is None:
                    raise ResourceNotFoundError("Rating", f"{user_id}/{store_id}")

                removed = RatingService._delete(db, store, rating)
        except OperationalError as e:
            if not is_isolation_failure(e):
                raise
            logger.warning(f"Rating retract isolation failure for user {user_id} on store {store_id}: {str(e.orig)}")
            raise ConflictError(
                "The store was being rated concurrently. Please retry.",
                details={"storeId": store_id}
            ) from e

        logger.info(f"Rating retracted: user {user_id} on store {store_id}")
        return removed

    @staticmethod
    def delete_rating(db: Session, rating_id: str) -> RatingResponse:
        """Remove any rating by id (moderation) and recompute its store's aggregate."""
        try:
            with transaction(db):
                rating = db.query(Rating).filter(Rating.id == rating_id).first()
                if rating is None:
                    raise ResourceNotFoundError("Rating", rating_id)

                store = lock_store(db, rating.store_id)
                # Re-read under the store lock; a concurrent retract may have won
                rating = db.query(Rating).filter(Rating.id == rating_id).populate_existing().first()
                if rating is None or store is None:
                    raise ResourceNotFoundError("Rating", rating_id)

                removed = RatingService._delete(db, store, rating)
        except OperationalError as e:
            if not is_isolation_failure(e):
                raise
            logger.warning(f"Rating delete isolation failure for rating {rating_id}: {str(e.orig)}")
            raise ConflictError(
                "The store was being rated concurrently. Please retry.",
                details={"ratingId": rating_id}
            ) from e

        logger.info(f"Rating {rating_id} deleted by moderation")
        return removed

    @staticmethod
    def _delete(db: Session, store: Store, rating: Rating) -> RatingResponse:
        removed = RatingResponse.from_orm(rating)
        db.delete(rating)
        refresh_store_aggregate(db, store)
        return removed


class RatingQueryService:
    """Read-side views over committed ratings."""

    @staticmethod
    def get_store_view(db: Session, store_id: str, include_rater_email: bool = False) -> StoreView:
        """Store fields, aggregate and every rating, newest update first."""
        row = db.query(Store, User.name).outerjoin(
            User, Store.owner_id == User.id
        ).filter(Store.id == store_id).first()
        if row is None:
            raise ResourceNotFoundError("Store", store_id)

        store, owner_name = row
        ratings = db.query(Rating, User.name, User.email).join(
            User, Rating.user_id == User.id
        ).filter(
            Rating.store_id == store_id
        ).order_by(desc(Rating.updated_at), desc(Rating.created_at)).all()

        entries = []
        for rating, user_name, user_email in ratings:
            entry = StoreRatingEntry(
                **RatingResponse.from_orm(rating).model_dump(),
                user_name=user_name,
                user_email=user_email if include_rater_email else None
            )
            entries.append(entry)

        return StoreView(
            id=store.id,
            name=store.name,
            email=store.email,
            address=store.address,
            owner_id=store.owner_id,
            owner_name=owner_name,
            # Both read from the same row, so they always belong together
            average_rating=store.average_rating or 0.0,
            rating_count=store.rating_count or 0,
            created_at=store.created_at,
            updated_at=store.updated_at,
            ratings=entries
        )

    @staticmethod
    def get_user_view(db: Session, user_id: str) -> UserRatingsView:
        """Every rating a user has given, one per store, newest update first."""
        if db.query(User.id).filter(User.id == user_id).first() is None:
            raise ResourceNotFoundError("User", user_id)

        rows = db.query(Rating, Store.name).join(
            Store, Rating.store_id == Store.id
        ).filter(
            Rating.user_id == user_id
        ).order_by(desc(Rating.updated_at), desc(Rating.created_at)).all()

        return UserRatingsView(
            user_id=user_id,
            ratings=[
                UserRatingEntry(**RatingResponse.from_orm(rating).model_dump(), store_name=store_name)
                for rating, store_name in rows
            ]
        )

    @staticmethod
    def get_rating_for_user_and_store(db: Session, user_id: str, store_id: str) -> Optional[RatingResponse]:
        """Point lookup; None means the user has not rated the store."""
        rating = find_rating(db, user_id, store_id)
        return RatingResponse.from_orm(rating) if rating else None

    @staticmethod
    def get_user_ratings_by_store(db: Session, user_id: str, store_ids: Iterable[str]) -> dict:
        """Map store id to the user's rating value for a batch of stores."""
        store_ids = list(store_ids)
        if not store_ids:
            return {}
        rows = db.query(Rating.store_id, Rating.value).filter(
            Rating.user_id == user_id,
            Rating.store_id.in_(store_ids)
        ).all()
        return {store_id: value for store_id, value in rows}
