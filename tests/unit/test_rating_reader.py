"""
Unit tests for services.rating.RatingQueryService.
"""
import pytest

from core.exceptions import ResourceNotFoundError
from models.user import UserRole
from services.rating import RatingService, RatingQueryService


def test_store_view_lists_ratings_newest_update_first(db_session, create_user, create_store):
    owner = create_user(role=UserRole.STORE_OWNER, name="Olive Owner")
    store = create_store(owner=owner, name="Corner Bakery")
    early = create_user(name="Early Rater")
    late = create_user(name="Late Rater")
    RatingService.submit_rating(db_session, early.id, store.id, 2)
    RatingService.submit_rating(db_session, late.id, store.id, 5)
    RatingService.submit_rating(db_session, early.id, store.id, 4, "Better now")

    view = RatingQueryService.get_store_view(db_session, store.id)

    assert view.name == "Corner Bakery"
    assert view.owner_name == "Olive Owner"
    assert (view.average_rating, view.rating_count) == (4.5, 2)
    assert [entry.user_name for entry in view.ratings] == ["Early Rater", "Late Rater"]
    assert view.ratings[0].comment == "Better now"


def test_store_view_hides_rater_email_unless_requested(db_session, create_user, create_store):
    store = create_store()
    rater = create_user()
    RatingService.submit_rating(db_session, rater.id, store.id, 3)

    public = RatingQueryService.get_store_view(db_session, store.id)
    private = RatingQueryService.get_store_view(db_session, store.id, include_rater_email=True)

    assert public.ratings[0].user_email is None
    assert private.ratings[0].user_email == rater.email


def test_store_view_without_ratings(db_session, create_store):
    store = create_store()

    view = RatingQueryService.get_store_view(db_session, store.id)

    assert (view.average_rating, view.rating_count) == (0.0, 0)
    assert view.ratings == []
    assert view.owner_id is None


def test_store_view_unknown_store(db_session):
    with pytest.raises(ResourceNotFoundError):
        RatingQueryService.get_store_view(db_session, "missing-store")


def test_user_view_has_one_entry_per_store(db_session, create_user, create_store):
    user = create_user()
    first = create_store(name="First Store")
    second = create_store(name="Second Store")
    RatingService.submit_rating(db_session, user.id, first.id, 1)
    RatingService.submit_rating(db_session, user.id, second.id, 5)
    RatingService.submit_rating(db_session, user.id, first.id, 3)

    view = RatingQueryService.get_user_view(db_session, user.id)

    assert view.user_id == user.id
    assert [(entry.store_name, entry.value) for entry in view.ratings] == [
        ("First Store", 3),
        ("Second Store", 5),
    ]


def test_user_view_unknown_user(db_session):
    with pytest.raises(ResourceNotFoundError):
        RatingQueryService.get_user_view(db_session, "missing-user")


def test_point_lookup(db_session, create_user, create_store):
    user = create_user()
    store = create_store()

    assert RatingQueryService.get_rating_for_user_and_store(db_session, user.id, store.id) is None

    RatingService.submit_rating(db_session, user.id, store.id, 4)
    found = RatingQueryService.get_rating_for_user_and_store(db_session, user.id, store.id)

    assert found.value == 4
    assert found.store_id == store.id


def test_user_ratings_by_store(db_session, create_user, create_store):
    user = create_user()
    rated = create_store()
    unrated = create_store()
    RatingService.submit_rating(db_session, user.id, rated.id, 2)

    by_store = RatingQueryService.get_user_ratings_by_store(db_session, user.id, [rated.id, unrated.id])

    assert by_store == {rated.id: 2}
    assert RatingQueryService.get_user_ratings_by_store(db_session, user.id, []) == {}
