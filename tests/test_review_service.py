import pytest
from datetime import datetime

from bson import ObjectId
from mongoengine.errors import OperationError

from cinelog import rating_aggregator, review_service
from cinelog.errors import Conflict, NotFound, ValidationError
from cinelog.models import Movie, Review, TVShow


def test_submit_updates_average(make_movie, make_account):
    movie = make_movie()
    alice, bob = make_account(), make_account()

    review_service.submit(str(movie.id), alice.id, 5, "Great")
    review_service.submit(str(movie.id), bob.id, 2, "Meh")

    assert Movie.objects.get(id=movie.id).average_rating == 3.5


def test_submit_to_tv_show_tags_variant(make_show, make_account):
    show = make_show()
    acc = make_account()

    review = review_service.submit(str(show.id), acc.id, 4, "Nice")

    assert review.media_type == "TVShow"
    assert TVShow.objects.get(id=show.id).average_rating == 4.0


def test_duplicate_review_is_conflict(make_movie, make_account):
    movie = make_movie()
    acc = make_account()
    review_service.submit(str(movie.id), acc.id, 4, "Good")

    with pytest.raises(Conflict):
        review_service.submit(str(movie.id), acc.id, 1, "Changed my mind")
    assert Review.objects(media=movie.id).count() == 1


@pytest.mark.parametrize("rating", [0, 6, 3.5, True, "4", None])
def test_submit_rejects_bad_rating(make_movie, make_account, rating):
    movie = make_movie()
    acc = make_account()
    with pytest.raises(ValidationError):
        review_service.submit(str(movie.id), acc.id, rating, "text")


def test_submit_requires_comment(make_movie, make_account):
    movie = make_movie()
    acc = make_account()
    with pytest.raises(ValidationError):
        review_service.submit(str(movie.id), acc.id, 3, "   ")


def test_submit_unknown_media(make_account):
    acc = make_account()
    with pytest.raises(NotFound):
        review_service.submit(str(ObjectId()), acc.id, 3, "text")


def test_submit_malformed_id(make_account):
    acc = make_account()
    with pytest.raises(ValidationError):
        review_service.submit("not-an-id", acc.id, 3, "text")


def test_update_changes_rating_and_average(make_movie, make_account):
    movie = make_movie()
    acc = make_account()
    review_service.submit(str(movie.id), acc.id, 2, "Weak")

    review = review_service.update(str(movie.id), acc.id, rating=5)

    assert review.rating == 5
    assert review.comment == "Weak"
    assert Movie.objects.get(id=movie.id).average_rating == 5.0


def test_update_without_fields_is_rejected(make_movie, make_account):
    movie = make_movie()
    acc = make_account()
    review_service.submit(str(movie.id), acc.id, 2, "Weak")
    with pytest.raises(ValidationError):
        review_service.update(str(movie.id), acc.id)


def test_update_missing_review(make_movie, make_account):
    movie = make_movie()
    acc = make_account()
    with pytest.raises(NotFound):
        review_service.update(str(movie.id), acc.id, comment="hello")


def test_deleting_only_review_resets_average(make_movie, make_account):
    movie = make_movie()
    acc = make_account()
    review_service.submit(str(movie.id), acc.id, 4, "Good")

    review_service.delete(str(movie.id), acc.id)

    assert Review.objects(media=movie.id).count() == 0
    assert Movie.objects.get(id=movie.id).average_rating == 0.0


def test_stats_distribution(make_movie, make_account):
    movie = make_movie()
    for rating in (5, 5, 4, 3, 1):
        review_service.submit(str(movie.id), make_account().id, rating, "text")

    stats = review_service.stats(str(movie.id))

    assert stats["totalReviews"] == 5
    assert stats["averageRating"] == 3.6
    assert stats["ratingDistribution"] == {5: 2, 4: 1, 3: 1, 2: 0, 1: 1}
    assert list(stats["ratingDistribution"]) == [5, 4, 3, 2, 1]


def test_stats_without_reviews(make_show):
    show = make_show()
    assert review_service.stats(str(show.id)) == {
        "totalReviews": 0,
        "averageRating": 0,
        "ratingDistribution": {5: 0, 4: 0, 3: 0, 2: 0, 1: 0},
    }


def test_list_reviews_embeds_reviewer(make_movie, make_account):
    movie = make_movie()
    acc = make_account(name="critic")
    review_service.submit(str(movie.id), acc.id, 4, "Solid")

    reviews = review_service.list_reviews(str(movie.id))

    assert len(reviews) == 1
    assert reviews[0]["user"]["username"] == "critic"
    assert "email" not in reviews[0]["user"]
    assert reviews[0]["mediaType"] == "Movie"


def test_delete_by_account_recomputes_touched_items(make_movie, make_account):
    movie = make_movie()
    leaving, staying = make_account(), make_account()
    review_service.submit(str(movie.id), leaving.id, 1, "Bad")
    review_service.submit(str(movie.id), staying.id, 5, "Good")

    assert review_service.delete_by_account(leaving.id) == 1
    assert Movie.objects.get(id=movie.id).average_rating == 5.0


def test_list_reviews_newest_first(make_movie, make_account):
    movie = make_movie()
    early, late = make_account(name="early"), make_account(name="late")
    first = review_service.submit(str(movie.id), early.id, 3, "First")
    review_service.submit(str(movie.id), late.id, 4, "Second")
    Review.objects(id=first.id).update_one(set__created_at=datetime(2020, 1, 1))

    reviews = review_service.list_reviews(str(movie.id))

    assert [r["user"]["username"] for r in reviews] == ["late", "early"]


def test_concurrent_duplicate_is_conflict(make_movie, make_account, monkeypatch):
    movie = make_movie()
    acc = make_account()
    Review.ensure_indexes()
    review_service.submit(str(movie.id), acc.id, 4, "Good")
    # the other submit passed its lookup before this one saved
    monkeypatch.setattr(review_service, "_existing_review", lambda media_id, account_id: None)

    with pytest.raises(Conflict):
        review_service.submit(str(movie.id), acc.id, 1, "Racing")
    assert [r.rating for r in Review.objects(media=movie.id)] == [4]


def _break_aggregation(monkeypatch):
    def boom(*args, **kwargs):
        raise OperationError("store down")

    monkeypatch.setattr(rating_aggregator, "compute_average", boom)


def test_review_writes_survive_failed_recompute(make_movie, make_account, monkeypatch, caplog):
    movie = make_movie()
    acc = make_account()
    review_service.submit(str(movie.id), acc.id, 2, "Weak")
    _break_aggregation(monkeypatch)

    review_service.update(str(movie.id), acc.id, rating=5)
    assert Review.objects.get(media=movie.id).rating == 5
    # stale until the reconciliation sweep runs
    assert Movie.objects.get(id=movie.id).average_rating == 2.0

    review_service.delete(str(movie.id), acc.id)
    assert Review.objects(media=movie.id).count() == 0

    other = make_account()
    review = review_service.submit(str(movie.id), other.id, 4, "Fine")
    assert Review.objects(id=review.id).count() == 1
    assert "Failed to recompute averageRating" in caplog.text
