"""User reviews of movies and TV shows.

One review per (media, account). Every write is followed by a synchronous
``rating_aggregator.recompute`` of the reviewed item before returning.
"""
import logging

from mongoengine.errors import NotUniqueError

from cinelog.errors import Conflict, NotFound, ValidationError
from cinelog.media import MediaRef, resolve_media, fetch_many
from cinelog.models import Account, Review
from cinelog import rating_aggregator
from cinelog.utils.helpers import round1
from cinelog.utils.serializers import serialize_review, serialize_media

logger = logging.getLogger(__name__)

RATING_VALUES = (1, 2, 3, 4, 5)


def _check_rating(rating):
    if isinstance(rating, bool) or not isinstance(rating, int) or rating not in RATING_VALUES:
        raise ValidationError("Rating must be an integer between 1 and 5")


def _check_comment(comment):
    if not isinstance(comment, str) or not comment.strip():
        raise ValidationError("Comment is required")


def _own_review(ref, account_id):
    review = Review.objects(media=ref.media_id, media_type=ref.media_type, user=account_id).first()
    if review is None:
        raise NotFound("Review not found")
    return review


def _existing_review(media_id, account_id):
    return Review.objects(media=media_id, user=account_id).first()


def submit(media_id, account_id, rating, comment):
    _check_rating(rating)
    _check_comment(comment)
    _, ref = resolve_media(media_id)

    if _existing_review(ref.media_id, account_id) is not None:
        raise Conflict("Movie/Series already reviewed")

    review = Review(
        media=ref.media_id,
        media_type=ref.media_type,
        user=account_id,
        comment=comment.strip(),
        rating=rating,
    )
    try:
        review.save()
    except NotUniqueError:
        # lost a race with a concurrent submit; the unique index decided
        raise Conflict("Movie/Series already reviewed")

    rating_aggregator.recompute(ref.media_id, ref.media_type)
    return review


def update(media_id, account_id, rating=None, comment=None):
    if rating is None and comment is None:
        raise ValidationError("Nothing to update: provide rating and/or comment")
    if rating is not None:
        _check_rating(rating)
    if comment is not None:
        _check_comment(comment)

    _, ref = resolve_media(media_id)
    review = _own_review(ref, account_id)

    if rating is not None:
        review.rating = rating
    if comment is not None:
        review.comment = comment.strip()
    review.save()

    rating_aggregator.recompute(ref.media_id, ref.media_type)
    return review


def delete(media_id, account_id):
    _, ref = resolve_media(media_id)
    review = _own_review(ref, account_id)
    review.delete()
    rating_aggregator.recompute(ref.media_id, ref.media_type)


def list_reviews(media_id):
    """All reviews of an item, newest first, each with its reviewer's public fields."""
    _, ref = resolve_media(media_id)
    reviews = list(
        Review.objects(media=ref.media_id, media_type=ref.media_type).order_by("-created_at", "-id")
    )
    reviewer_ids = {r.user for r in reviews}
    reviewers = {a.id: a for a in Account.objects(id__in=list(reviewer_ids))}
    return [serialize_review(r, reviewers) for r in reviews]


def stats(media_id):
    _, ref = resolve_media(media_id)
    pipeline = [{"$group": {"_id": "$rating", "count": {"$sum": 1}}}]
    buckets = Review.objects(media=ref.media_id, media_type=ref.media_type).aggregate(pipeline)

    distribution = {value: 0 for value in reversed(RATING_VALUES)}
    for bucket in buckets:
        distribution[int(bucket["_id"])] = bucket["count"]

    total = sum(distribution.values())
    average = round1(sum(k * v for k, v in distribution.items()) / total) if total else 0
    return {
        "totalReviews": total,
        "averageRating": average,
        "ratingDistribution": distribution,
    }


def reviews_by_account(account_id):
    reviews = list(Review.objects(user=account_id).order_by("-created_at", "-id"))
    media = fetch_many([MediaRef(r.media, r.media_type) for r in reviews])
    out = []
    for r in reviews:
        item = serialize_review(r)
        doc = media.get(MediaRef(r.media, r.media_type))
        item["mediaItem"] = serialize_media(doc) if doc is not None else None
        out.append(item)
    return out


def delete_for_media(ref):
    """Drop every review of a media item that is itself being deleted."""
    return Review.objects(media=ref.media_id, media_type=ref.media_type).delete()


def delete_by_account(account_id):
    """Drop an account's reviews and recompute each item they touched."""
    touched = {MediaRef(r.media, r.media_type) for r in Review.objects(user=account_id).only("media", "media_type")}
    removed = Review.objects(user=account_id).delete()
    for ref in touched:
        rating_aggregator.recompute(ref.media_id, ref.media_type)
    logger.info("Removed %d review(s) of account %s across %d item(s)", removed, account_id, len(touched))
    return removed
