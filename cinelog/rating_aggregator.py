"""Keeps the denormalized ``average_rating`` of movies and TV shows in line with their reviews."""
from datetime import datetime
import logging

from mongoengine.errors import OperationError
from pymongo.errors import PyMongoError

from cinelog.media import variant_for
from cinelog.models import Review
from cinelog.utils.helpers import round1
from cinelog.utils.mongo_data_loader import get_reviews_df, get_media_df

logger = logging.getLogger(__name__)


def compute_average(media_id, media_type):
    pipeline = [
        {"$group": {"_id": None, "total": {"$sum": "$rating"}, "count": {"$sum": 1}}}
    ]
    stats = list(Review.objects(media=media_id, media_type=media_type).aggregate(pipeline))
    if not stats or not stats[0]["count"]:
        return 0.0
    return round1(stats[0]["total"] / stats[0]["count"])


def recompute(media_id, media_type):
    """Recompute and persist the average rating of one media item.

    Returns the new average, or ``None`` when the store failed. A failure is
    logged and swallowed: the review write that triggered it has already
    happened and ``recompute_all`` repairs the drift later.
    """
    document = variant_for(media_type).document
    try:
        average = compute_average(media_id, media_type)
        document.objects(id=media_id).update_one(
            set__average_rating=average,
            set__updated_at=datetime.utcnow(),
        )
    except (PyMongoError, OperationError):
        logger.exception(
            "Failed to recompute averageRating for %s %s; stored value may be stale",
            media_type, media_id,
        )
        return None
    return average


def recompute_all():
    """Reconciliation sweep: rewrite every stored average that disagrees with the reviews."""
    reviews = get_reviews_df()
    media = get_media_df()

    expected = {}
    if not reviews.empty:
        grouped = reviews.groupby(["media", "media_type"])["rating"].agg(["sum", "count"])
        for (media_id, media_type), row in grouped.iterrows():
            expected[(media_id, media_type)] = round1(float(row["sum"]) / int(row["count"]))

    corrected = 0
    for row in media.itertuples(index=False):
        target = expected.get((row.media, row.media_type), 0.0)
        if row.average_rating != target:
            variant_for(row.media_type).document.objects(id=row.media).update_one(
                set__average_rating=target
            )
            corrected += 1

    known = set(zip(media["media"], media["media_type"]))
    orphaned = [key for key in expected if key not in known]
    if orphaned:
        logger.warning("%d review group(s) point at media that no longer exists", len(orphaned))

    logger.info("Rating reconciliation checked %d items, corrected %d", len(media), corrected)
    return {"checked": len(media), "corrected": corrected, "orphanedReviewGroups": len(orphaned)}
