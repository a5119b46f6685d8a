"""Adapter between the old media record shape and the current one.

Old records in ``movies`` carry ``description``, ``genre``, ``posterUrl``,
``releaseDate``, a raw provider ``id``, sometimes a ``type: "series"`` tag,
and reviews embedded in the document. ``migrate_legacy_media`` rewrites them
into the current schema (reviews move to the ``reviews`` collection, series
move to ``tvshows``); ``legacy_view`` renders a current record with the old
field names for clients that still read them.
"""
from datetime import datetime
import logging

from pymongo.errors import DuplicateKeyError

from cinelog import rating_aggregator
from cinelog.media import MOVIE, TV_SHOW, variant_of
from cinelog.models import Account, Movie, Review, TVShow
from cinelog.utils.helpers import iso

logger = logging.getLogger(__name__)

LEGACY_MARKERS = [
    {"external_id": {"$exists": False}},
    {"overview": {"$exists": False}},
    {"reviews": {"$exists": True}},
    {"type": {"$exists": True}},
]

LEGACY_FIELDS = ["id", "description", "genre", "posterUrl", "releaseDate", "reviews", "type", "createdBy", "createdAt", "updatedAt"]


def _next_local_id(collection):
    lowest = collection.find_one({"external_id": {"$lt": 0}}, sort=[("external_id", 1)])
    return (lowest["external_id"] if lowest else 0) - 1


def _date_string(value):
    if isinstance(value, datetime):
        return value.date().isoformat()
    return str(value)[:10] if value else ""


def _current_fields(raw, collection):
    """Field values in the current shape for one old record (shared by both variants)."""
    fields = {}
    if "external_id" not in raw:
        raw_id = raw.get("id")
        fields["external_id"] = raw_id if isinstance(raw_id, int) else _next_local_id(collection)
    if not raw.get("overview"):
        fields["overview"] = raw.get("description") or ""
    if not raw.get("genre_names") and raw.get("genre"):
        genre = raw["genre"]
        fields["genre_names"] = list(genre) if isinstance(genre, list) else [g.strip() for g in str(genre).split(",") if g.strip()]
    if not raw.get("poster_url") and raw.get("posterUrl"):
        fields["poster_url"] = raw["posterUrl"]
    if not raw.get("original_language"):
        language = raw.get("language")
        fields["original_language"] = language if isinstance(language, str) and len(language) == 2 else "en"
    if raw.get("createdBy") and not raw.get("created_by"):
        fields["created_by"] = raw["createdBy"]
    if raw.get("createdAt") and not raw.get("created_at"):
        fields["created_at"] = raw["createdAt"]
    fields["updated_at"] = datetime.utcnow()
    return fields


def _move_embedded_reviews(raw, media_type):
    moved = 0
    for entry in raw.get("reviews") or []:
        user, rating = entry.get("user"), entry.get("rating")
        if user is None or not isinstance(rating, (int, float)) or not 1 <= rating <= 5:
            logger.warning("Skipping malformed embedded review on %s: %r", raw["_id"], entry)
            continue
        if Review.objects(media=raw["_id"], user=user).first() is not None:
            continue
        review = Review(
            media=raw["_id"],
            media_type=media_type,
            user=user,
            comment=entry.get("comment") or "",
            rating=int(round(rating)),
        )
        review.created_at = entry.get("createdAt")
        review.save()
        moved += 1
    return moved


def _migrate_movie(raw, movies):
    fields = _current_fields(raw, movies)
    if not raw.get("release_date"):
        fields["release_date"] = _date_string(raw.get("releaseDate"))
    if not raw.get("original_title"):
        fields["original_title"] = raw.get("title") or ""
    moved = _move_embedded_reviews(raw, MOVIE.media_type)
    change = {"$set": fields, "$unset": {f: "" for f in LEGACY_FIELDS if f in raw}}
    try:
        movies.update_one({"_id": raw["_id"]}, change)
    except DuplicateKeyError:
        # provider id already taken by a current record
        fields["external_id"] = _next_local_id(movies)
        movies.update_one({"_id": raw["_id"]}, change)
    return moved


def _migrate_series(raw, movies, shows):
    """Move a ``type: "series"`` record from ``movies`` into ``tvshows`` under the same id."""
    doc = {k: v for k, v in raw.items() if k not in LEGACY_FIELDS and k not in ("title", "original_title", "release_date", "video", "length")}
    doc.update(_current_fields(raw, shows))
    title = raw.get("name") or raw.get("title") or ""
    doc["name"] = title
    doc["original_name"] = raw.get("original_name") or title
    doc["first_air_date"] = raw.get("first_air_date") or _date_string(raw.get("release_date") or raw.get("releaseDate"))
    doc.setdefault("origin_country", [])

    try:
        shows.insert_one(doc)
    except DuplicateKeyError:
        logger.warning("Series %s clashes with an existing TV show external id; left in movies", raw["_id"])
        return None
    moved = _move_embedded_reviews(raw, TV_SHOW.media_type)
    movies.delete_one({"_id": raw["_id"]})

    # references written while the record still lived in movies
    Review.objects(media=raw["_id"]).update(set__media_type=TV_SHOW.media_type)
    Account.objects(favorites__media=raw["_id"]).update(set__favorites__S__media_type=TV_SHOW.media_type)
    return moved


def migrate_legacy_media():
    """Rewrite every old-shape record; returns counts of what changed."""
    movies = Movie._get_collection()
    shows = TVShow._get_collection()

    migrated = series = reviews_moved = 0
    touched = []
    for raw in list(movies.find({"$or": LEGACY_MARKERS})):
        if raw.get("type") == "series":
            moved = _migrate_series(raw, movies, shows)
            if moved is None:
                continue
            reviews_moved += moved
            touched.append((raw["_id"], TV_SHOW.media_type))
            series += 1
        else:
            reviews_moved += _migrate_movie(raw, movies)
            touched.append((raw["_id"], MOVIE.media_type))
        migrated += 1

    for media_id, media_type in touched:
        rating_aggregator.recompute(media_id, media_type)

    logger.info("Migrated %d legacy media record(s) (%d series), moved %d review(s)", migrated, series, reviews_moved)
    return {"migrated": migrated, "movedToTVShows": series, "reviewsMoved": reviews_moved}


def legacy_view(doc):
    """Old field names for a current record, with reviews embedded the old way."""
    variant = variant_of(doc)
    reviews = Review.objects(media=doc.id, media_type=variant.media_type).order_by("+created_at")
    return {
        "_id": str(doc.id),
        "id": doc.external_id,
        "type": "movie" if variant is MOVIE else "series",
        "title": getattr(doc, variant.title_field),
        "description": doc.overview,
        "posterUrl": doc.poster_url,
        "releaseDate": getattr(doc, variant.date_field),
        "genre": list(doc.genre_names or []),
        "createdBy": str(doc.created_by) if doc.created_by else None,
        "averageRating": doc.average_rating or 0,
        "reviews": [
            {
                "_id": str(r.id),
                "user": str(r.user),
                "comment": r.comment,
                "rating": r.rating,
                "createdAt": iso(r.created_at),
            }
            for r in reviews
        ],
        "createdAt": iso(doc.created_at),
        "updatedAt": iso(doc.updated_at),
    }
