"""Admin-side create/update/delete of catalog items, one variant at a time."""
import logging

from mongoengine.errors import NotUniqueError, ValidationError as DocumentValidationError

from cinelog import favorites, review_service
from cinelog.errors import Conflict, NotFound, ValidationError
from cinelog.media import MOVIE, MediaRef, parse_object_id

logger = logging.getLogger(__name__)

COMMON_FIELDS = (
    "adult", "original_language", "overview", "popularity", "vote_average",
    "vote_count", "genre_names", "poster_url", "backdrop_url", "language", "cast",
)
VARIANT_FIELDS = {
    "Movie": ("title", "original_title", "release_date", "video", "length"),
    "TVShow": ("name", "original_name", "first_air_date", "origin_country"),
}
PROTECTED_FIELDS = {
    "_id", "created_by", "createdBy", "created_at", "createdAt",
    "updated_at", "updatedAt", "average_rating", "averageRating", "contentType", "type",
}


def _external_id(data):
    value = data.get("externalId", data.get("id"))
    if value is None or value == "":
        return None
    try:
        return int(value)
    except (TypeError, ValueError):
        raise ValidationError("External ID must be an integer")


def validate_media_data(data, variant):
    """Required provider fields for a new item; returns the list of problems."""
    errors = []
    if _external_id(data) is None:
        errors.append("External ID is required")
    if not data.get("original_language"):
        errors.append("Original language is required")
    if not data.get("overview"):
        errors.append("Overview is required")

    if variant is MOVIE:
        if not data.get("title"):
            errors.append("Title is required for movies")
        if not data.get("original_title"):
            errors.append("Original title is required for movies")
        if not data.get("release_date"):
            errors.append("Release date is required for movies")
    else:
        if not data.get("name"):
            errors.append("Name is required for series")
        if not data.get("original_name"):
            errors.append("Original name is required for series")
        if not data.get("first_air_date"):
            errors.append("First air date is required for series")
    return errors


def _assignable(data, variant):
    allowed = COMMON_FIELDS + VARIANT_FIELDS[variant.media_type]
    return {k: v for k, v in data.items() if k in allowed and k not in PROTECTED_FIELDS}


def _save(doc, variant):
    try:
        doc.save()
    except NotUniqueError:
        raise Conflict(f"{variant.label} with this external ID already exists")
    except DocumentValidationError as e:
        raise ValidationError("Validation failed", details=[str(e)])
    return doc


def get(variant, media_id):
    doc = variant.document.objects(id=parse_object_id(media_id, "media id")).first()
    if doc is None:
        raise NotFound(f"{variant.label} not found")
    return doc


def get_by_external_id(variant, external_id):
    doc = variant.document.objects(external_id=external_id).first()
    if doc is None:
        raise NotFound(f"{variant.label} not found")
    return doc


def create(variant, data, creator_id=None):
    errors = validate_media_data(data, variant)
    if errors:
        raise ValidationError("Validation failed", details=errors)

    external_id = _external_id(data)
    if variant.document.objects(external_id=external_id).first() is not None:
        raise Conflict(f"{variant.label} with this external ID already exists")

    doc = variant.document(external_id=external_id, created_by=creator_id, **_assignable(data, variant))
    _save(doc, variant)
    logger.info("Created %s %s (external id %s)", variant.media_type, doc.id, external_id)
    return doc


def update(variant, media_id, data):
    doc = get(variant, media_id)
    fields = _assignable(data, variant)

    external_id = _external_id(data)
    if external_id is not None and external_id != doc.external_id:
        if variant.document.objects(external_id=external_id, id__ne=doc.id).first() is not None:
            raise Conflict(f"{variant.label} with this external ID already exists")
        doc.external_id = external_id

    for key, value in fields.items():
        setattr(doc, key, value)
    return _save(doc, variant)


def delete(variant, media_id):
    """Delete an item together with its reviews and every favorite pointing at it."""
    doc = get(variant, media_id)
    ref = MediaRef(doc.id, variant.media_type)
    removed = review_service.delete_for_media(ref)
    favorites.drop_media(ref)
    doc.delete()
    logger.info("Deleted %s %s with %d review(s)", variant.media_type, doc.id, removed)
