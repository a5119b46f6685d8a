"""Polymorphic media references.

A review, a favorite or a catalog row points at either a ``Movie`` or a
``TVShow``. The differences between the two variants (collection, field
names, client-facing content type) are described once in ``VARIANTS`` and
every id lookup goes through ``resolve_media``.
"""
from collections import namedtuple

from bson import ObjectId
from bson.errors import InvalidId

from cinelog.errors import NotFound, ValidationError
from cinelog.models import Movie, TVShow

Variant = namedtuple(
    "Variant",
    [
        "media_type",      # discriminator stored on reviews/favorites
        "content_type",    # tag used in client-facing payloads
        "document",
        "title_field",
        "original_title_field",
        "date_field",
        "label",
    ],
)

MOVIE = Variant("Movie", "movie", Movie, "title", "original_title", "release_date", "Movie")
TV_SHOW = Variant("TVShow", "tv", TVShow, "name", "original_name", "first_air_date", "TV Show")

# Lookup order matters: ids are tried against movies first.
VARIANTS = (MOVIE, TV_SHOW)

_BY_MEDIA_TYPE = {v.media_type: v for v in VARIANTS}
_BY_CONTENT_TYPE = {v.content_type: v for v in VARIANTS}


class MediaRef(namedtuple("MediaRef", ["media_id", "media_type"])):
    """Tagged reference: ``MediaRef(id, "Movie")`` or ``MediaRef(id, "TVShow")``."""

    __slots__ = ()

    @property
    def variant(self):
        return variant_for(self.media_type)

    def fetch(self):
        return self.variant.document.objects(id=self.media_id).first()


def variant_for(media_type):
    try:
        return _BY_MEDIA_TYPE[media_type]
    except KeyError:
        raise ValidationError(f"Unknown media type: {media_type}")


def variant_for_content_type(content_type):
    try:
        return _BY_CONTENT_TYPE[content_type]
    except KeyError:
        raise ValidationError(f"Unknown content type: {content_type}")


def variant_of(doc):
    for variant in VARIANTS:
        if isinstance(doc, variant.document):
            return variant
    raise ValidationError(f"Not a media document: {type(doc).__name__}")


def parse_object_id(value, what="id"):
    if isinstance(value, ObjectId):
        return value
    try:
        return ObjectId(str(value))
    except (InvalidId, TypeError):
        raise ValidationError(f"Invalid {what}")


def resolve_media(media_id):
    """Find a media item by id in either collection.

    Returns ``(document, MediaRef)``; raises ``NotFound`` when neither
    collection holds the id.
    """
    oid = parse_object_id(media_id, "media id")
    for variant in VARIANTS:
        doc = variant.document.objects(id=oid).first()
        if doc is not None:
            return doc, MediaRef(oid, variant.media_type)
    raise NotFound("Movie/Series not found")


def ref_of(doc):
    return MediaRef(doc.id, variant_of(doc).media_type)


def fetch_many(refs):
    """Load several references with one query per variant, keyed by ``MediaRef``."""
    found = {}
    for variant in VARIANTS:
        ids = [r.media_id for r in refs if r.media_type == variant.media_type]
        if not ids:
            continue
        for doc in variant.document.objects(id__in=ids):
            found[MediaRef(doc.id, variant.media_type)] = doc
    return found
