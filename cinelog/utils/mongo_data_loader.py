import pandas as pd

from cinelog.models import Review
from cinelog.media import VARIANTS

REVIEW_COLUMNS = ["media", "media_type", "user", "rating"]
MEDIA_COLUMNS = [
    "media", "media_type", "date", "genre_names", "original_language",
    "vote_average", "vote_count", "popularity", "average_rating",
]


# --- Load reviews ---
def get_reviews_df():
    reviews = Review.objects.only("media", "media_type", "user", "rating")
    return pd.DataFrame([{
        "media":      r.media,
        "media_type": r.media_type,
        "user":       r.user,
        "rating":     r.rating
    } for r in reviews], columns=REVIEW_COLUMNS)


# --- Load media metadata (both variants, one row per item) ---
def get_media_df(variants=VARIANTS):
    rows = []
    for variant in variants:
        docs = variant.document.objects.only(
            "id", variant.date_field, "genre_names", "original_language",
            "vote_average", "vote_count", "popularity", "average_rating"
        )
        rows.extend({
            "media":             m.id,
            "media_type":        variant.media_type,
            "date":              getattr(m, variant.date_field) or "",
            "genre_names":       m.genre_names or [],
            "original_language": m.original_language or "",
            "vote_average":      m.vote_average or 0.0,
            "vote_count":        m.vote_count or 0,
            "popularity":        m.popularity or 0.0,
            "average_rating":    m.average_rating or 0.0,
        } for m in docs)
    return pd.DataFrame(rows, columns=MEDIA_COLUMNS)
