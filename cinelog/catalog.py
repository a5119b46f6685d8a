"""Filtered, sorted and paginated listings over movies and TV shows.

Each collection is queried with the same filters (translated to its own
field names), results are formatted into one shape tagged ``contentType``,
and combined listings are merged and re-sorted before the requested page is
cut, so ordering holds across both collections.
"""
from datetime import date
import logging
import math
import re

from pandas import to_numeric

from cinelog import config
from cinelog.errors import ValidationError
from cinelog.media import VARIANTS, MOVIE, TV_SHOW, variant_for_content_type
from cinelog.utils.helpers import check_page, round1, total_pages
from cinelog.utils.mongo_data_loader import get_media_df
from cinelog.utils.serializers import serialize_media

logger = logging.getLogger(__name__)

CONTENT_TYPES = ("all", "movie", "tv")

# request sort key -> canonical key
SORT_ALIASES = {
    "popularity": "popularity",
    "rating": "vote_average",
    "vote_average": "vote_average",
    "release_date": "date",
    "first_air_date": "date",
    "date": "date",
    "title": "title",
    "name": "title",
    "vote_count": "vote_count",
    "user_rating": "average_rating",
}

# canonical key -> key of the formatted item used when merging
MERGE_KEYS = {
    "popularity": "popularity",
    "vote_average": "vote_average",
    "date": "releaseDate",
    "title": "title",
    "vote_count": "vote_count",
    "average_rating": "averageRating",
}

QUICK_FILTERS = ("top_rated", "popular", "recent", "upcoming", "classic")

FILTER_KEYS = (
    "language", "original_language", "genre", "adult", "year", "min_rating",
    "max_rating", "min_popularity", "min_votes", "search", "country", "filter",
)

TOP_RATED_MIN_VOTES = 100


def _store_field(variant, key):
    if key == "date":
        return variant.date_field
    if key == "title":
        return variant.title_field
    return key


def _range(query, field, op, value):
    query.setdefault(field, {})
    query[field][op] = value


def _shows_adult(viewer):
    settings = getattr(viewer, "settings", None)
    return bool(settings and settings.show_adult_content)


def build_query(variant, filters, viewer=None, sort_by=None, order=None, today=None):
    """Translate request filters into ``(raw mongo query, (canonical sort key, direction))``.

    Returns ``None`` for the query when the filters cannot match this variant
    at all (origin-country filtering only applies to TV shows).
    """
    today = today or date.today()
    date_field = variant.date_field
    query = {}

    key = SORT_ALIASES.get(sort_by or "popularity")
    if key is None:
        raise ValidationError(f"Unsupported sort_by: {sort_by}")
    if order not in (None, "asc", "desc"):
        raise ValidationError(f"Unsupported order: {order}")
    direction = 1 if order == "asc" else -1

    if filters.get("country"):
        if variant is not TV_SHOW:
            return None, (key, direction)
        query["origin_country"] = {"$in": [filters["country"]]}

    if filters.get("language"):
        query["language"] = filters["language"]
    if filters.get("original_language"):
        query["original_language"] = filters["original_language"]
    if filters.get("genre"):
        query["genre_names"] = {"$in": [filters["genre"]]}

    # an explicit adult parameter beats the viewer's setting
    if filters.get("adult") is not None:
        query["adult"] = bool(filters["adult"])
    elif not _shows_adult(viewer):
        query["adult"] = {"$ne": True}

    if filters.get("year"):
        query[date_field] = {"$regex": "^" + re.escape(str(filters["year"]))}

    if filters.get("min_rating") is not None:
        _range(query, "vote_average", "$gte", float(filters["min_rating"]))
    if filters.get("max_rating") is not None:
        _range(query, "vote_average", "$lte", float(filters["max_rating"]))
    if filters.get("min_popularity") is not None:
        _range(query, "popularity", "$gte", float(filters["min_popularity"]))
    if filters.get("min_votes") is not None:
        _range(query, "vote_count", "$gte", int(filters["min_votes"]))

    if filters.get("search"):
        pattern = {"$regex": re.escape(filters["search"]), "$options": "i"}
        query["$or"] = [
            {variant.title_field: pattern},
            {variant.original_title_field: pattern},
            {"overview": pattern},
        ]

    quick = filters.get("filter")
    if quick:
        if quick not in QUICK_FILTERS:
            raise ValidationError(f"Unsupported filter: {quick}")
        if quick == "top_rated":
            query["vote_count"] = {"$gte": TOP_RATED_MIN_VOTES}
            key, direction = "vote_average", -1
        elif quick == "popular":
            key, direction = "popularity", -1
        elif quick == "recent":
            year = today.year
            query[date_field] = {"$regex": f"^{year}|^{year - 1}"}
            key, direction = "date", -1
        elif quick == "upcoming":
            query[date_field] = {"$gt": today.isoformat()}
            key, direction = "date", 1
        elif quick == "classic":
            query[date_field] = {"$regex": "^19"}
            key, direction = "vote_average", -1

    return query, (key, direction)


def _merge_value(item, key):
    value = item.get(MERGE_KEYS[key])
    if key == "title" and value is not None:
        value = value.lower()
    # missing values order before any present value, as in the store
    return (0, 0) if value is None else (1, value)


def _order_by(variant, key, direction):
    prefix = "+" if direction == 1 else "-"
    return (prefix + _store_field(variant, key), "+id")


def search(filters=None, sort_by=None, order=None, page=1, limit=None, content_type="all", viewer=None, today=None):
    """Run a catalog search and return one page of results.

    ``viewer`` is the requesting ``Account`` (or ``None`` when anonymous);
    its ``show_adult_content`` setting applies unless ``filters["adult"]``
    is given explicitly.
    """
    filters = {k: v for k, v in (filters or {}).items() if v is not None and v != ""}
    page, limit = check_page(page, limit)
    content_type = content_type or "all"
    if content_type not in CONTENT_TYPES:
        raise ValidationError(f"Unsupported type: {content_type}")

    variants = VARIANTS if content_type == "all" else (variant_for_content_type(content_type),)
    skip = (page - 1) * limit

    totals = {v.content_type: 0 for v in VARIANTS}
    planned = []
    sort_key, direction = "popularity", -1
    for variant in variants:
        query, (sort_key, direction) = build_query(variant, filters, viewer, sort_by, order, today)
        if query is None:
            continue
        qs = variant.document.objects(__raw__=query).order_by(*_order_by(variant, sort_key, direction))
        totals[variant.content_type] = qs.count()
        planned.append((variant, qs))

    # titles compare case-insensitively, which the store's order does not follow
    if len(planned) == 1 and sort_key != "title":
        _, qs = planned[0]
        items = [serialize_media(doc) for doc in qs.skip(skip).limit(limit)]
    else:
        # the first page*limit of each collection are enough to build the merged page
        window = skip + limit
        merged = []
        for _, qs in planned:
            docs = qs if sort_key == "title" else qs.limit(window)
            merged.extend(serialize_media(doc) for doc in docs)
        merged.sort(key=lambda item: _merge_value(item, sort_key), reverse=direction == -1)
        items = merged[skip:skip + limit]

    total = sum(totals.values())
    return {
        "page": page,
        "limit": limit,
        "totalPages": total_pages(total, limit),
        "totalItems": total,
        "totalMovies": totals[MOVIE.content_type],
        "totalTVShows": totals[TV_SHOW.content_type],
        "filters": {
            "applied": sorted(filters),
            "available": list(FILTER_KEYS) + ["type", "sort_by", "order"],
        },
        "items": items,
    }


SORT_OPTIONS = [
    {"value": "popularity", "label": "Popularity", "direction": "desc"},
    {"value": "rating", "label": "Rating", "direction": "desc"},
    {"value": "release_date", "label": "Release Date", "direction": "desc"},
    {"value": "title", "label": "Title A-Z", "direction": "asc"},
    {"value": "vote_count", "label": "Vote Count", "direction": "desc"},
    {"value": "user_rating", "label": "User Rating", "direction": "desc"},
]

QUICK_FILTER_OPTIONS = [
    {"value": "top_rated", "label": "Top Rated", "description": f"At least {TOP_RATED_MIN_VOTES} votes, best rated first"},
    {"value": "popular", "label": "Popular", "description": "Most popular first"},
    {"value": "recent", "label": "Recent", "description": "Released this year or last year"},
    {"value": "upcoming", "label": "Upcoming", "description": "Not released yet, soonest first"},
    {"value": "classic", "label": "Classic", "description": "Released in the 1900s, best rated first"},
]


POPULAR_RATINGS = [7, 8, 9]

# upper bound is exclusive; None means open-ended
POPULARITY_RANGES = [
    {"label": "Low", "min": 0, "max": 100},
    {"label": "Medium", "min": 100, "max": 500},
    {"label": "High", "min": 500, "max": 1000},
    {"label": "Very High", "min": 1000, "max": None},
]

FILTER_STAT_TYPES = ("years", "genres")


def _years(df):
    return to_numeric(df["date"].str[:4], errors="coerce").dropna().astype(int)


def _popularity_ranges(df):
    ranges = []
    for bucket in POPULARITY_RANGES:
        count = 0
        if not df.empty:
            inside = df["popularity"] >= bucket["min"]
            if bucket["max"] is not None:
                inside &= df["popularity"] < bucket["max"]
            count = int(inside.sum())
        ranges.append(dict(bucket, count=count))
    return ranges


def facets(today=None):
    """Values available for filtering, gathered from both collections."""
    today = today or date.today()
    df = get_media_df()
    names = config.load_language_names()

    counts = df["media_type"].value_counts().to_dict() if not df.empty else {}
    result = {
        "years": [],
        "genres": [],
        "languages": [],
        "originalLanguages": [],
        "ratings": {"min": 0, "max": 10, "popular": POPULAR_RATINGS},
        "popularity": {"ranges": _popularity_ranges(df)},
        "contentTypes": [
            {"value": v.content_type, "label": v.label + "s", "count": int(counts.get(v.media_type, 0))}
            for v in VARIANTS
        ],
        "sortOptions": SORT_OPTIONS,
        "quickFilters": QUICK_FILTER_OPTIONS,
    }
    if df.empty:
        return result

    years = _years(df)
    years = years[(years > 1900) & (years <= today.year + 5)]
    result["years"] = sorted(set(years.tolist()), reverse=True)

    genres = df["genre_names"].explode().dropna()
    genres = genres[genres != ""]
    result["genres"] = [
        {"name": name, "count": int(count)}
        for name, count in sorted(genres.value_counts().items(), key=lambda kv: (-kv[1], kv[0]))
    ]

    codes = sorted(c for c in df["original_language"].unique() if c)
    languages = [{"code": c, "name": names.get(c, c.upper())} for c in codes]
    result["languages"] = sorted(languages, key=lambda l: l["name"])
    result["originalLanguages"] = result["languages"]

    result["ratings"] = {
        "min": float(df["vote_average"].min()),
        "max": float(df["vote_average"].max()),
        "average": round(float(df["vote_average"].mean()), 2),
        "popular": POPULAR_RATINGS,
    }
    return result


def filter_stats(filter_type):
    """Per-year counts, or per-genre counts with mean provider rating and popularity."""
    if filter_type not in FILTER_STAT_TYPES:
        raise ValidationError(f"Unsupported filter type: {filter_type}")

    df = get_media_df()
    stats = []
    if filter_type == "years" and not df.empty:
        counts = _years(df).value_counts().sort_index(ascending=False)
        stats = [{"year": int(year), "count": int(count)} for year, count in counts.items()]
    elif filter_type == "genres" and not df.empty:
        rows = df[["genre_names", "vote_average", "popularity"]].explode("genre_names")
        rows = rows[rows["genre_names"].notna() & (rows["genre_names"] != "")]
        grouped = rows.groupby("genre_names").agg(
            total=("vote_average", "size"),
            avg_rating=("vote_average", "mean"),
            avg_popularity=("popularity", "mean"),
        )
        grouped = grouped.reset_index().sort_values(["total", "genre_names"], ascending=[False, True])
        stats = [
            {
                "genre": row.genre_names,
                "count": int(row.total),
                "avgRating": round1(row.avg_rating),
                "avgPopularity": int(math.floor(row.avg_popularity + 0.5)),
            }
            for row in grouped.itertuples(index=False)
        ]
    return {"filterType": filter_type, "stats": stats}
