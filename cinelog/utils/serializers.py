from cinelog.media import MOVIE, variant_of
from cinelog.utils.helpers import iso


def _common_fields(doc):
    return {
        "_id": str(doc.id),
        "externalId": doc.external_id,
        "overview": doc.overview,
        "poster_url": doc.poster_url,
        "backdrop_url": doc.backdrop_url,
        "genre_names": doc.genre_names or [],
        "vote_average": doc.vote_average,
        "vote_count": doc.vote_count,
        "popularity": doc.popularity,
        "adult": doc.adult,
        "language": doc.language,
        "original_language": doc.original_language,
        "cast": doc.cast or [],
        "averageRating": doc.average_rating or 0,
        "createdBy": str(doc.created_by) if doc.created_by else None,
        "createdAt": iso(doc.created_at),
        "updatedAt": iso(doc.updated_at),
    }


def serialize_movie(doc):
    out = _common_fields(doc)
    out.update({
        "contentType": "movie",
        "title": doc.title or doc.original_title,
        "original_title": doc.original_title,
        "release_date": doc.release_date,
        "releaseDate": doc.release_date,
        "video": doc.video,
        "length": doc.length,
    })
    return out


def serialize_show(doc):
    out = _common_fields(doc)
    out.update({
        "contentType": "tv",
        "title": doc.name or doc.original_name,
        "name": doc.name,
        "original_name": doc.original_name,
        "first_air_date": doc.first_air_date,
        "releaseDate": doc.first_air_date,
        "origin_country": doc.origin_country or [],
    })
    return out


def serialize_media(doc):
    """Common response shape for either variant, tagged with ``contentType``."""
    if variant_of(doc) is MOVIE:
        return serialize_movie(doc)
    return serialize_show(doc)


def serialize_public_account(acc):
    if acc is None:
        return None
    return {
        "_id": str(acc.id),
        "name": acc.name,
        "username": acc.username,
        "profilePicture": acc.profile_picture,
        "followersCount": acc.followers_count,
        "followingCount": acc.following_count,
    }


def serialize_account(acc):
    """Owner/admin view: public fields plus private profile, never credentials or codes."""
    out = serialize_public_account(acc)
    out.update({
        "email": acc.email,
        "country": acc.country,
        "isAdmin": acc.is_admin,
        "isVerified": acc.is_verified,
        "settings": {"showAdultContent": bool(acc.settings and acc.settings.show_adult_content)},
        "createdAt": iso(acc.created_at),
    })
    return out


def serialize_review(review, reviewers=None):
    # with a reviewers map the user is embedded (None once the account is gone), else just its id
    if reviewers is not None:
        user = serialize_public_account(reviewers.get(review.user))
    else:
        user = str(review.user)
    return {
        "_id": str(review.id),
        "media": str(review.media),
        "mediaType": review.media_type,
        "user": user,
        "comment": review.comment,
        "rating": review.rating,
        "createdAt": iso(review.created_at),
        "updatedAt": iso(review.updated_at),
    }
