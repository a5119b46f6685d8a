import logging
import re

from cinelog import favorites, rating_aggregator, review_service, social_graph
from cinelog.errors import InvalidOperation, NotFound
from cinelog.media import VARIANTS
from cinelog.models import Account, Review
from cinelog.utils.helpers import check_page, round1, total_pages
from cinelog.utils.mongo_data_loader import get_media_df, get_reviews_df
from cinelog.utils.serializers import serialize_account

logger = logging.getLogger(__name__)


def _get_account(account_id):
    acc = Account.objects(id=account_id).first()
    if acc is None:
        raise NotFound("User not found")
    return acc


def list_users(search=None, page=1, limit=10):
    page, limit = check_page(page, limit)
    query = {}
    if search:
        pattern = {"$regex": re.escape(search), "$options": "i"}
        query = {"$or": [{"name": pattern}, {"email": pattern}, {"username": pattern}]}

    qs = Account.objects(__raw__=query)
    total = qs.count()
    users = qs.order_by("-created_at", "-id").skip((page - 1) * limit).limit(limit)
    pages = total_pages(total, limit)
    return {
        "users": [serialize_account(u) for u in users],
        "pagination": {
            "currentPage": page,
            "totalPages": pages,
            "totalUsers": total,
            "hasNext": page < pages,
            "hasPrev": page > 1,
        },
    }


def user_detail(account_id):
    return serialize_account(_get_account(account_id))


def user_content(account_id):
    acc = _get_account(account_id)
    reviews = review_service.reviews_by_account(acc.id)
    favs = favorites.list_favorites(acc.id)
    return {
        "user": {"_id": str(acc.id), "name": acc.name, "username": acc.username, "email": acc.email},
        "reviews": reviews,
        "favorites": favs,
        "stats": {
            "totalReviews": len(reviews),
            "totalFavorites": len(favs),
            "followersCount": acc.followers_count,
            "followingCount": acc.following_count,
        },
    }


def delete_user(admin_id, account_id):
    """Delete an account with its reviews and follow edges."""
    if admin_id == account_id:
        raise InvalidOperation("You cannot delete yourself")
    acc = _get_account(account_id)
    review_service.delete_by_account(acc.id)
    social_graph.remove_account(acc.id)
    acc.delete()
    logger.info("Admin %s deleted account %s", admin_id, account_id)


def toggle_admin(admin_id, account_id):
    if admin_id == account_id:
        raise InvalidOperation("You cannot modify your own admin status")
    acc = _get_account(account_id)
    acc.is_admin = not acc.is_admin
    acc.save()
    logger.info("Admin %s set is_admin=%s on account %s", admin_id, acc.is_admin, account_id)
    return {
        "message": f"User {'promoted to' if acc.is_admin else 'removed from'} admin",
        "isAdmin": acc.is_admin,
    }


def site_stats():
    """Site totals. User review ratings (1-5) and provider votes (0-10) are reported separately."""
    reviews = get_reviews_df()
    media = get_media_df()

    counts = {v.media_type: int((media["media_type"] == v.media_type).sum()) for v in VARIANTS}
    total_votes = int(media["vote_count"].sum()) if not media.empty else 0
    external_average = 0
    if total_votes:
        weighted = (media["vote_average"] * media["vote_count"]).sum() / total_votes
        external_average = round(float(weighted), 2)

    return {
        "totalUsers": Account.objects.count(),
        "totalMovies": counts["Movie"],
        "totalSeries": counts["TVShow"],
        "totalContent": len(media),
        "totalReviews": len(reviews),
        "averageRating": round1(reviews["rating"].mean()) if not reviews.empty else 0,
        "externalAverageRating": external_average,
        "totalVotes": total_votes,
    }


def reconcile():
    return {
        "ratings": rating_aggregator.recompute_all(),
        "socialGraph": social_graph.reconcile(),
        "danglingReviews": Review.objects(user__nin=[a.id for a in Account.objects.only("id")]).count(),
    }
