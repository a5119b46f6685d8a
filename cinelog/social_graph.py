"""Follow relationships between accounts.

An edge A -> B lives on both documents: B in ``A.following`` and A in
``B.followers``, each list with its own counter. Every write below changes a
list and its counter in one conditional atomic update, so one document can
never disagree with itself; only the pair can drift, when the second write
fails. ``following`` is the side written first and is treated as the source
of truth by ``reconcile``.
"""
from datetime import datetime
import logging

from mongoengine.errors import OperationError
from pymongo.errors import PyMongoError

from cinelog.errors import AlreadyFollowing, InvalidOperation, NotFound, StoreError
from cinelog.models import Account
from cinelog.utils.helpers import check_page, page_envelope
from cinelog.utils.serializers import serialize_public_account

logger = logging.getLogger(__name__)


def _get_account(account_id):
    acc = Account.objects(id=account_id).first()
    if acc is None:
        raise NotFound("User not found")
    return acc


def _counts(follower_id, target_id):
    follower = Account.objects(id=follower_id).only("following_count").first()
    target = Account.objects(id=target_id).only("followers_count").first()
    return {
        "followersCount": target.followers_count if target else 0,
        "followingCount": follower.following_count if follower else 0,
    }


def _mirror(primary, undo, description):
    """Apply the second half of an edge write, undoing the first half if it fails."""
    try:
        primary()
    except (PyMongoError, OperationError):
        logger.exception("Second write of %s failed; undoing the first", description)
        try:
            undo()
        except (PyMongoError, OperationError):
            logger.error("Could not undo partial %s; run the social graph reconciliation", description)
        raise StoreError(f"Could not complete {description}")


def follow(follower_id, target_id):
    if follower_id == target_id:
        raise InvalidOperation("You cannot follow yourself")
    _get_account(target_id)
    follower = _get_account(follower_id)
    if target_id in follower.following:
        raise AlreadyFollowing("You are already following this user")

    now = datetime.utcnow()
    added = Account.objects(id=follower_id, following__ne=target_id).update_one(
        push__following=target_id, inc__following_count=1, set__updated_at=now
    )
    if not added:
        raise AlreadyFollowing("You are already following this user")

    _mirror(
        lambda: Account.objects(id=target_id, followers__ne=follower_id).update_one(
            push__followers=follower_id, inc__followers_count=1, set__updated_at=now
        ),
        lambda: Account.objects(id=follower_id, following=target_id).update_one(
            pull__following=target_id, dec__following_count=1
        ),
        f"follow {follower_id} -> {target_id}",
    )
    logger.info("Account %s now follows %s", follower_id, target_id)
    return dict(following=True, **_counts(follower_id, target_id))


def unfollow(follower_id, target_id):
    if follower_id == target_id:
        raise InvalidOperation("You cannot unfollow yourself")
    _get_account(target_id)
    follower = _get_account(follower_id)
    if target_id not in follower.following:
        raise InvalidOperation("You are not following this user")

    now = datetime.utcnow()
    removed = Account.objects(id=follower_id, following=target_id).update_one(
        pull__following=target_id, dec__following_count=1, set__updated_at=now
    )
    if not removed:
        raise InvalidOperation("You are not following this user")

    _mirror(
        lambda: Account.objects(id=target_id, followers=follower_id).update_one(
            pull__followers=follower_id, dec__followers_count=1, set__updated_at=now
        ),
        lambda: Account.objects(id=follower_id, following__ne=target_id).update_one(
            push__following=target_id, inc__following_count=1
        ),
        f"unfollow {follower_id} -> {target_id}",
    )
    logger.info("Account %s unfollowed %s", follower_id, target_id)
    return dict(following=False, **_counts(follower_id, target_id))


def _page_of(ids, page, limit):
    page, limit = check_page(page, limit)
    skip = (page - 1) * limit
    window = ids[skip:skip + limit]
    found = {a.id: a for a in Account.objects(id__in=window)}
    items = [serialize_public_account(found[i]) for i in window if i in found]
    return page_envelope(items, len(ids), page, limit)


def followers(account_id, page=1, limit=20):
    return _page_of(list(_get_account(account_id).followers), page, limit)


def following(account_id, page=1, limit=20):
    return _page_of(list(_get_account(account_id).following), page, limit)


def status(account_id, target_id):
    if account_id == target_id:
        return {
            "isFollowing": False,
            "canFollow": False,
            "ownProfile": True,
            "message": "This is your own profile",
        }
    target = _get_account(target_id)
    current = _get_account(account_id)
    return {
        "isFollowing": target_id in current.following,
        "canFollow": True,
        "ownProfile": False,
        "followersCount": target.followers_count,
        "followingCount": target.following_count,
    }


def suggestions(account_id, limit=10):
    """Most-followed accounts the caller does not follow yet."""
    current = _get_account(account_id)
    excluded = list(current.following) + [current.id]
    users = Account.objects(id__nin=excluded).order_by("-followers_count", "+id").limit(limit)
    items = [serialize_public_account(u) for u in users]
    return {"suggestedUsers": items, "count": len(items)}


def remove_account(account_id):
    """Strip a deleted account from everybody else's follow lists."""
    Account.objects(following=account_id).update(
        pull__following=account_id, dec__following_count=1
    )
    Account.objects(followers=account_id).update(
        pull__followers=account_id, dec__followers_count=1
    )


def reconcile():
    """Rebuild follower lists from following lists and reset both counters."""
    accounts = list(Account.objects.only("id", "following", "followers", "following_count", "followers_count"))
    known = {a.id for a in accounts}

    expected_followers = {a.id: [] for a in accounts}
    clean_following = {}
    for acc in accounts:
        targets = [t for t in dict.fromkeys(acc.following) if t in known and t != acc.id]
        clean_following[acc.id] = targets
        for t in targets:
            expected_followers[t].append(acc.id)

    repaired = 0
    for acc in accounts:
        want = set(expected_followers[acc.id])
        kept = [f for f in dict.fromkeys(acc.followers) if f in want]
        followers_list = kept + [f for f in expected_followers[acc.id] if f not in kept]
        following_list = clean_following[acc.id]
        if (
            following_list == list(acc.following)
            and followers_list == list(acc.followers)
            and acc.following_count == len(following_list)
            and acc.followers_count == len(followers_list)
        ):
            continue
        Account.objects(id=acc.id).update_one(
            set__following=following_list,
            set__followers=followers_list,
            set__following_count=len(following_list),
            set__followers_count=len(followers_list),
        )
        repaired += 1

    logger.info("Social graph reconciliation checked %d accounts, repaired %d", len(accounts), repaired)
    return {"checked": len(accounts), "repaired": repaired}
