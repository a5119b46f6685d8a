from datetime import datetime

from cinelog.errors import Conflict, NotFound
from cinelog.media import MediaRef, resolve_media, fetch_many, parse_object_id
from cinelog.models import Account, MediaLink
from cinelog.utils.serializers import serialize_media


def add(account_id, media_id):
    _, ref = resolve_media(media_id)
    added = Account.objects(id=account_id, favorites__media__ne=ref.media_id).update_one(
        push__favorites=MediaLink(media=ref.media_id, media_type=ref.media_type),
        set__updated_at=datetime.utcnow(),
    )
    if not added:
        if Account.objects(id=account_id).first() is None:
            raise NotFound("User not found")
        raise Conflict("Already in favorites")
    return ref


def remove(account_id, media_id):
    oid = parse_object_id(media_id, "media id")
    removed = Account.objects(id=account_id, favorites__media=oid).update_one(
        pull__favorites__media=oid,
        set__updated_at=datetime.utcnow(),
    )
    if not removed:
        raise NotFound("Not in favorites")


def list_favorites(account_id):
    """Favorited items in the order they were added; links to deleted media are skipped."""
    account = Account.objects(id=account_id).only("favorites").first()
    if account is None:
        raise NotFound("User not found")
    refs = [MediaRef(link.media, link.media_type) for link in account.favorites]
    docs = fetch_many(refs)
    return [serialize_media(docs[r]) for r in refs if r in docs]


def drop_media(ref):
    """Remove a deleted media item from every account's favorites."""
    return Account.objects(favorites__media=ref.media_id).update(pull__favorites__media=ref.media_id)
