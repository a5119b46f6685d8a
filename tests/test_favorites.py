import pytest
from bson import ObjectId

from cinelog import favorites
from cinelog.errors import Conflict, NotFound
from cinelog.media import MediaRef
from cinelog.models import Account


def test_add_and_list_mixed_variants(make_account, make_movie, make_show):
    acc = make_account()
    movie, show = make_movie("Film"), make_show("Series")

    assert favorites.add(acc.id, str(show.id)) == MediaRef(show.id, "TVShow")
    favorites.add(acc.id, str(movie.id))

    listed = favorites.list_favorites(acc.id)
    assert [(i["title"], i["contentType"]) for i in listed] == [("Series", "tv"), ("Film", "movie")]


def test_add_twice_is_conflict(make_account, make_movie):
    acc = make_account()
    movie = make_movie()
    favorites.add(acc.id, str(movie.id))

    with pytest.raises(Conflict):
        favorites.add(acc.id, str(movie.id))
    assert len(Account.objects.get(id=acc.id).favorites) == 1


def test_add_unknown_media(make_account):
    acc = make_account()
    with pytest.raises(NotFound):
        favorites.add(acc.id, str(ObjectId()))


def test_remove(make_account, make_movie):
    acc = make_account()
    movie = make_movie()
    favorites.add(acc.id, str(movie.id))

    favorites.remove(acc.id, str(movie.id))

    assert favorites.list_favorites(acc.id) == []
    with pytest.raises(NotFound):
        favorites.remove(acc.id, str(movie.id))


def test_drop_media_clears_every_account(make_account, make_movie):
    movie, other = make_movie(), make_movie()
    a, b = make_account(), make_account()
    for acc in (a, b):
        favorites.add(acc.id, str(movie.id))
    favorites.add(a.id, str(other.id))

    favorites.drop_media(MediaRef(movie.id, "Movie"))

    assert [i["_id"] for i in favorites.list_favorites(a.id)] == [str(other.id)]
    assert favorites.list_favorites(b.id) == []
