import mongomock
import pytest
from mongoengine import connect, disconnect

from cinelog import auth, mailer
from cinelog.models import Account, Movie, Review, TVShow


class RecordingSender(mailer.EmailSender):
    def __init__(self):
        self.sent = []

    def send(self, recipient, subject, body):
        self.sent.append((recipient, subject, body))
        return True


@pytest.fixture(autouse=True)
def mongo():
    disconnect(alias="default")
    connect("cinelog-test", host="mongodb://localhost", mongo_client_class=mongomock.MongoClient, alias="default")
    yield
    for doc in (Account, Movie, TVShow, Review):
        doc.drop_collection()
    disconnect(alias="default")


@pytest.fixture
def outbox():
    sender = RecordingSender()
    previous = mailer.use_sender(sender)
    yield sender.sent
    mailer.use_sender(previous)


@pytest.fixture
def make_account():
    counter = {"n": 0}

    def _make(name=None, is_admin=False, show_adult=False, password="secret123"):
        counter["n"] += 1
        name = name or f"user{counter['n']}"
        acc = Account(
            name=name,
            username=name,
            email=f"{name}@example.com",
            password_hash=auth.hash_password(password),
            is_verified=True,
            is_admin=is_admin,
        )
        acc.settings.show_adult_content = show_adult
        acc.save()
        return acc

    return _make


@pytest.fixture
def make_movie():
    counter = {"n": 0}

    def _make(title=None, **fields):
        counter["n"] += 1
        title = title or f"Movie {counter['n']}"
        defaults = {
            "external_id": 1000 + counter["n"],
            "original_language": "en",
            "overview": f"About {title}",
            "original_title": title,
            "release_date": "2020-01-01",
        }
        defaults.update(fields)
        movie = Movie(title=title, **defaults)
        movie.save()
        return movie

    return _make


@pytest.fixture
def make_show():
    counter = {"n": 0}

    def _make(name=None, **fields):
        counter["n"] += 1
        name = name or f"Show {counter['n']}"
        defaults = {
            "external_id": 5000 + counter["n"],
            "original_language": "en",
            "overview": f"About {name}",
            "original_name": name,
            "first_air_date": "2019-01-01",
        }
        defaults.update(fields)
        show = TVShow(name=name, **defaults)
        show.save()
        return show

    return _make


@pytest.fixture
def token_for():
    def _token(account):
        return {"Authorization": f"Bearer {auth.create_token(account)}"}

    return _token
