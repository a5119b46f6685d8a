from datetime import datetime

from mongoengine import (
    Document, EmbeddedDocument, StringField, FloatField, BooleanField,
    ListField, DateTimeField, IntField, ObjectIdField, EmailField,
    EmbeddedDocumentField, EmbeddedDocumentListField
)

from cinelog import config

MEDIA_TYPES = ("Movie", "TVShow")


class TimestampedDocument(Document):
    meta = {'abstract': True}

    created_at      = DateTimeField()
    updated_at      = DateTimeField()

    def save(self, *args, **kwargs):
        now = datetime.utcnow()
        if not self.created_at:
            self.created_at = now
        self.updated_at = now
        return super().save(*args, **kwargs)


class MediaItem(TimestampedDocument):
    """Fields shared by movies and TV shows, shaped like the metadata provider's records."""
    meta = {'abstract': True}

    # sparse: old-shape records without a provider id coexist until migrated
    external_id       = IntField(required=True, unique=True, sparse=True)
    adult             = BooleanField(default=False)
    language          = StringField(default="English")
    original_language = StringField(required=True)
    overview          = StringField(required=True)
    popularity        = FloatField(default=0.0)
    vote_average      = FloatField(default=0.0, min_value=0, max_value=10)
    vote_count        = IntField(default=0)
    genre_names       = ListField(StringField())
    poster_url        = StringField(default=lambda: config.DEFAULT_POSTER_URL)
    backdrop_url      = StringField(default="")
    cast              = ListField(StringField())
    created_by        = ObjectIdField()
    average_rating    = FloatField(default=0.0)


class Movie(MediaItem):
    meta = {
        'collection': 'movies',
        'db_alias': 'default',
        'strict': False,
        'indexes': ['-popularity', '-vote_average', 'release_date']
    }
    title           = StringField(required=True)
    original_title  = StringField(required=True)
    release_date    = StringField(required=True)
    video           = BooleanField(default=False)
    length          = IntField(default=0)


class TVShow(MediaItem):
    meta = {
        'collection': 'tvshows',
        'db_alias': 'default',
        'strict': False,
        'indexes': ['-popularity', '-vote_average', 'first_air_date']
    }
    name            = StringField(required=True)
    original_name   = StringField(required=True)
    first_air_date  = StringField(required=True)
    origin_country  = ListField(StringField())


class Review(TimestampedDocument):
    meta = {
        'collection': 'reviews',
        'db_alias': 'default',
        'indexes': [
            {'fields': ('media', 'user'), 'unique': True},
            ('media', 'media_type'),
            'user',
        ]
    }
    media       = ObjectIdField(required=True)
    media_type  = StringField(required=True, choices=MEDIA_TYPES)
    user        = ObjectIdField(required=True)
    comment     = StringField(required=True)
    rating      = IntField(required=True, min_value=1, max_value=5)


class AccountSettings(EmbeddedDocument):
    show_adult_content = BooleanField(default=False)


class MediaLink(EmbeddedDocument):
    media       = ObjectIdField(required=True)
    media_type  = StringField(required=True, choices=MEDIA_TYPES)


class Account(TimestampedDocument):
    meta = {
        "collection": "users",
        "db_alias": "default",
        "strict": False,
        "indexes": ["-followers_count"]
    }
    name                        = StringField(required=True, min_length=3)
    username                    = StringField(required=True, unique=True)
    email                       = EmailField(required=True, unique=True)
    password_hash               = StringField(required=True)
    is_verified                 = BooleanField(default=False)
    email_verification_code     = StringField()
    email_verification_expires  = DateTimeField()
    password_reset_code         = StringField()
    password_reset_expires      = DateTimeField()
    country                     = StringField()
    profile_picture             = StringField(default=lambda: config.DEFAULT_PROFILE_PICTURE)
    is_admin                    = BooleanField(default=False)
    settings                    = EmbeddedDocumentField(AccountSettings, default=AccountSettings)
    favorites                   = EmbeddedDocumentListField(MediaLink)
    following                   = ListField(ObjectIdField())
    followers                   = ListField(ObjectIdField())
    following_count             = IntField(default=0, min_value=0)
    followers_count             = IntField(default=0, min_value=0)

    def clean(self):
        if self.email:
            self.email = self.email.strip().lower()
