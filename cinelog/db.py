from mongoengine import connect, disconnect
import logging

from cinelog import config

logger = logging.getLogger(__name__)


def init_db(**kwargs):
    """Register the default mongoengine connection used by every document."""
    if not config.MONGO_URI:
        raise EnvironmentError("MONGO_URI not found in environment")

    try:
        connect(
            db=config.MONGO_DB,
            host=config.MONGO_URI,
            alias="default",
            **kwargs
        )
    except Exception as e:
        raise RuntimeError(f"Failed to connect to MongoDB via MongoEngine: {e}") from e
    logger.info("MongoEngine connection registered for database %s", config.MONGO_DB)


def close_db():
    disconnect(alias="default")
