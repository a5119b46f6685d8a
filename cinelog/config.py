from dotenv import load_dotenv
import json
import logging
import os

load_dotenv()

BASE_DIR = os.path.dirname(os.path.abspath(__file__))

MONGO_URI = os.getenv("MONGO_URI")
MONGO_DB = os.getenv("MONGO_DB", "cinelog")

JWT_SECRET = os.getenv("JWT_SECRET", "change-me")
JWT_ALGORITHM = os.getenv("JWT_ALGORITHM", "HS256")
JWT_EXPIRES_DAYS = int(os.getenv("JWT_EXPIRES_DAYS", "7"))

VERIFICATION_CODE_TTL_MINUTES = int(os.getenv("VERIFICATION_CODE_TTL_MINUTES", "10"))
RESET_CODE_TTL_MINUTES = int(os.getenv("RESET_CODE_TTL_MINUTES", "10"))

DEFAULT_POSTER_URL = os.getenv("DEFAULT_POSTER_URL", "")
DEFAULT_PROFILE_PICTURE = os.getenv(
    "DEFAULT_PROFILE_PICTURE",
    "https://imgur.com/gallery/default-profile-image-JAvXY#jNNT4LE",
)

DEFAULT_PAGE_SIZE = int(os.getenv("DEFAULT_PAGE_SIZE", "10"))
MAX_PAGE_SIZE = int(os.getenv("MAX_PAGE_SIZE", "100"))

LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")
LANGUAGES_FILE = os.getenv("LANGUAGES_FILE", os.path.join(BASE_DIR, "data", "languages.json"))


def load_language_names():
    """Map of ISO 639-1 code -> display name, read from LANGUAGES_FILE."""
    with open(LANGUAGES_FILE, encoding="utf-8") as fh:
        return json.load(fh)


def configure_logging(level=None):
    logging.basicConfig(
        level=level or LOG_LEVEL,
        format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
    )
