"""Accounts, credentials and the authenticated principal handed to the core services."""
from collections import namedtuple
from datetime import datetime, timedelta
import logging
import secrets

import bcrypt
import jwt
from fastapi import Depends
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from mongoengine.errors import NotUniqueError

from cinelog import config, mailer
from cinelog.errors import Conflict, Forbidden, NotFound, Unauthorized, ValidationError
from cinelog.media import parse_object_id
from cinelog.models import Account, AccountSettings
from cinelog.utils.serializers import serialize_account

logger = logging.getLogger(__name__)

Principal = namedtuple("Principal", ["account_id", "is_admin"])

security = HTTPBearer(auto_error=False)

MIN_PASSWORD_LENGTH = 6
MIN_NAME_LENGTH = 3


# ========== CREDENTIALS ==========

def hash_password(password):
    return bcrypt.hashpw(password.encode("utf-8"), bcrypt.gensalt()).decode("utf-8")


def verify_password(password, hashed):
    return bcrypt.checkpw(password.encode("utf-8"), hashed.encode("utf-8"))


def create_token(account):
    payload = {
        "sub": str(account.id),
        "isAdmin": bool(account.is_admin),
        "exp": datetime.utcnow() + timedelta(days=config.JWT_EXPIRES_DAYS),
    }
    return jwt.encode(payload, config.JWT_SECRET, algorithm=config.JWT_ALGORITHM)


def decode_token(token):
    try:
        return jwt.decode(token, config.JWT_SECRET, algorithms=[config.JWT_ALGORITHM])
    except jwt.ExpiredSignatureError:
        raise Unauthorized("Token has expired")
    except jwt.InvalidTokenError:
        raise Unauthorized("Invalid token")


def _new_code():
    return f"{secrets.randbelow(10 ** 6):06d}"


def _normalize_email(email):
    return (email or "").strip().lower()


def _find_by_email(email):
    return Account.objects(email=_normalize_email(email)).first()


def _code_matches(stored, expires, code):
    if not stored or not code or expires is None:
        return False
    return secrets.compare_digest(stored, str(code)) and expires > datetime.utcnow()


# ========== ACCOUNT LIFECYCLE ==========

def register(name, username, email, password):
    name = (name or "").strip()
    username = (username or "").strip()
    email = _normalize_email(email)
    if len(name) < MIN_NAME_LENGTH:
        raise ValidationError(f"Name must be at least {MIN_NAME_LENGTH} characters")
    if not username:
        raise ValidationError("Username is required")
    if not email:
        raise ValidationError("Email is required")
    if not password or len(password) < MIN_PASSWORD_LENGTH:
        raise ValidationError(f"Password must be at least {MIN_PASSWORD_LENGTH} characters")

    if Account.objects(email=email).first() is not None:
        raise Conflict("Email already exists")
    if Account.objects(username=username).first() is not None:
        raise Conflict("Username already exists")

    code = _new_code()
    account = Account(
        name=name,
        username=username,
        email=email,
        password_hash=hash_password(password),
        email_verification_code=code,
        email_verification_expires=datetime.utcnow() + timedelta(minutes=config.VERIFICATION_CODE_TTL_MINUTES),
    )
    try:
        account.save()
    except NotUniqueError:
        raise Conflict("Email or username already exists")

    mailer.send_verification_code(email, name, code, config.VERIFICATION_CODE_TTL_MINUTES)
    logger.info("Registered account %s", account.id)
    return account


def verify_email(email, code):
    account = _find_by_email(email)
    if account is None:
        raise NotFound("User not found")
    if account.is_verified:
        return account
    if not _code_matches(account.email_verification_code, account.email_verification_expires, code):
        raise ValidationError("Invalid or expired verification code")

    account.is_verified = True
    account.email_verification_code = None
    account.email_verification_expires = None
    account.save()
    logger.info("Verified email of account %s", account.id)
    return account


def resend_verification(email):
    account = _find_by_email(email)
    if account is None:
        raise NotFound("User not found")
    if account.is_verified:
        raise ValidationError("Email is already verified")

    account.email_verification_code = _new_code()
    account.email_verification_expires = datetime.utcnow() + timedelta(minutes=config.VERIFICATION_CODE_TTL_MINUTES)
    account.save()
    mailer.send_verification_code(
        account.email, account.name, account.email_verification_code, config.VERIFICATION_CODE_TTL_MINUTES
    )


def login(email, password):
    account = _find_by_email(email)
    if account is None or not password or not verify_password(password, account.password_hash):
        raise Unauthorized("Invalid credentials")
    if not account.is_verified:
        raise Forbidden("Email address is not verified")
    return {"token": create_token(account), "user": serialize_account(account)}


def forgot_password(email):
    # the answer is the same whether or not the address is registered
    account = _find_by_email(email)
    if account is None:
        logger.info("Password reset requested for unknown address")
        return
    account.password_reset_code = _new_code()
    account.password_reset_expires = datetime.utcnow() + timedelta(minutes=config.RESET_CODE_TTL_MINUTES)
    account.save()
    mailer.send_reset_code(account.email, account.name, account.password_reset_code, config.RESET_CODE_TTL_MINUTES)


def verify_reset_code(email, code):
    account = _find_by_email(email)
    if account is None or not _code_matches(account.password_reset_code, account.password_reset_expires, code):
        raise ValidationError("Invalid or expired reset code")
    return True


def reset_password(email, code, new_password):
    verify_reset_code(email, code)
    if not new_password or len(new_password) < MIN_PASSWORD_LENGTH:
        raise ValidationError(f"Password must be at least {MIN_PASSWORD_LENGTH} characters")
    account = _find_by_email(email)
    account.password_hash = hash_password(new_password)
    account.password_reset_code = None
    account.password_reset_expires = None
    account.save()
    logger.info("Password reset for account %s", account.id)


# ========== PROFILE ==========

def update_profile(account, name=None, country=None, profile_picture=None, password=None):
    if name is not None:
        if len(name.strip()) < MIN_NAME_LENGTH:
            raise ValidationError(f"Name must be at least {MIN_NAME_LENGTH} characters")
        account.name = name.strip()
    if country is not None:
        account.country = country
    if profile_picture is not None:
        account.profile_picture = profile_picture
    if password is not None:
        if len(password) < MIN_PASSWORD_LENGTH:
            raise ValidationError(f"Password must be at least {MIN_PASSWORD_LENGTH} characters")
        account.password_hash = hash_password(password)
    account.save()
    return account


def update_settings(account, show_adult_content):
    if account.settings is None:
        account.settings = AccountSettings()
    account.settings.show_adult_content = bool(show_adult_content)
    account.save()
    return account


# ========== REQUEST DEPENDENCIES ==========

def _account_from_token(token):
    payload = decode_token(token)
    account_id = payload.get("sub")
    if not account_id:
        raise Unauthorized("Invalid token")
    account = Account.objects(id=parse_object_id(account_id)).first()
    if account is None:
        raise Unauthorized("User not found")
    return account


def get_current_account(credentials: HTTPAuthorizationCredentials = Depends(security)):
    if credentials is None:
        raise Unauthorized("Not authorized, no token")
    return _account_from_token(credentials.credentials)


def get_optional_account(credentials: HTTPAuthorizationCredentials = Depends(security)):
    """The caller's account, or None for anonymous requests and unusable tokens."""
    if credentials is None:
        return None
    try:
        return _account_from_token(credentials.credentials)
    except (Unauthorized, ValidationError):
        return None


def get_current_principal(account: Account = Depends(get_current_account)):
    return Principal(account.id, bool(account.is_admin))


def require_admin(principal: Principal = Depends(get_current_principal)):
    if not principal.is_admin:
        raise Forbidden("Admin access required")
    return principal
