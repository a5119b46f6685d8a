from typing import Optional

from pydantic import BaseModel


# ------------------------------------------------------------
# Reviews
# ------------------------------------------------------------
class ReviewIn(BaseModel):
    rating: int
    comment: str


class ReviewUpdate(BaseModel):
    rating: Optional[int] = None
    comment: Optional[str] = None


# ------------------------------------------------------------
# Auth
# ------------------------------------------------------------
class RegisterIn(BaseModel):
    name: str
    username: str
    email: str
    password: str


class LoginIn(BaseModel):
    email: str
    password: str


class EmailIn(BaseModel):
    email: str


class CodeIn(BaseModel):
    email: str
    code: str


class ResetPasswordIn(BaseModel):
    email: str
    code: str
    newPassword: str


# ------------------------------------------------------------
# Profile
# ------------------------------------------------------------
class ProfileUpdate(BaseModel):
    name: Optional[str] = None
    country: Optional[str] = None
    profilePicture: Optional[str] = None
    password: Optional[str] = None


class SettingsUpdate(BaseModel):
    showAdultContent: bool
