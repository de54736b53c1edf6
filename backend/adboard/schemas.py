"""Pydantic request/response schemas used by the API.

Schemas keep API input/output shapes stable and provide validation for
controller handlers and tests. Python attributes are snake_case; the
wire format is camelCase through `alias_generator`.
"""

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel
from typing import List, Optional

from .models import Role

PHONE_PATTERN = r"^\+7\s?\(?\d{3}\)?\s?\d{3}-?\d{2}-?\d{2}$"


class CamelModel(BaseModel):
    """Base schema serialising field names in camelCase."""
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class LoginIn(CamelModel):
    """Payload for the login endpoint."""
    username: str = Field(min_length=4, max_length=32)
    password: str = Field(min_length=8, max_length=16)


class RegisterIn(CamelModel):
    """Payload for user registration. `username` is the email."""
    username: str = Field(min_length=4, max_length=32)
    password: str = Field(min_length=8, max_length=16)
    first_name: str = Field(min_length=2, max_length=16)
    last_name: str = Field(min_length=2, max_length=16)
    phone: str = Field(pattern=PHONE_PATTERN)
    role: Optional[Role] = None


class NewPasswordIn(CamelModel):
    current_password: str
    new_password: str


class UpdateUserIn(CamelModel):
    """Partial profile update; absent fields are left untouched."""
    first_name: Optional[str] = None
    last_name: Optional[str] = None
    phone: Optional[str] = None


class UserOut(CamelModel):
    id: int
    email: str
    first_name: Optional[str] = None
    last_name: Optional[str] = None
    phone: Optional[str] = None
    role: Role
    image: str = ""


class CreateOrUpdateAd(CamelModel):
    """Ad properties accepted on create and update."""
    title: str = Field(min_length=4, max_length=32)
    price: int = Field(ge=0, le=10_000_000)
    description: str = Field(min_length=8, max_length=64)


class AdOut(CamelModel):
    """Ad summary as listed in `/ads` and `/ads/me`."""
    pk: int
    author: int
    title: str
    price: int
    image: str = ""


class AdsOut(CamelModel):
    count: int
    results: List[AdOut]


class ExtendedAdOut(CamelModel):
    """Full ad view including the author's contact details."""
    pk: int
    author_first_name: Optional[str] = None
    author_last_name: Optional[str] = None
    email: Optional[str] = None
    phone: Optional[str] = None
    title: str
    price: int
    description: Optional[str] = None
    image: str = ""


class CreateOrUpdateComment(CamelModel):
    text: str = Field(min_length=8, max_length=64)


class CommentOut(CamelModel):
    pk: int
    author: int
    author_first_name: Optional[str] = None
    author_image: str = ""
    created_at: int
    text: str


class CommentsOut(CamelModel):
    count: int
    results: List[CommentOut]
