"""SQLModel data models.

This module defines the application's database tables using SQLModel.
Relations are plain foreign keys; services look related rows up through
the repositories when they need them.
"""

from enum import Enum
from typing import Optional
from sqlmodel import SQLModel, Field
from datetime import datetime, timezone


class Role(str, Enum):
    """The two account roles. `ADMIN` may mutate any ad or comment."""
    USER = "USER"
    ADMIN = "ADMIN"


class User(SQLModel, table=True):
    """A registered user.

    Fields:
    - `email`: unique login name
    - `password_hash`: hashed password string (never store plaintext)
    - `image`: stored avatar filename inside the `users` namespace
    """
    id: Optional[int] = Field(default=None, primary_key=True)
    email: str = Field(index=True, nullable=False, unique=True)
    password_hash: str
    first_name: Optional[str] = None
    last_name: Optional[str] = None
    phone: Optional[str] = None
    role: Role = Field(default=Role.USER, nullable=False)
    image: Optional[str] = None


class Ad(SQLModel, table=True):
    """A classified ad posted by `author_id`.

    `image` holds the generated filename inside the `ads` namespace.
    """
    id: Optional[int] = Field(default=None, primary_key=True)
    title: str
    price: int = 0
    description: Optional[str] = None
    image: Optional[str] = None
    author_id: int = Field(foreign_key='user.id', index=True, nullable=False)


class Comment(SQLModel, table=True):
    """A comment left on an ad."""
    id: Optional[int] = Field(default=None, primary_key=True)
    text: str
    created_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    ad_id: int = Field(foreign_key='ad.id', index=True, nullable=False)
    author_id: int = Field(foreign_key='user.id', index=True, nullable=False)
