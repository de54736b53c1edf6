"""Demo accounts created at start-up in development."""

import logging
from passlib.context import CryptContext
from sqlmodel import Session

from . import models, repositories
from .services import PWD_CTX

logger = logging.getLogger("adboard.seed")

DEMO_USERS = (
    {"email": "user@gmail.com", "password": "password", "first_name": "Ivan",
     "last_name": "Ivanov", "phone": "+79991234567", "role": models.Role.USER},
    {"email": "admin@gmail.com", "password": "admin123", "first_name": "Admin",
     "last_name": "System", "phone": "+79998887766", "role": models.Role.ADMIN},
)


def seed_demo_users(session: Session, pwd_context: CryptContext = PWD_CTX) -> int:
    """Create the demo user and admin if they are missing.

    Returns the number of accounts created; running it twice is a no-op.
    """
    repo = repositories.UserRepository(session)
    created = 0
    for spec in DEMO_USERS:
        if repo.exists_by_email(spec["email"]):
            continue
        repo.create(models.User(
            email=spec["email"],
            password_hash=pwd_context.hash(spec["password"]),
            first_name=spec["first_name"],
            last_name=spec["last_name"],
            phone=spec["phone"],
            role=spec["role"],
        ))
        created += 1
        logger.info("created demo %s account: %s", spec["role"].value, spec["email"])
    return created
