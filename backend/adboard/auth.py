"""Authentication helpers and FastAPI security dependency.

Requests authenticate with HTTP Basic: the username is the account email
and the password is checked against the stored passlib hash. The
dependency `get_current_user` returns the matching `User` row or raises
`UnauthorizedError`, which the application renders as a 401 with a
`WWW-Authenticate: Basic` challenge.
"""

from fastapi import Depends, Security
from fastapi.security import HTTPBasic, HTTPBasicCredentials
from sqlmodel import Session

from . import models, services
from .database import get_session
from .errors import UnauthorizedError

basic_scheme = HTTPBasic(auto_error=False)


def get_current_user(
    credentials: HTTPBasicCredentials = Security(basic_scheme),
    db: Session = Depends(get_session),
) -> models.User:
    """FastAPI dependency that returns the authenticated user.

    Missing credentials, an unknown email and a wrong password all
    produce the same 401 response.
    """
    if credentials is None:
        raise UnauthorizedError("authentication required")
    user = services.AuthService(db).authenticate(credentials.username, credentials.password)
    if not user:
        raise UnauthorizedError("invalid credentials")
    return user
