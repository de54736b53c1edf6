"""Ownership-or-admin authorization rule for ads and comments."""

from . import models


def can_mutate(actor: models.User, owner_id: int) -> bool:
    """Return True if `actor` may update or delete a resource owned by `owner_id`.

    The author of a resource and any `ADMIN` may mutate it; nobody else.
    This never raises; callers turn `False` into a `PermissionDeniedError`.
    """
    if actor is None:
        return False
    return actor.id == owner_id or actor.role == models.Role.ADMIN
