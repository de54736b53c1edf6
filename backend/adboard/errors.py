"""Application error taxonomy.

Services raise these; `adboard.main` registers a handler that renders
every `AppError` as `{"message": ..., "status": ...}` with the matching
HTTP status code.
"""


class AppError(Exception):
    """Base class for errors that map onto an HTTP status."""
    status_code = 500

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class NotFoundError(AppError):
    """A user, ad, comment or image does not exist."""
    status_code = 404


class PermissionDeniedError(AppError):
    """Ownership/role violation or wrong current password."""
    status_code = 403


class ValidationError(AppError):
    """A field constraint was violated or a required file is missing."""
    status_code = 400


class UnauthorizedError(AppError):
    """Missing or bad credentials."""
    status_code = 401
