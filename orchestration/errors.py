"""
Execution Errors

HTTP-mapped error taxonomy for the execution pipeline.
The API layer renders every HttpError as {"error": message}.
"""


class HttpError(Exception):
    """Base class for errors that map onto an HTTP status."""

    status_code: int = 500

    def __init__(self, message: str, status_code: int | None = None):
        super().__init__(message)
        self.message = message
        if status_code is not None:
            self.status_code = status_code


class UnauthorizedError(HttpError):
    """Missing or invalid credentials (401)."""
    status_code = 401


class NotFoundError(HttpError):
    """Project, prompt or version absent, or owned by another tenant (404)."""
    status_code = 404


class InvalidStateError(HttpError):
    """Entity exists but cannot be executed, e.g. inactive prompt (400)."""
    status_code = 400


class DataCorruptionError(HttpError):
    """Stored data failed to parse (500)."""
    status_code = 500


class InternalServerError(HttpError):
    """Provider or unexpected failure surfaced to the caller (500)."""
    status_code = 500
