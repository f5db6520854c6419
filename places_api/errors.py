"""
Error kinds raised by repositories and adapters.

Each kind carries the HTTP status it maps to; the application turns any
HttpError into a JSON body of the form {"message": ..., "code": ...}.
"""

from __future__ import annotations


class HttpError(Exception):
    status_code = 500

    def __init__(self, message: str, status_code: int | None = None):
        super().__init__(message)
        self.message = message
        if status_code is not None:
            self.status_code = status_code

    def as_dict(self) -> dict:
        return {"message": self.message, "code": self.status_code}


class ValidationError(HttpError):
    """Input failed shape validation."""

    status_code = 422


class AddressLookupError(HttpError):
    """The geocoding service found no location for an address."""

    status_code = 422


class NotFoundError(HttpError):
    status_code = 404


class ForbiddenError(HttpError):
    """Caller is not the creator of the resource."""

    status_code = 401


class AuthError(HttpError):
    """Missing, malformed, or invalid credentials."""

    status_code = 401


class InternalError(HttpError):
    status_code = 500
