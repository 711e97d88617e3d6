"""
Domain errors.

Every error carries the HTTP status the request boundary answers with.
Expected outcomes (bad credentials, conflicts, missing rows) are plain
subclasses; StoreError is the only one that signals an unexpected failure.
"""


class RedirectorError(Exception):
    """Base class for all domain errors"""

    status_code = 500
    default_message = "Internal server error"

    def __init__(self, message: str = None):
        self.message = message or self.default_message
        super().__init__(self.message)


class Unauthorized(RedirectorError):
    status_code = 401
    default_message = "Invalid credentials"


class Forbidden(RedirectorError):
    status_code = 403
    default_message = "Not allowed to access"


class InvalidSlug(RedirectorError):
    status_code = 400
    default_message = "Invalid slug"


class ImmutableField(RedirectorError):
    status_code = 400
    default_message = "Field can not be changed"


class NotFound(RedirectorError):
    status_code = 404
    default_message = "Not found"


class Conflict(RedirectorError):
    status_code = 409
    default_message = "Already exists"


class SlugConflict(Conflict):
    default_message = "Slug already in use"


class UsernameConflict(Conflict):
    default_message = "User already exists"


class StoreError(RedirectorError):
    """Transport or transaction failure of the backing store"""

    status_code = 500
    default_message = "Store error"


class InvalidToken(Exception):
    """Raised by the token codec; never rendered directly"""
