"""
Error taxonomy for capsule operations.

Every error carries a short human-readable message and the HTTP status the
API layer answers with; handlers in ``main`` turn them into JSON responses.
"""


class CapsuleError(Exception):
    status_code = 500

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class ValidationError(CapsuleError):
    """A required field is missing or malformed."""
    status_code = 400


class NotFoundError(CapsuleError):
    status_code = 404


class AuthorizationError(CapsuleError):
    """Requester is not allowed to modify the capsule."""
    status_code = 403


class ConflictError(CapsuleError):
    """Capsule status forbids the requested mutation."""
    status_code = 409
