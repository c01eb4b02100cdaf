"""Error taxonomy of the voting API, each kind mapped to an HTTP status."""


class ServiceError(Exception):
    """Base error rendered as {"ok": false, "error": message}."""

    status_code = 500

    def __init__(self, message: str, status_code: int = None):
        super().__init__(message)
        self.message = message
        if status_code is not None:
            self.status_code = status_code


class ValidationError(ServiceError):
    """Missing or malformed input."""
    status_code = 400


class AuthorizationError(ServiceError):
    """Bad or missing admin secret."""
    status_code = 401


class StateError(ServiceError):
    """Voting not permitted by the current phase or time."""
    status_code = 403


class NotFoundError(ServiceError):
    status_code = 404


class ConflictError(ServiceError):
    """The voter already has a ledger entry."""
    status_code = 429


class ConfigurationError(ServiceError):
    """A required server secret is missing."""
    status_code = 500


class InternalError(ServiceError):
    status_code = 500
