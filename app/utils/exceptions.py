# app/utils/exceptions.py
"""
Domain error taxonomy.
Registries and the device auth gate raise these; main.py turns them into
JSON responses. The scan processor never raises them for business outcomes.
"""


class RFIDTrackingError(Exception):
    """Base error. Carries the HTTP status it maps to."""
    status_code = 500

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class ValidationError(RFIDTrackingError):
    status_code = 400


class UnauthorizedError(RFIDTrackingError):
    status_code = 401


class ForbiddenError(RFIDTrackingError):
    status_code = 403


class NotRegisteredError(RFIDTrackingError):
    status_code = 404


class ConflictError(RFIDTrackingError):
    status_code = 409


class RateLimitedError(RFIDTrackingError):
    status_code = 429

    def __init__(self, message: str, headers: dict = None):
        super().__init__(message)
        self.headers = headers or {}


class InvalidCredentialError(UnauthorizedError):
    """No credential matches the presented prefix/secret."""
