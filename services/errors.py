# services/errors.py
class CarAppError(Exception):
    """Base error for anything the routes translate straight into an HTTP status."""
    status_code = 500

    def __init__(self, message: str = ""):
        super().__init__(message or self.__class__.__name__)
        self.message = message or self.__class__.__name__


class ValidationError(CarAppError):
    status_code = 400


class AuthenticationError(CarAppError):
    status_code = 401


class AuthorizationError(CarAppError):
    status_code = 403


class NotFoundError(CarAppError):
    status_code = 404


class RateLimitedError(CarAppError):
    status_code = 429


class UpstreamError(CarAppError):
    """Record store or identity provider failure; message is the provider's."""
    status_code = 500
