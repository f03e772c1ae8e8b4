# services/auth_service.py
import logging

from auth.utils import MIN_PASSWORD_LENGTH, hash_password, is_valid_email, verify_password
from models import User
from services.errors import (
    AuthenticationError,
    CarAppError,
    RateLimitedError,
    UpstreamError,
    ValidationError,
)

logger = logging.getLogger(__name__)


def relay_provider_error(exc: Exception, action: str) -> CarAppError:
    """Map an identity-store failure onto the error taxonomy, passing throttling through."""
    status = getattr(exc, "status", None) or getattr(exc, "status_code", None)
    if status == 429 or "rate limit" in str(exc).lower():
        return RateLimitedError(f"Too many {action} attempts. Please try again later.")
    return UpstreamError(str(exc) or f"An error occurred during {action}")


def _credentials(email, password):
    # passwords are compared byte for byte; only the email is canonicalised
    if not isinstance(email, (str, type(None))) or not isinstance(password, (str, type(None))):
        raise ValidationError("Email and password must be strings")
    email = (email or "").strip().lower()
    if not email or not password:
        raise ValidationError("Email and password are required")
    return email, password


def sign_up(users, email, password) -> User:
    email, password = _credentials(email, password)
    if not is_valid_email(email):
        raise ValidationError("Invalid email format")
    if len(password) < MIN_PASSWORD_LENGTH:
        raise ValidationError(f"Password must be at least {MIN_PASSWORD_LENGTH} characters long")

    try:
        if users.get_by_email(email):
            raise ValidationError("User already registered")
        user = users.create(email, hash_password(password))
    except CarAppError:
        raise
    except Exception as e:
        raise relay_provider_error(e, "signup") from e
    logger.info("User %s signed up", user.id)
    return user


def sign_in(users, email, password) -> User:
    email, password = _credentials(email, password)
    try:
        user = users.get_by_email(email)
    except CarAppError:
        raise
    except Exception as e:
        raise relay_provider_error(e, "login") from e

    if not user or not verify_password(password, user.password_hash):
        raise AuthenticationError("Invalid login credentials")
    return user
