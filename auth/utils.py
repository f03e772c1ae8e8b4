import re
import bcrypt

EMAIL_RE = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")
MIN_PASSWORD_LENGTH = 6


def hash_password(password: str) -> str:
    return bcrypt.hashpw(password.encode(), bcrypt.gensalt()).decode()


def verify_password(password: str, hash_: str) -> bool:
    if not hash_:
        return False
    return bcrypt.checkpw(password.encode(), hash_.encode())


def is_valid_email(email: str) -> bool:
    return bool(EMAIL_RE.match(email or ""))
