import os
from http.cookies import CookieError, SimpleCookie
from typing import List, Optional

from models import User
from auth.token import decode_token, ACCESS_TOKEN_EXPIRE_MINUTES
from services.errors import AuthenticationError

AUTH_COOKIE_NAME = os.getenv("AUTH_COOKIE_NAME", "auth-token")
COOKIE_SECURE = os.getenv("AUTH_COOKIE_SECURE", "true").lower() == "true"


def request_cookies(req) -> dict:
    jar = SimpleCookie()
    raw = req.headers.get("Cookie") or ""
    try:
        jar.load(raw)
    except CookieError:
        return {}
    return {k: m.value for k, m in jar.items()}


def _token_from_request(req) -> Optional[str]:
    auth = req.headers.get("Authorization", "") or ""
    if auth.startswith("Bearer "):
        return auth[7:]
    return request_cookies(req).get(AUTH_COOKIE_NAME)


def get_current_user(token: str, users) -> Optional[User]:
    payload = decode_token(token)
    if not payload:
        return None
    user_id = payload.get("sub")
    if not user_id:
        return None
    return users.get_by_id(user_id)


def current_user_from_request(req, users) -> Optional[User]:
    token = _token_from_request(req)
    if not token:
        return None
    return get_current_user(token, users)


def require_user(req, users) -> User:
    user = current_user_from_request(req, users)
    if not user:
        raise AuthenticationError("Unauthorized")
    return user


# ───────────── cookies ─────────────────────────────────────────────────────────
def is_auth_cookie(name: str) -> bool:
    return "auth" in name or name.startswith("sb-") or name == "__session"


def auth_cookie_names(req) -> List[str]:
    names = [n for n in request_cookies(req) if is_auth_cookie(n) and n != AUTH_COOKIE_NAME]
    return [AUTH_COOKIE_NAME] + sorted(names)


def session_cookie(token: str) -> str:
    jar = SimpleCookie()
    jar[AUTH_COOKIE_NAME] = token
    m = jar[AUTH_COOKIE_NAME]
    m["path"] = "/"
    m["httponly"] = True
    m["samesite"] = "Lax"
    m["max-age"] = ACCESS_TOKEN_EXPIRE_MINUTES * 60
    if COOKIE_SECURE:
        m["secure"] = True
    return m.OutputString()


def expired_cookie(name: str) -> str:
    jar = SimpleCookie()
    jar[name] = ""
    m = jar[name]
    m["path"] = "/"
    m["expires"] = "Thu, 01 Jan 1970 00:00:00 GMT"
    m["httponly"] = True
    m["samesite"] = "Lax"
    if COOKIE_SECURE:
        m["secure"] = True
    return m.OutputString()
