import azure.functions as func
import logging

from utils.cors import app_error_response, error_response, json_response, preflight
from auth.deps import auth_cookie_names, expired_cookie, session_cookie
from auth.token import create_access_token
from services import dependencies as deps
from services.auth_service import sign_in, sign_up
from services.errors import CarAppError

logger = logging.getLogger(__name__)
bp = func.Blueprint()


def _credentials_body(req: func.HttpRequest) -> dict:
    try:
        data = req.get_json()
    except ValueError:
        return {}
    return data if isinstance(data, dict) else {}


@bp.function_name(name="Login")
@bp.route(route="auth/login", methods=["POST", "OPTIONS"],
          auth_level=func.AuthLevel.ANONYMOUS)
def login(req: func.HttpRequest) -> func.HttpResponse:
    """
    Authenticate user with email and password.

    Returns the user plus an access token, and sets the session cookie so
    browser clients can call the car endpoints without a bearer header.

    Raises:
        400: Missing email or password
        401: Invalid credentials
        429: Identity store throttling
        500: Server error
    """
    if req.method == "OPTIONS":
        return preflight()

    try:
        data = _credentials_body(req)
        user = sign_in(deps.get_user_store(), data.get("email"), data.get("password"))
        token = create_access_token({"sub": str(user.id)})
        return json_response(
            {
                "success": True,
                "access_token": token,
                "token_type": "bearer",
                "user": user.to_public(),
            },
            200,
            cookies=[session_cookie(token)],
        )
    except CarAppError as e:
        return app_error_response(e)
    except Exception as e:
        logger.exception("Login failed")
        return error_response(str(e) or "An error occurred during login", 500)


@bp.function_name(name="Signup")
@bp.route(route="auth/signup", methods=["POST", "OPTIONS"],
          auth_level=func.AuthLevel.ANONYMOUS)
def signup(req: func.HttpRequest) -> func.HttpResponse:
    """
    Create an account.

    Raises:
        400: Missing fields, invalid email, weak password, already registered
        429: Identity store throttling
        500: Server error
    """
    if req.method == "OPTIONS":
        return preflight()

    try:
        data = _credentials_body(req)
        user = sign_up(deps.get_user_store(), data.get("email"), data.get("password"))
        return json_response({
            "success": True,
            "user": user.to_public(),
            "message": "Account created successfully. You can now sign in.",
        })
    except CarAppError as e:
        return app_error_response(e)
    except Exception as e:
        logger.exception("Signup failed")
        return error_response(str(e) or "An error occurred during signup", 500)


@bp.function_name(name="Signout")
@bp.route(route="auth/signout", methods=["POST", "OPTIONS"],
          auth_level=func.AuthLevel.ANONYMOUS)
def signout(req: func.HttpRequest) -> func.HttpResponse:
    """
    Expire every auth cookie the client sent. Tokens are stateless, so there
    is nothing to revoke server-side.
    """
    if req.method == "OPTIONS":
        return preflight()

    try:
        names = auth_cookie_names(req)
        logger.debug("Clearing cookies: %s", ", ".join(names))
        return json_response({"success": True}, 200, cookies=[expired_cookie(n) for n in names])
    except Exception:
        logger.exception("Sign out failed")
        return error_response("Failed to sign out", 500)
