import json
import logging
from typing import Iterable, Mapping, Optional, Union
import azure.functions as func

from services.errors import CarAppError

logger = logging.getLogger(__name__)

CORS_HEADERS = {
    "Access-Control-Allow-Origin": "*",
    "Access-Control-Allow-Methods": "GET,POST,PUT,DELETE,OPTIONS",
    "Access-Control-Allow-Headers": "Content-Type, Authorization",
}


def cors_response(
    body: Union[str, bytes] = b"",
    status: int = 200,
    mime: str = "text/plain",
    cookies: Optional[Iterable[str]] = None,
) -> func.HttpResponse:
    resp = func.HttpResponse(
        body=body,
        status_code=status,
        mimetype=mime,
        headers=dict(CORS_HEADERS),
    )
    for cookie in cookies or ():
        resp.headers.add("Set-Cookie", cookie)
    return resp


def json_response(payload, status: int = 200, cookies: Optional[Iterable[str]] = None) -> func.HttpResponse:
    return cors_response(json.dumps(payload, default=str), status, "application/json", cookies)


def error_response(message: str, status: int) -> func.HttpResponse:
    return json_response({"error": message}, status)


def app_error_response(e: CarAppError) -> func.HttpResponse:
    return error_response(e.message, e.status_code)


def preflight() -> func.HttpResponse:
    return cors_response("", 204)
