import azure.functions as func
import logging

from utils.cors import app_error_response, error_response, json_response, preflight
from utils.multipart import image_files, parse_form
from auth.deps import require_user
from services import dependencies as deps
from services.car_service import create_car, delete_car, get_car, list_cars, update_car
from services.errors import CarAppError, ValidationError
from services.normalize import parse_url_list

logger = logging.getLogger(__name__)
bp = func.Blueprint()


def _read_car_form(req: func.HttpRequest):
    """
    Returns (fields, images). Browsers send multipart; JSON clients may send
    the same fields without files.
    """
    ctype = req.headers.get("Content-Type") or ""
    if "application/json" in ctype:
        try:
            body = req.get_json()
        except ValueError:
            raise ValidationError("Invalid JSON body")
        if body is None:
            body = {}
        if not isinstance(body, dict):
            raise ValidationError("JSON body must be an object")
        for key in ("title", "description"):
            if not isinstance(body.get(key), (str, type(None))):
                raise ValidationError(f"{key} must be a string")
        for key in ("tags", "imagesToDelete"):
            if not isinstance(body.get(key), (str, list, type(None))):
                raise ValidationError(f"{key} must be a string or a list")
        tags = body.get("tags")
        if isinstance(tags, list):
            tags = ",".join(str(t) for t in tags)
        fields = {
            "title": body.get("title"),
            "description": body.get("description"),
            "tags": tags,
            "imagesToDelete": body.get("imagesToDelete"),
        }
        return fields, []
    fields, files = parse_form(req)
    return fields, image_files(files)


@bp.function_name(name="Cars")
@bp.route(route="cars", methods=["GET", "POST", "OPTIONS"], auth_level=func.AuthLevel.ANONYMOUS)
def cars(req: func.HttpRequest) -> func.HttpResponse:
    if req.method == "OPTIONS":
        return preflight()

    try:
        user = require_user(req, deps.get_user_store())
        store = deps.get_car_store()

        if req.method == "GET":
            return json_response(list_cars(store, user.id, req.params.get("search")))

        # POST
        fields, images = _read_car_form(req)
        result = create_car(
            store,
            deps.lazy_image_storage(),
            user.id,
            fields.get("title"),
            fields.get("description"),
            fields.get("tags"),
            images,
        )
        if result.uploads.failed:
            logger.warning(
                "Car %s created with %d/%d images",
                result.car["id"], result.uploads.succeeded, result.uploads.attempted,
            )
        return json_response({"success": True, "car": result.car}, 201)

    except CarAppError as e:
        return app_error_response(e)
    except Exception as e:
        logger.exception("cars: unhandled")
        return error_response(str(e) or "Failed to process cars request", 500)


@bp.function_name(name="CarItem")
@bp.route(route="cars/{car_id}", methods=["GET", "PUT", "DELETE", "OPTIONS"], auth_level=func.AuthLevel.ANONYMOUS)
def car_item(req: func.HttpRequest) -> func.HttpResponse:
    if req.method == "OPTIONS":
        return preflight()

    try:
        user = require_user(req, deps.get_user_store())
        store = deps.get_car_store()
        car_id = req.route_params.get("car_id")

        if req.method == "GET":
            return json_response(get_car(store, user.id, car_id))

        if req.method == "PUT":
            # 403/404 before any complaint about the body
            get_car(store, user.id, car_id)
            fields, images = _read_car_form(req)
            result = update_car(
                store,
                deps.lazy_image_storage(),
                user.id,
                car_id,
                fields.get("title"),
                fields.get("description"),
                fields.get("tags"),
                parse_url_list(fields.get("imagesToDelete")),
                images,
            )
            return json_response(result.car)

        # DELETE
        result = delete_car(store, deps.get_image_storage(), user.id, car_id)
        return json_response({"success": result.success})

    except CarAppError as e:
        return app_error_response(e)
    except Exception as e:
        logger.exception("car_item: unhandled (method=%s)", req.method)
        return error_response(str(e) or "Internal error", 500)
