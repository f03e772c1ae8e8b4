# utils/multipart.py
from typing import Dict, List, Tuple

from requests_toolbelt.multipart import decoder as mp

from services.car_service import ImageFile, MAX_IMAGES
from services.errors import ValidationError


def _disposition_params(part) -> Dict[str, str]:
    disp = part.headers.get(b"Content-Disposition", b"").decode("utf-8", "ignore")
    params = {}
    for token in disp.split(";"):
        token = token.strip()
        if "=" in token:
            k, v = token.split("=", 1)
            params[k.strip().lower()] = v.strip().strip('"')
    return params


def parse_form(req) -> Tuple[Dict[str, str], Dict[str, ImageFile]]:
    """
    Parse multipart/form-data from an Azure Functions HttpRequest.
    Returns (text fields, file parts keyed by field name). Empty file parts
    are dropped.
    """
    ctype = req.headers.get("content-type") or req.headers.get("Content-Type")
    if not ctype or "multipart/form-data" not in ctype:
        raise ValidationError("Expected multipart/form-data")

    body = req.get_body()
    if not body:
        return {}, {}
    try:
        parts = mp.MultipartDecoder(body, ctype).parts
    except (mp.ImproperBodyPartContentException, mp.NonMultipartContentTypeException) as e:
        raise ValidationError(f"Malformed multipart body: {e}") from e

    fields: Dict[str, str] = {}
    files: Dict[str, ImageFile] = {}
    for part in parts:
        params = _disposition_params(part)
        name = params.get("name")
        if not name:
            continue
        if "filename" in params:
            if not part.content:
                continue
            content_type = part.headers.get(b"Content-Type", b"application/octet-stream").decode("utf-8", "ignore")
            files[name] = ImageFile(
                filename=params["filename"] or "upload.bin",
                content_type=content_type,
                data=part.content,
            )
        else:
            fields[name] = part.text
    return fields, files


def image_files(files: Dict[str, ImageFile]) -> List[ImageFile]:
    """image0..image9 in slot order; gaps are skipped."""
    return [files[f"image{i}"] for i in range(MAX_IMAGES) if f"image{i}" in files]
