# services/normalize.py
"""
Read-repair for persisted car rows.

Rows written by older versions of the app carry tags as a JSON string or a
bare string, and photos as either an ``images`` array, a lone ``cover_image``,
or nothing at all. Everything that leaves the store goes through
``normalize_car_record`` so the rest of the app only ever sees one shape.
"""
from __future__ import annotations

import json
import uuid
from datetime import date, datetime
from typing import Any, Dict, List, Mapping, Optional


def normalize_tags(value: Any) -> List[str]:
    """
    Lenient tag normalizer for the read path. Never raises: malformed input
    degrades to a single-tag list.
    """
    if value is None:
        return []
    if isinstance(value, (list, tuple)):
        return list(value)
    if isinstance(value, str):
        try:
            parsed = json.loads(value)
        except ValueError:
            return [value]
        return parsed if isinstance(parsed, list) else [value]
    return [str(value)]


def parse_tags_field(value: Optional[str]) -> List[str]:
    """Comma-separated form field -> trimmed, non-empty tags in order."""
    if not value:
        return []
    return [t.strip() for t in value.split(",") if t.strip()]


def parse_url_list(value: Any) -> List[str]:
    """imagesToDelete arrives as a csv string (forms) or a list (JSON)."""
    if not value:
        return []
    if isinstance(value, (list, tuple)):
        return [str(u).strip() for u in value if str(u).strip()]
    return [u.strip() for u in str(value).split(",") if u.strip()]


def reconcile_images(record: Mapping[str, Any]) -> Dict[str, Any]:
    """
    Return a copy of ``record`` with ``images``, ``cover_image`` and
    ``car_images`` all present and consistent. Pure; canonical input is
    returned unchanged.
    """
    out = dict(record)
    images = record.get("images")
    cover = record.get("cover_image")

    if isinstance(images, (list, tuple)) and images:
        urls = list(images)
    elif cover:
        urls = [cover]
    else:
        urls = []

    out["images"] = urls
    out["cover_image"] = urls[0] if urls else None
    out["car_images"] = [{"url": u} for u in urls]
    return out


def _jsonable(value: Any) -> Any:
    if isinstance(value, uuid.UUID):
        return str(value)
    if isinstance(value, (datetime, date)):
        return value.isoformat()
    return value


def normalize_car_record(record: Mapping[str, Any]) -> Dict[str, Any]:
    """Single store-boundary normalization: images, tags, JSON-safe ids/timestamps."""
    out = reconcile_images(record)
    out["tags"] = normalize_tags(record.get("tags"))
    for key in ("id", "user_id", "created_at", "updated_at"):
        if key in out:
            out[key] = _jsonable(out[key])
    return out
