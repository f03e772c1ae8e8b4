# services/car_service.py
from __future__ import annotations
import logging
import time
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Dict, List, Optional, Sequence, Tuple

from services.blob_service import blob_name_for_url, guess_ext
from services.errors import AuthorizationError, NotFoundError, ValidationError
from services.normalize import parse_tags_field

logger = logging.getLogger(__name__)

MAX_IMAGES = 10
UPLOAD_WORKERS = 4


@dataclass
class ImageFile:
    filename: str
    content_type: str
    data: bytes


@dataclass
class SideEffectReport:
    """Best-effort storage work done alongside a record write."""
    attempted: int = 0
    failed: int = 0

    @property
    def succeeded(self) -> int:
        return self.attempted - self.failed


@dataclass
class CarResult:
    car: Dict
    uploads: SideEffectReport = field(default_factory=SideEffectReport)
    removals: SideEffectReport = field(default_factory=SideEffectReport)


@dataclass
class DeleteResult:
    success: bool
    removals: SideEffectReport = field(default_factory=SideEffectReport)


# ───────────── helpers ─────────────────────────────────────────────────────────
def _require_title(title: Optional[str]) -> str:
    if title is not None and not isinstance(title, str):
        raise ValidationError("Title must be a string")
    title = (title or "").strip()
    if not title:
        raise ValidationError("Title is required")
    return title


def _owned_car(store, owner_id, car_id) -> Dict:
    car = store.fetch(car_id)
    if not car:
        raise NotFoundError("Car not found")
    if str(car.get("user_id")) != str(owner_id):
        raise AuthorizationError("Unauthorized")
    return car


def _upload_one(storage, car_id: str, stamp: int, index: int, f: ImageFile) -> Tuple[int, Optional[str]]:
    name = f"{car_id}/{stamp}-{index}.{guess_ext(f.filename, f.content_type)}"
    try:
        return index, storage.upload(name, f.data, f.content_type)
    except Exception as e:
        logger.warning("Image upload failed for %s", name, exc_info=e)
        return index, None


def upload_images(storage, car_id: str, files: Sequence[ImageFile]) -> Tuple[List[str], SideEffectReport]:
    """
    Upload concurrently; URLs come back in submission order no matter which
    upload finishes first. Failed uploads are dropped from the list.
    """
    files = list(files)[:MAX_IMAGES]
    report = SideEffectReport(attempted=len(files))
    if not files:
        return [], report

    stamp = int(time.time() * 1000)
    slots: List[Optional[str]] = [None] * len(files)
    with ThreadPoolExecutor(max_workers=min(UPLOAD_WORKERS, len(files))) as pool:
        futures = [
            pool.submit(_upload_one, storage, car_id, stamp, i, f)
            for i, f in enumerate(files)
        ]
        for fut in futures:
            index, url = fut.result()
            slots[index] = url

    urls = [u for u in slots if u]
    report.failed = len(files) - len(urls)
    logger.info("Uploaded %d/%d images for car %s", len(urls), len(files), car_id)
    return urls, report


def remove_blobs(storage, blob_names: Sequence[str]) -> SideEffectReport:
    report = SideEffectReport(attempted=len(blob_names))
    for name in blob_names:
        try:
            storage.delete(name)
        except Exception as e:
            report.failed += 1
            logger.warning("Failed to delete blob %s", name, exc_info=e)
    return report


def _image_fields(images: List[str]) -> Dict:
    return {"images": images, "cover_image": images[0] if images else None}


# ───────────── lifecycle ───────────────────────────────────────────────────────
def create_car(
    store,
    storage,
    owner_id,
    title: Optional[str],
    description: Optional[str] = None,
    tags_field: Optional[str] = None,
    image_files: Sequence[ImageFile] = (),
) -> CarResult:
    title = _require_title(title)
    tags = parse_tags_field(tags_field)

    if image_files:
        # storage must be usable before the row exists
        storage.ensure_container()
    car = store.insert(owner_id, title, description, tags)
    logger.info("Car %s created for user %s", car["id"], owner_id)

    urls, uploads = upload_images(storage, car["id"], image_files)
    if urls:
        car = store.update(car["id"], _image_fields(urls))
    return CarResult(car=car, uploads=uploads)


def get_car(store, owner_id, car_id) -> Dict:
    return _owned_car(store, owner_id, car_id)


def list_cars(store, owner_id, search: Optional[str] = None) -> List[Dict]:
    search = (search or "").strip() or None
    return store.list_for_owner(owner_id, search)


def update_car(
    store,
    storage,
    owner_id,
    car_id,
    title: Optional[str],
    description: Optional[str] = None,
    tags_field: Optional[str] = None,
    images_to_delete: Sequence[str] = (),
    image_files: Sequence[ImageFile] = (),
) -> CarResult:
    """
    Title/description/tags are replaced wholesale. Images change only by
    removing exact URLs and appending new uploads after the survivors.
    """
    existing = _owned_car(store, owner_id, car_id)
    title = _require_title(title)
    tags = parse_tags_field(tags_field)

    current = list(existing["images"])
    doomed = [u for u in images_to_delete if u in current]
    survivors = [u for u in current if u not in doomed]
    new_files = list(image_files)
    if len(survivors) + len(new_files) > MAX_IMAGES:
        raise ValidationError(f"A car can have at most {MAX_IMAGES} images")

    cid = existing["id"]
    if doomed or new_files:
        storage.ensure_container()
    removals = remove_blobs(storage, [blob_name_for_url(cid, u) for u in doomed])
    new_urls, uploads = upload_images(storage, cid, new_files)

    fields = {
        "title": title,
        "description": description,
        "tags": tags,
        "updated_at": datetime.now(timezone.utc),
    }
    fields.update(_image_fields(survivors + new_urls))
    car = store.update(cid, fields)
    logger.info(
        "Car %s updated: %d removed, %d uploaded", cid, removals.succeeded, uploads.succeeded
    )
    return CarResult(car=car, uploads=uploads, removals=removals)


def delete_car(store, storage, owner_id, car_id) -> DeleteResult:
    existing = _owned_car(store, owner_id, car_id)
    cid = existing["id"]

    try:
        names = storage.list_folder(cid)
    except Exception as e:
        logger.warning("Could not list images for car %s", cid, exc_info=e)
        removals = SideEffectReport(attempted=1, failed=1)
    else:
        removals = remove_blobs(storage, names)

    store.delete(cid)
    logger.info("Car %s deleted (%d images removed)", cid, removals.succeeded)
    return DeleteResult(success=True, removals=removals)
