import copy
import time
import uuid
from datetime import datetime, timedelta, timezone

import azure.functions as func
import pytest
from requests_toolbelt import MultipartEncoder

from auth.token import create_access_token
from auth.utils import hash_password
from models import User
from services import dependencies
from services.normalize import normalize_car_record


class InMemoryCarStore:
    """Test double for SqlCarStore; keeps raw rows so legacy shapes can be seeded."""

    def __init__(self):
        self.rows = {}
        self.writes = 0
        self._clock = datetime(2024, 1, 1, tzinfo=timezone.utc)

    def _tick(self):
        self._clock += timedelta(seconds=1)
        return self._clock

    def seed(self, **row):
        row.setdefault("id", str(uuid.uuid4()))
        row.setdefault("created_at", self._tick())
        row.setdefault("updated_at", row["created_at"])
        row["user_id"] = str(row["user_id"])
        self.rows[row["id"]] = row
        return row["id"]

    def insert(self, owner_id, title, description, tags):
        self.writes += 1
        car_id = self.seed(user_id=owner_id, title=title, description=description,
                           tags=list(tags), images=[], cover_image=None)
        return normalize_car_record(self.rows[car_id])

    def fetch(self, car_id):
        row = self.rows.get(str(car_id))
        return normalize_car_record(copy.deepcopy(row)) if row else None

    def list_for_owner(self, owner_id, search=None):
        rows = [r for r in self.rows.values() if r["user_id"] == str(owner_id)]
        if search:
            term = search.lower()
            rows = [
                r for r in rows
                if term in (r.get("title") or "").lower()
                or term in (r.get("description") or "").lower()
                or search in normalize_car_record(r)["tags"]
            ]
        rows.sort(key=lambda r: r["created_at"], reverse=True)
        return [normalize_car_record(copy.deepcopy(r)) for r in rows]

    def update(self, car_id, fields):
        self.writes += 1
        self.rows[str(car_id)].update(fields)
        return self.fetch(car_id)

    def delete(self, car_id):
        self.writes += 1
        return self.rows.pop(str(car_id), None) is not None


class InMemoryImageStorage:
    """Blob storage double. ``fail_uploads`` holds blob-name suffixes to reject."""

    base_url = "https://blob.test/car-images"

    def __init__(self):
        self.objects = {}
        self.fail_uploads = set()
        self.fail_deletes = set()
        self.upload_delays = {}
        self.deleted = []
        self.containers_checked = 0

    def ensure_container(self):
        self.containers_checked += 1

    def public_url(self, blob_name):
        return f"{self.base_url}/{blob_name}"

    def upload(self, blob_name, data, content_type):
        index = int(blob_name.rsplit("-", 1)[1].split(".")[0])
        time.sleep(self.upload_delays.get(index, 0))
        if index in self.fail_uploads:
            raise RuntimeError(f"upload rejected: {blob_name}")
        self.objects[blob_name] = data
        return self.public_url(blob_name)

    def list_folder(self, folder):
        prefix = folder.rstrip("/") + "/"
        return [name for name in self.objects if name.startswith(prefix)]

    def delete(self, blob_name):
        if blob_name in self.fail_deletes:
            raise RuntimeError(f"delete rejected: {blob_name}")
        self.objects.pop(blob_name, None)
        self.deleted.append(blob_name)


class InMemoryUserStore:
    def __init__(self):
        self.users = {}

    def get_by_id(self, user_id):
        return self.users.get(str(user_id))

    def get_by_email(self, email):
        return next((u for u in self.users.values() if u.email == email), None)

    def create(self, email, password_hash):
        user = User(id=uuid.uuid4(), email=email, password_hash=password_hash,
                    created_at=datetime.now(timezone.utc))
        self.users[str(user.id)] = user
        return user


@pytest.fixture
def car_store():
    return InMemoryCarStore()


@pytest.fixture
def storage():
    return InMemoryImageStorage()


@pytest.fixture
def user_store():
    return InMemoryUserStore()


@pytest.fixture
def owner(user_store):
    return user_store.create("owner@example.com", hash_password("secret123"))


@pytest.fixture
def stranger(user_store):
    return user_store.create("stranger@example.com", hash_password("secret123"))


@pytest.fixture
def wired(monkeypatch, car_store, storage, user_store):
    """Route the function handlers at the in-memory doubles."""
    monkeypatch.setattr(dependencies, "get_car_store", lambda: car_store)
    monkeypatch.setattr(dependencies, "get_image_storage", lambda: storage)
    monkeypatch.setattr(dependencies, "get_user_store", lambda: user_store)
    return car_store, storage, user_store


def bearer(user):
    return {"Authorization": f"Bearer {create_access_token({'sub': str(user.id)})}"}


def make_request(method, url, headers=None, body=b"", params=None, route_params=None):
    return func.HttpRequest(
        method=method,
        url=url,
        headers=headers or {},
        params=params or {},
        route_params=route_params or {},
        body=body,
    )


def multipart_request(method, url, fields, headers=None, route_params=None):
    enc = MultipartEncoder(fields=fields)
    hdrs = {"Content-Type": enc.content_type}
    hdrs.update(headers or {})
    return make_request(method, url, hdrs, enc.to_string(), route_params=route_params)


def invoke(handler, req):
    return handler.build().get_user_function()(req)
