# services/dependencies.py
"""
Per-request construction of the external collaborators. Routes ask for a
fresh store/storage here and pass them into the service functions; nothing
below is cached at module level.
"""
import os

from db import SessionLocal
from services.blob_service import BlobImageStorage
from services.car_store import SqlCarStore
from services.user_store import SqlUserStore


def get_car_store() -> SqlCarStore:
    return SqlCarStore(SessionLocal)


def get_user_store() -> SqlUserStore:
    return SqlUserStore(SessionLocal)


def get_image_storage() -> BlobImageStorage:
    return BlobImageStorage(
        os.environ.get("AZURE_BLOB_CONN_STRING", ""),
        os.environ.get("AZURE_BLOB_CONTAINER", "car-images"),
    )


class LazyImageStorage:
    """
    Defers building the blob client until an upload or delete actually
    happens, so text-only writes and validation failures never need blob
    configuration.
    """

    def __init__(self, factory):
        self._factory = factory
        self._storage = None

    def __getattr__(self, name):
        if self._storage is None:
            self._storage = self._factory()
        return getattr(self._storage, name)


def lazy_image_storage() -> LazyImageStorage:
    # resolve through the module so a patched get_image_storage is honoured
    return LazyImageStorage(lambda: get_image_storage())
