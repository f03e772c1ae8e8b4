# services/blob_service.py
import logging
import mimetypes
from typing import List, Optional

from azure.core.exceptions import ResourceExistsError, ResourceNotFoundError
from azure.storage.blob import BlobServiceClient, ContentSettings

logger = logging.getLogger(__name__)


# ────────────────────────────────────────────────────────────
# Helpers
# ────────────────────────────────────────────────────────────
def guess_ext(filename: Optional[str], content_type: Optional[str], fallback: str = "bin") -> str:
    """Extension without the dot: from the filename, else the content type."""
    if filename and "." in filename:
        ext = filename.rsplit(".", 1)[1].strip()
        if ext:
            return ext.lower()
    exts = mimetypes.guess_all_extensions(content_type or "") or []
    return exts[0].lstrip(".") if exts else fallback


def blob_name_for_url(car_id: str, url: str) -> str:
    """
    Images are stored flat under the car's folder, so the last path segment
    of a public URL is enough to rebuild the blob name.
    """
    filename = url.split("?", 1)[0].rstrip("/").rsplit("/", 1)[-1]
    return f"{car_id}/{filename}"


# ────────────────────────────────────────────────────────────
# Storage
# ────────────────────────────────────────────────────────────
class BlobImageStorage:
    """
    Car photos in one public Azure Blob container.
    Blob names: {car_id}/{timestamp_ms}-{index}.{ext}
    """

    def __init__(self, conn_str: str, container: str = "car-images"):
        if not conn_str:
            raise RuntimeError(
                "AZURE_BLOB_CONN_STRING is not set. For Azurite, use the devstore connection string."
            )
        self._bsc = BlobServiceClient.from_connection_string(conn_str)
        self._container = self._bsc.get_container_client(container)
        self._ensured = False

    def ensure_container(self) -> None:
        if self._ensured:
            return
        try:
            self._container.create_container(public_access="blob")
            logger.info("Created blob container %s", self._container.container_name)
        except ResourceExistsError:
            pass
        self._ensured = True

    def public_url(self, blob_name: str) -> str:
        # Standard form: {endpoint}/{container}/{blob_name}
        return f"{self._container.url.rstrip('/')}/{blob_name}"

    def upload(self, blob_name: str, data: bytes, content_type: str) -> str:
        self.ensure_container()
        self._container.upload_blob(
            blob_name,
            data,
            overwrite=False,
            content_settings=ContentSettings(content_type=content_type),
        )
        return self.public_url(blob_name)

    def list_folder(self, folder: str) -> List[str]:
        prefix = folder.rstrip("/") + "/"
        try:
            return [b.name for b in self._container.list_blobs(name_starts_with=prefix)]
        except ResourceNotFoundError:
            return []

    def delete(self, blob_name: str) -> None:
        """Delete a blob; a blob that is already gone counts as deleted."""
        try:
            self._container.delete_blob(blob_name, delete_snapshots="include")
        except ResourceNotFoundError:
            logger.info("Blob %s already deleted", blob_name)
