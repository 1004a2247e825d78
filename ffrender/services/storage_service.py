import asyncio
import logging
import shutil
from pathlib import Path
from urllib.parse import unquote

from ffrender.config import get_settings

logger = logging.getLogger(__name__)

settings = get_settings()


def storage_key_from_url(url: str, public_base: str) -> str | None:
    """Return the key of ``url`` under ``public_base``.

    Keys with empty, ``.`` or ``..`` segments are not storage keys; such
    URLs are fetched over HTTP like any other.
    """
    prefix = f"{public_base}/"
    if not url.startswith(prefix):
        return None
    key = unquote(url[len(prefix):].split("?", 1)[0].split("#", 1)[0])
    segments = key.split("/")
    if any(segment in ("", ".", "..") or "\\" in segment for segment in segments):
        return None
    return key


class LocalStorageService:
    """Local file storage for development without GCS.

    Files are copied under ``local_storage_path`` and served by the app at
    ``/storage/<key>``.
    """

    def __init__(self, base_path: str | None = None, public_base_url: str | None = None) -> None:
        self.base_path = Path(base_path or settings.local_storage_path)
        self.base_path.mkdir(parents=True, exist_ok=True)
        self.public_base = f"{(public_base_url or settings.public_base_url).rstrip('/')}/storage"

    def _get_full_path(self, storage_key: str) -> Path:
        full_path = self.base_path / storage_key
        if not full_path.resolve().is_relative_to(self.base_path.resolve()):
            raise ValueError(f"Storage key escapes storage root: {storage_key}")
        full_path.parent.mkdir(parents=True, exist_ok=True)
        return full_path

    def get_public_url(self, storage_key: str) -> str:
        """Get URL for accessing the file."""
        return f"{self.public_base}/{storage_key}"

    def key_from_url(self, url: str) -> str | None:
        """Return the storage key when ``url`` points into this storage."""
        return storage_key_from_url(url, self.public_base)

    async def download_file(self, storage_key: str, local_path: str) -> str:
        """Copy file to local path."""
        full_path = self._get_full_path(storage_key)
        await asyncio.to_thread(shutil.copyfile, full_path, local_path)
        return local_path

    async def upload_file(self, local_path: str, storage_key: str, content_type: str | None = None) -> str:
        """Upload from local path."""
        full_path = self._get_full_path(storage_key)
        await asyncio.to_thread(shutil.copyfile, local_path, full_path)
        return self.get_public_url(storage_key)

    def file_exists(self, storage_key: str) -> bool:
        """Check if file exists."""
        return self._get_full_path(storage_key).exists()


class GCSStorageService:
    """Google Cloud Storage service for production."""

    def __init__(self, bucket_name: str | None = None) -> None:
        from google.cloud import storage

        self._storage = storage
        self._client: storage.Client | None = None
        self._bucket: storage.Bucket | None = None
        self.bucket_name = bucket_name or settings.gcs_bucket_name
        base = settings.storage_public_base_url or f"https://storage.googleapis.com/{self.bucket_name}"
        self.public_base = base.rstrip("/")

    @property
    def client(self):
        if self._client is None:
            if settings.gcs_project_id:
                self._client = self._storage.Client(project=settings.gcs_project_id)
            else:
                self._client = self._storage.Client()
        return self._client

    @property
    def bucket(self):
        if self._bucket is None:
            self._bucket = self.client.bucket(self.bucket_name)
        return self._bucket

    def get_public_url(self, storage_key: str) -> str:
        """Get the public URL for a stored file."""
        return f"{self.public_base}/{storage_key}"

    def key_from_url(self, url: str) -> str | None:
        """Return the object key when ``url`` points into this bucket."""
        return storage_key_from_url(url, self.public_base)

    async def download_file(self, storage_key: str, local_path: str) -> str:
        """Stream an object from GCS to a local path."""
        blob = self.bucket.blob(storage_key)
        await asyncio.to_thread(blob.download_to_filename, local_path)
        return local_path

    async def upload_file(self, local_path: str, storage_key: str, content_type: str | None = None) -> str:
        """Upload a local file to GCS.

        ``upload_from_filename`` streams the file in chunks (resumable upload
        for large files) so the render output is never held in memory.
        """
        blob = self.bucket.blob(storage_key)
        if content_type:
            await asyncio.to_thread(blob.upload_from_filename, local_path, content_type=content_type)
        else:
            await asyncio.to_thread(blob.upload_from_filename, local_path)
        return self.get_public_url(storage_key)

    def file_exists(self, storage_key: str) -> bool:
        """Check if a file exists in GCS."""
        blob = self.bucket.blob(storage_key)
        return blob.exists()


# Use LocalStorageService or GCSStorageService based on config
StorageService = LocalStorageService if settings.use_local_storage else GCSStorageService

_storage_service: LocalStorageService | GCSStorageService | None = None


def get_storage_service() -> LocalStorageService | GCSStorageService:
    global _storage_service
    if _storage_service is None:
        _storage_service = StorageService()
        logger.info(f"[STORAGE] Using {type(_storage_service).__name__}")
    return _storage_service
