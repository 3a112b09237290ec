"""
Local filesystem storage provider for development.
Objects are served back by the /files/local route.
"""
from pathlib import Path
from typing import BinaryIO, Optional, Union
from urllib.parse import quote

import structlog

from ..config import settings
from .provider import StorageProvider


logger = structlog.get_logger(__name__)


class LocalStorageProvider(StorageProvider):
    name = "local"
    container = "local"

    def __init__(self, base_dir: Optional[str] = None):
        self.base_dir = Path(base_dir or settings.local_storage_dir)
        (self.base_dir / "uploads").mkdir(parents=True, exist_ok=True)

    def _get_path(self, key: str) -> Path:
        # Remove leading slash and sanitize
        clean_key = key.replace("\\", "/").lstrip("/")
        parts = [p for p in clean_key.split("/") if p not in ("", ".", "..")]
        return self.base_dir / "uploads" / Path(*parts) if parts else self.base_dir / "uploads"

    def path_for(self, key: str) -> Optional[Path]:
        path = self._get_path(key)
        return path if path.is_file() else None

    def public_url(self, key: str) -> str:
        return f"{settings.public_base_url}/files/local/{quote(key.lstrip('/'))}"

    def generate_upload_url(self, key: str, content_type: str, expires_s: int) -> str:
        # Development uploads go through the proxy endpoint; the URL is where the object will live
        return self.public_url(key)

    def get_download_url(self, key: str, expires_s: int) -> Optional[str]:
        if self._get_path(key).is_file():
            return self.public_url(key)
        return None

    def exists(self, key: str) -> bool:
        return self._get_path(key).is_file()

    def copy_in(self, src: Union[bytes, BinaryIO], key: str, content_type: Optional[str] = None) -> None:
        path = self._get_path(key)
        path.parent.mkdir(parents=True, exist_ok=True)
        with open(path, "wb") as f:
            if hasattr(src, "read"):
                f.write(src.read())
            else:
                f.write(src)
        logger.info("local_object_stored", key=key)

    def delete(self, key: str) -> None:
        path = self._get_path(key)
        if path.is_file():
            path.unlink()
