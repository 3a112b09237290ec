from datetime import datetime, timedelta
from typing import BinaryIO, Optional, Union

from azure.storage.blob import (
    BlobServiceClient,
    BlobSasPermissions,
    ContentSettings,
    generate_blob_sas,
)

from ..config import settings
from .provider import StorageProvider


class BlobStorageProvider(StorageProvider):
    name = "blob"

    def __init__(self) -> None:
        if not settings.azure_blob_connection or not settings.azure_blob_container:
            raise RuntimeError("AZURE_BLOB_CONNECTION and AZURE_BLOB_CONTAINER must be set")
        self._service = BlobServiceClient.from_connection_string(settings.azure_blob_connection)
        self.container = settings.azure_blob_container

    def _sas(self, key: str, permission: BlobSasPermissions, expires_s: int, content_type: Optional[str] = None) -> str:
        return generate_blob_sas(
            account_name=self._service.account_name,
            container_name=self.container,
            blob_name=key.lstrip("/"),
            account_key=self._service.credential.account_key,
            permission=permission,
            expiry=datetime.utcnow() + timedelta(seconds=expires_s),
            content_type=content_type,
        )

    def public_url(self, key: str) -> str:
        return self._service.get_blob_client(self.container, key.lstrip("/")).url

    def generate_upload_url(self, key: str, content_type: str, expires_s: int) -> str:
        sas = self._sas(key, BlobSasPermissions(write=True, create=True), expires_s, content_type)
        return f"{self.public_url(key)}?{sas}"

    def get_download_url(self, key: str, expires_s: int) -> Optional[str]:
        sas = self._sas(key, BlobSasPermissions(read=True), expires_s)
        return f"{self.public_url(key)}?{sas}"

    def exists(self, key: str) -> bool:
        return self._service.get_blob_client(self.container, key.lstrip("/")).exists()

    def copy_in(self, src: Union[bytes, BinaryIO], key: str, content_type: Optional[str] = None) -> None:
        client = self._service.get_blob_client(self.container, key.lstrip("/"))
        client.upload_blob(
            src,
            overwrite=True,
            content_settings=ContentSettings(content_type=content_type) if content_type else None,
        )

    def delete(self, key: str) -> None:
        self._service.get_blob_client(self.container, key.lstrip("/")).delete_blob()
