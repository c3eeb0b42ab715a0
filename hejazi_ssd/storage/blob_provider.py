from datetime import datetime, timedelta
from typing import Optional, BinaryIO

from azure.core.exceptions import ResourceNotFoundError
from azure.storage.blob import (
    BlobServiceClient,
    ContentSettings,
    generate_blob_sas,
    BlobSasPermissions,
)

from ..config import settings
from .provider import StorageProvider


class BlobStorageProvider(StorageProvider):
    name = "blob"

    def __init__(self) -> None:
        if not settings.azure_blob_connection or not settings.azure_blob_container:
            raise RuntimeError("AZURE_BLOB_CONNECTION and AZURE_BLOB_CONTAINER must be set")
        self._service = BlobServiceClient.from_connection_string(settings.azure_blob_connection)
        self._container = settings.azure_blob_container

    def _client(self, key: str):
        return self._service.get_blob_client(self._container, key.lstrip("/"))

    def put(self, key: str, stream: BinaryIO, content_type: str) -> None:
        self._client(key).upload_blob(
            stream,
            overwrite=True,
            content_settings=ContentSettings(content_type=content_type),
        )

    def get_download_url(self, key: str, expires_s: int) -> Optional[str]:
        expiry = datetime.utcnow() + timedelta(seconds=expires_s)
        sas = generate_blob_sas(
            account_name=self._service.account_name,
            container_name=self._container,
            blob_name=key.lstrip("/"),
            account_key=self._service.credential.account_key,
            permission=BlobSasPermissions(read=True),
            expiry=expiry,
        )
        return f"{self._client(key).url}?{sas}"

    def delete(self, key: str) -> None:
        try:
            self._client(key).delete_blob()
        except ResourceNotFoundError:
            pass
