"""
Local filesystem storage provider for development.
Saves files to a local directory instead of Azure Blob Storage.
"""
from typing import Optional, BinaryIO
from pathlib import Path
from urllib.parse import quote

from ..config import settings
from .provider import StorageProvider


class LocalStorageProvider(StorageProvider):
    name = "local"

    def __init__(self, base_dir: Optional[str] = None):
        self.base_dir = Path(base_dir or settings.local_storage_dir)
        self.base_dir.mkdir(parents=True, exist_ok=True)

    def get_path(self, key: str) -> Path:
        clean_key = key.lstrip("/").replace("..", "").replace("\\", "/")
        return self.base_dir / clean_key

    def put(self, key: str, stream: BinaryIO, content_type: str) -> None:
        path = self.get_path(key)
        path.parent.mkdir(parents=True, exist_ok=True)
        with open(path, "wb") as f:
            f.write(stream.read())

    def get_download_url(self, key: str, expires_s: int) -> Optional[str]:
        if self.get_path(key).exists():
            return f"{settings.public_base_url}/files/local/{quote(key.lstrip('/'))}"
        return None

    def delete(self, key: str) -> None:
        path = self.get_path(key)
        if path.exists():
            path.unlink()
