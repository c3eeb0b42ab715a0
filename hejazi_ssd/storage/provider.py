from typing import BinaryIO, Optional


class StorageProvider:
    name = "base"

    def put(self, key: str, stream: BinaryIO, content_type: str) -> None:
        raise NotImplementedError

    def get_download_url(self, key: str, expires_s: int) -> Optional[str]:
        raise NotImplementedError

    def delete(self, key: str) -> None:
        raise NotImplementedError
