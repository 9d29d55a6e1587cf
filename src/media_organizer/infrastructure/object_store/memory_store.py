"""In-memory object store for tests and local dry runs."""

import hashlib
from dataclasses import dataclass
from typing import Dict, List, Optional
from urllib.parse import quote

from ...exceptions import ObjectNotFoundError
from ...models.media_file import ObjectHead, DEFAULT_CONTENT_TYPE
from .base import ListPage, ObjectStore


@dataclass
class _StoredBlob:
    body: bytes
    content_type: str

    @property
    def etag(self) -> str:
        return hashlib.md5(self.body).hexdigest()


class InMemoryObjectStore(ObjectStore):
    """Dict-backed store that also records every call it receives."""

    def __init__(self, bucket: str = "test-bucket", region: str = "us-east-1", page_size: int = 1000):
        self._bucket = bucket
        self.region = region
        self.page_size = page_size
        self._objects: Dict[str, _StoredBlob] = {}
        self.calls: List[tuple] = []

    @property
    def bucket(self) -> str:
        return self._bucket

    def seed(self, key: str, body: bytes = b"", content_type: str = DEFAULT_CONTENT_TYPE) -> None:
        """Place an object without recording a call."""
        self._objects[key] = _StoredBlob(body, content_type)

    def keys(self) -> List[str]:
        return sorted(self._objects)

    def body_of(self, key: str) -> bytes:
        return self._objects[key].body

    def content_type_of(self, key: str) -> str:
        return self._objects[key].content_type

    def mutating_calls(self) -> List[tuple]:
        return [call for call in self.calls if call[0] in ("copy", "delete", "put")]

    async def head_object(self, key: str) -> Optional[ObjectHead]:
        self.calls.append(("head", key))
        blob = self._objects.get(key)
        if blob is None:
            return None
        return ObjectHead(key=key, size=len(blob.body), etag=blob.etag, content_type=blob.content_type)

    async def copy_object(self, source_key: str, destination_key: str, content_type: str) -> None:
        self.calls.append(("copy", source_key, destination_key))
        blob = self._objects.get(source_key)
        if blob is None:
            raise ObjectNotFoundError(source_key)
        self._objects[destination_key] = _StoredBlob(blob.body, content_type)

    async def delete_object(self, key: str) -> None:
        self.calls.append(("delete", key))
        self._objects.pop(key, None)

    async def list_objects(self, prefix: Optional[str] = None,
                           continuation_token: Optional[str] = None,
                           max_keys: int = 1000) -> ListPage:
        self.calls.append(("list", prefix, continuation_token))
        keys = [key for key in sorted(self._objects) if not prefix or key.startswith(prefix)]
        start = int(continuation_token) if continuation_token else 0
        size = min(max_keys, self.page_size)
        page = keys[start:start + size]
        next_start = start + size
        return ListPage(keys=page, next_token=str(next_start) if next_start < len(keys) else None)

    async def put_object(self, key: str, body: bytes, content_type: str) -> ObjectHead:
        self.calls.append(("put", key))
        blob = _StoredBlob(body, content_type)
        self._objects[key] = blob
        return ObjectHead(key=key, size=len(body), etag=blob.etag, content_type=content_type)

    def public_url(self, key: str) -> str:
        return f"https://{self._bucket}.s3.{self.region}.amazonaws.com/{quote(key)}"

    async def presigned_url(self, key: str, expires_in: int = 3600) -> str:
        return f"{self.public_url(key)}?X-Amz-Expires={expires_in}&X-Amz-Signature=test"
