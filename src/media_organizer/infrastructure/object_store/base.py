"""Object store interface.

The organizer only needs a handful of calls from the store: HEAD, server-side
copy, delete, paginated listing and put. Implementations are async; blocking
SDKs are expected to run their calls in an executor.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import AsyncIterator, List, Optional

from ...models.media_file import ObjectHead


@dataclass(frozen=True, slots=True)
class ListPage:
    """One page of a listing."""
    keys: List[str] = field(default_factory=list)
    next_token: Optional[str] = None


class ObjectStore(ABC):
    """Remote object store."""

    @abstractmethod
    async def head_object(self, key: str) -> Optional[ObjectHead]:
        """Return object metadata, or None if the key does not exist."""
        pass

    @abstractmethod
    async def copy_object(self, source_key: str, destination_key: str, content_type: str) -> None:
        """Server-side copy replacing the content type metadata."""
        pass

    @abstractmethod
    async def delete_object(self, key: str) -> None:
        """Delete ``key``; deleting an absent key is not an error."""
        pass

    @abstractmethod
    async def list_objects(self, prefix: Optional[str] = None,
                           continuation_token: Optional[str] = None,
                           max_keys: int = 1000) -> ListPage:
        """Return one page of keys."""
        pass

    @abstractmethod
    async def put_object(self, key: str, body: bytes, content_type: str) -> ObjectHead:
        """Store ``body`` under ``key``."""
        pass

    @abstractmethod
    def public_url(self, key: str) -> str:
        """Unsigned URL that addresses ``key``."""
        pass

    @abstractmethod
    async def presigned_url(self, key: str, expires_in: int = 3600) -> str:
        """Time-limited GET URL for ``key``."""
        pass

    @property
    @abstractmethod
    def bucket(self) -> str:
        pass

    def close(self) -> None:
        """Release client resources."""
        pass

    async def exists(self, key: str) -> bool:
        return await self.head_object(key) is not None

    async def iter_keys(self, prefix: Optional[str] = None, limit: Optional[int] = None) -> AsyncIterator[str]:
        """Walk the listing page by page, stopping after ``limit`` keys."""
        token = None
        seen = 0
        while True:
            page = await self.list_objects(prefix=prefix, continuation_token=token)
            for key in page.keys:
                if limit is not None and seen >= limit:
                    return
                seen += 1
                yield key
            if not page.next_token:
                return
            token = page.next_token
