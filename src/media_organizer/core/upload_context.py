"""Per-request naming context for uploads.

The orchestrator knows where each file belongs; the storage provider does
the write. An ``UploadContext`` carries the placement decisions from one to
the other and is passed explicitly with every upload call, so concurrent
requests never see each other's entries.
"""

from collections import deque
from dataclasses import dataclass
from typing import Deque, Iterable, Optional


@dataclass(frozen=True, slots=True)
class FileContext:
    """Where one file of a request should be placed."""
    target_path: str
    base_file_name: str


class UploadContext:
    """FIFO of ``FileContext`` entries, consumed in upload order."""

    def __init__(self, contexts: Optional[Iterable[FileContext]] = None):
        self._queue: Deque[FileContext] = deque(contexts or ())

    @classmethod
    def establish(cls, contexts: Iterable[FileContext]) -> "UploadContext":
        return cls(contexts)

    def next_file_context(self) -> Optional[FileContext]:
        """Dequeue the next entry; None once exhausted."""
        if not self._queue:
            return None
        return self._queue.popleft()

    @property
    def remaining(self) -> int:
        return len(self._queue)

    def __len__(self) -> int:
        return len(self._queue)

    def __repr__(self) -> str:
        return f"UploadContext(remaining={len(self._queue)})"
