"""Relocation plans and outcomes."""

from dataclasses import dataclass
from enum import Enum

from .media_file import DEFAULT_CONTENT_TYPE


class RelocateOutcome(Enum):
    """Terminal states of a single relocate."""
    MOVED = "moved"
    ALREADY_IN_PLACE = "already_in_place"
    SOURCE_MISSING = "source_missing"
    DESTINATION_EXISTS = "destination_exists"

    @property
    def is_durable(self) -> bool:
        """Whether the object now lives at the destination key."""
        return self in (RelocateOutcome.MOVED, RelocateOutcome.DESTINATION_EXISTS)


@dataclass(frozen=True, slots=True)
class RelocatePlan:
    """Move ``source_key`` to ``destination_key``; never persisted."""

    source_key: str
    destination_key: str
    content_type: str = DEFAULT_CONTENT_TYPE

    @property
    def is_noop(self) -> bool:
        return self.source_key == self.destination_key

    def __str__(self) -> str:
        return f"{self.source_key} -> {self.destination_key}"
