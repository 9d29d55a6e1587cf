"""Async relocation of objects inside the store.

A relocate is copy-then-delete. Every step is preceded by an existence check
so that a crash or a concurrent run at any point leaves the object reachable
under at least one key, and a rerun converges.
"""

import asyncio
import logging

from ..exceptions import ObjectNotFoundError, RelocationError, StorageError
from ..infrastructure.object_store.base import ObjectStore
from ..models.media_file import ObjectHead
from ..models.relocation import RelocateOutcome, RelocatePlan

logger = logging.getLogger(__name__)


class ObjectMover:
    """Move objects between keys of one store."""

    def __init__(self, store: ObjectStore, verify_destination: bool = False):
        self.store = store
        self.verify_destination = verify_destination

    async def relocate(self, plan: RelocatePlan) -> RelocateOutcome:
        """Move ``plan.source_key`` to ``plan.destination_key``.

        Once the first remote call is issued the relocate is shielded from
        cancellation and runs to completion or failure.

        Raises:
            RelocationError: If a store call fails, or the destination does
                not match the source when ``verify_destination`` is set.
        """
        if plan.is_noop:
            return RelocateOutcome.ALREADY_IN_PLACE

        return await asyncio.shield(self._perform(plan))

    async def _perform(self, plan: RelocatePlan) -> RelocateOutcome:
        try:
            destination = await self.store.head_object(plan.destination_key)
            if destination is not None:
                if self.verify_destination:
                    await self._verify(plan, destination)
                await self.store.delete_object(plan.source_key)
                logger.info(f"Destination already present, removed source: {plan}")
                return RelocateOutcome.DESTINATION_EXISTS

            source = await self.store.head_object(plan.source_key)
            if source is None:
                logger.warning(f"Source missing, nothing to move: {plan.source_key}")
                return RelocateOutcome.SOURCE_MISSING

            try:
                await self.store.copy_object(plan.source_key, plan.destination_key, plan.content_type)
            except ObjectNotFoundError:
                # Source vanished between HEAD and COPY
                logger.warning(f"Source disappeared before copy: {plan.source_key}")
                return RelocateOutcome.SOURCE_MISSING

            await self.store.delete_object(plan.source_key)
            logger.info(f"Moved {plan}")
            return RelocateOutcome.MOVED

        except StorageError as e:
            raise RelocationError(
                f"Failed to relocate {plan}: {e}",
                source_key=plan.source_key,
                destination_key=plan.destination_key,
                cause=e,
            ) from e

    async def _verify(self, plan: RelocatePlan, destination: ObjectHead) -> None:
        source = await self.store.head_object(plan.source_key)
        if source is None:
            return

        same_size = source.size == destination.size
        # Multipart ETags depend on part size, not only content
        comparable = source.etag and destination.etag and not (source.is_multipart or destination.is_multipart)
        same_etag = not comparable or source.etag == destination.etag
        if not (same_size and same_etag):
            raise RelocationError(
                f"Destination {plan.destination_key} differs from source {plan.source_key}; source kept",
                source_key=plan.source_key,
                destination_key=plan.destination_key,
            )
