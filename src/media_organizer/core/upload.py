"""Upload flow: place new files under their entity's canonical folder.

The orchestrator resolves where files belong and hands that decision to the
storage provider through an explicit ``UploadContext``. The provider writes
the bytes; without a context it falls back to its own default naming.
"""

import logging
import time
import uuid
from typing import List, Optional, Sequence, Set

from ..domain.repositories import CatalogRepository, LESSON_TYPE
from ..infrastructure.object_store.base import ObjectStore
from ..models.catalog import CatalogLineage
from ..models.media_file import IncomingFile, StoredObject
from .path_builder import PathBuilder, build_file_name
from .sanitizer import sanitize
from .upload_context import FileContext, UploadContext

logger = logging.getLogger(__name__)

DEFAULT_FOLDER = "uncategorized"


def _millis() -> int:
    return int(time.time() * 1000)


class StorageProvider:
    """Writes uploaded bytes to the object store."""

    def __init__(self, store: ObjectStore, default_folder: str = DEFAULT_FOLDER):
        self.store = store
        self.default_folder = default_folder

    def key_for(self, file: IncomingFile, context: Optional[UploadContext] = None) -> str:
        """Key for ``file``, consuming one entry of ``context`` if it has any."""
        file_context = context.next_file_context() if context is not None else None
        if file_context is not None:
            return f"{file_context.target_path}/{file_context.base_file_name}"

        logger.debug(f"No upload context for {file.name}, using default naming")
        return f"{self.default_folder}/{sanitize(file.stem, fallback='file')}-{_millis()}{file.extension}"

    async def upload(self, file: IncomingFile, context: Optional[UploadContext] = None) -> IncomingFile:
        key = self.key_for(file, context)
        await self.store.put_object(key, file.body, file.content_type)

        file.key = key
        file.url = self.store.public_url(key)
        file.provider_metadata = {"key": key, "bucket": self.store.bucket}
        logger.info(f"Uploaded {file.name} to {key}")
        return file

    async def delete(self, key: str) -> None:
        await self.store.delete_object(key)


class UploadOrchestrator:
    """Uploads files for one owner entity and records them in the catalog."""

    def __init__(self, catalog: CatalogRepository, provider: StorageProvider,
                 path_builder: Optional[PathBuilder] = None):
        self.catalog = catalog
        self.provider = provider
        self.path_builder = path_builder or PathBuilder()

    async def upload_for_entity(self, entity_id: int, files: Sequence[IncomingFile],
                                owner_entity_type: str = LESSON_TYPE) -> List[StoredObject]:
        """Upload ``files`` in order and link each to its slot on the entity.

        A slot that already holds a file is cleared first, removing the old
        object from the store and the catalog. For an unknown entity the
        files are still stored, under the provider's default naming, but not
        linked.
        """
        lineage = await self.catalog.get_lineage(entity_id)

        context = None
        if lineage is not None:
            for file in files:
                if file.slot_name:
                    await self._clear_slot(entity_id, owner_entity_type, file.slot_name)
            context = UploadContext.establish(await self._placements(lineage, files))
        else:
            logger.warning(f"Entity {entity_id} not found, uploading without placement")

        stored = []
        for file in files:
            uploaded = await self.provider.upload(file, context)
            obj = await self.catalog.insert_object(
                name=uploaded.name,
                ext=uploaded.extension,
                mime=uploaded.content_type,
                content_hash=uploaded.hash or "",
                size_kb=uploaded.size_kb,
                url=uploaded.url,
                provider_metadata=uploaded.provider_metadata,
            )
            if lineage is not None:
                await self.catalog.insert_link(obj.id, entity_id, owner_entity_type, uploaded.slot_name)
            stored.append(obj)

        return stored

    async def _placements(self, lineage: CatalogLineage, files: Sequence[IncomingFile]) -> List[FileContext]:
        """One context per file, named the way the reconciler names it.

        A name already present in the folder, or used earlier in the same
        request, gets a disambiguator instead of overwriting the other file.
        """
        folder = self.path_builder.folder_for(lineage)
        taken: Set[str] = set()
        placements = []
        for file in files:
            name = self.path_builder.file_name_for(file.name, file.extension, file.hash)
            if await self._is_taken(folder, name, taken):
                name = build_file_name(file.name, file.extension or None, file.hash or f"file-{_millis()}")
            if await self._is_taken(folder, name, taken):
                name = build_file_name(file.name, file.extension or None, uuid.uuid4().hex[:8])
            taken.add(name)
            placements.append(FileContext(folder, name))
        return placements

    async def _is_taken(self, folder: str, name: str, taken: Set[str]) -> bool:
        return name in taken or await self.provider.store.exists(f"{folder}/{name}")

    async def _clear_slot(self, entity_id: int, owner_entity_type: str, slot_name: str) -> None:
        occupant = await self.catalog.find_slot_occupant(entity_id, owner_entity_type, slot_name)
        if occupant is None:
            return

        _, old = occupant
        if old.current_key:
            await self.provider.delete(old.current_key)
        await self.catalog.delete_object(old.id)
        logger.info(f"Replaced {old.get_display_name()} in slot {slot_name} of entity {entity_id}")
