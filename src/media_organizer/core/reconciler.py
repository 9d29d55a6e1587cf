"""Batch reconciliation of the catalog against the object store.

The relocation pass moves every linked object to the key its lineage
dictates and repoints the catalog at it. The hygiene pass removes link rows
that point at nothing. Both passes report rather than raise for per-item
problems, so a single bad row never stops a run, and both are idempotent.
"""

import asyncio
import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Set

from ..domain.repositories import CatalogRepository, LESSON_TYPE
from ..exceptions import RelocationError, MediaOrganizerError
from ..infrastructure.object_store.base import ObjectStore
from ..models.catalog import CatalogLineage, LinkRecord, LinkTarget
from ..models.config import ReorganizeConfig
from ..models.media_file import StoredObject
from ..models.relocation import RelocateOutcome, RelocatePlan
from .key_resolver import KeyResolver
from .mover import ObjectMover
from .operation_history import RelocationJournal, journal_session, create_relocation_record
from .path_builder import PathBuilder

logger = logging.getLogger(__name__)


class ItemStatus:
    MOVED = "moved"
    WOULD_MOVE = "would_move"
    SKIPPED = "skipped"
    UNRESOLVABLE = "unresolvable"
    ERRORED = "errored"


@dataclass(slots=True)
class ItemResult:
    """What happened to one link during a relocation pass."""
    link_id: int
    object_id: int
    status: str
    source_key: Optional[str] = None
    destination_key: Optional[str] = None
    outcome: Optional[RelocateOutcome] = None
    message: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "link_id": self.link_id,
            "object_id": self.object_id,
            "status": self.status,
            "source_key": self.source_key,
            "destination_key": self.destination_key,
            "outcome": self.outcome.value if self.outcome else None,
            "message": self.message,
        }


@dataclass
class RelocationReport:
    dry_run: bool
    processed: int = 0
    moved: int = 0
    skipped: int = 0
    unresolvable: int = 0
    errored: int = 0
    items: List[ItemResult] = field(default_factory=list)
    session_id: Optional[str] = None

    def counters(self) -> Dict[str, int]:
        return {
            "processed": self.processed,
            "moved": self.moved,
            "skipped": self.skipped,
            "unresolvable": self.unresolvable,
            "errored": self.errored,
        }

    def add(self, item: ItemResult) -> None:
        self.items.append(item)
        self.processed += 1
        if item.status in (ItemStatus.MOVED, ItemStatus.WOULD_MOVE):
            self.moved += 1
        elif item.status == ItemStatus.SKIPPED:
            self.skipped += 1
        elif item.status == ItemStatus.UNRESOLVABLE:
            self.unresolvable += 1
        else:
            self.errored += 1

    def to_dict(self) -> Dict[str, Any]:
        return {
            "dry_run": self.dry_run,
            "session_id": self.session_id,
            **self.counters(),
            "items": [item.to_dict() for item in self.items],
        }


@dataclass
class HygieneReport:
    dry_run: bool
    orphaned: List[LinkRecord] = field(default_factory=list)
    dangling: List[LinkRecord] = field(default_factory=list)
    duplicates: List[LinkRecord] = field(default_factory=list)
    missing: List[LinkRecord] = field(default_factory=list)
    removed: int = 0
    failed: int = 0
    errors: List[str] = field(default_factory=list)

    @property
    def found(self) -> int:
        return len({link.id for link in self.orphaned + self.dangling + self.duplicates + self.missing})

    def to_dict(self) -> Dict[str, Any]:
        return {
            "dry_run": self.dry_run,
            "orphaned": len(self.orphaned),
            "dangling": len(self.dangling),
            "duplicates": len(self.duplicates),
            "missing": len(self.missing),
            "found": self.found,
            "removed": self.removed,
            "failed": self.failed,
        }


class BatchReconciler:
    """Drives the relocation and hygiene passes over the whole catalog."""

    def __init__(self,
                 catalog: CatalogRepository,
                 store: ObjectStore,
                 resolver: KeyResolver,
                 mover: ObjectMover,
                 path_builder: PathBuilder,
                 config: Optional[ReorganizeConfig] = None,
                 journal: Optional[RelocationJournal] = None):
        self.catalog = catalog
        self.store = store
        self.resolver = resolver
        self.mover = mover
        self.path_builder = path_builder
        self.config = config or ReorganizeConfig()
        self.journal = journal

    async def run_relocation_pass(self, dry_run: bool = True) -> RelocationReport:
        """Move every linked object to its canonical key.

        In dry-run nothing is mutated and objects that would move are
        counted in ``moved`` with no outcome.
        """
        report = RelocationReport(dry_run=dry_run)
        targets = await self.catalog.iter_link_targets(self.config.slot_names, self.config.published_only)
        logger.info(f"Found {len(targets)} linked files to examine")

        if self.journal is not None and not dry_run:
            async with journal_session(self.journal, self.store.bucket,
                                       metadata={"slots": list(self.config.slot_names)}) as (session, counters):
                report.session_id = session.session_id
                await self._relocate_all(targets, report)
                counters.update(report.counters())
        else:
            await self._relocate_all(targets, report)

        logger.info(
            f"Relocation pass finished: processed={report.processed} moved={report.moved} "
            f"skipped={report.skipped} unresolvable={report.unresolvable} errored={report.errored}"
        )
        return report

    async def _relocate_all(self, targets: List[LinkTarget], report: RelocationReport) -> None:
        semaphore = asyncio.Semaphore(max(1, self.config.concurrency))
        claims = self._claim_destinations(targets)
        handled: Set[int] = set()

        async def process(target: LinkTarget) -> ItemResult:
            object_id = target.stored_object.id
            if object_id in handled:
                return ItemResult(target.link.id, object_id, ItemStatus.SKIPPED,
                                  source_key=target.stored_object.current_key,
                                  message="object already handled in this run")
            handled.add(object_id)
            async with semaphore:
                return await self._relocate_one(target, report, claims)

        results = await asyncio.gather(*(process(target) for target in targets))
        for item in results:
            report.add(item)

    def _claim_destinations(self, targets: List[LinkTarget]) -> Dict[str, int]:
        """Map each key to the one object allowed to end up there.

        An object already recorded under a key owns it. Otherwise the lowest
        object id wins. Objects that lose a claim are reported as errored
        and left where they are.
        """
        claims: Dict[str, int] = {}
        for target in targets:
            obj = target.stored_object
            if obj.current_key:
                claims.setdefault(obj.current_key, obj.id)

        first_links: Dict[int, LinkTarget] = {}
        for target in targets:
            first_links.setdefault(target.stored_object.id, target)
        for object_id in sorted(first_links):
            target = first_links[object_id]
            claims.setdefault(self.path_builder.target_key_for(target.lineage, target.stored_object), object_id)
        return claims

    async def _relocate_one(self, target: LinkTarget, report: RelocationReport,
                            claims: Dict[str, int]) -> ItemResult:
        obj = target.stored_object
        item = ItemResult(target.link.id, obj.id, ItemStatus.ERRORED)

        try:
            item.destination_key = self.path_builder.target_key_for(target.lineage, obj)

            owner = claims.get(item.destination_key, obj.id)
            if owner != obj.id:
                item.source_key = obj.current_key
                item.message = f"destination {item.destination_key} is taken by file #{owner}"
                logger.error(f"Not relocating {obj.get_display_name()}: {item.message}")
                await self._journal(report, item)
                return item

            resolution = await self.resolver.resolve_current_key(obj, canonical_key=item.destination_key)
            if resolution is None:
                item.status = ItemStatus.UNRESOLVABLE
                item.message = "no key found in store"
                return item
            item.source_key = resolution.key

            if resolution.key == item.destination_key:
                item.status = ItemStatus.SKIPPED
                item.outcome = RelocateOutcome.ALREADY_IN_PLACE
                if not report.dry_run and obj.current_key != item.destination_key:
                    await self._update_pointer(obj.id, item.destination_key)
                return item

            if report.dry_run:
                item.status = ItemStatus.WOULD_MOVE
                logger.info(f"[dry-run] Would move {resolution.key} -> {item.destination_key}")
                return item

            plan = RelocatePlan(resolution.key, item.destination_key, obj.content_type)
            item.outcome = await self.mover.relocate(plan)

            if item.outcome.is_durable:
                await self._update_pointer(obj.id, item.destination_key)
                item.status = ItemStatus.MOVED
            else:
                item.status = ItemStatus.SKIPPED
                item.message = f"source vanished: {resolution.key}"

        except RelocationError as e:
            item.status = ItemStatus.ERRORED
            item.message = str(e)
            logger.error(f"Failed to relocate {obj.get_display_name()}: {e}")
        except MediaOrganizerError as e:
            item.status = ItemStatus.ERRORED
            item.message = str(e)
            logger.error(f"Error processing {obj.get_display_name()}: {e}")

        await self._journal(report, item)
        return item

    async def _update_pointer(self, object_id: int, key: str) -> None:
        await self.catalog.update_object_location(object_id, key, self.store.public_url(key), self.store.bucket)

    async def _journal(self, report: RelocationReport, item: ItemResult) -> None:
        if self.journal is None or report.session_id is None:
            return
        if item.outcome is None and item.status != ItemStatus.ERRORED:
            return
        record = create_relocation_record(
            report.session_id, item.object_id, item.source_key, item.destination_key,
            outcome=item.outcome,
            error_message=item.message if item.status == ItemStatus.ERRORED else None,
        )
        result = await self.journal.record_relocation(record)
        if result.is_failure():
            logger.warning(result.error())

    async def run_hygiene_pass(self, dry_run: bool = True, detach_missing: bool = False) -> HygieneReport:
        """Remove orphaned, dangling and duplicate link rows.

        With ``detach_missing`` links whose object cannot be found in the
        store are removed as well.
        """
        report = HygieneReport(dry_run=dry_run)
        report.orphaned = await self.catalog.find_orphaned_links()
        report.dangling = await self.catalog.find_dangling_links()
        report.duplicates = await self.catalog.find_duplicate_links()

        if detach_missing:
            lineages: Dict[int, Optional[CatalogLineage]] = {}
            for link, obj in await self.catalog.list_links(slot_names=self.config.slot_names):
                try:
                    canonical_key = await self._canonical_key(link, obj, lineages)
                    resolution = await self.resolver.resolve_current_key(obj, canonical_key=canonical_key)
                except MediaOrganizerError as e:
                    report.failed += 1
                    report.errors.append(f"link {link.id}: {e}")
                    logger.error(f"Could not check object for link {link.id}: {e}")
                    continue
                if resolution is None:
                    report.missing.append(link)

        logger.info(
            f"Hygiene: {len(report.orphaned)} orphaned, {len(report.dangling)} dangling, "
            f"{len(report.duplicates)} duplicate, {len(report.missing)} missing-object links"
        )
        if dry_run:
            return report

        seen: Set[int] = set()
        for link in report.orphaned + report.dangling + report.duplicates + report.missing:
            if link.id in seen:
                continue
            seen.add(link.id)

            result = await self.catalog.delete_link(link.id)
            if result.is_success():
                report.removed += result.value()
            else:
                report.failed += 1
                report.errors.append(result.error())
                logger.error(result.error())

        return report

    async def _canonical_key(self, link: LinkRecord, obj: StoredObject,
                             lineages: Dict[int, Optional[CatalogLineage]]) -> Optional[str]:
        if link.owner_entity_type != LESSON_TYPE:
            return None
        if link.owner_entity_id not in lineages:
            lineages[link.owner_entity_id] = await self.catalog.get_lineage(link.owner_entity_id)
        lineage = lineages[link.owner_entity_id]
        if lineage is None:
            return None
        return self.path_builder.target_key_for(lineage, obj)
