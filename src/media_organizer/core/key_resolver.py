"""Find the key a stored object currently lives under.

Older rows do not all carry the key in their provider metadata, so the
resolver walks a chain of strategies, cheapest first, and confirms every
candidate against the store before trusting it.
"""

import logging
import re
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import List, Optional, Sequence
from urllib.parse import unquote, urlparse

from ..infrastructure.object_store.base import ObjectStore
from ..models.media_file import StoredObject

logger = logging.getLogger(__name__)

AMAZONAWS_KEY_PATTERN = re.compile(r"\.amazonaws\.com/(.+)$")
DEFAULT_MAX_SCAN = 10_000
CANONICAL_KEY_STRATEGY = "canonical_key"


@dataclass(frozen=True, slots=True)
class KeyResolution:
    """A confirmed key and the strategy that produced it."""
    key: str
    strategy: str


class KeyStrategy(ABC):
    """One way of guessing an object's key."""

    name: str = "strategy"

    @abstractmethod
    async def try_resolve(self, obj: StoredObject) -> Optional[str]:
        """Return a candidate key or None. Candidates are not yet confirmed."""
        pass


class ProviderMetadataStrategy(KeyStrategy):
    name = "provider_metadata"

    async def try_resolve(self, obj: StoredObject) -> Optional[str]:
        key = obj.provider_metadata.get("key")
        if isinstance(key, str) and key:
            return key
        return obj.current_key


class UrlKeyStrategy(KeyStrategy):
    """Parse the key out of the object's public URL."""

    name = "url"

    def __init__(self, public_url_base: Optional[str] = None):
        self.public_url_base = public_url_base.rstrip("/") + "/" if public_url_base else None

    async def try_resolve(self, obj: StoredObject) -> Optional[str]:
        url = obj.url
        if not url:
            return None

        if self.public_url_base and url.startswith(self.public_url_base):
            path = urlparse(url[len(self.public_url_base):]).path
            return unquote(path) or None

        without_query = url.split("?", 1)[0]
        match = AMAZONAWS_KEY_PATTERN.search(without_query)
        if match:
            return unquote(match.group(1))
        return None


class HashNameStrategy(KeyStrategy):
    """Legacy uploads were stored flat as ``<hash><ext>``."""

    name = "hash_name"

    async def try_resolve(self, obj: StoredObject) -> Optional[str]:
        if not obj.content_hash:
            return None
        return f"{obj.content_hash}{obj.extension or ''}"


class ListingSearchStrategy(KeyStrategy):
    """Scan the bucket listing for a key containing the content hash.

    The listing is fetched once, capped at ``max_scan`` keys, and reused for
    every object this strategy is asked about.
    """

    name = "listing_search"

    def __init__(self, store: ObjectStore, max_scan: int = DEFAULT_MAX_SCAN):
        self.store = store
        self.max_scan = max_scan
        self._listing: Optional[List[str]] = None

    async def _get_listing(self) -> List[str]:
        if self._listing is None:
            keys = [key async for key in self.store.iter_keys(limit=self.max_scan)]
            logger.debug(f"Cached {len(keys)} keys from bucket listing")
            self._listing = keys
        return self._listing

    async def try_resolve(self, obj: StoredObject) -> Optional[str]:
        if not obj.content_hash:
            return None
        listing = await self._get_listing()
        for key in listing:
            if obj.content_hash in key:
                return key
        return None


def default_strategies(store: ObjectStore, public_url_base: Optional[str] = None,
                       max_scan: int = DEFAULT_MAX_SCAN) -> List[KeyStrategy]:
    return [
        ProviderMetadataStrategy(),
        UrlKeyStrategy(public_url_base),
        HashNameStrategy(),
        ListingSearchStrategy(store, max_scan),
    ]


class KeyResolver:
    """Runs the strategy chain and confirms candidates with HEAD."""

    def __init__(self, store: ObjectStore, strategies: Optional[Sequence[KeyStrategy]] = None):
        self.store = store
        self.strategies = list(strategies) if strategies is not None else default_strategies(store)

    async def resolve_current_key(self, obj: StoredObject,
                                  canonical_key: Optional[str] = None) -> Optional[KeyResolution]:
        """First candidate that exists in the store, or None.

        ``canonical_key`` is tried after every strategy has missed. An object
        moved by an earlier run whose catalog update never landed is only
        reachable there.

        Store errors other than not-found propagate.
        """
        checked = set()
        for strategy in self.strategies:
            candidate = await strategy.try_resolve(obj)
            if not candidate or candidate in checked:
                continue
            checked.add(candidate)

            if await self.store.head_object(candidate) is not None:
                logger.debug(f"Resolved {obj.get_display_name()} to {candidate} via {strategy.name}")
                return KeyResolution(candidate, strategy.name)

        if canonical_key and canonical_key not in checked:
            checked.add(canonical_key)
            if await self.store.head_object(canonical_key) is not None:
                logger.info(f"Found {obj.get_display_name()} at its canonical key {canonical_key}")
                return KeyResolution(canonical_key, CANONICAL_KEY_STRATEGY)

        logger.warning(f"Could not resolve a key for {obj.get_display_name()} (tried {len(checked)} candidates)")
        return None
