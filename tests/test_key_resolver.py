"""Tests for current-key resolution."""

import pytest
from unittest.mock import AsyncMock

from media_organizer.core.key_resolver import (
    CANONICAL_KEY_STRATEGY,
    HashNameStrategy,
    KeyResolver,
    ListingSearchStrategy,
    ProviderMetadataStrategy,
    UrlKeyStrategy,
    default_strategies,
)
from media_organizer.exceptions import StorageError
from media_organizer.models.media_file import StoredObject


def make_object(**kwargs) -> StoredObject:
    defaults = dict(id=7, logical_name="notes.pdf", extension=".pdf", content_hash="abc123")
    defaults.update(kwargs)
    return StoredObject(**defaults)


class TestStrategies:
    """Test cases for individual strategies."""

    @pytest.mark.asyncio
    async def test_provider_metadata(self):
        obj = make_object(provider_metadata={"key": "a/b/notes.pdf"})
        assert await ProviderMetadataStrategy().try_resolve(obj) == "a/b/notes.pdf"

    @pytest.mark.asyncio
    async def test_provider_metadata_from_row_with_junk(self):
        obj = StoredObject.from_row({"id": 1, "name": "x.pdf", "provider_metadata": "{not json"})
        assert await ProviderMetadataStrategy().try_resolve(obj) is None

    @pytest.mark.asyncio
    async def test_url_amazonaws(self):
        obj = make_object(url="https://bucket.s3.us-east-1.amazonaws.com/course%20x/notes%20v1.pdf")
        assert await UrlKeyStrategy().try_resolve(obj) == "course x/notes v1.pdf"

    @pytest.mark.asyncio
    async def test_url_with_public_base(self):
        obj = make_object(url="https://cdn.example.com/media/a/b.pdf")
        strategy = UrlKeyStrategy("https://cdn.example.com/media")
        assert await strategy.try_resolve(obj) == "a/b.pdf"

    @pytest.mark.asyncio
    async def test_url_unrecognised_host(self):
        obj = make_object(url="https://elsewhere.example.com/a/b.pdf")
        assert await UrlKeyStrategy().try_resolve(obj) is None

    @pytest.mark.asyncio
    async def test_hash_name(self):
        assert await HashNameStrategy().try_resolve(make_object()) == "abc123.pdf"
        assert await HashNameStrategy().try_resolve(make_object(content_hash=None)) is None

    @pytest.mark.asyncio
    async def test_listing_search_caches_listing(self, store):
        store.seed("old/uploads/abc123_notes.pdf")
        store.seed("other/def456.pdf")
        strategy = ListingSearchStrategy(store, max_scan=100)

        assert await strategy.try_resolve(make_object()) == "old/uploads/abc123_notes.pdf"
        assert await strategy.try_resolve(make_object(content_hash="def456")) == "other/def456.pdf"

        list_calls = [call for call in store.calls if call[0] == "list"]
        assert len(list_calls) == 1

    @pytest.mark.asyncio
    async def test_listing_search_respects_cap(self, store):
        store.page_size = 2
        for i in range(5):
            store.seed(f"k{i}")
        store.seed("z/abc123.pdf")
        strategy = ListingSearchStrategy(store, max_scan=3)

        assert await strategy.try_resolve(make_object()) is None


class TestKeyResolver:
    """Test cases for KeyResolver."""

    @pytest.mark.asyncio
    async def test_first_existing_candidate_wins(self, store):
        store.seed("abc123.pdf")
        obj = make_object(provider_metadata={"key": "gone/notes.pdf"})
        resolver = KeyResolver(store, default_strategies(store))

        resolution = await resolver.resolve_current_key(obj)

        assert resolution.key == "abc123.pdf"
        assert resolution.strategy == "hash_name"

    @pytest.mark.asyncio
    async def test_metadata_preferred(self, store):
        store.seed("a/notes.pdf")
        store.seed("abc123.pdf")
        obj = make_object(provider_metadata={"key": "a/notes.pdf"})

        resolution = await KeyResolver(store).resolve_current_key(obj)

        assert resolution.key == "a/notes.pdf"
        assert resolution.strategy == "provider_metadata"

    @pytest.mark.asyncio
    async def test_never_returns_nonexistent_key(self, store):
        obj = make_object(provider_metadata={"key": "gone.pdf"},
                          url="https://b.s3.us-east-1.amazonaws.com/also-gone.pdf")
        assert await KeyResolver(store).resolve_current_key(obj) is None

    @pytest.mark.asyncio
    async def test_duplicate_candidates_checked_once(self, store):
        obj = make_object(provider_metadata={"key": "a.pdf"},
                          url="https://b.s3.us-east-1.amazonaws.com/a.pdf")
        resolver = KeyResolver(store, [ProviderMetadataStrategy(), UrlKeyStrategy()])

        assert await resolver.resolve_current_key(obj) is None
        assert store.calls.count(("head", "a.pdf")) == 1

    @pytest.mark.asyncio
    async def test_store_errors_propagate(self):
        failing = AsyncMock()
        failing.head_object.side_effect = StorageError("throttled")
        resolver = KeyResolver(failing, [ProviderMetadataStrategy()])

        with pytest.raises(StorageError):
            await resolver.resolve_current_key(make_object(provider_metadata={"key": "a.pdf"}))

    @pytest.mark.asyncio
    async def test_canonical_key_tried_last(self, store):
        store.seed("c/m/l/notes.pdf")
        obj = make_object(provider_metadata={"key": "abc123.pdf"})

        resolution = await KeyResolver(store).resolve_current_key(obj, canonical_key="c/m/l/notes.pdf")

        assert resolution.key == "c/m/l/notes.pdf"
        assert resolution.strategy == CANONICAL_KEY_STRATEGY

    @pytest.mark.asyncio
    async def test_chain_wins_over_canonical_key(self, store):
        store.seed("abc123.pdf")
        store.seed("c/m/l/notes.pdf")

        resolution = await KeyResolver(store).resolve_current_key(make_object(), canonical_key="c/m/l/notes.pdf")

        assert resolution.key == "abc123.pdf"

    @pytest.mark.asyncio
    async def test_missing_canonical_key_is_unresolved(self, store):
        assert await KeyResolver(store).resolve_current_key(make_object(), canonical_key="c/m/l/notes.pdf") is None
