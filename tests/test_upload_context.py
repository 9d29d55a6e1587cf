"""Tests for per-request upload contexts."""

import asyncio

import pytest

from media_organizer.core.upload_context import FileContext, UploadContext


class TestUploadContext:
    """Test cases for UploadContext."""

    def test_fifo_order(self):
        context = UploadContext.establish([
            FileContext("c/m/l", "first"),
            FileContext("c/m/l", "second"),
        ])

        assert context.next_file_context().base_file_name == "first"
        assert context.next_file_context().base_file_name == "second"

    def test_exhausted_returns_none(self):
        context = UploadContext.establish([FileContext("c/m/l", "only")])
        context.next_file_context()

        assert context.next_file_context() is None
        assert context.next_file_context() is None

    def test_each_entry_consumed_once(self):
        context = UploadContext.establish([FileContext("a", "x")])
        assert len(context) == 1
        context.next_file_context()
        assert context.remaining == 0

    def test_empty_context(self):
        assert UploadContext.establish([]).next_file_context() is None

    @pytest.mark.asyncio
    async def test_concurrent_requests_are_isolated(self):
        """Interleaved requests only ever see their own entries."""

        async def request(name: str, count: int):
            context = UploadContext.establish(
                FileContext(f"{name}/folder", f"{name}-{i}") for i in range(count)
            )
            seen = []
            while True:
                await asyncio.sleep(0)
                entry = context.next_file_context()
                if entry is None:
                    return seen
                seen.append(entry)

        results = await asyncio.gather(*(request(f"r{n}", 5) for n in range(10)))

        for n, seen in enumerate(results):
            assert [entry.base_file_name for entry in seen] == [f"r{n}-{i}" for i in range(5)]
            assert all(entry.target_path == f"r{n}/folder" for entry in seen)
