"""
Studio Assembly -- Save Coordination Tests

Saves are debounced, single-flight, and coalesced: edits made while a save
is in flight produce exactly one follow-up save. Failures retry with
exponential backoff; a save that never succeeds leaves the page dirty and
the in-memory document untouched.
"""

import asyncio

import pytest

from studio.kernel.assembly import MemoryStorage, PageAssembly
from studio.kernel.blocks import load_block_library
from studio.kernel.document import dumps
from studio.kernel.errors import SaveFailed


# ============================================================================
# Storage doubles
# ============================================================================


class GatedStorage(MemoryStorage):
    """Blocks put() until the gate is opened."""

    def __init__(self):
        super().__init__()
        self.gate = asyncio.Event()
        self.gate.set()
        self.entered = asyncio.Event()
        self.puts: list[str] = []
        self.in_flight = 0
        self.max_in_flight = 0

    async def put(self, page_id, text):
        self.in_flight += 1
        self.max_in_flight = max(self.max_in_flight, self.in_flight)
        try:
            self.entered.set()
            await self.gate.wait()
            self.puts.append(text)
            await super().put(page_id, text)
        finally:
            self.in_flight -= 1


class FlakyStorage(MemoryStorage):
    """Fails the next `failures` puts."""

    def __init__(self):
        super().__init__()
        self.failures = 0
        self.attempts = 0

    async def put(self, page_id, text):
        self.attempts += 1
        if self.failures > 0:
            self.failures -= 1
            raise ConnectionError("storage unavailable")
        await super().put(page_id, text)


def make_assembly(storage, **kwargs):
    kwargs.setdefault("debounce_s", 0)
    return PageAssembly(storage, load_block_library(), **kwargs)


# ============================================================================
# Coalescing
# ============================================================================


class TestCoalescing:
    @pytest.mark.asyncio
    async def test_edits_during_save_coalesce(self):
        storage = GatedStorage()
        assembly = make_assembly(storage)
        page_id = await assembly.create()
        storage.puts.clear()

        session = await assembly.open(page_id)
        storage.gate.clear()
        storage.entered.clear()

        session.engine.add("Text")
        await storage.entered.wait()
        assert session.saver.saving

        for _ in range(3):
            session.engine.add("Text")

        storage.gate.set()
        await session.saver.wait()

        assert len(storage.puts) == 2
        assert storage.puts[-1] == dumps(session.engine.committed_snapshot())
        assert session.saver.saved_revision == 4
        assert not session.saver.dirty

    @pytest.mark.asyncio
    async def test_concurrent_flushes_share_one_save_loop(self):
        storage = GatedStorage()
        assembly = make_assembly(storage)
        page_id = await assembly.create()
        session = await assembly.open(page_id)
        storage.puts.clear()
        storage.max_in_flight = 0

        first_text = session.engine.add("Text")
        storage.gate.clear()
        storage.entered.clear()
        first = asyncio.create_task(session.saver.flush())
        await storage.entered.wait()

        second_text = session.engine.add("Text")
        second = asyncio.create_task(session.saver.flush())
        await asyncio.sleep(0)
        storage.gate.set()

        assert await first is True
        assert await second is True
        assert storage.max_in_flight == 1
        assert len(storage.puts) == 2
        saved = await assembly.load(page_id)
        assert saved["components"]["root"]["children"] == [first_text, second_text]
        assert not session.saver.dirty

    @pytest.mark.asyncio
    async def test_flush_waits_for_in_flight_save(self):
        storage = GatedStorage()
        assembly = make_assembly(storage)
        page_id = await assembly.create()
        session = await assembly.open(page_id)
        storage.puts.clear()

        text = session.engine.add("Text")
        storage.gate.clear()
        storage.entered.clear()
        first = asyncio.create_task(session.saver.flush())
        await storage.entered.wait()

        second = asyncio.create_task(session.saver.flush())
        await asyncio.sleep(0)
        assert not second.done()

        storage.gate.set()
        assert await second is True
        assert await first is True
        assert len(storage.puts) == 1
        assert (await assembly.load(page_id))["components"]["root"]["children"] == [text]

    @pytest.mark.asyncio
    async def test_debounce_batches_bursts(self):
        storage = GatedStorage()
        assembly = make_assembly(storage, debounce_s=0.01)
        page_id = await assembly.create()
        storage.puts.clear()

        session = await assembly.open(page_id)
        for _ in range(5):
            session.engine.add("Text")
        await session.saver.wait()

        assert len(storage.puts) == 1
        assert session.saver.save_count == 1

    @pytest.mark.asyncio
    async def test_transient_changes_not_saved(self):
        storage = MemoryStorage()
        assembly = make_assembly(storage)
        page_id = await assembly.create()
        session = await assembly.open(page_id)

        text = session.engine.add("Text")
        session.engine.add("Section", transient=True)
        assert await session.saver.flush()

        saved = await assembly.load(page_id)
        assert saved["components"]["root"]["children"] == [text]

    @pytest.mark.asyncio
    async def test_undo_is_saved(self):
        storage = MemoryStorage()
        assembly = make_assembly(storage)
        page_id = await assembly.create()
        session = await assembly.open(page_id)

        session.engine.add("Text")
        await session.saver.flush()
        session.engine.undo()
        await session.saver.flush()

        assert (await assembly.load(page_id))["components"]["root"]["children"] == []


# ============================================================================
# Failure and retry
# ============================================================================


class TestRetry:
    @pytest.fixture
    def delays(self):
        return []

    @pytest.fixture
    def fake_sleep(self, delays):
        async def _sleep(seconds):
            delays.append(seconds)

        return _sleep

    @pytest.mark.asyncio
    async def test_backoff_then_give_up(self, delays, fake_sleep):
        storage = FlakyStorage()
        errors = []
        assembly = make_assembly(storage, max_retries=2, backoff_s=0.1, sleep=fake_sleep, on_save_error=errors.append)
        page_id = await assembly.create()
        session = await assembly.open(page_id)

        text = session.engine.add("Text")
        storage.failures = 10
        storage.attempts = 0

        assert await session.saver.flush() is False
        assert storage.attempts == 3
        assert delays == [0.1, 0.2]
        assert len(errors) == 1
        assert isinstance(errors[0], SaveFailed)
        assert errors[0].retryable
        assert session.saver.dirty
        assert session.engine.snapshot()["components"]["root"]["children"] == [text]
        assert (await assembly.load(page_id))["components"]["root"]["children"] == []

    @pytest.mark.asyncio
    async def test_recovers_after_transient_failure(self, delays, fake_sleep):
        storage = FlakyStorage()
        assembly = make_assembly(storage, max_retries=3, backoff_s=0.05, sleep=fake_sleep)
        page_id = await assembly.create()
        session = await assembly.open(page_id)

        session.engine.add("Text")
        storage.failures = 1

        assert await session.saver.flush() is True
        assert delays == [0.05]
        assert session.saver.save_count == 1
        assert not session.saver.dirty

    @pytest.mark.asyncio
    async def test_dirty_page_saved_on_next_flush(self, fake_sleep):
        storage = FlakyStorage()
        assembly = make_assembly(storage, max_retries=0, sleep=fake_sleep)
        page_id = await assembly.create()
        session = await assembly.open(page_id)

        text = session.engine.add("Text")
        storage.failures = 1
        assert await session.saver.flush() is False

        assert await session.close() is True
        assert (await assembly.load(page_id))["components"]["root"]["children"] == [text]
