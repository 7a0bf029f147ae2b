"""Tests for embedding and swapping a document's chunk set."""

import asyncio

import pytest

from config import IngestionConfig
from core.exceptions import ForbiddenError, NotFoundError, UpstreamUnavailableError
from infrastructure.document_locks import DocumentLockRegistry
from services.ingestion_service import IngestionService
from tests.helpers import (
    AUTHORITY, DOCUMENT_ID, EMBEDDING_DIMENSION, OWNER, FakeEmbeddingService
)


class RecordingChunkStore:
    """Keeps chunk sets in a dict and tracks how many writers are inside at once."""

    def __init__(self):
        self.sets = {}
        self.active = 0
        self.peak = 0

    async def _write(self, document_id, chunks):
        self.active += 1
        self.peak = max(self.peak, self.active)
        try:
            await asyncio.sleep(0)
            removed = len(self.sets.pop(document_id, []))
            if chunks:
                self.sets[document_id] = list(chunks)
            return removed
        finally:
            self.active -= 1

    async def replace_document_chunks(self, document_id, chunks):
        await self._write(document_id, chunks)

    async def delete_by_document(self, document_id):
        return await self._write(document_id, None)


class LockObservingEmbeddingService(FakeEmbeddingService):
    def __init__(self, locks: DocumentLockRegistry):
        super().__init__()
        self.locks = locks
        self.locked_during_calls = []

    async def embed(self, text):
        self.locked_during_calls.append(self.locks.is_locked(DOCUMENT_ID))
        return await super().embed(text)


async def _snapshot(chunk_store, document_id=DOCUMENT_ID):
    return [(c.section_id, c.content) for c in await chunk_store.list_by_document(document_id)]


async def test_ingest_writes_one_row_per_chunk(ingestion, chunk_store, chunker, document, embedding_service):
    expected = len(chunker.chunk_document(document))

    count = await ingestion.ingest_document(document)

    assert count == expected
    assert await chunk_store.count(DOCUMENT_ID) == expected
    assert embedding_service.calls == expected
    stored = await chunk_store.list_by_document(DOCUMENT_ID)
    assert all(len(c.embedding) == EMBEDDING_DIMENSION for c in stored)
    assert stored[0].section_id is None  # Overview first


async def test_reingest_replaces_instead_of_appending(ingestion, chunk_store, document):
    first = await ingestion.ingest_document(document)
    before = await _snapshot(chunk_store)

    second = await ingestion.ingest_document(document)

    assert first == second
    assert await chunk_store.count(DOCUMENT_ID) == first
    assert await _snapshot(chunk_store) == before


async def test_failed_embedding_leaves_previous_set_intact(chunk_store, chunker, ingestion, document):
    await ingestion.ingest_document(document)
    before = await _snapshot(chunk_store)

    failing = IngestionService(
        chunk_store,
        FakeEmbeddingService(fail_on_call=2),
        chunker,
        IngestionConfig(embedding_delay_seconds=0, embedding_dimension=EMBEDDING_DIMENSION),
        DocumentLockRegistry(),
    )
    document.sections[0].content += " Additional solvency certificate is required."
    with pytest.raises(UpstreamUnavailableError):
        await failing.ingest_document(document)

    assert await _snapshot(chunk_store) == before


async def test_failed_first_ingest_writes_nothing(chunk_store, chunker, document):
    failing = IngestionService(
        chunk_store,
        FakeEmbeddingService(fail_on_call=3),
        chunker,
        IngestionConfig(embedding_delay_seconds=0),
        DocumentLockRegistry(),
    )

    with pytest.raises(UpstreamUnavailableError):
        await failing.ingest_document(document)

    assert await chunk_store.count(DOCUMENT_ID) == 0


async def test_dimension_mismatch_is_rejected(chunk_store, chunker, document):
    service = IngestionService(
        chunk_store,
        FakeEmbeddingService(dimension=8),
        chunker,
        IngestionConfig(embedding_delay_seconds=0, embedding_dimension=EMBEDDING_DIMENSION),
        DocumentLockRegistry(),
    )

    with pytest.raises(UpstreamUnavailableError):
        await service.ingest_document(document)
    assert await chunk_store.count(DOCUMENT_ID) == 0


async def test_delete_all(ingestion, chunk_store, document):
    count = await ingestion.ingest_document(document)

    removed = await ingestion.delete_all(DOCUMENT_ID)

    assert removed == count
    assert await chunk_store.count(DOCUMENT_ID) == 0
    assert await ingestion.delete_all(DOCUMENT_ID) == 0


async def test_lock_is_released_after_ingest(ingestion, document):
    await ingestion.ingest_document(document)
    assert not ingestion.locks.is_locked(DOCUMENT_ID)


class TestEngineIndexing:

    async def test_document_owner_may_ingest(self, engine, seeded, chunk_store):
        count = await engine.ingest_source_document(DOCUMENT_ID, AUTHORITY)
        assert count > 0
        assert await chunk_store.count(DOCUMENT_ID) == count

    async def test_bidder_may_not_ingest(self, engine, seeded, embedding_service, chunk_store):
        with pytest.raises(ForbiddenError):
            await engine.ingest_source_document(DOCUMENT_ID, OWNER)
        assert embedding_service.calls == 0
        assert await chunk_store.count(DOCUMENT_ID) == 0

    async def test_bidder_may_not_delete_chunks(self, engine, seeded, chunk_store):
        await engine.ingest_source_document(DOCUMENT_ID, AUTHORITY)
        with pytest.raises(ForbiddenError):
            await engine.delete_source_document_chunks(DOCUMENT_ID, OWNER)
        assert await chunk_store.count(DOCUMENT_ID) > 0

    async def test_unknown_document(self, engine, seeded):
        with pytest.raises(NotFoundError):
            await engine.ingest_source_document("no-such-doc", AUTHORITY)


async def test_embedding_runs_outside_the_document_lock(chunk_store, chunker, document):
    locks = DocumentLockRegistry()
    embedding_service = LockObservingEmbeddingService(locks)
    service = IngestionService(
        chunk_store, embedding_service, chunker, IngestionConfig(embedding_delay_seconds=0), locks
    )

    count = await service.ingest_document(document)

    assert len(embedding_service.locked_during_calls) == count
    assert not any(embedding_service.locked_during_calls)


async def test_embedding_proceeds_while_document_is_locked(chunker, document):
    locks = DocumentLockRegistry()
    embedding_service = FakeEmbeddingService()
    store = RecordingChunkStore()
    service = IngestionService(
        store, embedding_service, chunker, IngestionConfig(embedding_delay_seconds=0), locks
    )
    expected = len(chunker.chunk_document(document))

    async with locks.lock(DOCUMENT_ID):
        task = asyncio.create_task(service.ingest_document(document))
        await asyncio.sleep(0)
        assert embedding_service.calls == expected
        assert DOCUMENT_ID not in store.sets

    assert await task == expected
    assert len(store.sets[DOCUMENT_ID]) == expected


async def test_delete_and_reingests_never_overlap(chunker, document):
    store = RecordingChunkStore()
    service = IngestionService(
        store, FakeEmbeddingService(), chunker, IngestionConfig(embedding_delay_seconds=0),
        DocumentLockRegistry(),
    )
    await service.ingest_document(document)
    expected = len(store.sets[DOCUMENT_ID])

    await asyncio.gather(
        service.delete_all(DOCUMENT_ID),
        service.ingest_document(document),
        service.ingest_document(document),
        service.delete_all(DOCUMENT_ID),
        service.ingest_document(document),
    )

    assert store.peak == 1
    assert len(store.sets[DOCUMENT_ID]) == expected


async def test_released_lock_is_reused_while_a_waiter_is_waking():
    locks = DocumentLockRegistry()
    holders = 0
    peak = 0

    async def hold():
        nonlocal holders, peak
        async with locks.lock(DOCUMENT_ID):
            holders += 1
            peak = max(peak, holders)
            await asyncio.sleep(0)
            holders -= 1

    first = locks.lock(DOCUMENT_ID)
    await first.acquire()
    waiter = asyncio.create_task(hold())
    await asyncio.sleep(0)
    first.release()
    late = asyncio.create_task(hold())

    await asyncio.gather(waiter, late)

    assert peak == 1
    assert locks.lock(DOCUMENT_ID) is first
