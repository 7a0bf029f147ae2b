# services/ingestion_service.py
"""Embedding Store: embed a document's chunks and swap them in as one unit"""
import asyncio
import logging
from typing import List, Optional

from config import IngestionConfig, settings
from core.domain import ContentChunk, SourceDocument
from core.exceptions import UpstreamUnavailableError
from core.interfaces import IChunkStore, IEmbeddingService
from infrastructure.chunker import WordWindowChunker
from infrastructure.document_locks import DocumentLockRegistry, document_locks

logger = logging.getLogger(settings.LOGGER_NAME)


class IngestionService:
    """
    Writes (chunk text, vector, metadata) keyed by document id.

    Every chunk is embedded before the store is touched, one call per chunk
    with a fixed delay between calls. Only a fully embedded set reaches
    `replace_document_chunks`, so a failed run leaves the previous set intact.
    The document lock is taken only around the store write; embedding runs
    outside it.
    """

    def __init__(
        self,
        chunk_store: IChunkStore,
        embedding_service: IEmbeddingService,
        chunker: Optional[WordWindowChunker] = None,
        config: Optional[IngestionConfig] = None,
        locks: Optional[DocumentLockRegistry] = None,
    ):
        self.chunk_store = chunk_store
        self.embedding_service = embedding_service
        self.chunker = chunker or WordWindowChunker()
        self.config = config or IngestionConfig()
        self.locks = locks or document_locks

    async def _embed_all(self, chunks: List[ContentChunk]) -> None:
        for i, chunk in enumerate(chunks):
            if i > 0 and self.config.embedding_delay_seconds > 0:
                await asyncio.sleep(self.config.embedding_delay_seconds)

            vector = await self.embedding_service.embed(chunk.content)

            expected = self.config.embedding_dimension
            if expected is not None and len(vector) != expected:
                raise UpstreamUnavailableError(
                    f"Embedding dimension {len(vector)} does not match configured {expected}"
                )
            chunk.embedding = vector

    async def ingest(self, document_id: str, chunks: List[ContentChunk]) -> int:
        """Replace the document's chunk set. Returns the number of chunks written."""
        logger.info(f"[INGEST] Document {document_id}: embedding {len(chunks)} chunks")
        for chunk in chunks:
            chunk.document_id = document_id

        try:
            await self._embed_all(chunks)
        except UpstreamUnavailableError as e:
            logger.error(f"[INGEST] Document {document_id}: aborted, nothing written ({e.message})")
            raise

        async with self.locks.lock(document_id):
            await self.chunk_store.replace_document_chunks(document_id, chunks)
        logger.info(f"[INGEST] Document {document_id}: {len(chunks)} chunks committed")
        return len(chunks)

    async def ingest_document(self, document: SourceDocument) -> int:
        chunks = self.chunker.chunk_document(document)
        return await self.ingest(document.id, chunks)

    async def delete_all(self, document_id: str) -> int:
        async with self.locks.lock(document_id):
            removed = await self.chunk_store.delete_by_document(document_id)
        logger.info(f"[INGEST] Document {document_id}: deleted {removed} chunks")
        return removed
