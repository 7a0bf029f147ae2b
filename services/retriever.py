# services/retriever.py
"""Retriever: nearest chunks of one document, flattened into prompt context"""
import logging
from typing import List, Optional

from config import RetrievalConfig, settings
from core.domain import ContentChunk, RetrievalResult
from core.enums import SectionType
from core.interfaces import IChunkStore, IEmbeddingService
from utils.text import TRUNCATION_MARKER, format_context

logger = logging.getLogger(settings.LOGGER_NAME)

CONTEXT_LABEL = "CONTEXT"


class Retriever:
    """
    Embeds the query, ranks the document's chunks by distance and joins
    the top-K most-relevant-first into a single context string.

    A document with no chunks is not an error: the result is empty and
    drafting proceeds ungrounded by retrieval.
    """

    def __init__(
        self,
        chunk_store: IChunkStore,
        embedding_service: IEmbeddingService,
        config: Optional[RetrievalConfig] = None,
    ):
        self.chunk_store = chunk_store
        self.embedding_service = embedding_service
        self.config = config or RetrievalConfig()

    def _fit_to_budget(self, chunks: List[ContentChunk]) -> List[str]:
        """Keep chunks in rank order until the character budget is spent."""
        budget = self.config.context_char_budget
        texts: List[str] = []
        used = 0
        for chunk in chunks:
            remaining = budget - used
            if remaining <= 0:
                break
            text = chunk.content
            if len(text) > remaining:
                if texts:
                    break
                # The best chunk is always kept, cut down to the budget
                text = text[:remaining] + TRUNCATION_MARKER
            texts.append(text)
            used += len(text)
        return texts

    async def retrieve(
        self,
        query: str,
        document_id: str,
        section_type: Optional[SectionType] = None,
    ) -> RetrievalResult:
        query = (query or "")[:self.config.query_max_chars]

        if not await self.chunk_store.count(document_id):
            logger.info(f"[RAG] Document {document_id} has no indexed chunks")
            return RetrievalResult(context="", chunks=[])

        query_embedding = await self.embedding_service.embed(query)
        results = await self.chunk_store.search(
            document_id,
            query_embedding,
            top_k=self.config.top_k,
            section_type=section_type,
        )

        if not results:
            logger.info(f"[RAG] No chunks for document {document_id} (section_type={section_type})")
            return RetrievalResult(context="", chunks=[])

        ranked = [r.chunk for r in results]
        texts = self._fit_to_budget(ranked)
        kept = ranked[:len(texts)]

        logger.info(
            f"[RAG] Document {document_id}: {len(results)} retrieved, {len(kept)} in context "
            f"(best distance {results[0].distance:.3f})"
        )
        return RetrievalResult(context=format_context(texts, CONTEXT_LABEL), chunks=kept)
