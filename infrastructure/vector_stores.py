# infrastructure/vector_stores.py
"""Concrete implementations of chunk stores"""
import asyncio
import logging
from typing import List, Optional, Dict
from typing import Any

import numpy as np
from sqlalchemy import delete, func, select
from sqlalchemy.ext.asyncio import AsyncSession

from core.interfaces import IChunkStore
from core.domain import ChunkSearchResult, ContentChunk
from core.enums import SectionType
from database.session import ContentChunkEntity

from config import settings

logger = logging.getLogger(settings.LOGGER_NAME)

# ============= SQL Chunk Store =============

class SQLChunkStore(IChunkStore):
    """
    Chunks and their vectors stored as rows next to the relational data.

    Distance is plain L2 over unit vectors, ranked in numpy. A document's
    chunk set is swapped inside one session transaction.
    """

    def __init__(self, session: AsyncSession):
        self.session = session

    def _to_domain(self, row: ContentChunkEntity) -> ContentChunk:
        return ContentChunk(
            id=row.id,
            content=row.content,
            document_id=row.document_id,
            section_id=row.section_id,
            metadata=dict(row.meta or {}),
            embedding=list(row.embedding) if row.embedding is not None else None,
        )

    async def replace_document_chunks(self, document_id: str, chunks: List[ContentChunk]) -> None:
        missing = [c.id for c in chunks if not c.embedding]
        if missing:
            raise ValueError(f"{len(missing)} chunks have no embedding; refusing partial write")

        try:
            result = await self.session.execute(
                delete(ContentChunkEntity).where(ContentChunkEntity.document_id == document_id)
            )
            self.session.add_all([
                ContentChunkEntity(
                    id=chunk.id,
                    document_id=document_id,
                    section_id=chunk.section_id,
                    section_type=chunk.metadata.get("section_type"),
                    chunk_index=i,  # Position within the whole document
                    content=chunk.content,
                    embedding=list(chunk.embedding),
                    meta=chunk.metadata,
                )
                for i, chunk in enumerate(chunks)
            ])
            await self.session.commit()
        except Exception as e:
            await self.session.rollback()
            logger.error(f"[STORE] Replacing chunks of {document_id} failed, rolled back: {e}")
            raise

        logger.info(
            f"[STORE] Document {document_id}: replaced {result.rowcount} chunks with {len(chunks)}"
        )

    async def delete_by_document(self, document_id: str) -> int:
        try:
            result = await self.session.execute(
                delete(ContentChunkEntity).where(ContentChunkEntity.document_id == document_id)
            )
            await self.session.commit()
        except Exception:
            await self.session.rollback()
            raise
        return result.rowcount or 0

    async def search(
        self,
        document_id: str,
        query_embedding: List[float],
        top_k: int = 5,
        section_type: Optional[SectionType] = None
    ) -> List[ChunkSearchResult]:
        stmt = select(ContentChunkEntity).where(ContentChunkEntity.document_id == document_id)
        if section_type is not None:
            stmt = stmt.where(ContentChunkEntity.section_type == section_type.value)

        result = await self.session.execute(stmt)
        rows = list(result.scalars().all())
        rows.sort(key=lambda row: row.chunk_index)
        if not rows or top_k <= 0:
            return []

        matrix = np.array([row.embedding for row in rows], dtype="float32")
        query = np.array(query_embedding, dtype="float32").reshape(1, -1)
        if matrix.shape[1] != query.shape[1]:
            raise ValueError(
                f"Query dimension {query.shape[1]} does not match stored dimension {matrix.shape[1]}"
            )

        distances = np.linalg.norm(matrix - query, axis=1)
        # Stable sort keeps chunk order for equal distances
        order = np.argsort(distances, kind="stable")[:top_k]

        return [
            ChunkSearchResult(chunk=self._to_domain(rows[i]), distance=float(distances[i]))
            for i in order
        ]

    async def list_by_document(self, document_id: str) -> List[ContentChunk]:
        result = await self.session.execute(
            select(ContentChunkEntity)
            .where(ContentChunkEntity.document_id == document_id)
            .order_by(ContentChunkEntity.chunk_index, ContentChunkEntity.id)
        )
        return [self._to_domain(row) for row in result.scalars().all()]

    async def count(self, document_id: Optional[str] = None) -> int:
        stmt = select(func.count()).select_from(ContentChunkEntity)
        if document_id is not None:
            stmt = stmt.where(ContentChunkEntity.document_id == document_id)
        result = await self.session.execute(stmt)
        return result.scalar_one()

# ============= ChromaDB Chunk Store =============

def _flatten_metadata(metadata: Dict[str, Any]) -> Dict[str, Any]:
    """ChromaDB accepts only scalar metadata values."""
    flat = {}
    for key, value in metadata.items():
        if value is None:
            continue
        if isinstance(value, (list, tuple)):
            flat[key] = ",".join(str(v) for v in value)
        elif isinstance(value, (str, int, float, bool)):
            flat[key] = value
        else:
            flat[key] = str(value)
    return flat


def _restore_metadata(metadata: Dict[str, Any]) -> Dict[str, Any]:
    restored = dict(metadata or {})
    if isinstance(restored.get("key_terms"), str):
        restored["key_terms"] = [t for t in restored["key_terms"].split(",") if t]
    return restored


class ChromaDBChunkStore(IChunkStore):
    """
    ChromaDB implementation. Distances are cosine distances (smaller = closer).

    ChromaDB has no transactions, so a document's new chunk set is written
    first and the old ids are removed only after that write succeeded.
    """

    def __init__(self, client: Any, collection_name: str = "tender_chunks"):
        self._client = client
        self._collection_name = collection_name
        self._collection: Any = None

    async def _ensure_collection(self):
        """Lazy initialization of collection"""
        if self._collection is None:
            self._collection = await asyncio.to_thread(
                self._client.get_or_create_collection,
                name=self._collection_name,
                metadata={"hnsw:space": "cosine"}
            )

    async def _ids_for_document(self, document_id: str) -> List[str]:
        existing = await asyncio.to_thread(
            self._collection.get,
            where={"document_id": document_id},
            include=[]
        )
        return list(existing.get("ids") or [])

    def _to_domain(self, chunk_id: str, content: str, metadata: Dict[str, Any]) -> ContentChunk:
        metadata = _restore_metadata(metadata)
        return ContentChunk(
            id=chunk_id,
            content=content,
            document_id=metadata.get("document_id", ""),
            section_id=metadata.get("section_id"),
            metadata=metadata,
        )

    async def replace_document_chunks(self, document_id: str, chunks: List[ContentChunk]) -> None:
        missing = [c.id for c in chunks if not c.embedding]
        if missing:
            raise ValueError(f"{len(missing)} chunks have no embedding; refusing partial write")

        await self._ensure_collection()
        old_ids = await self._ids_for_document(document_id)
        new_ids = [chunk.id for chunk in chunks]

        if chunks:
            try:
                await asyncio.to_thread(
                    self._collection.add,
                    documents=[chunk.content for chunk in chunks],
                    metadatas=[
                        _flatten_metadata({**chunk.metadata, "document_id": document_id, "position": i})
                        for i, chunk in enumerate(chunks)
                    ],
                    ids=new_ids,
                    embeddings=[chunk.embedding for chunk in chunks]
                )
            except Exception as e:
                logger.error(f"[STORE] Failed to add chunks to ChromaDB for {document_id}: {e}")
                await asyncio.to_thread(self._collection.delete, ids=new_ids)
                raise

        stale = [i for i in old_ids if i not in set(new_ids)]
        if stale:
            await asyncio.to_thread(self._collection.delete, ids=stale)

        logger.info(
            f"[STORE] Document {document_id}: replaced {len(old_ids)} chunks with {len(chunks)}"
        )

    async def delete_by_document(self, document_id: str) -> int:
        """Delete all chunks for a document"""
        await self._ensure_collection()
        ids = await self._ids_for_document(document_id)
        if ids:
            await asyncio.to_thread(self._collection.delete, ids=ids)
        return len(ids)

    async def search(
        self,
        document_id: str,
        query_embedding: List[float],
        top_k: int = 5,
        section_type: Optional[SectionType] = None
    ) -> List[ChunkSearchResult]:
        await self._ensure_collection()

        if section_type is not None:
            where = {"$and": [
                {"document_id": document_id},
                {"section_type": section_type.value},
            ]}
        else:
            where = {"document_id": document_id}

        available = len(await self._ids_for_document(document_id))
        if available == 0 or top_k <= 0:
            return []

        results = await asyncio.to_thread(
            self._collection.query,
            query_embeddings=[query_embedding],
            n_results=min(top_k, available),
            where=where,
            include=['metadatas', 'documents', 'distances']
        )

        search_results = []
        if results['ids'] and results['ids'][0]:
            for i in range(len(results['ids'][0])):
                chunk = self._to_domain(
                    results['ids'][0][i],
                    results['documents'][0][i],
                    results['metadatas'][0][i],
                )
                search_results.append(
                    ChunkSearchResult(chunk=chunk, distance=float(results['distances'][0][i]))
                )

        return search_results

    async def list_by_document(self, document_id: str) -> List[ContentChunk]:
        await self._ensure_collection()
        results = await asyncio.to_thread(
            self._collection.get,
            where={"document_id": document_id},
            include=['metadatas', 'documents']
        )
        chunks = [
            self._to_domain(chunk_id, content, meta)
            for chunk_id, content, meta in zip(
                results['ids'], results['documents'], results['metadatas']
            )
        ]
        return sorted(chunks, key=lambda c: c.metadata.get("position", 0))

    async def count(self, document_id: Optional[str] = None) -> int:
        """Get chunk count"""
        await self._ensure_collection()
        if document_id is None:
            return await asyncio.to_thread(self._collection.count)
        return len(await self._ids_for_document(document_id))
