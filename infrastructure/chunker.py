# infrastructure/chunker.py
"""Word-window chunking of tender text with retrieval metadata"""
import logging
import re
from typing import List, Dict, Any, Optional

from config import ChunkingConfig, settings
from core.domain import ContentChunk, SourceDocument
from core.enums import SectionType
from core.exceptions import InvalidInputError
from services.section_classifier import classify
from utils.common import new_id, split_words

logger = logging.getLogger(settings.LOGGER_NAME)

# (term, pattern) pairs tagged onto chunk metadata to help filtering
KEY_TERM_PATTERNS = [
    ("experience", re.compile(r"experience|years?\s+of|track\s+record")),
    ("certification", re.compile(r"iso|certification|certified|registration")),
    ("financial", re.compile(r"turnover|financial|revenue|capital")),
    ("emd", re.compile(r"emd|earnest\s+money|security\s+deposit")),
    ("penalty", re.compile(r"penalty|liquidated|damages")),
    ("warranty", re.compile(r"warranty|guarantee|defect")),
    ("payment", re.compile(r"payment|milestone|installment")),
    ("deadline", re.compile(r"deadline|submission|last\s+date")),
    ("technical", re.compile(r"technical|specification|methodology")),
    ("evaluation", re.compile(r"evaluation|scoring|marks")),
]

_OBLIGATION = re.compile(r"must|shall|mandatory|required|essential", re.IGNORECASE)
_AMOUNT = re.compile(r"₹|rs\.?\s*\d|crore|lakh", re.IGNORECASE)
_DURATION = re.compile(r"\d+\s*(days?|months?|years?)", re.IGNORECASE)


def extract_key_terms(content: str) -> List[str]:
    text = (content or "").lower()
    return [term for term, pattern in KEY_TERM_PATTERNS if pattern.search(text)]


def calculate_importance(content: str, is_mandatory: bool = False) -> int:
    """Importance on a 1-10 scale, starting from 5."""
    score = 5
    if is_mandatory:
        score += 2
    score += min(len(extract_key_terms(content)), 3)
    if _OBLIGATION.search(content):
        score += 1
    if _AMOUNT.search(content):
        score += 1
    if _DURATION.search(content):
        score += 1
    return min(score, 10)


class WordWindowChunker:
    """
    Splits text on whitespace into fixed windows of words.

    The window advances by (chunk_size - overlap) words, so consecutive
    chunks share exactly `overlap` words. The last window is kept only
    while it still contains words no earlier chunk covered.
    """

    def __init__(self, config: Optional[ChunkingConfig] = None):
        self.config = config or ChunkingConfig()
        if self.config.chunk_size <= 0:
            raise InvalidInputError(f"chunk_size must be positive, got {self.config.chunk_size}")
        if self.config.overlap < 0 or self.config.overlap >= self.config.chunk_size:
            raise InvalidInputError(
                f"overlap must be in [0, chunk_size), got {self.config.overlap} "
                f"for chunk_size {self.config.chunk_size}"
            )

    def chunk(self, text: str, metadata: Optional[Dict[str, Any]] = None) -> List[ContentChunk]:
        metadata = dict(metadata or {})
        words = split_words(text)
        n = len(words)

        if n == 0:
            return []
        if n < self.config.min_words:
            logger.debug(f"[CHUNK] Skipping text of {n} words (min {self.config.min_words})")
            return []

        step = self.config.chunk_size - self.config.overlap
        is_mandatory = bool(metadata.get("is_mandatory", False))
        chunks: List[ContentChunk] = []
        start = 0

        while True:
            end = min(start + self.config.chunk_size, n)
            content = " ".join(words[start:end])
            index = len(chunks)
            chunk_meta = {
                **metadata,
                "chunk_index": index,
                "start_word": start,
                "end_word": end,
                "word_count": end - start,
                "key_terms": extract_key_terms(content),
                "importance": calculate_importance(content, is_mandatory),
                "has_overlap": index > 0 and self.config.overlap > 0,
            }
            chunks.append(
                ContentChunk(
                    id=new_id(),
                    content=content,
                    document_id=metadata.get("document_id", ""),
                    section_id=metadata.get("section_id"),
                    metadata=chunk_meta,
                )
            )
            if end == n:
                break
            start += step

        return chunks

    def chunk_document(self, document: SourceDocument) -> List[ContentChunk]:
        """
        Chunk a whole tender: its overview first, then every section in order.

        Section text is prefixed with the section title so a chunk stays
        recognizable out of context.
        """
        all_chunks: List[ContentChunk] = []

        overview = "\n\n".join(p for p in (document.title, document.description) if p)
        all_chunks.extend(self.chunk(overview, {
            "document_id": document.id,
            "section_id": None,
            "section_type": SectionType.GENERAL.value,
            "section_title": "Overview",
            "is_mandatory": True,
        }))

        for section in document.sections:
            body = f"{section.title}\n\n{section.content}" if section.content else section.title
            all_chunks.extend(self.chunk(body, {
                "document_id": document.id,
                "section_id": section.section_id,
                "section_type": classify(section.title).value,
                "section_title": section.title,
                "is_mandatory": section.is_mandatory,
            }))

        logger.info(
            f"[CHUNK] Document {document.id}: {len(document.sections)} sections "
            f"-> {len(all_chunks)} chunks"
        )
        return all_chunks
