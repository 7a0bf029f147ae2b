"""Core interfaces for the tender grounding engine"""
from abc import ABC, abstractmethod
from typing import List, Dict, Optional

from core.domain import (
    ActivityLogEntry, Assignment, ChunkSearchResult, Comment, ContentChunk,
    Proposal, ProposalSection, SourceDocument, User
)
from core.enums import PermissionLevel, SectionType

# ============= External Model Interfaces =============

class IEmbeddingService(ABC):
    """Embedding endpoint: one text in, one fixed-length vector out"""

    @abstractmethod
    async def embed(self, text: str) -> List[float]:
        """Embed a single text. Raises UpstreamUnavailableError on failure."""
        pass


class ICompletionService(ABC):
    """Chat/completion endpoint behind a single request/response contract"""

    @abstractmethod
    async def complete(
        self,
        system_prompt: str,
        user_prompt: str,
        temperature: float,
        max_tokens: int
    ) -> str:
        """Return the model's text. Raises UpstreamUnavailableError on failure."""
        pass

# ============= Chunk Store Interface =============

class IChunkStore(ABC):
    """Chunk text + vector storage keyed by source document"""

    @abstractmethod
    async def replace_document_chunks(self, document_id: str, chunks: List[ContentChunk]) -> None:
        """
        Delete every chunk of the document and write the new set as one unit.

        Either the new set is fully committed or the prior set is left intact.
        """
        pass

    @abstractmethod
    async def delete_by_document(self, document_id: str) -> int:
        """Delete all chunks for a document. Returns the number removed."""
        pass

    @abstractmethod
    async def search(
        self,
        document_id: str,
        query_embedding: List[float],
        top_k: int = 5,
        section_type: Optional[SectionType] = None
    ) -> List[ChunkSearchResult]:
        """Nearest chunks of one document, smallest distance first"""
        pass

    @abstractmethod
    async def list_by_document(self, document_id: str) -> List[ContentChunk]:
        """All chunks of a document in chunk order"""
        pass

    @abstractmethod
    async def count(self, document_id: Optional[str] = None) -> int:
        pass

# ============= Repository Interfaces =============

class IDocumentRepository(ABC):
    """Read access to source documents and their ordered sections"""

    @abstractmethod
    async def get_by_id(self, document_id: str) -> Optional[SourceDocument]:
        pass

    @abstractmethod
    async def save(self, document: SourceDocument) -> SourceDocument:
        """Insert or replace a document together with its sections"""
        pass


class IProposalRepository(ABC):

    @abstractmethod
    async def get_by_id(self, proposal_id: str) -> Optional[Proposal]:
        pass

    @abstractmethod
    async def get_section_responses(self, proposal_id: str) -> Dict[str, ProposalSection]:
        """Section responses keyed by section id"""
        pass

    @abstractmethod
    async def save(self, proposal: Proposal) -> Proposal:
        pass

    @abstractmethod
    async def save_section_response(self, proposal_id: str, section_id: str, content: str) -> ProposalSection:
        pass


class IUserRepository(ABC):

    @abstractmethod
    async def get_by_id(self, user_id: str) -> Optional[User]:
        pass

    @abstractmethod
    async def save(self, user: User) -> User:
        pass


class IAssignmentRepository(ABC):
    """At most one permission per (proposal, section, user)"""

    @abstractmethod
    async def get(self, proposal_id: str, section_id: str, user_id: str) -> Optional[Assignment]:
        pass

    @abstractmethod
    async def upsert(self, proposal_id: str, section_id: str, user_id: str,
                     permission: PermissionLevel, assigned_by: str) -> Assignment:
        pass

    @abstractmethod
    async def delete(self, proposal_id: str, section_id: str, user_id: str) -> bool:
        """Returns False when no such assignment existed"""
        pass

    @abstractmethod
    async def list_for_proposal(self, proposal_id: str) -> List[Assignment]:
        pass

    @abstractmethod
    async def list_for_user(self, proposal_id: str, user_id: str) -> List[Assignment]:
        pass


class IActivityLogRepository(ABC):
    """Append-only activity log. No update or delete."""

    @abstractmethod
    async def append(self, entry: ActivityLogEntry) -> ActivityLogEntry:
        pass

    @abstractmethod
    async def list_for_proposal(self, proposal_id: str, limit: int = 50) -> List[ActivityLogEntry]:
        pass


class ICommentRepository(ABC):

    @abstractmethod
    async def add(self, comment: Comment) -> Comment:
        pass

    @abstractmethod
    async def list_for_section(self, proposal_id: str, section_id: str) -> List[Comment]:
        pass
