"""Domain models for the tender grounding engine"""
from dataclasses import dataclass, field
from datetime import datetime
from typing import List, Dict, Any, Optional

from core.enums import (
    ActivityAction, DocumentKind, JudgmentSource, PermissionLevel,
    SectionType, ValidationStatus
)

# ============= Source Documents =============

@dataclass
class DocumentSection:
    """A named, ordered subdivision of a source document"""
    section_id: str
    title: str
    content: str = ""
    is_mandatory: bool = False
    order_index: int = 0

@dataclass
class SourceDocument:
    """A published tender or an uploaded tender's parsed content"""
    id: str
    organization_id: str
    title: str
    description: str = ""
    sector: Optional[str] = None
    estimated_value: Optional[float] = None
    issuing_authority: Optional[str] = None
    kind: DocumentKind = DocumentKind.PLATFORM
    sections: List[DocumentSection] = field(default_factory=list)

    def get_section(self, section_id: str) -> Optional[DocumentSection]:
        return next((s for s in self.sections if s.section_id == section_id), None)

@dataclass
class ContentChunk:
    """Domain model for document chunks"""
    id: str
    content: str
    document_id: str
    section_id: Optional[str]
    metadata: Dict[str, Any]
    embedding: Optional[List[float]] = None # Vector of float numbers

@dataclass
class ChunkSearchResult:
    """A chunk with its distance to the query (smaller = more relevant)"""
    chunk: ContentChunk
    distance: float

@dataclass
class RetrievalResult:
    context: str
    chunks: List[ContentChunk] = field(default_factory=list)

    @property
    def is_empty(self) -> bool:
        return not self.chunks

# ============= Proposals & Collaboration =============

@dataclass
class User:
    user_id: str
    organization_id: Optional[str]
    name: str = ""
    email: str = ""

@dataclass
class Proposal:
    """A bidder's response to one source document"""
    id: str
    document_id: str
    organization_id: str
    title: str = ""

@dataclass
class ProposalSection:
    proposal_id: str
    section_id: str
    content: str = ""
    word_count: int = 0

@dataclass
class Assignment:
    proposal_id: str
    section_id: str
    user_id: str
    permission: PermissionLevel
    assigned_by: Optional[str] = None
    assigned_at: Optional[datetime] = None

@dataclass
class ActivityLogEntry:
    """Append-only record of a collaborative action"""
    proposal_id: str
    section_id: Optional[str]
    user_id: str
    action: ActivityAction
    details: Dict[str, Any] = field(default_factory=dict)
    created_at: Optional[datetime] = None
    id: Optional[int] = None

@dataclass
class Comment:
    proposal_id: str
    section_id: str
    user_id: str
    content: str
    created_at: Optional[datetime] = None
    id: Optional[int] = None

# ============= Drafting =============

@dataclass
class TenderContext:
    """Tender facts stated to the model in the system instruction"""
    title: str
    sector: Optional[str] = None
    issuing_authority: Optional[str] = None
    estimated_value: Optional[float] = None
    document_id: Optional[str] = None

    @classmethod
    def from_document(cls, document: SourceDocument) -> 'TenderContext':
        return cls(
            title=document.title,
            sector=document.sector,
            issuing_authority=document.issuing_authority,
            estimated_value=document.estimated_value,
            document_id=document.id,
        )

@dataclass
class SectionInfo:
    """The section being drafted: its title and extracted requirement text"""
    section_id: str
    title: str
    requirements: str = ""

@dataclass
class DraftResult:
    text: str
    word_count: int
    section_type: SectionType
    disclaimer: str
    suggested_structure: List[str] = field(default_factory=list)
    sources: List[str] = field(default_factory=list)

# ============= Validation =============

@dataclass
class SectionValidation:
    """Per-section validation result. Ephemeral, computed on demand."""
    section_id: str
    title: str
    is_mandatory: bool
    status: ValidationStatus
    score: int
    gaps: List[str] = field(default_factory=list)
    suggestions: List[str] = field(default_factory=list)
    word_count: int = 0
    source: JudgmentSource = JudgmentSource.LENGTH_CHECK

@dataclass
class ProposalValidation:
    is_valid: bool
    score: int
    sections: List[SectionValidation]
    unaddressed_requirements: List[str]
    summary: str
