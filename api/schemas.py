# api/schemas.py
from datetime import datetime
from pydantic import BaseModel, Field
from typing import Optional, List, Dict

from core.domain import Assignment, DraftResult, ProposalValidation
from core.enums import ErrorCode, JudgmentSource, SectionType, ValidationStatus

# ============= Requests =============

class DraftRequest(BaseModel):
    custom_instructions: Optional[str] = Field(default=None, max_length=2000)

class AssignmentRequest(BaseModel):
    permission: str  # READ_ONLY | READ_AND_COMMENT | EDIT

class CommentRequest(BaseModel):
    content: str = Field(min_length=1, max_length=5000)

# ============= Responses =============

class DraftResponse(BaseModel):
    draft: str
    word_count: int
    section_type: SectionType
    suggested_structure: List[str]
    sources: List[str]
    disclaimer: str

    @classmethod
    def from_result(cls, result: DraftResult) -> "DraftResponse":
        return cls(
            draft=result.text,
            word_count=result.word_count,
            section_type=result.section_type,
            suggested_structure=result.suggested_structure,
            sources=result.sources,
            disclaimer=result.disclaimer,
        )

class SectionValidationResponse(BaseModel):
    section_id: str
    title: str
    is_mandatory: bool
    status: ValidationStatus
    score: int
    gaps: List[str]
    suggestions: List[str]
    word_count: int
    source: JudgmentSource

class ValidationResponse(BaseModel):
    is_valid: bool
    score: int
    sections: List[SectionValidationResponse]
    unaddressed_requirements: List[str]
    summary: str

    @classmethod
    def from_result(cls, result: ProposalValidation) -> "ValidationResponse":
        return cls(
            is_valid=result.is_valid,
            score=result.score,
            sections=[
                SectionValidationResponse(
                    section_id=s.section_id,
                    title=s.title,
                    is_mandatory=s.is_mandatory,
                    status=s.status,
                    score=s.score,
                    gaps=s.gaps,
                    suggestions=s.suggestions,
                    word_count=s.word_count,
                    source=s.source,
                )
                for s in result.sections
            ],
            unaddressed_requirements=result.unaddressed_requirements,
            summary=result.summary,
        )

class AssignmentResponse(BaseModel):
    proposal_id: str
    section_id: str
    user_id: str
    permission: str
    assigned_by: Optional[str] = None
    assigned_at: Optional[datetime] = None

    @classmethod
    def from_assignment(cls, assignment: Assignment) -> "AssignmentResponse":
        return cls(
            proposal_id=assignment.proposal_id,
            section_id=assignment.section_id,
            user_id=assignment.user_id,
            permission=assignment.permission.name,
            assigned_by=assignment.assigned_by,
            assigned_at=assignment.assigned_at,
        )

class AssignmentsListResponse(BaseModel):
    proposal_id: str
    sections: Dict[str, List[AssignmentResponse]]

class PermissionsResponse(BaseModel):
    proposal_id: str
    user_id: str
    sections: Dict[str, str]

class CommentResponse(BaseModel):
    id: Optional[int] = None
    proposal_id: str
    section_id: str
    user_id: str
    content: str
    created_at: Optional[datetime] = None

class IngestResponse(BaseModel):
    status: str
    document_id: str
    chunks: int

class DeleteResponse(BaseModel):
    status: str
    message: str

class ErrorResponse(BaseModel):
    error_code: ErrorCode
    message: str
    required: Optional[str] = None
    actual: Optional[str] = None

class HealthResponse(BaseModel):
    status: str
    version: str
