# api/endpoints.py
"""
API endpoints for drafting, validation and section collaboration.

The acting user is taken from the X-User-Id header. Authentication sits
in front of this service; every permission decision is made here.
"""

import logging
from fastapi import APIRouter, Depends, FastAPI, Header, Request
from fastapi.responses import JSONResponse

from config import settings
from core.enums import ErrorCode
from core.exceptions import EngineError, ForbiddenError
from services.factory import get_proposal_engine
from services.proposal_engine import ProposalEngine
from api.schemas import (
    AssignmentRequest,
    AssignmentResponse,
    AssignmentsListResponse,
    CommentRequest,
    CommentResponse,
    DeleteResponse,
    DraftRequest,
    DraftResponse,
    ErrorResponse,
    HealthResponse,
    IngestResponse,
    PermissionsResponse,
    ValidationResponse,
)

logger = logging.getLogger(settings.LOGGER_NAME)

router = APIRouter()

ERROR_STATUS = {
    ErrorCode.NOT_FOUND: 404,
    ErrorCode.FORBIDDEN: 403,
    ErrorCode.INVALID_INPUT: 422,
    ErrorCode.UPSTREAM_UNAVAILABLE: 503,
    ErrorCode.UNPARSEABLE: 502,
}


# ---------- Error mapping ----------
async def engine_error_handler(request: Request, exc: EngineError) -> JSONResponse:
    status_code = ERROR_STATUS.get(exc.error_code, 500)
    body = ErrorResponse(error_code=exc.error_code, message=exc.message)
    if isinstance(exc, ForbiddenError):
        body.required = exc.required.name
        body.actual = exc.actual.name
    if status_code >= 500:
        logger.error(f"{request.method} {request.url.path} failed: {exc}")
    else:
        logger.info(f"{request.method} {request.url.path} rejected: {exc}")
    return JSONResponse(status_code=status_code, content={"detail": body.model_dump(mode="json")})


def register_exception_handlers(app: FastAPI) -> None:
    app.add_exception_handler(EngineError, engine_error_handler)


# ---------- Drafting ----------
@router.post(
    "/proposals/{proposal_id}/sections/{section_id}/draft",
    response_model=DraftResponse,
)
async def generate_draft(
    proposal_id: str,
    section_id: str,
    request: DraftRequest,
    x_user_id: str = Header(...),
    engine: ProposalEngine = Depends(get_proposal_engine),
) -> DraftResponse:
    result = await engine.generate_section_draft(
        proposal_id, section_id, x_user_id, request.custom_instructions
    )
    return DraftResponse.from_result(result)


# ---------- Validation ----------
@router.post("/proposals/{proposal_id}/validate", response_model=ValidationResponse)
async def validate_proposal(
    proposal_id: str,
    x_user_id: str = Header(...),
    engine: ProposalEngine = Depends(get_proposal_engine),
) -> ValidationResponse:
    result = await engine.validate_proposal(proposal_id, x_user_id)
    return ValidationResponse.from_result(result)


# ---------- Assignments ----------
@router.put(
    "/proposals/{proposal_id}/sections/{section_id}/assignments/{user_id}",
    response_model=AssignmentResponse,
)
async def assign_user(
    proposal_id: str,
    section_id: str,
    user_id: str,
    request: AssignmentRequest,
    x_user_id: str = Header(...),
    engine: ProposalEngine = Depends(get_proposal_engine),
) -> AssignmentResponse:
    assignment = await engine.assign_user(
        proposal_id, section_id, user_id, request.permission, x_user_id
    )
    return AssignmentResponse.from_assignment(assignment)


@router.delete(
    "/proposals/{proposal_id}/sections/{section_id}/assignments/{user_id}",
    response_model=DeleteResponse,
)
async def remove_assignment(
    proposal_id: str,
    section_id: str,
    user_id: str,
    x_user_id: str = Header(...),
    engine: ProposalEngine = Depends(get_proposal_engine),
) -> DeleteResponse:
    await engine.remove_assignment(proposal_id, section_id, user_id, x_user_id)
    return DeleteResponse(status="success", message=f"Removed {user_id} from section {section_id}")


@router.get("/proposals/{proposal_id}/assignments", response_model=AssignmentsListResponse)
async def list_assignments(
    proposal_id: str,
    x_user_id: str = Header(...),
    engine: ProposalEngine = Depends(get_proposal_engine),
) -> AssignmentsListResponse:
    grouped = await engine.list_assignments(proposal_id, x_user_id)
    return AssignmentsListResponse(
        proposal_id=proposal_id,
        sections={
            section_id: [AssignmentResponse.from_assignment(a) for a in assignments]
            for section_id, assignments in grouped.items()
        },
    )


@router.get("/proposals/{proposal_id}/permissions", response_model=PermissionsResponse)
async def get_permissions(
    proposal_id: str,
    x_user_id: str = Header(...),
    engine: ProposalEngine = Depends(get_proposal_engine),
) -> PermissionsResponse:
    levels = await engine.get_user_permissions(proposal_id, x_user_id)
    return PermissionsResponse(
        proposal_id=proposal_id,
        user_id=x_user_id,
        sections={section_id: level.name for section_id, level in levels.items()},
    )


# ---------- Comments ----------
@router.post(
    "/proposals/{proposal_id}/sections/{section_id}/comments",
    response_model=CommentResponse,
)
async def add_comment(
    proposal_id: str,
    section_id: str,
    request: CommentRequest,
    x_user_id: str = Header(...),
    engine: ProposalEngine = Depends(get_proposal_engine),
) -> CommentResponse:
    comment = await engine.add_comment(proposal_id, section_id, x_user_id, request.content)
    return CommentResponse(
        id=comment.id,
        proposal_id=comment.proposal_id,
        section_id=comment.section_id,
        user_id=comment.user_id,
        content=comment.content,
        created_at=comment.created_at,
    )


# ---------- Indexing ----------
@router.post("/documents/{document_id}/ingest", response_model=IngestResponse)
async def ingest_document(
    document_id: str,
    x_user_id: str = Header(...),
    engine: ProposalEngine = Depends(get_proposal_engine),
) -> IngestResponse:
    count = await engine.ingest_source_document(document_id, x_user_id)
    return IngestResponse(status="success", document_id=document_id, chunks=count)


@router.delete("/documents/{document_id}/chunks", response_model=DeleteResponse)
async def delete_document_chunks(
    document_id: str,
    x_user_id: str = Header(...),
    engine: ProposalEngine = Depends(get_proposal_engine),
) -> DeleteResponse:
    removed = await engine.delete_source_document_chunks(document_id, x_user_id)
    return DeleteResponse(status="success", message=f"Deleted {removed} chunks")


# ---------- Health ----------
@router.get("/health", response_model=HealthResponse)
async def health() -> HealthResponse:
    return HealthResponse(status="ok", version=settings.APP_VERSION)
