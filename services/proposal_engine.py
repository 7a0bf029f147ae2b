# services/proposal_engine.py
"""Caller-facing operations: every request is permission-checked before any retrieval or model call"""
import logging
from typing import Dict, List, Optional

from config import settings
from core.domain import (
    Assignment, Comment, DocumentSection, DraftResult, Proposal, ProposalValidation,
    SectionInfo, SourceDocument, TenderContext
)
from core.enums import ActivityAction, DocumentKind, PermissionLevel
from core.exceptions import NotFoundError
from core.interfaces import IDocumentRepository, IProposalRepository
from services.collaboration_service import CollaborationService
from services.drafter import GroundedDrafter
from services.ingestion_service import IngestionService
from services.permission_service import Operation, PermissionAuthority
from services.section_classifier import section_key_to_title
from services.validator import ProposalValidator

logger = logging.getLogger(settings.LOGGER_NAME)


class ProposalEngine:
    def __init__(
        self,
        document_repo: IDocumentRepository,
        proposal_repo: IProposalRepository,
        permissions: PermissionAuthority,
        collaboration: CollaborationService,
        drafter: GroundedDrafter,
        validator: ProposalValidator,
        ingestion: IngestionService,
    ):
        self.document_repo = document_repo
        self.proposal_repo = proposal_repo
        self.permissions = permissions
        self.collaboration = collaboration
        self.drafter = drafter
        self.validator = validator
        self.ingestion = ingestion

    # ============= Lookups =============

    async def _get_document(self, document_id: str) -> SourceDocument:
        document = await self.document_repo.get_by_id(document_id)
        if document is None:
            raise NotFoundError(f"Document {document_id} not found")
        return document

    async def _get_proposal_document(self, proposal: Proposal) -> SourceDocument:
        return await self._get_document(proposal.document_id)

    def _get_section(self, document: SourceDocument, section_id: str) -> DocumentSection:
        section = document.get_section(section_id)
        if section is None:
            raise NotFoundError(f"Section {section_id} not found in document {document.id}")
        return section

    def _section_info(self, document: SourceDocument, section: DocumentSection) -> SectionInfo:
        title = section.title
        if document.kind == DocumentKind.UPLOADED and (not title or title == section.section_id):
            # Uploaded tenders address sections by camelCase keys
            title = section_key_to_title(section.section_id)
        return SectionInfo(section_id=section.section_id, title=title, requirements=section.content)

    # ============= Drafting & Validation =============

    async def generate_section_draft(
        self,
        proposal_id: str,
        section_id: str,
        acting_user_id: str,
        custom_instructions: Optional[str] = None,
    ) -> DraftResult:
        await self.permissions.require_operation(
            Operation.GENERATE, proposal_id, acting_user_id, section_id
        )
        proposal = await self.permissions.get_proposal(proposal_id)
        document = await self._get_proposal_document(proposal)
        section = self._get_section(document, section_id)

        result = await self.drafter.draft(
            TenderContext.from_document(document),
            self._section_info(document, section),
            custom_instructions,
        )

        await self.collaboration.log_activity(
            proposal_id, section_id, acting_user_id, ActivityAction.AI_DRAFT,
            {"section_type": result.section_type.value, "word_count": result.word_count},
        )
        logger.info(
            f"[DRAFT] Proposal {proposal_id} section {section_id}: {result.word_count} words"
        )
        return result

    async def validate_proposal(self, proposal_id: str, acting_user_id: str) -> ProposalValidation:
        await self.permissions.require_operation(Operation.VALIDATE, proposal_id, acting_user_id)
        proposal = await self.permissions.get_proposal(proposal_id)
        document = await self._get_proposal_document(proposal)

        stored = await self.proposal_repo.get_section_responses(proposal_id)
        responses = {section_id: response.content for section_id, response in stored.items()}
        return await self.validator.validate(document, responses)

    # ============= Collaboration =============

    async def assign_user(
        self,
        proposal_id: str,
        section_id: str,
        user_id: str,
        permission,
        acting_user_id: str,
    ) -> Assignment:
        await self.permissions.require_operation(Operation.ASSIGN, proposal_id, acting_user_id)
        proposal = await self.permissions.get_proposal(proposal_id)
        self._get_section(await self._get_proposal_document(proposal), section_id)
        return await self.collaboration.assign(
            proposal_id, section_id, user_id, permission, acting_user_id
        )

    async def remove_assignment(
        self,
        proposal_id: str,
        section_id: str,
        user_id: str,
        acting_user_id: str,
    ) -> None:
        await self.permissions.require_operation(Operation.UNASSIGN, proposal_id, acting_user_id)
        await self.collaboration.unassign(proposal_id, section_id, user_id, acting_user_id)

    async def list_assignments(self, proposal_id: str, acting_user_id: str) -> Dict[str, List[Assignment]]:
        await self.permissions.require_operation(Operation.VIEW, proposal_id, acting_user_id)
        return await self.collaboration.assignments_by_section(proposal_id)

    async def get_user_permissions(self, proposal_id: str, acting_user_id: str) -> Dict[str, PermissionLevel]:
        """Effective level of the acting user on every section of the proposal."""
        await self.permissions.require_operation(Operation.VIEW, proposal_id, acting_user_id)
        proposal = await self.permissions.get_proposal(proposal_id)
        document = await self._get_proposal_document(proposal)
        return {
            section.section_id: await self.permissions.resolve_level(
                proposal_id, acting_user_id, section.section_id
            )
            for section in document.sections
        }

    async def add_comment(
        self,
        proposal_id: str,
        section_id: str,
        acting_user_id: str,
        content: str,
    ) -> Comment:
        await self.permissions.require_operation(
            Operation.COMMENT, proposal_id, acting_user_id, section_id
        )
        proposal = await self.permissions.get_proposal(proposal_id)
        self._get_section(await self._get_proposal_document(proposal), section_id)
        return await self.collaboration.add_comment(proposal_id, section_id, acting_user_id, content)

    # ============= Indexing =============

    async def ingest_source_document(self, document_id: str, acting_user_id: str) -> int:
        document = await self._get_document(document_id)
        await self.permissions.require_document_owner(document, acting_user_id)
        return await self.ingestion.ingest_document(document)

    async def delete_source_document_chunks(self, document_id: str, acting_user_id: str) -> int:
        document = await self._get_document(document_id)
        await self.permissions.require_document_owner(document, acting_user_id)
        return await self.ingestion.delete_all(document_id)
