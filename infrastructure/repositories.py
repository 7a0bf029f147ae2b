"""Database repository implementations"""
import logging
from typing import List, Optional, Dict

from sqlalchemy import select, delete
from sqlalchemy.ext.asyncio import AsyncSession

from core.domain import (
    ActivityLogEntry, Assignment, Comment, DocumentSection, Proposal,
    ProposalSection, SourceDocument, User
)
from core.enums import ActivityAction, DocumentKind, PermissionLevel
from core.interfaces import (
    IActivityLogRepository, IAssignmentRepository, ICommentRepository,
    IDocumentRepository, IProposalRepository, IUserRepository
)
from database.session import (
    ActivityLogEntity, AssignmentEntity, CommentEntity, DocumentSectionEntity,
    ProposalEntity, ProposalSectionEntity, SourceDocumentEntity, UserEntity
)
from utils.common import count_words
from config import settings

logger = logging.getLogger(settings.LOGGER_NAME)

class SQLDocumentRepository(IDocumentRepository):
    def __init__(self, session: AsyncSession):
        self.session = session

    def _to_domain(self, db_doc: SourceDocumentEntity,
                   db_sections: List[DocumentSectionEntity]) -> SourceDocument:
        """Converts SQLAlchemy entities to a domain model."""
        sections = [
            DocumentSection(
                section_id=s.section_id,
                title=s.title,
                content=s.content or "",
                is_mandatory=bool(s.is_mandatory),
                order_index=s.order_index,
            )
            for s in sorted(db_sections, key=lambda s: s.order_index)
        ]
        return SourceDocument(
            id=db_doc.id,
            organization_id=db_doc.organization_id,
            title=db_doc.title,
            description=db_doc.description or "",
            sector=db_doc.sector,
            estimated_value=db_doc.estimated_value,
            issuing_authority=db_doc.issuing_authority,
            kind=DocumentKind(db_doc.kind),
            sections=sections,
        )

    async def get_by_id(self, document_id: str) -> Optional[SourceDocument]:
        db_doc = await self.session.get(SourceDocumentEntity, document_id)
        if db_doc is None:
            return None
        result = await self.session.execute(
            select(DocumentSectionEntity).where(DocumentSectionEntity.document_id == document_id)
        )
        return self._to_domain(db_doc, list(result.scalars().all()))

    async def save(self, document: SourceDocument) -> SourceDocument:
        db_doc = await self.session.get(SourceDocumentEntity, document.id)
        if db_doc is None:
            db_doc = SourceDocumentEntity(id=document.id)
            self.session.add(db_doc)
        db_doc.organization_id = document.organization_id
        db_doc.title = document.title
        db_doc.description = document.description
        db_doc.sector = document.sector
        db_doc.estimated_value = document.estimated_value
        db_doc.issuing_authority = document.issuing_authority
        db_doc.kind = document.kind.value

        # Sections are replaced as a whole, like the document's chunks
        await self.session.execute(
            delete(DocumentSectionEntity).where(DocumentSectionEntity.document_id == document.id)
        )
        for index, section in enumerate(document.sections):
            self.session.add(DocumentSectionEntity(
                document_id=document.id,
                section_id=section.section_id,
                title=section.title,
                content=section.content,
                is_mandatory=section.is_mandatory,
                order_index=section.order_index if section.order_index else index,
            ))
        await self.session.commit()
        logger.info(f"Saved document {document.id} with {len(document.sections)} sections")
        return document


class SQLProposalRepository(IProposalRepository):
    def __init__(self, session: AsyncSession):
        self.session = session

    async def get_by_id(self, proposal_id: str) -> Optional[Proposal]:
        db_prop = await self.session.get(ProposalEntity, proposal_id)
        if db_prop is None:
            return None
        return Proposal(
            id=db_prop.id,
            document_id=db_prop.document_id,
            organization_id=db_prop.organization_id,
            title=db_prop.title or "",
        )

    async def get_section_responses(self, proposal_id: str) -> Dict[str, ProposalSection]:
        result = await self.session.execute(
            select(ProposalSectionEntity).where(ProposalSectionEntity.proposal_id == proposal_id)
        )
        return {
            row.section_id: ProposalSection(
                proposal_id=row.proposal_id,
                section_id=row.section_id,
                content=row.content or "",
                word_count=row.word_count,
            )
            for row in result.scalars().all()
        }

    async def save(self, proposal: Proposal) -> Proposal:
        db_prop = await self.session.get(ProposalEntity, proposal.id)
        if db_prop is None:
            db_prop = ProposalEntity(id=proposal.id)
            self.session.add(db_prop)
        db_prop.document_id = proposal.document_id
        db_prop.organization_id = proposal.organization_id
        db_prop.title = proposal.title
        await self.session.commit()
        return proposal

    async def save_section_response(self, proposal_id: str, section_id: str,
                                    content: str) -> ProposalSection:
        result = await self.session.execute(
            select(ProposalSectionEntity).where(
                ProposalSectionEntity.proposal_id == proposal_id,
                ProposalSectionEntity.section_id == section_id,
            )
        )
        row = result.scalar_one_or_none()
        if row is None:
            row = ProposalSectionEntity(proposal_id=proposal_id, section_id=section_id)
            self.session.add(row)
        row.content = content or ""
        row.word_count = count_words(content)  # Derived, never supplied by callers
        await self.session.commit()
        return ProposalSection(proposal_id, section_id, row.content, row.word_count)


class SQLUserRepository(IUserRepository):
    def __init__(self, session: AsyncSession):
        self.session = session

    async def get_by_id(self, user_id: str) -> Optional[User]:
        db_user = await self.session.get(UserEntity, user_id)
        if db_user is None:
            return None
        return User(
            user_id=db_user.user_id,
            organization_id=db_user.organization_id,
            name=db_user.name,
            email=db_user.email,
        )

    async def save(self, user: User) -> User:
        db_user = await self.session.get(UserEntity, user.user_id)
        if db_user is None:
            db_user = UserEntity(user_id=user.user_id)
            self.session.add(db_user)
        db_user.organization_id = user.organization_id
        db_user.name = user.name
        db_user.email = user.email
        await self.session.commit()
        return user


class SQLAssignmentRepository(IAssignmentRepository):
    def __init__(self, session: AsyncSession):
        self.session = session

    def _to_domain(self, row: AssignmentEntity) -> Assignment:
        return Assignment(
            proposal_id=row.proposal_id,
            section_id=row.section_id,
            user_id=row.user_id,
            permission=PermissionLevel[row.permission],
            assigned_by=row.assigned_by,
            assigned_at=row.assigned_at,
        )

    async def _get_entity(self, proposal_id: str, section_id: str,
                          user_id: str) -> Optional[AssignmentEntity]:
        result = await self.session.execute(
            select(AssignmentEntity).where(
                AssignmentEntity.proposal_id == proposal_id,
                AssignmentEntity.section_id == section_id,
                AssignmentEntity.user_id == user_id,
            )
        )
        return result.scalar_one_or_none()

    async def get(self, proposal_id: str, section_id: str, user_id: str) -> Optional[Assignment]:
        row = await self._get_entity(proposal_id, section_id, user_id)
        return self._to_domain(row) if row else None

    async def upsert(self, proposal_id: str, section_id: str, user_id: str,
                     permission: PermissionLevel, assigned_by: str) -> Assignment:
        """Update if exists, insert if not"""
        row = await self._get_entity(proposal_id, section_id, user_id)
        if row is None:
            row = AssignmentEntity(proposal_id=proposal_id, section_id=section_id, user_id=user_id)
            self.session.add(row)
        row.permission = permission.name
        row.assigned_by = assigned_by
        await self.session.commit()
        await self.session.refresh(row)
        return self._to_domain(row)

    async def delete(self, proposal_id: str, section_id: str, user_id: str) -> bool:
        row = await self._get_entity(proposal_id, section_id, user_id)
        if row is None:
            return False
        await self.session.delete(row)
        await self.session.commit()
        return True

    async def list_for_proposal(self, proposal_id: str) -> List[Assignment]:
        result = await self.session.execute(
            select(AssignmentEntity)
            .where(AssignmentEntity.proposal_id == proposal_id)
            .order_by(AssignmentEntity.section_id, AssignmentEntity.user_id)
        )
        return [self._to_domain(row) for row in result.scalars().all()]

    async def list_for_user(self, proposal_id: str, user_id: str) -> List[Assignment]:
        result = await self.session.execute(
            select(AssignmentEntity).where(
                AssignmentEntity.proposal_id == proposal_id,
                AssignmentEntity.user_id == user_id,
            )
        )
        return [self._to_domain(row) for row in result.scalars().all()]


class SQLActivityLogRepository(IActivityLogRepository):
    def __init__(self, session: AsyncSession):
        self.session = session

    async def append(self, entry: ActivityLogEntry) -> ActivityLogEntry:
        row = ActivityLogEntity(
            proposal_id=entry.proposal_id,
            section_id=entry.section_id,
            user_id=entry.user_id,
            action=entry.action.value,
            details=dict(entry.details),
        )
        self.session.add(row)
        await self.session.commit()
        await self.session.refresh(row)
        entry.id = row.id
        entry.created_at = row.created_at
        return entry

    async def list_for_proposal(self, proposal_id: str, limit: int = 50) -> List[ActivityLogEntry]:
        result = await self.session.execute(
            select(ActivityLogEntity)
            .where(ActivityLogEntity.proposal_id == proposal_id)
            .order_by(ActivityLogEntity.created_at.desc(), ActivityLogEntity.id.desc())
            .limit(limit)
        )
        return [
            ActivityLogEntry(
                id=row.id,
                proposal_id=row.proposal_id,
                section_id=row.section_id,
                user_id=row.user_id,
                action=ActivityAction(row.action),
                details=row.details or {},
                created_at=row.created_at,
            )
            for row in result.scalars().all()
        ]


class SQLCommentRepository(ICommentRepository):
    def __init__(self, session: AsyncSession):
        self.session = session

    async def add(self, comment: Comment) -> Comment:
        row = CommentEntity(
            proposal_id=comment.proposal_id,
            section_id=comment.section_id,
            user_id=comment.user_id,
            content=comment.content,
        )
        self.session.add(row)
        await self.session.commit()
        await self.session.refresh(row)
        comment.id = row.id
        comment.created_at = row.created_at
        return comment

    async def list_for_section(self, proposal_id: str, section_id: str) -> List[Comment]:
        result = await self.session.execute(
            select(CommentEntity)
            .where(CommentEntity.proposal_id == proposal_id, CommentEntity.section_id == section_id)
            .order_by(CommentEntity.created_at.asc(), CommentEntity.id.asc())
        )
        return [
            Comment(
                id=row.id,
                proposal_id=row.proposal_id,
                section_id=row.section_id,
                user_id=row.user_id,
                content=row.content,
                created_at=row.created_at,
            )
            for row in result.scalars().all()
        ]
