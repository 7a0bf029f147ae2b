# services/permission_service.py
"""Permission Authority: section-level access for proposal collaboration"""
import logging
from enum import Enum
from typing import Dict, Optional

from config import settings
from core.domain import Proposal, SourceDocument
from core.enums import PermissionLevel
from core.exceptions import ForbiddenError, NotFoundError
from core.interfaces import IAssignmentRepository, IProposalRepository, IUserRepository

logger = logging.getLogger(settings.LOGGER_NAME)


class Operation(str, Enum):
    GENERATE = "generate"
    COMMENT = "comment"
    VIEW = "view"
    ASSIGN = "assign"
    UNASSIGN = "unassign"
    VALIDATE = "validate"


# Minimum level each operation requires
REQUIRED_LEVELS: Dict[Operation, PermissionLevel] = {
    Operation.GENERATE: PermissionLevel.EDIT,
    Operation.COMMENT: PermissionLevel.READ_AND_COMMENT,
    Operation.VIEW: PermissionLevel.READ_ONLY,
    Operation.ASSIGN: PermissionLevel.OWNER,
    Operation.UNASSIGN: PermissionLevel.OWNER,
    Operation.VALIDATE: PermissionLevel.OWNER,
}


class PermissionAuthority:
    """
    Resolves a user's effective level on a proposal (or one of its sections).

    Members of the proposal's owning organization are OWNER everywhere and
    never need an assignment. Everyone else gets exactly the level of their
    explicit assignment on the section, or NONE. Without a section, any
    assignment on the proposal grants READ_ONLY.
    """

    def __init__(
        self,
        proposal_repo: IProposalRepository,
        assignment_repo: IAssignmentRepository,
        user_repo: IUserRepository,
    ):
        self.proposal_repo = proposal_repo
        self.assignment_repo = assignment_repo
        self.user_repo = user_repo

    async def get_proposal(self, proposal_id: str) -> Proposal:
        proposal = await self.proposal_repo.get_by_id(proposal_id)
        if proposal is None:
            raise NotFoundError(f"Proposal {proposal_id} not found")
        return proposal

    async def _is_org_member(self, organization_id: str, user_id: str) -> bool:
        user = await self.user_repo.get_by_id(user_id)
        return bool(user and user.organization_id and user.organization_id == organization_id)

    async def resolve_level(
        self,
        proposal_id: str,
        user_id: str,
        section_id: Optional[str] = None,
    ) -> PermissionLevel:
        proposal = await self.get_proposal(proposal_id)

        if await self._is_org_member(proposal.organization_id, user_id):
            return PermissionLevel.OWNER

        if section_id is not None:
            assignment = await self.assignment_repo.get(proposal_id, section_id, user_id)
            return assignment.permission if assignment else PermissionLevel.NONE

        assignments = await self.assignment_repo.list_for_user(proposal_id, user_id)
        return PermissionLevel.READ_ONLY if assignments else PermissionLevel.NONE

    async def require(
        self,
        proposal_id: str,
        user_id: str,
        required: PermissionLevel,
        section_id: Optional[str] = None,
    ) -> PermissionLevel:
        """Return the user's level, or raise ForbiddenError if it is below `required`."""
        actual = await self.resolve_level(proposal_id, user_id, section_id)
        if actual < required:
            logger.info(
                f"[PERM] Denied user {user_id} on proposal {proposal_id} "
                f"section {section_id}: requires {required.name}, has {actual.name}"
            )
            raise ForbiddenError(required, actual)
        return actual

    async def require_operation(
        self,
        operation: Operation,
        proposal_id: str,
        user_id: str,
        section_id: Optional[str] = None,
    ) -> PermissionLevel:
        return await self.require(proposal_id, user_id, REQUIRED_LEVELS[operation], section_id)

    async def require_document_owner(self, document: SourceDocument, user_id: str) -> None:
        """Only the organization that owns a source document may (re)index it."""
        if not await self._is_org_member(document.organization_id, user_id):
            raise ForbiddenError(
                PermissionLevel.OWNER,
                PermissionLevel.NONE,
                f"Only the owning organization may index document {document.id}",
            )
