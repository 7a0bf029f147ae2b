# services/collaboration_service.py
"""Section assignments, comments and the append-only activity log"""
import logging
from typing import Any, Dict, List, Optional

from config import settings
from core.domain import ActivityLogEntry, Assignment, Comment
from core.enums import ASSIGNABLE_LEVELS, ActivityAction, PermissionLevel
from core.exceptions import InvalidInputError, NotFoundError
from core.interfaces import (
    IActivityLogRepository, IAssignmentRepository, ICommentRepository, IUserRepository
)

logger = logging.getLogger(settings.LOGGER_NAME)


def parse_assignable_level(value) -> PermissionLevel:
    """Accepts a PermissionLevel or its name. OWNER and NONE cannot be assigned."""
    if isinstance(value, PermissionLevel):
        level = value
    else:
        try:
            level = PermissionLevel.parse(value)
        except ValueError:
            raise InvalidInputError(f"Invalid permission: {value!r}")
    if level not in ASSIGNABLE_LEVELS:
        allowed = ", ".join(l.name for l in ASSIGNABLE_LEVELS)
        raise InvalidInputError(f"Invalid permission {level.name}. Must be one of {allowed}")
    return level


class CollaborationService:
    """Persistence side of collaboration. Permission checks happen before calls reach here."""

    def __init__(
        self,
        assignment_repo: IAssignmentRepository,
        activity_repo: IActivityLogRepository,
        comment_repo: ICommentRepository,
        user_repo: IUserRepository,
    ):
        self.assignment_repo = assignment_repo
        self.activity_repo = activity_repo
        self.comment_repo = comment_repo
        self.user_repo = user_repo

    async def log_activity(
        self,
        proposal_id: str,
        section_id: Optional[str],
        user_id: str,
        action: ActivityAction,
        details: Optional[Dict[str, Any]] = None,
    ) -> ActivityLogEntry:
        entry = await self.activity_repo.append(ActivityLogEntry(
            proposal_id=proposal_id,
            section_id=section_id,
            user_id=user_id,
            action=action,
            details=details or {},
        ))
        logger.info(f"[ACTIVITY] {action.value} on {proposal_id}/{section_id} by {user_id}")
        return entry

    async def assign(
        self,
        proposal_id: str,
        section_id: str,
        user_id: str,
        permission,
        assigned_by: str,
    ) -> Assignment:
        """Create or replace the user's assignment on the section."""
        level = parse_assignable_level(permission)
        if await self.user_repo.get_by_id(user_id) is None:
            raise NotFoundError(f"User {user_id} not found")

        assignment = await self.assignment_repo.upsert(
            proposal_id, section_id, user_id, level, assigned_by
        )
        await self.log_activity(proposal_id, section_id, assigned_by, ActivityAction.ASSIGN, {
            "assigned_user_id": user_id,
            "permission": level.name,
        })
        return assignment

    async def unassign(self, proposal_id: str, section_id: str, user_id: str, removed_by: str) -> None:
        removed = await self.assignment_repo.delete(proposal_id, section_id, user_id)
        if not removed:
            raise NotFoundError("Assignment not found")
        await self.log_activity(proposal_id, section_id, removed_by, ActivityAction.UNASSIGN, {
            "removed_user_id": user_id,
        })

    async def assignments_by_section(self, proposal_id: str) -> Dict[str, List[Assignment]]:
        grouped: Dict[str, List[Assignment]] = {}
        for assignment in await self.assignment_repo.list_for_proposal(proposal_id):
            grouped.setdefault(assignment.section_id, []).append(assignment)
        return grouped

    async def user_permissions(self, proposal_id: str, user_id: str) -> Dict[str, PermissionLevel]:
        """Explicit per-section levels of one user."""
        return {
            a.section_id: a.permission
            for a in await self.assignment_repo.list_for_user(proposal_id, user_id)
        }

    async def add_comment(self, proposal_id: str, section_id: str, user_id: str, content: str) -> Comment:
        content = (content or "").strip()
        if not content:
            raise InvalidInputError("Comment content is required")
        comment = await self.comment_repo.add(Comment(
            proposal_id=proposal_id,
            section_id=section_id,
            user_id=user_id,
            content=content,
        ))
        await self.log_activity(proposal_id, section_id, user_id, ActivityAction.COMMENT, {
            "comment_id": comment.id,
        })
        return comment

    async def list_comments(self, proposal_id: str, section_id: str) -> List[Comment]:
        return await self.comment_repo.list_for_section(proposal_id, section_id)

    async def recent_activity(self, proposal_id: str, limit: int = 50) -> List[ActivityLogEntry]:
        return await self.activity_repo.list_for_proposal(proposal_id, limit)
