"""Shared enumerations used across the application."""
from enum import Enum, IntEnum


class ErrorCode(str, Enum):
    """Error codes for caller-facing error messages."""
    NOT_FOUND = "NOT_FOUND"
    FORBIDDEN = "FORBIDDEN"
    INVALID_INPUT = "INVALID_INPUT"
    UPSTREAM_UNAVAILABLE = "UPSTREAM_UNAVAILABLE"
    UNPARSEABLE = "UNPARSEABLE"


class SectionType(str, Enum):
    """Canonical tender section categories, inferred from a section title."""
    ELIGIBILITY = "ELIGIBILITY"
    TECHNICAL = "TECHNICAL"
    FINANCIAL = "FINANCIAL"
    EVALUATION = "EVALUATION"
    TERMS = "TERMS"
    GENERAL = "GENERAL"


class PermissionLevel(IntEnum):
    """Section access lattice (higher value = broader access)."""
    NONE = 0
    READ_ONLY = 1
    READ_AND_COMMENT = 2
    EDIT = 3
    OWNER = 4

    @staticmethod
    def parse(value: str) -> 'PermissionLevel':
        """Convert a permission name to the enum. Raises ValueError if unknown."""
        try:
            return PermissionLevel[str(value).strip().upper()]
        except KeyError:
            raise ValueError(f"Unknown permission level: {value!r}")


# Levels that may be granted through an explicit assignment
ASSIGNABLE_LEVELS = (
    PermissionLevel.READ_ONLY,
    PermissionLevel.READ_AND_COMMENT,
    PermissionLevel.EDIT,
)


class ValidationStatus(str, Enum):
    MISSING = "MISSING"
    INCOMPLETE = "INCOMPLETE"
    NEEDS_IMPROVEMENT = "NEEDS_IMPROVEMENT"
    COMPLETE = "COMPLETE"


class JudgmentSource(str, Enum):
    """Which scoring path produced a section's validation result."""
    LENGTH_CHECK = "length_check"
    MODEL = "model"
    HEURISTIC = "heuristic"


class ActivityAction(str, Enum):
    AI_DRAFT = "AI_DRAFT"
    ASSIGN = "ASSIGN"
    UNASSIGN = "UNASSIGN"
    COMMENT = "COMMENT"


class DocumentKind(str, Enum):
    """Origin of a source document."""
    PLATFORM = "platform"  # Tender published on the platform
    UPLOADED = "uploaded"  # Parsed content of an uploaded tender file
