"""
Closed status and route vocabularies shared by the lesson runner models.
"""
import enum

from sqlalchemy import Enum


class PlanStatus(str, enum.Enum):
    ACTIVE = "active"
    COMPLETED = "completed"
    ABANDONED = "abandoned"


class SubskillStatus(str, enum.Enum):
    PENDING = "pending"
    ACTIVE = "active"
    ASSESS = "assess"
    MASTERED = "mastered"
    SKIPPED = "skipped"


class RouteStatus(str, enum.Enum):
    """Initial routing decision made when the plan was generated."""
    LEARN = "learn"
    SKIP = "skip"
    ASSESS = "assess"


class Route(str, enum.Enum):
    """Pedagogical mode of a subskill."""
    RECALL = "recall"
    PRACTICE = "practice"
    DIAGNOSE = "diagnose"
    APPLY = "apply"
    BUILD = "build"
    REFINE = "refine"
    PLAN = "plan"


# Statuses that still need work; the "current" subskill is always one of these
UNRESOLVED_STATUSES = (SubskillStatus.PENDING, SubskillStatus.ACTIVE, SubskillStatus.ASSESS)
RESOLVED_STATUSES = (SubskillStatus.MASTERED, SubskillStatus.SKIPPED)

ALLOWED_TRANSITIONS = {
    SubskillStatus.PENDING: {
        SubskillStatus.ACTIVE,
        SubskillStatus.ASSESS,
        SubskillStatus.SKIPPED,
        SubskillStatus.MASTERED,
    },
    SubskillStatus.ASSESS: {
        SubskillStatus.ACTIVE,
        SubskillStatus.MASTERED,
        SubskillStatus.SKIPPED,
    },
    SubskillStatus.ACTIVE: {SubskillStatus.MASTERED, SubskillStatus.SKIPPED},
    SubskillStatus.MASTERED: {SubskillStatus.ACTIVE},  # re-entry for review
    SubskillStatus.SKIPPED: set(),
}


def enum_type(enum_cls):
    """Store enum values (not member names) in a portable VARCHAR column."""
    return Enum(
        enum_cls,
        values_callable=lambda members: [m.value for m in members],
        native_enum=False,
        validate_strings=True,
        length=20,
    )
