"""
Plan pointer and progress bookkeeping shared by the router, the knowledge
check gate and the progress tracker.

Helpers only mutate attributes whose value actually changes, so calling them
on an already-settled plan issues no writes.
"""
import logging
from datetime import datetime, timezone
from typing import Optional, Tuple

from sqlalchemy.orm import Session

from app.core.exceptions import NotFoundError
from app.models import LessonPlan, PlanSubskill
from app.models.enums import (
    RESOLVED_STATUSES,
    UNRESOLVED_STATUSES,
    PlanStatus,
    SubskillStatus,
)

logger = logging.getLogger(__name__)


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def load_subskill(db: Session, user_id: str, subskill_id: int) -> Tuple[PlanSubskill, LessonPlan]:
    """
    Load a subskill and its plan, scoped to the owning learner.

    Raises:
        NotFoundError: If the subskill or plan is missing, or the plan belongs
            to another learner
    """
    subskill = db.query(PlanSubskill).filter(PlanSubskill.id == subskill_id).first()
    plan = subskill.plan if subskill else None
    if subskill is None or plan is None or plan.user_id != user_id:
        raise NotFoundError(
            f"Subskill {subskill_id} not found",
            context={"subskill_id": subskill_id}
        )
    return subskill, plan


def find_next_subskill(db: Session, subskill: PlanSubskill) -> Optional[PlanSubskill]:
    """Lowest-ordered unresolved subskill after ``subskill`` in the same plan."""
    return (
        db.query(PlanSubskill)
        .filter(
            PlanSubskill.plan_id == subskill.plan_id,
            PlanSubskill.order > subskill.order,
            PlanSubskill.status.in_(UNRESOLVED_STATUSES)
        )
        .order_by(PlanSubskill.order.asc())
        .first()
    )


def first_unresolved_subskill(db: Session, plan_id: int) -> Optional[PlanSubskill]:
    return (
        db.query(PlanSubskill)
        .filter(
            PlanSubskill.plan_id == plan_id,
            PlanSubskill.status.in_(UNRESOLVED_STATUSES)
        )
        .order_by(PlanSubskill.order.asc())
        .first()
    )


def count_subskills(db: Session, plan_id: int) -> Tuple[int, int]:
    """Returns (resolved, total) for a plan."""
    total = db.query(PlanSubskill).filter(PlanSubskill.plan_id == plan_id).count()
    resolved = (
        db.query(PlanSubskill)
        .filter(
            PlanSubskill.plan_id == plan_id,
            PlanSubskill.status.in_(RESOLVED_STATUSES)
        )
        .count()
    )
    return resolved, total


def plan_progress(resolved: int, total: int) -> float:
    return resolved / total if total > 0 else 0.0


def recompute_plan_progress(db: Session, plan: LessonPlan) -> float:
    """Set ``plan.progress`` to mastered-or-skipped / total."""
    db.flush()
    progress = plan_progress(*count_subskills(db, plan.id))
    if plan.progress != progress:
        plan.progress = progress
    return progress


def activate_next(db: Session, subskill: PlanSubskill, plan: LessonPlan) -> Optional[PlanSubskill]:
    """
    Make the next unresolved subskill current.

    A pending target becomes active; an assess target keeps its diagnostic.
    The plan pointer moves to the target's order.

    Returns:
        The next subskill, or None when nothing after ``subskill`` is unresolved
    """
    db.flush()
    next_subskill = find_next_subskill(db, subskill)
    if next_subskill is None:
        return None

    if next_subskill.status == SubskillStatus.PENDING:
        next_subskill.transition_to(SubskillStatus.ACTIVE)
        logger.info(f"Activated subskill {next_subskill.id} (order {next_subskill.order}) in plan {plan.id}")

    if plan.current_subskill_index != next_subskill.order:
        plan.current_subskill_index = next_subskill.order

    return next_subskill


def complete_plan_if_resolved(db: Session, plan: LessonPlan) -> bool:
    """
    Mark the plan completed when no subskill anywhere in it is unresolved.

    Returns:
        True if the plan is (now) complete
    """
    db.flush()
    if first_unresolved_subskill(db, plan.id) is not None:
        return False

    if plan.status != PlanStatus.COMPLETED:
        plan.status = PlanStatus.COMPLETED
        plan.completed_at = utcnow()
        plan.progress = 1.0
        logger.info(f"Plan {plan.id} completed")
    return True


def advance_plan(db: Session, subskill: PlanSubskill, plan: LessonPlan) -> Tuple[Optional[PlanSubskill], bool]:
    """
    Move on after ``subskill`` was resolved: activate the next subskill or
    complete the plan, then recompute progress.

    Returns:
        (next subskill or None, plan completed)
    """
    next_subskill = activate_next(db, subskill, plan)
    plan_completed = False
    if next_subskill is None:
        plan_completed = complete_plan_if_resolved(db, plan)
    recompute_plan_progress(db, plan)
    return next_subskill, plan_completed
