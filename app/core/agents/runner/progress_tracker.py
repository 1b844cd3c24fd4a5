"""
Read-only progress views: today's session, plan and subskill progress, and
session history.
"""
import logging
from typing import List, Optional

from sqlalchemy.orm import Session

from app.core.agents.runner.plan_state import (
    count_subskills,
    first_unresolved_subskill,
    load_subskill,
    plan_progress,
)
from app.core.agents.runner.refresh import needs_refresh
from app.core.agents.runner.schemas import (
    PlanProgress,
    PlanView,
    SessionSummaryView,
    SubskillProgress,
    SubskillProgressItem,
    SubskillView,
    TodayState,
)
from app.core.exceptions import NotFoundError
from app.models import LessonPlan, PlanSubskill, SessionSummary
from app.models.enums import UNRESOLVED_STATUSES, PlanStatus

logger = logging.getLogger(__name__)

DEFAULT_ESTIMATED_SESSIONS = 3


def subskill_progress(subskill: PlanSubskill) -> float:
    """1.0 once resolved, otherwise the share of estimated sessions done."""
    if subskill.is_resolved:
        return 1.0
    total = subskill.estimated_sessions or DEFAULT_ESTIMATED_SESSIONS
    return min(max((subskill.sessions_completed or 0) / total, 0.0), 1.0)


class ProgressTracker:
    """
    Computes the learner-facing progress state of plans and subskills.
    """

    def __init__(self, db: Session):
        self.db = db

    def get_today(self, user_id: str) -> Optional[TodayState]:
        """
        What the learner should work on today.

        Returns:
            None when the learner has no active plan or nothing left to do
        """
        plan = (
            self.db.query(LessonPlan)
            .filter(LessonPlan.user_id == user_id, LessonPlan.status == PlanStatus.ACTIVE)
            .order_by(LessonPlan.created_at.desc(), LessonPlan.id.desc())
            .first()
        )
        if plan is None:
            return None

        current = self._current_subskill(plan)
        if current is None:
            logger.info(f"Plan {plan.id} has no unresolved subskills")
            return None

        resolved, total = count_subskills(self.db, plan.id)
        session_number = (current.sessions_completed or 0) + 1
        total_sessions = current.estimated_sessions or DEFAULT_ESTIMATED_SESSIONS
        refresh = needs_refresh(current)

        return TodayState(
            plan=PlanView.model_validate(plan),
            current_subskill=SubskillView.model_validate(current),
            session_number=session_number,
            total_sessions=total_sessions,
            is_knowledge_check_day=session_number == total_sessions,
            subskills_completed=resolved,
            total_subskills=total,
            overall_progress=plan_progress(resolved, total),
            needs_refresh=refresh.needed,
            refresh_gap_days=refresh.gap_days
        )

    def get_plan_progress(self, user_id: str, plan_id: int) -> PlanProgress:
        plan = (
            self.db.query(LessonPlan)
            .filter(LessonPlan.id == plan_id, LessonPlan.user_id == user_id)
            .first()
        )
        if plan is None:
            raise NotFoundError(f"Plan {plan_id} not found", context={"plan_id": plan_id})

        items = [
            SubskillProgressItem(
                subskill=SubskillView.model_validate(subskill),
                progress=subskill_progress(subskill)
            )
            for subskill in plan.subskills
        ]
        completed = sum(1 for subskill in plan.subskills if subskill.is_resolved)

        return PlanProgress(
            plan=PlanView.model_validate(plan),
            subskills=items,
            overall_progress=plan_progress(completed, len(items)),
            completed_count=completed,
            total_count=len(items)
        )

    def get_subskill_progress(self, user_id: str, subskill_id: int) -> SubskillProgress:
        subskill, _ = load_subskill(self.db, user_id, subskill_id)
        summaries = self.get_session_history(user_id, subskill_id)

        return SubskillProgress(
            subskill=SubskillView.model_validate(subskill),
            sessions_completed=subskill.sessions_completed or 0,
            total_sessions=subskill.estimated_sessions or DEFAULT_ESTIMATED_SESSIONS,
            progress=subskill_progress(subskill),
            summaries=summaries
        )

    def get_session_history(self, user_id: str, subskill_id: int) -> List[SessionSummaryView]:
        """Session summaries of a subskill, oldest first."""
        load_subskill(self.db, user_id, subskill_id)
        rows = (
            self.db.query(SessionSummary)
            .filter(
                SessionSummary.subskill_id == subskill_id,
                SessionSummary.user_id == user_id
            )
            .order_by(SessionSummary.session_number.asc(), SessionSummary.id.asc())
            .all()
        )
        return [SessionSummaryView.model_validate(row) for row in rows]

    def _current_subskill(self, plan: LessonPlan) -> Optional[PlanSubskill]:
        if plan.current_subskill_index is not None:
            current = (
                self.db.query(PlanSubskill)
                .filter(
                    PlanSubskill.plan_id == plan.id,
                    PlanSubskill.order == plan.current_subskill_index,
                    PlanSubskill.status.in_(UNRESOLVED_STATUSES)
                )
                .first()
            )
            if current is not None:
                return current
        return first_unresolved_subskill(self.db, plan.id)
