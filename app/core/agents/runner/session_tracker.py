"""
Session completion for subskills in the learn flow.
"""
import logging
from typing import Iterable, Optional

from sqlalchemy.orm import Session

from app.core.agents.runner.plan_state import load_subskill, utcnow
from app.core.agents.runner.schemas import SessionCompletion, SubskillView
from app.core.exceptions import InvalidTransitionError
from app.models import SessionSummary
from app.models.enums import SubskillStatus

logger = logging.getLogger(__name__)


class SessionTracker:
    """Records finished sessions and their summaries."""

    def __init__(self, db: Session):
        self.db = db

    def complete_session(
        self,
        user_id: str,
        subskill_id: int,
        summary: Optional[str] = None,
        key_concepts: Iterable[str] = (),
        daily_lesson_id: Optional[str] = None
    ) -> SessionCompletion:
        """
        Count one more completed session and append its summary.

        Raises:
            NotFoundError: If the subskill is unknown or owned by another learner
            InvalidTransitionError: If the subskill is not active
        """
        subskill, plan = load_subskill(self.db, user_id, subskill_id)
        if subskill.status != SubskillStatus.ACTIVE:
            raise InvalidTransitionError(
                f"Subskill {subskill.id} is not active",
                context={"subskill_id": subskill.id, "status": SubskillStatus(subskill.status).value}
            )

        session_number = (subskill.sessions_completed or 0) + 1
        subskill.sessions_completed = session_number
        subskill.last_session_date = utcnow()
        plan.sessions_completed = (plan.sessions_completed or 0) + 1

        self.db.add(SessionSummary(
            subskill_id=subskill.id,
            user_id=user_id,
            daily_lesson_id=daily_lesson_id,
            session_number=session_number,
            summary=summary or f"Completed session {session_number} of {subskill.title}.",
            key_concepts=list(key_concepts)
        ))
        self.db.commit()

        total = subskill.estimated_sessions
        logger.info(f"Completed session {session_number}/{total} of subskill {subskill.id}")

        return SessionCompletion(
            subskill=SubskillView.model_validate(subskill),
            session_completed=session_number,
            total_sessions=total,
            is_knowledge_check_next=session_number + 1 == total,
            is_subskill_complete=session_number >= total
        )
