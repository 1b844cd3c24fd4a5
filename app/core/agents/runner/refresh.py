"""
Refresh detection and refresh content.

A subskill needs a refresh when the learner comes back after a gap of
REFRESH_GAP_DAYS or more since their last session on it.
"""
import logging
from datetime import datetime, timedelta, timezone
from typing import List, Optional

from sqlalchemy.orm import Session

from app.core.agents.runner.generation import GenerationClient, parse_llm_json
from app.core.agents.runner.plan_state import load_subskill, utcnow
from app.core.agents.runner.prompts import REFRESH_SYSTEM_PROMPT, build_refresh_user_message
from app.core.agents.runner.schemas import RefreshCheck, RefreshContent
from app.models import PlanSubskill, SessionSummary

logger = logging.getLogger(__name__)

REFRESH_GAP_DAYS = 7
LONG_GAP_DAYS = 14
MAX_RECALL_QUESTIONS = 5
MAX_REFRESH_SUMMARIES = 5


def _as_utc(value: datetime) -> datetime:
    # SQLite hands back naive datetimes
    return value.replace(tzinfo=timezone.utc) if value.tzinfo is None else value


def needs_refresh(subskill: PlanSubskill, now: Optional[datetime] = None) -> RefreshCheck:
    """Whole days since the last session, and whether that gap calls for a refresh."""
    if subskill.last_session_date is None:
        return RefreshCheck(needed=False, gap_days=0)

    now = _as_utc(now or utcnow())
    elapsed = now - _as_utc(subskill.last_session_date)
    gap_days = max(0, elapsed // timedelta(days=1))
    return RefreshCheck(needed=gap_days >= REFRESH_GAP_DAYS, gap_days=gap_days)


class RefreshHandler:
    """
    Builds the short recap shown before a session after a long break.
    """

    def __init__(self, db: Session, client: Optional[GenerationClient] = None):
        self.db = db
        self.client = client

    def check(self, user_id: str, subskill_id: int) -> RefreshCheck:
        subskill, _ = load_subskill(self.db, user_id, subskill_id)
        return needs_refresh(subskill)

    def generate_content(self, user_id: str, subskill_id: int) -> RefreshContent:
        """
        Generate a recap of previous sessions with recall questions.

        Raises:
            NotFoundError: If the subskill is unknown or owned by another learner
        """
        subskill, plan = load_subskill(self.db, user_id, subskill_id)
        summaries = (
            self.db.query(SessionSummary)
            .filter(
                SessionSummary.subskill_id == subskill.id,
                SessionSummary.user_id == user_id
            )
            .order_by(SessionSummary.session_number.desc())
            .limit(MAX_REFRESH_SUMMARIES)
            .all()
        )
        gap_days = needs_refresh(subskill).gap_days

        logger.info(f"Generating refresh content for subskill {subskill.id} ({gap_days} day gap)")

        content = None
        if self.client is not None:
            try:
                data = parse_llm_json(self.client.generate(
                    REFRESH_SYSTEM_PROMPT,
                    build_refresh_user_message(subskill, plan, summaries, gap_days),
                    {"temperature": 0.5}
                ))
                recall = [str(q) for q in data.get("recall_questions") or []]
                if not data.get("summary") or not recall:
                    raise ValueError("Invalid refresh response")
                content = RefreshContent(
                    summary=str(data["summary"]),
                    previous_sessions_summary=[s.summary for s in summaries],
                    recall_questions=recall[:MAX_RECALL_QUESTIONS],
                    quick_tips=[str(t) for t in data.get("quick_tips") or []],
                    estimated_minutes=int(data.get("estimated_minutes") or 5),
                    gap_days=gap_days
                )
            except Exception as e:
                logger.warning(f"Refresh generation failed for subskill {subskill.id}, using fallback: {e}")

        return content or self.fallback_content(subskill, summaries, gap_days)

    def complete(self, user_id: str, subskill_id: int) -> RefreshCheck:
        """Count the refresh as engagement: the gap starts over."""
        subskill, _ = load_subskill(self.db, user_id, subskill_id)
        subskill.last_session_date = utcnow()
        self.db.commit()
        logger.info(f"User {user_id} completed refresh for subskill {subskill.id}")
        return needs_refresh(subskill)

    @staticmethod
    def fallback_content(
        subskill: PlanSubskill,
        summaries: List[SessionSummary],
        gap_days: int
    ) -> RefreshContent:
        concepts: List[str] = []
        for summary in summaries:
            concepts += [c for c in summary.key_concepts or [] if c not in concepts]

        recall_questions = [f'What do you remember about "{c}"?' for c in concepts[:3]]
        recall_questions += [
            f"What was the main focus of {subskill.title}?",
            "What techniques or methods did you learn?",
            "How would you apply what you learned to a real situation?",
        ]

        previous = [s.summary for s in summaries]
        if gap_days >= LONG_GAP_DAYS:
            summary = (
                f"Welcome back! It's been {gap_days} days since you worked on {subskill.title}. "
                f"Let's quickly refresh your memory before continuing. You previously covered: "
                f"{' '.join(previous[:2])}"
            )
        else:
            summary = (
                f"Welcome back to {subskill.title}! It's been about a week since your last session. "
                f"Let's do a quick 5-minute refresh to reactivate what you learned. "
                f"{previous[0] if previous else ''}"
            )

        return RefreshContent(
            summary=summary.strip(),
            previous_sessions_summary=previous,
            recall_questions=recall_questions[:MAX_RECALL_QUESTIONS],
            quick_tips=[
                "Take a moment to think about each question before moving on",
                "Don't worry if you can't remember everything - that's why we're refreshing!",
            ],
            estimated_minutes=5,
            gap_days=gap_days
        )
