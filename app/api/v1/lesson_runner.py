"""
API endpoints for the subskill lesson runner.

Typed runner errors (not found, invalid transition) propagate to the global
handlers in ``app.main``.
"""
import logging
from typing import Any, List, Optional

from fastapi import APIRouter, Depends
from pydantic import BaseModel, Field
from sqlalchemy.orm import Session

from app.core.agents.runner import (
    AssessmentGenerator,
    KnowledgeCheckHandler,
    ProgressTracker,
    RefreshHandler,
    SessionTracker,
    SubskillRouter,
)
from app.core.agents.runner.generation import GenerationClient
from app.core.agents.runner.schemas import (
    AssessmentResult,
    AssessmentResultsView,
    AssessmentView,
    KnowledgeCheckResult,
    KnowledgeCheckView,
    PlanProgress,
    RefreshContent,
    SessionCompletion,
    SessionSummaryView,
    StartSubskillResult,
    SubskillProgress,
    TodayState,
    UserAnswer,
)
from app.core.dependencies import get_current_user_id, get_generation_client
from app.db.base import get_db

logger = logging.getLogger(__name__)

router = APIRouter()


# Request schemas
class SubmitAnswersRequest(BaseModel):
    """Answers for an assessment or knowledge check."""
    answers: List[UserAnswer]


class CompleteSessionRequest(BaseModel):
    """Summary of a finished learning session."""
    summary: Optional[str] = None
    key_concepts: List[str] = Field(default_factory=list)
    daily_lesson_id: Optional[str] = None


class RefreshStatus(BaseModel):
    needs_refresh: bool
    gap_days: int


# ============= Subskill flow =============

@router.post("/subskills/{subskill_id}/start", response_model=StartSubskillResult)
def start_subskill(
    subskill_id: int,
    user_id: str = Depends(get_current_user_id),
    db: Session = Depends(get_db),
    client: Optional[GenerationClient] = Depends(get_generation_client),
) -> Any:
    """
    Start a subskill: skip it, return its diagnostic, or return its lesson plan.
    """
    router_ = SubskillRouter(db, AssessmentGenerator(client))
    return router_.start(user_id, subskill_id)


@router.get("/assessments/{assessment_id}", response_model=AssessmentView)
def get_assessment(
    assessment_id: int,
    user_id: str = Depends(get_current_user_id),
    db: Session = Depends(get_db),
) -> Any:
    """Get a diagnostic without answers."""
    return SubskillRouter(db).get_for_user(user_id, assessment_id)


@router.post("/assessments/{assessment_id}/submit", response_model=AssessmentResult)
def submit_assessment(
    assessment_id: int,
    payload: SubmitAnswersRequest,
    user_id: str = Depends(get_current_user_id),
    db: Session = Depends(get_db),
) -> Any:
    """
    Submit diagnostic answers. Resubmitting returns the original result.
    """
    return SubskillRouter(db).submit(user_id, assessment_id, payload.answers)


@router.get("/assessments/{assessment_id}/results", response_model=AssessmentResultsView)
def get_assessment_results(
    assessment_id: int,
    user_id: str = Depends(get_current_user_id),
    db: Session = Depends(get_db),
) -> Any:
    """Per-question results of a completed diagnostic."""
    return SubskillRouter(db).get_results(user_id, assessment_id)


# ============= Progress =============

@router.get("/today", response_model=Optional[TodayState])
def get_today(
    user_id: str = Depends(get_current_user_id),
    db: Session = Depends(get_db),
) -> Any:
    """Today's subskill and session, or null when there is nothing to do."""
    return ProgressTracker(db).get_today(user_id)


@router.get("/plans/{plan_id}/progress", response_model=PlanProgress)
def get_plan_progress(
    plan_id: int,
    user_id: str = Depends(get_current_user_id),
    db: Session = Depends(get_db),
) -> Any:
    return ProgressTracker(db).get_plan_progress(user_id, plan_id)


@router.get("/subskills/{subskill_id}/progress", response_model=SubskillProgress)
def get_subskill_progress(
    subskill_id: int,
    user_id: str = Depends(get_current_user_id),
    db: Session = Depends(get_db),
) -> Any:
    return ProgressTracker(db).get_subskill_progress(user_id, subskill_id)


@router.get("/subskills/{subskill_id}/sessions", response_model=List[SessionSummaryView])
def get_session_history(
    subskill_id: int,
    user_id: str = Depends(get_current_user_id),
    db: Session = Depends(get_db),
) -> Any:
    return ProgressTracker(db).get_session_history(user_id, subskill_id)


@router.post("/subskills/{subskill_id}/sessions/complete", response_model=SessionCompletion)
def complete_session(
    subskill_id: int,
    payload: CompleteSessionRequest,
    user_id: str = Depends(get_current_user_id),
    db: Session = Depends(get_db),
) -> Any:
    """Record a finished session on an active subskill."""
    return SessionTracker(db).complete_session(
        user_id,
        subskill_id,
        summary=payload.summary,
        key_concepts=payload.key_concepts,
        daily_lesson_id=payload.daily_lesson_id
    )


# ============= Refresh =============

@router.get("/subskills/{subskill_id}/refresh", response_model=RefreshStatus)
def check_refresh(
    subskill_id: int,
    user_id: str = Depends(get_current_user_id),
    db: Session = Depends(get_db),
) -> Any:
    check = RefreshHandler(db).check(user_id, subskill_id)
    return RefreshStatus(needs_refresh=check.needed, gap_days=check.gap_days)


@router.get("/subskills/{subskill_id}/refresh/content", response_model=RefreshContent)
def get_refresh_content(
    subskill_id: int,
    user_id: str = Depends(get_current_user_id),
    db: Session = Depends(get_db),
    client: Optional[GenerationClient] = Depends(get_generation_client),
) -> Any:
    return RefreshHandler(db, client).generate_content(user_id, subskill_id)


@router.post("/subskills/{subskill_id}/refresh/complete", response_model=RefreshStatus)
def complete_refresh(
    subskill_id: int,
    user_id: str = Depends(get_current_user_id),
    db: Session = Depends(get_db),
) -> Any:
    check = RefreshHandler(db).complete(user_id, subskill_id)
    return RefreshStatus(needs_refresh=check.needed, gap_days=check.gap_days)


# ============= Knowledge check =============

@router.post("/subskills/{subskill_id}/knowledge-check", response_model=KnowledgeCheckView)
def get_knowledge_check(
    subskill_id: int,
    user_id: str = Depends(get_current_user_id),
    db: Session = Depends(get_db),
    client: Optional[GenerationClient] = Depends(get_generation_client),
) -> Any:
    """Return the open knowledge check or start a new attempt."""
    return KnowledgeCheckHandler(db, client).get_or_create(user_id, subskill_id)


@router.post("/knowledge-checks/{check_id}/submit", response_model=KnowledgeCheckResult)
def submit_knowledge_check(
    check_id: int,
    payload: SubmitAnswersRequest,
    user_id: str = Depends(get_current_user_id),
    db: Session = Depends(get_db),
) -> Any:
    return KnowledgeCheckHandler(db).submit(user_id, check_id, payload.answers)
