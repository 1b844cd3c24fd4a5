"""
Pydantic schemas for the subskill lesson runner.
"""
from datetime import datetime
from typing import Annotated, List, Literal, NamedTuple, Optional, Union

from pydantic import BaseModel, ConfigDict, Field

from app.models.enums import PlanStatus, Route, RouteStatus, SubskillStatus

QuestionType = Literal["multiple_choice", "true_false", "short_answer", "ordering"]
AnswerValue = Union[str, List[str]]
AreaStatus = Literal["strong", "weak", "gap"]
GapPriority = Literal["high", "medium", "low"]
RouteType = Literal["skip", "assess", "learn"]
NextAction = Literal["autopass", "start_remediation", "start_learning"]


# ============= Questions & answers =============

class DiagnosticQuestion(BaseModel):
    """Question used by diagnostics and knowledge checks."""
    id: str
    area: str = "General"
    question: str
    type: QuestionType = "multiple_choice"
    options: List[str] = Field(default_factory=list)
    correct_answer: AnswerValue
    explanation: str = ""
    difficulty: int = Field(default=2, ge=1, le=3)


class UserAnswer(BaseModel):
    """Learner answer for one question."""
    question_id: str
    answer: AnswerValue


# ============= Scoring =============

class AreaResult(BaseModel):
    """Per-area breakdown of a scored assessment."""
    area: str
    questions_total: int
    questions_correct: int
    score: int
    status: AreaStatus


class Gap(BaseModel):
    """Under-performing area that needs remediation."""
    area: str
    score: int
    status: Literal["weak", "gap"]
    priority: GapPriority
    missed_concepts: List[str] = Field(default_factory=list)
    suggested_focus: str


class ScoreResult(BaseModel):
    """Output of scoring a diagnostic."""
    score: int
    area_results: List[AreaResult]
    gaps: List[Gap]
    strengths: List[str]


class Autopass(BaseModel):
    kind: Literal["autopass"] = "autopass"


class Targeted(BaseModel):
    kind: Literal["targeted"] = "targeted"
    gaps: List[Gap] = Field(default_factory=list)


class ConvertLearn(BaseModel):
    kind: Literal["convert_learn"] = "convert_learn"


Recommendation = Annotated[Union[Autopass, Targeted, ConvertLearn], Field(discriminator="kind")]


class MissedQuestion(BaseModel):
    """Knowledge check question the learner got wrong."""
    question_id: str
    question: str
    user_answer: Optional[AnswerValue] = None
    correct_answer: AnswerValue
    explanation: str
    related_concept: Optional[str] = None


class KnowledgeCheckScore(BaseModel):
    """Output of scoring a knowledge check."""
    score: int
    passed: bool
    missed_questions: List[MissedQuestion]
    feedback: List[str]


class RefreshCheck(NamedTuple):
    """Whether a refresh is due, and how many whole days since the last session."""
    needed: bool
    gap_days: int


# ============= Record views =============

class PlanView(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    title: str
    status: PlanStatus
    progress: float
    current_subskill_index: Optional[int] = None
    sessions_completed: int = 0


class SubskillView(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    plan_id: int
    order: int
    title: str
    route: Route
    route_status: RouteStatus
    status: SubskillStatus
    sessions_completed: int
    estimated_sessions: int
    last_session_date: Optional[datetime] = None
    assessment_score: Optional[int] = None
    mastered_at: Optional[datetime] = None


class QuestionView(BaseModel):
    """Question as shown to the learner (no answer, no explanation)."""
    id: str
    area: str
    question: str
    type: QuestionType
    options: List[str]
    difficulty: int


class AssessmentView(BaseModel):
    """Sanitized assessment returned to the learner."""
    id: int
    subskill_id: int
    questions: List[QuestionView]
    is_completed: bool
    score: Optional[int] = None
    recommendation: Optional[str] = None


class SessionOutline(BaseModel):
    session_number: int
    title: str
    focus: str
    objectives: List[str] = Field(default_factory=list)
    estimated_minutes: int


class LessonPlanView(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    subskill_id: int
    plan_id: int
    is_remediation: bool
    assessment_id: Optional[int] = None
    gaps: Optional[List[Gap]] = None
    learning_objectives: List[str]
    session_outline: List[SessionOutline]


class SessionSummaryView(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    subskill_id: int
    daily_lesson_id: Optional[str] = None
    session_number: int
    summary: str
    key_concepts: List[str]
    created_at: Optional[datetime] = None


# ============= Operation results =============

class StartSubskillResult(BaseModel):
    """Outcome of starting a subskill."""
    route_type: RouteType
    subskill: SubskillView

    # For skip
    next_subskill: Optional[SubskillView] = None
    plan_completed: bool = False

    # For assess
    assessment: Optional[AssessmentView] = None

    # For learn
    lesson_plan: Optional[LessonPlanView] = None


class AssessmentResult(BaseModel):
    """Scored diagnostic plus what happens next."""
    assessment: AssessmentView
    score: int
    area_results: List[AreaResult]
    gaps: List[Gap]
    strengths: List[str]
    recommendation: Recommendation
    next_action: NextAction
    next_subskill_id: Optional[int] = None
    lesson_plan_id: Optional[int] = None
    plan_completed: bool = False


class QuestionResult(BaseModel):
    id: str
    question: str
    user_answer: Optional[AnswerValue] = None
    correct_answer: AnswerValue
    is_correct: bool
    explanation: str


class AssessmentResultsView(BaseModel):
    """Detailed per-question results, available after completion."""
    score: int
    area_results: List[AreaResult]
    gaps: List[Gap]
    strengths: List[str]
    recommendation: str
    question_results: List[QuestionResult]


class KnowledgeCheckView(BaseModel):
    id: int
    subskill_id: int
    attempt_number: int
    questions: List[QuestionView]
    is_completed: bool
    score: Optional[int] = None


class KnowledgeCheckResult(BaseModel):
    check: KnowledgeCheckView
    passed: bool
    score: int
    attempt_number: int
    can_retake: bool

    # If failed
    missed_questions: List[MissedQuestion] = Field(default_factory=list)
    feedback: List[str] = Field(default_factory=list)

    # If passed
    next_subskill_id: Optional[int] = None
    is_plan_complete: bool = False


class TodayState(BaseModel):
    """What the learner should do today."""
    plan: PlanView
    current_subskill: SubskillView
    session_number: int
    total_sessions: int
    is_knowledge_check_day: bool
    subskills_completed: int
    total_subskills: int
    overall_progress: float
    needs_refresh: bool
    refresh_gap_days: int = 0


class SubskillProgressItem(BaseModel):
    subskill: SubskillView
    progress: float


class PlanProgress(BaseModel):
    plan: PlanView
    subskills: List[SubskillProgressItem]
    overall_progress: float
    completed_count: int
    total_count: int


class SubskillProgress(BaseModel):
    subskill: SubskillView
    sessions_completed: int
    total_sessions: int
    progress: float
    summaries: List[SessionSummaryView]


class SessionCompletion(BaseModel):
    subskill: SubskillView
    session_completed: int
    total_sessions: int
    is_knowledge_check_next: bool
    is_subskill_complete: bool


class RefreshContent(BaseModel):
    summary: str
    previous_sessions_summary: List[str]
    recall_questions: List[str]
    quick_tips: List[str] = Field(default_factory=list)
    estimated_minutes: int = 5
    gap_days: int
