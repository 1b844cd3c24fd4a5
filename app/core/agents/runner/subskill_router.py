"""
Subskill router.

Decides whether a subskill is skipped, diagnosed or learned, and applies the
diagnostic recommendation once answers are submitted. Every public operation
commits once at the end; anything raised before that leaves the database
untouched.
"""
import logging
from typing import Iterable, List, Optional

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from app.core.agents.runner.assessment_generator import AssessmentGenerator
from app.core.agents.runner.lesson_planner import DefaultLessonPlanner, LessonPlanner
from app.core.agents.runner.plan_state import advance_plan, load_subskill, recompute_plan_progress, utcnow
from app.core.agents.runner.schemas import (
    AreaResult,
    AssessmentResult,
    AssessmentResultsView,
    AssessmentView,
    Autopass,
    ConvertLearn,
    DiagnosticQuestion,
    Gap,
    LessonPlanView,
    QuestionResult,
    QuestionView,
    Recommendation,
    RouteType,
    StartSubskillResult,
    SubskillView,
    Targeted,
    UserAnswer,
)
from app.core.agents.runner.scoring import build_answer_map, is_correct, recommend, score_answers
from app.core.exceptions import InvalidTransitionError, NotFoundError
from app.models import LessonPlan, PlanSubskill, SubskillAssessment, SubskillLessonPlan
from app.models.enums import PlanStatus, RouteStatus, SubskillStatus

logger = logging.getLogger(__name__)

_NEXT_ACTIONS = {
    "autopass": "autopass",
    "targeted": "start_remediation",
    "convert_learn": "start_learning",
}


def route_type_for(subskill: PlanSubskill) -> RouteType:
    """Map a subskill's status (and initial routing) to the flow that handles it."""
    status = SubskillStatus(subskill.status)
    if status == SubskillStatus.SKIPPED:
        return "skip"
    if status == SubskillStatus.ASSESS:
        return "assess"
    if status in (SubskillStatus.PENDING, SubskillStatus.ACTIVE):
        return "skip" if subskill.route_status == RouteStatus.SKIP else "learn"
    if status == SubskillStatus.MASTERED:
        return "learn"
    raise ValueError(f"Unhandled subskill status: {status}")


def question_view(question: dict) -> QuestionView:
    """Strip the answer and explanation from a stored question."""
    q = DiagnosticQuestion(**question)
    return QuestionView(
        id=q.id,
        area=q.area,
        question=q.question,
        type=q.type,
        options=q.options,
        difficulty=q.difficulty
    )


class SubskillRouter:
    """
    Routes subskills into the skip, assess or learn flow.
    """

    def __init__(
        self,
        db: Session,
        generator: Optional[AssessmentGenerator] = None,
        lesson_planner: Optional[LessonPlanner] = None
    ):
        self.db = db
        self.generator = generator or AssessmentGenerator()
        self.lesson_planner = lesson_planner or DefaultLessonPlanner(db)

    # ============= Start =============

    def start(self, user_id: str, subskill_id: int) -> StartSubskillResult:
        """
        Start (or resume) a subskill.

        Raises:
            NotFoundError: If the subskill is unknown or owned by another learner
        """
        subskill, plan = load_subskill(self.db, user_id, subskill_id)
        route_type = route_type_for(subskill)

        logger.info(
            f"Starting subskill {subskill.id} '{subskill.title}' "
            f"(status={SubskillStatus(subskill.status).value}, route_type={route_type})"
        )

        if route_type == "skip":
            return self._handle_skip(subskill, plan)
        if route_type == "assess":
            return self._handle_assess(user_id, subskill, plan)
        return self._handle_learn(user_id, subskill, plan)

    def _handle_skip(self, subskill: PlanSubskill, plan: LessonPlan) -> StartSubskillResult:
        if subskill.status != SubskillStatus.SKIPPED:
            subskill.mastered_at = utcnow()
            subskill.transition_to(SubskillStatus.SKIPPED)
            logger.info(f"Skipped subskill {subskill.id}")

        next_subskill, plan_completed = advance_plan(self.db, subskill, plan)
        self.db.commit()

        return StartSubskillResult(
            route_type="skip",
            subskill=SubskillView.model_validate(subskill),
            next_subskill=SubskillView.model_validate(next_subskill) if next_subskill else None,
            plan_completed=plan_completed
        )

    def _handle_assess(self, user_id: str, subskill: PlanSubskill, plan: LessonPlan) -> StartSubskillResult:
        assessment = self._open_assessment(subskill.id, user_id)

        if assessment is None:
            questions = self.generator.generate(subskill, plan)
            assessment = SubskillAssessment(
                subskill_id=subskill.id,
                user_id=user_id,
                questions=[q.model_dump() for q in questions]
            )
            self.db.add(assessment)
            try:
                self.db.commit()
                logger.info(f"Created assessment {assessment.id} with {len(questions)} questions")
            except IntegrityError:
                # A concurrent start won the open-assessment slot
                self.db.rollback()
                assessment = self._open_assessment(subskill.id, user_id)
                if assessment is None:
                    raise
                logger.info(f"Reusing concurrently created assessment {assessment.id}")
        else:
            logger.info(f"Resuming open assessment {assessment.id}")

        return StartSubskillResult(
            route_type="assess",
            subskill=SubskillView.model_validate(subskill),
            assessment=self.assessment_view(assessment)
        )

    def _handle_learn(self, user_id: str, subskill: PlanSubskill, plan: LessonPlan) -> StartSubskillResult:
        reviewing = subskill.status == SubskillStatus.MASTERED
        subskill.transition_to(SubskillStatus.ACTIVE)
        if reviewing:
            self._reopen_for_review(subskill, plan)
        elif plan.current_subskill_index is None:
            plan.current_subskill_index = subskill.order
        if plan.started_at is None:
            plan.started_at = utcnow()

        lesson_plan = self._latest_lesson_plan(subskill.id, user_id)
        if lesson_plan is None:
            lesson_plan = self.lesson_planner.generate_lesson_plan(
                user_id, subskill, plan, is_remediation=False
            )
        self.db.commit()

        return StartSubskillResult(
            route_type="learn",
            subskill=SubskillView.model_validate(subskill),
            lesson_plan=LessonPlanView.model_validate(lesson_plan)
        )

    def _reopen_for_review(self, subskill: PlanSubskill, plan: LessonPlan) -> None:
        """A mastered subskill is unresolved again: reopen its plan and recount progress."""
        if subskill.route_status != RouteStatus.LEARN:
            subskill.route_status = RouteStatus.LEARN

        if plan.status == PlanStatus.COMPLETED:
            plan.status = PlanStatus.ACTIVE
            plan.completed_at = None
            plan.current_subskill_index = subskill.order
            logger.info(f"Plan {plan.id} reopened for review of subskill {subskill.id}")
        elif plan.current_subskill_index is None:
            plan.current_subskill_index = subskill.order

        recompute_plan_progress(self.db, plan)

    # ============= Submit =============

    def submit(self, user_id: str, assessment_id: int, answers: Iterable[UserAnswer]) -> AssessmentResult:
        """
        Score a diagnostic and act on the recommendation.

        Resubmitting a completed assessment returns the stored result and
        changes nothing.

        Raises:
            NotFoundError: If the assessment is unknown or owned by another learner
        """
        assessment = self._get_assessment(user_id, assessment_id)
        if assessment.is_completed:
            logger.info(f"Assessment {assessment.id} already completed, returning stored result")
            return self.stored_result(assessment)

        answers = list(answers)
        questions = [DiagnosticQuestion(**q) for q in assessment.questions]
        scored = score_answers(questions, answers)
        recommendation = recommend(scored.score, scored.gaps)
        now = utcnow()

        assessment.answers = [a.model_dump() for a in answers]
        assessment.score = scored.score
        assessment.area_results = [a.model_dump() for a in scored.area_results]
        assessment.gaps = [g.model_dump() for g in scored.gaps]
        assessment.strengths = scored.strengths
        assessment.recommendation = recommendation.kind
        assessment.completed_at = now

        subskill = assessment.subskill
        plan = subskill.plan
        subskill.assessment_score = scored.score
        subskill.assessment_data = {
            "area_results": assessment.area_results,
            "gaps": assessment.gaps,
            "strengths": scored.strengths,
            "recommendation": recommendation.kind,
        }
        subskill.assessed_at = now

        logger.info(
            f"Assessment {assessment.id} scored {scored.score}% -> {recommendation.kind} "
            f"({len(scored.gaps)} gaps, {len(scored.strengths)} strengths)"
        )

        assessment.outcome = self._apply_recommendation(user_id, assessment, subskill, plan, recommendation)
        self.db.commit()

        return self.stored_result(assessment)

    def _apply_recommendation(
        self,
        user_id: str,
        assessment: SubskillAssessment,
        subskill: PlanSubskill,
        plan: LessonPlan,
        recommendation: Recommendation
    ) -> dict:
        outcome = {
            "next_action": _NEXT_ACTIONS[recommendation.kind],
            "next_subskill_id": None,
            "lesson_plan_id": None,
            "plan_completed": False,
        }

        # Record the routing the diagnostic actually settled on
        route_status = RouteStatus.SKIP if isinstance(recommendation, Autopass) else RouteStatus.LEARN
        if subskill.route_status != route_status:
            subskill.route_status = route_status

        if isinstance(recommendation, Autopass):
            if subskill.transition_to(SubskillStatus.MASTERED):
                subskill.mastered_at = utcnow()
            next_subskill, plan_completed = advance_plan(self.db, subskill, plan)
            outcome["next_subskill_id"] = next_subskill.id if next_subskill else None
            outcome["plan_completed"] = plan_completed
            return outcome

        subskill.transition_to(SubskillStatus.ACTIVE)
        is_remediation = isinstance(recommendation, Targeted)
        lesson_plan = self.lesson_planner.generate_lesson_plan(
            user_id,
            subskill,
            plan,
            is_remediation=is_remediation,
            assessment_id=assessment.id,
            gaps=recommendation.gaps if is_remediation else None
        )
        self.db.flush()
        outcome["lesson_plan_id"] = getattr(lesson_plan, "id", None)
        return outcome

    # ============= Read =============

    def get_for_user(self, user_id: str, assessment_id: int) -> AssessmentView:
        """Assessment without answers or explanations."""
        return self.assessment_view(self._get_assessment(user_id, assessment_id))

    def get_results(self, user_id: str, assessment_id: int) -> AssessmentResultsView:
        """
        Per-question results of a completed assessment.

        Raises:
            NotFoundError: If the assessment is unknown or owned by another learner
            InvalidTransitionError: If the assessment is still open
        """
        assessment = self._get_assessment(user_id, assessment_id)
        if not assessment.is_completed:
            raise InvalidTransitionError(
                f"Assessment {assessment.id} is not completed",
                context={"assessment_id": assessment.id}
            )

        answer_map = build_answer_map(UserAnswer(**a) for a in assessment.answers or [])
        question_results: List[QuestionResult] = []
        for raw in assessment.questions:
            question = DiagnosticQuestion(**raw)
            given = answer_map.get(question.id)
            question_results.append(QuestionResult(
                id=question.id,
                question=question.question,
                user_answer=given,
                correct_answer=question.correct_answer,
                is_correct=is_correct(question, given),
                explanation=question.explanation
            ))

        return AssessmentResultsView(
            score=assessment.score,
            area_results=[AreaResult(**a) for a in assessment.area_results or []],
            gaps=[Gap(**g) for g in assessment.gaps or []],
            strengths=assessment.strengths or [],
            recommendation=assessment.recommendation,
            question_results=question_results
        )

    # ============= Helpers =============

    @staticmethod
    def assessment_view(assessment: SubskillAssessment) -> AssessmentView:
        return AssessmentView(
            id=assessment.id,
            subskill_id=assessment.subskill_id,
            questions=[question_view(q) for q in assessment.questions],
            is_completed=assessment.is_completed,
            score=assessment.score,
            recommendation=assessment.recommendation
        )

    def stored_result(self, assessment: SubskillAssessment) -> AssessmentResult:
        """Rebuild the submit result purely from what was persisted."""
        outcome = assessment.outcome or {}
        gaps = [Gap(**g) for g in assessment.gaps or []]

        if assessment.recommendation == "autopass":
            recommendation = Autopass()
        elif assessment.recommendation == "targeted":
            recommendation = Targeted(gaps=gaps)
        else:
            recommendation = ConvertLearn()

        return AssessmentResult(
            assessment=self.assessment_view(assessment),
            score=assessment.score,
            area_results=[AreaResult(**a) for a in assessment.area_results or []],
            gaps=gaps,
            strengths=assessment.strengths or [],
            recommendation=recommendation,
            next_action=outcome.get("next_action", _NEXT_ACTIONS[recommendation.kind]),
            next_subskill_id=outcome.get("next_subskill_id"),
            lesson_plan_id=outcome.get("lesson_plan_id"),
            plan_completed=outcome.get("plan_completed", False)
        )

    def _get_assessment(self, user_id: str, assessment_id: int) -> SubskillAssessment:
        assessment = (
            self.db.query(SubskillAssessment)
            .filter(
                SubskillAssessment.id == assessment_id,
                SubskillAssessment.user_id == user_id
            )
            .first()
        )
        if assessment is None:
            raise NotFoundError(
                f"Assessment {assessment_id} not found",
                context={"assessment_id": assessment_id}
            )
        return assessment

    def _open_assessment(self, subskill_id: int, user_id: str) -> Optional[SubskillAssessment]:
        return (
            self.db.query(SubskillAssessment)
            .filter(
                SubskillAssessment.subskill_id == subskill_id,
                SubskillAssessment.user_id == user_id,
                SubskillAssessment.completed_at.is_(None)
            )
            .first()
        )

    def _latest_lesson_plan(self, subskill_id: int, user_id: str) -> Optional[SubskillLessonPlan]:
        return (
            self.db.query(SubskillLessonPlan)
            .filter(
                SubskillLessonPlan.subskill_id == subskill_id,
                SubskillLessonPlan.user_id == user_id
            )
            .order_by(SubskillLessonPlan.id.desc())
            .first()
        )
