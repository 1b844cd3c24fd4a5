"""
Knowledge check: the mastery gate at the end of a subskill.

Passing (KNOWLEDGE_CHECK_PASS_THRESHOLD or more) masters the subskill and
moves the plan on; failing adds a remediation session and allows a retake
with fresh questions.
"""
import logging
from typing import Iterable, List, Optional, Sequence

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from app.core.agents.runner.assessment_generator import ensure_unique_ids, normalize_question
from app.core.agents.runner.generation import GenerationClient, parse_llm_json
from app.core.agents.runner.plan_state import advance_plan, load_subskill, utcnow
from app.core.agents.runner.prompts import (
    KNOWLEDGE_CHECK_SYSTEM_PROMPT,
    build_knowledge_check_user_message,
)
from app.core.agents.runner.schemas import (
    DiagnosticQuestion,
    KnowledgeCheckResult,
    KnowledgeCheckView,
    MissedQuestion,
    UserAnswer,
)
from app.core.agents.runner.scoring import score_knowledge_check
from app.core.agents.runner.subskill_router import question_view
from app.core.exceptions import NotFoundError
from app.models import KnowledgeCheck, LessonPlan, PlanSubskill, SessionSummary
from app.models.enums import SubskillStatus

logger = logging.getLogger(__name__)

MIN_KNOWLEDGE_CHECK_QUESTIONS = 10
MAX_KNOWLEDGE_CHECK_QUESTIONS = 15
CONCEPTS_PER_SUMMARY = 2
RECENT_ATTEMPTS_FOR_WEAK_AREAS = 2

REMEDIATION_FEEDBACK = (
    "Complete the remediation session to review missed concepts, then retry the knowledge check."
)


def fallback_questions(
    subskill: PlanSubskill,
    summaries: Sequence[SessionSummary]
) -> List[DiagnosticQuestion]:
    """Concept questions from session summaries plus general mastery questions."""
    title = subskill.title
    questions: List[dict] = []

    for summary in summaries:
        for concept in (summary.key_concepts or [])[:CONCEPTS_PER_SUMMARY]:
            correct = f"A fundamental aspect of {title} that you practiced"
            questions.append({
                "id": f"c{len(questions) + 1}",
                "area": concept,
                "question": f'Which of the following best describes the concept of "{concept}" in the context of {title}?',
                "options": [
                    correct,
                    "An unrelated concept from a different topic",
                    "An advanced topic not covered in these sessions",
                    "A prerequisite from a different learning area",
                ],
                "correct_answer": correct,
                "explanation": f'"{concept}" is one of the key concepts you covered while learning {title}.',
            })

    general = [
        ("b1", f"What is the most effective approach to mastering {title}?", [
            "Consistent practice and application over time",
            "Memorizing definitions without practicing",
            "Skipping foundational concepts to save time",
            "Avoiding mistakes at all costs",
        ], "Mastery comes from consistent, deliberate practice."),
        ("b2", f"When would the skills from {title} be most applicable?", [
            "When solving real-world problems in this domain",
            "Only in theoretical or academic discussions",
            "Never in practical scenarios",
            "Only when supervised by an expert",
        ], f"The skills from {title} are directly applicable to real-world problems."),
        ("b3", f"What should you do if you encounter a difficult concept in {title}?", [
            "Break it down, practice components, and revisit fundamentals",
            "Skip it and hope it won't come up",
            "Memorize without understanding",
            "Give up and move to something else",
        ], "Break complex concepts into smaller parts and make sure the fundamentals are solid."),
        ("a1", f"How does {title} connect to your overall learning goals?", [
            "It builds foundational skills needed for the capstone goal",
            "It is completely unrelated to other skills",
            "It should be learned in isolation",
            "It has no practical value",
        ], f"Each subskill, including {title}, builds toward your capstone goal."),
        ("a2", f"What indicates that you've truly mastered {title}?", [
            "You can apply it confidently in new situations",
            "You can recite definitions from memory",
            "You completed all the activities once",
            "You passed a single test",
        ], "True mastery means applying skills in novel situations, not just familiar ones."),
    ]
    for qid, text, options, explanation in general:
        questions.append({
            "id": qid,
            "question": text,
            "options": options,
            "correct_answer": options[0],
            "explanation": explanation,
        })

    while len(questions) < MIN_KNOWLEDGE_CHECK_QUESTIONS:
        correct = "Understanding and practice are both essential for mastery"
        questions.append({
            "id": f"f{len(questions) + 1}",
            "question": f"Which statement about learning {title} is TRUE?",
            "options": [
                correct,
                "It can be mastered instantly without effort",
                "It has no connection to other skills",
                "Prerequisites are unnecessary",
            ],
            "correct_answer": correct,
            "explanation": "Skill development requires both conceptual understanding and deliberate practice.",
        })

    return [DiagnosticQuestion(**q) for q in questions[:MAX_KNOWLEDGE_CHECK_QUESTIONS]]


class KnowledgeCheckHandler:
    """
    Creates, serves and scores knowledge checks.
    """

    def __init__(self, db: Session, client: Optional[GenerationClient] = None):
        self.db = db
        self.client = client

    def get_or_create(self, user_id: str, subskill_id: int) -> KnowledgeCheckView:
        """
        Return the open knowledge check, or start a new attempt.

        Raises:
            NotFoundError: If the subskill is unknown or owned by another learner
        """
        subskill, plan = load_subskill(self.db, user_id, subskill_id)

        check = self._open_check(subskill.id, user_id)
        if check is not None:
            logger.info(f"Found open knowledge check {check.id}, attempt {check.attempt_number}")
            return self.check_view(check)

        attempts = (
            self.db.query(KnowledgeCheck)
            .filter(KnowledgeCheck.subskill_id == subskill.id, KnowledgeCheck.user_id == user_id)
            .count()
        )
        summaries = (
            self.db.query(SessionSummary)
            .filter(SessionSummary.subskill_id == subskill.id, SessionSummary.user_id == user_id)
            .order_by(SessionSummary.session_number.asc())
            .all()
        )
        questions = self.generate_questions(subskill, plan, summaries, self._weak_areas(subskill.id, user_id))

        check = KnowledgeCheck(
            subskill_id=subskill.id,
            user_id=user_id,
            attempt_number=attempts + 1,
            questions=[q.model_dump() for q in questions]
        )
        self.db.add(check)
        try:
            self.db.commit()
            logger.info(
                f"Created knowledge check {check.id} with {len(questions)} questions "
                f"(attempt {check.attempt_number})"
            )
        except IntegrityError:
            self.db.rollback()
            check = self._open_check(subskill.id, user_id)
            if check is None:
                raise

        return self.check_view(check)

    def submit(self, user_id: str, check_id: int, answers: Iterable[UserAnswer]) -> KnowledgeCheckResult:
        """
        Score a knowledge check. Completed checks return their stored result.

        Raises:
            NotFoundError: If the check is unknown or owned by another learner
        """
        check = (
            self.db.query(KnowledgeCheck)
            .filter(KnowledgeCheck.id == check_id, KnowledgeCheck.user_id == user_id)
            .first()
        )
        if check is None:
            raise NotFoundError(f"Knowledge check {check_id} not found", context={"check_id": check_id})

        if check.is_completed:
            return self.stored_result(check)

        answers = list(answers)
        questions = [DiagnosticQuestion(**q) for q in check.questions]
        scored = score_knowledge_check(questions, answers)
        feedback = list(scored.feedback)

        subskill = check.subskill
        plan = subskill.plan
        outcome = {"next_subskill_id": None, "is_plan_complete": False}

        logger.info(f"Knowledge check {check.id} scored {scored.score}%, passed={scored.passed}")

        if scored.passed:
            if subskill.transition_to(SubskillStatus.MASTERED):
                subskill.mastered_at = utcnow()
            next_subskill, plan_completed = advance_plan(self.db, subskill, plan)
            outcome["next_subskill_id"] = next_subskill.id if next_subskill else None
            outcome["is_plan_complete"] = plan_completed
        else:
            subskill.estimated_sessions = (subskill.estimated_sessions or 0) + 1
            feedback.append(REMEDIATION_FEEDBACK)
            logger.info(f"Remediation session added to subskill {subskill.id}: now {subskill.estimated_sessions}")

        check.answers = [a.model_dump() for a in answers]
        check.score = scored.score
        check.passed = scored.passed
        check.missed_questions = [m.model_dump() for m in scored.missed_questions]
        check.feedback = feedback
        check.outcome = outcome
        check.completed_at = utcnow()
        self.db.commit()

        return self.stored_result(check)

    def generate_questions(
        self,
        subskill: PlanSubskill,
        plan: LessonPlan,
        summaries: Sequence[SessionSummary],
        weak_areas: Sequence[str]
    ) -> List[DiagnosticQuestion]:
        """Between 10 and 15 questions; never raises on model failures."""
        if self.client is None:
            return fallback_questions(subskill, summaries)

        try:
            data = parse_llm_json(self.client.generate(
                KNOWLEDGE_CHECK_SYSTEM_PROMPT,
                build_knowledge_check_user_message(subskill, plan, summaries, weak_areas),
                {"temperature": 0.7}
            ))
            raw_questions = data.get("questions")
            if not isinstance(raw_questions, list) or not raw_questions:
                raise ValueError("No questions generated")
            questions = [
                q for q in (normalize_question(raw, i) for i, raw in enumerate(raw_questions))
                if q is not None
            ]
        except Exception as e:
            logger.warning(f"Knowledge check generation failed for subskill {subskill.id}, using fallback: {e}")
            return fallback_questions(subskill, summaries)

        missing = MIN_KNOWLEDGE_CHECK_QUESTIONS - len(questions)
        if missing > 0:
            questions += fallback_questions(subskill, summaries)[:missing]
        return ensure_unique_ids(questions[:MAX_KNOWLEDGE_CHECK_QUESTIONS])

    @staticmethod
    def check_view(check: KnowledgeCheck) -> KnowledgeCheckView:
        return KnowledgeCheckView(
            id=check.id,
            subskill_id=check.subskill_id,
            attempt_number=check.attempt_number,
            questions=[question_view(q) for q in check.questions],
            is_completed=check.is_completed,
            score=check.score
        )

    def stored_result(self, check: KnowledgeCheck) -> KnowledgeCheckResult:
        outcome = check.outcome or {}
        return KnowledgeCheckResult(
            check=self.check_view(check),
            passed=bool(check.passed),
            score=check.score,
            attempt_number=check.attempt_number,
            can_retake=not check.passed,
            missed_questions=[MissedQuestion(**m) for m in check.missed_questions or []],
            feedback=check.feedback or [],
            next_subskill_id=outcome.get("next_subskill_id"),
            is_plan_complete=outcome.get("is_plan_complete", False)
        )

    def _open_check(self, subskill_id: int, user_id: str) -> Optional[KnowledgeCheck]:
        return (
            self.db.query(KnowledgeCheck)
            .filter(
                KnowledgeCheck.subskill_id == subskill_id,
                KnowledgeCheck.user_id == user_id,
                KnowledgeCheck.completed_at.is_(None)
            )
            .order_by(KnowledgeCheck.attempt_number.desc())
            .first()
        )

    def _weak_areas(self, subskill_id: int, user_id: str) -> List[str]:
        """Concepts missed in the most recent completed attempts."""
        rows = (
            self.db.query(KnowledgeCheck)
            .filter(
                KnowledgeCheck.subskill_id == subskill_id,
                KnowledgeCheck.user_id == user_id,
                KnowledgeCheck.completed_at.isnot(None)
            )
            .order_by(KnowledgeCheck.completed_at.desc())
            .limit(RECENT_ATTEMPTS_FOR_WEAK_AREAS)
            .all()
        )
        weak_areas: List[str] = []
        for row in rows:
            for missed in row.missed_questions or []:
                concept = missed.get("related_concept")
                if concept and concept != "General" and concept not in weak_areas:
                    weak_areas.append(concept)
        return weak_areas
