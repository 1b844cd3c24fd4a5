"""
Scoring for diagnostic assessments and knowledge checks.

Everything here is pure: no database access, no model calls. Thresholds are
policy constants shared by the router, the knowledge check gate and tests.
"""
import math
from typing import Dict, Iterable, List, Optional, Sequence

from app.core.agents.runner.schemas import (
    AnswerValue,
    AreaResult,
    Autopass,
    ConvertLearn,
    DiagnosticQuestion,
    Gap,
    KnowledgeCheckScore,
    MissedQuestion,
    Recommendation,
    ScoreResult,
    Targeted,
    UserAnswer,
)

AUTOPASS_THRESHOLD = 85     # >= 85% -> skip this subskill
TARGETED_THRESHOLD = 50     # >= 50% -> targeted remediation on gaps, else full learning

AREA_STRONG_THRESHOLD = 80  # >= 80% in area -> strong
AREA_WEAK_THRESHOLD = 50    # >= 50% in area -> weak, else gap

KNOWLEDGE_CHECK_PASS_THRESHOLD = 70

MISSED_CONCEPT_MAX_CHARS = 100

_PRIORITY_ORDER = {"high": 0, "medium": 1, "low": 2}
_GAP_PRIORITY = {"gap": "high", "weak": "medium"}


def percent(correct: int, total: int) -> int:
    """Half-up rounded percentage; 0 when there is nothing to score."""
    if total <= 0:
        return 0
    return int(math.floor(correct / total * 100 + 0.5))


def normalize_answer(answer: str) -> str:
    return str(answer).strip().lower()


def is_correct(question: DiagnosticQuestion, answer: Optional[AnswerValue]) -> bool:
    """Exact match after trimming and lower-casing. Ordered answers match element-wise."""
    if answer is None:
        return False

    expected = question.correct_answer
    if isinstance(expected, list):
        if not isinstance(answer, list) or len(answer) != len(expected):
            return False
        return all(
            normalize_answer(given) == normalize_answer(wanted)
            for given, wanted in zip(answer, expected)
        )

    if isinstance(answer, list):
        return False
    return normalize_answer(answer) == normalize_answer(expected)


def build_answer_map(answers: Iterable[UserAnswer]) -> Dict[str, AnswerValue]:
    return {a.question_id: a.answer for a in answers}


def classify_area(area_score: int) -> str:
    if area_score >= AREA_STRONG_THRESHOLD:
        return "strong"
    if area_score >= AREA_WEAK_THRESHOLD:
        return "weak"
    return "gap"


def score_answers(
    questions: Sequence[DiagnosticQuestion],
    answers: Iterable[UserAnswer]
) -> ScoreResult:
    """
    Score a diagnostic into an overall score and a per-area breakdown.

    Args:
        questions: Questions of the assessment
        answers: Learner answers, matched to questions by id

    Returns:
        ScoreResult with area results, gaps (sorted by priority) and strengths
    """
    answer_map = build_answer_map(answers)

    # area -> {"correct", "total", "missed"}, in order of first appearance
    areas: Dict[str, Dict] = {}
    total_correct = 0

    for question in questions:
        area = question.area or "General"
        data = areas.setdefault(area, {"correct": 0, "total": 0, "missed": []})
        data["total"] += 1

        if is_correct(question, answer_map.get(question.id)):
            data["correct"] += 1
            total_correct += 1
        else:
            data["missed"].append(question.question[:MISSED_CONCEPT_MAX_CHARS])

    area_results: List[AreaResult] = []
    gaps: List[Gap] = []
    strengths: List[str] = []

    for area, data in areas.items():
        area_score = percent(data["correct"], data["total"])
        status = classify_area(area_score)

        area_results.append(AreaResult(
            area=area,
            questions_total=data["total"],
            questions_correct=data["correct"],
            score=area_score,
            status=status
        ))

        if status == "strong":
            strengths.append(area)
        else:
            gaps.append(Gap(
                area=area,
                score=area_score,
                status=status,
                priority=_GAP_PRIORITY[status],
                missed_concepts=data["missed"],
                suggested_focus=f"Review and practice {area.lower()}"
            ))

    gaps.sort(key=lambda gap: _PRIORITY_ORDER[gap.priority])

    return ScoreResult(
        score=percent(total_correct, len(questions)),
        area_results=area_results,
        gaps=gaps,
        strengths=strengths
    )


def recommend(score: int, gaps: Sequence[Gap] = ()) -> Recommendation:
    """Map an overall diagnostic score to the next step for the learner."""
    if score >= AUTOPASS_THRESHOLD:
        return Autopass()
    if score >= TARGETED_THRESHOLD:
        return Targeted(gaps=list(gaps))
    return ConvertLearn()


def score_knowledge_check(
    questions: Sequence[DiagnosticQuestion],
    answers: Iterable[UserAnswer]
) -> KnowledgeCheckScore:
    """Score a knowledge check and write feedback for the learner."""
    answer_map = build_answer_map(answers)

    correct = 0
    missed: List[MissedQuestion] = []
    missed_concepts: List[str] = []

    for question in questions:
        given = answer_map.get(question.id)
        if is_correct(question, given):
            correct += 1
            continue

        missed.append(MissedQuestion(
            question_id=question.id,
            question=question.question,
            user_answer=given,
            correct_answer=question.correct_answer,
            explanation=question.explanation,
            related_concept=question.area
        ))
        if question.area and question.area != "General" and question.area not in missed_concepts:
            missed_concepts.append(question.area)

    score = percent(correct, len(questions))
    passed = score >= KNOWLEDGE_CHECK_PASS_THRESHOLD

    feedback: List[str] = []
    if missed_concepts:
        feedback.append(f"Focus your review on these concepts: {', '.join(missed_concepts)}")

    if passed:
        feedback.append("Great job! You've demonstrated mastery of this skill.")
    elif score >= TARGETED_THRESHOLD:
        feedback.append("You're making progress! Review the explanations for missed questions.")
        feedback.append("Pay special attention to the concepts you missed and try again when ready.")
    else:
        feedback.append("Take time to review the lesson content before retaking the test.")
        feedback.append("Focus on understanding the concepts, not just memorizing answers.")
        feedback.append("You can retake the test with new questions when ready.")

    return KnowledgeCheckScore(
        score=score,
        passed=passed,
        missed_questions=missed,
        feedback=feedback
    )
