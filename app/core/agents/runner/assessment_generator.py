"""
Diagnostic question generator.
Uses the model collaborator when available and falls back to route-aware
template questions on any failure.
"""
import logging
from typing import Any, Dict, Iterable, List, Optional

from pydantic import ValidationError

from app.core.agents.runner.generation import GenerationClient, parse_llm_json
from app.core.agents.runner.prompts import (
    DIAGNOSTIC_SYSTEM_PROMPT,
    build_diagnostic_user_message,
)
from app.core.agents.runner.schemas import DiagnosticQuestion
from app.models import LessonPlan, PlanSubskill

logger = logging.getLogger(__name__)

MIN_DIAGNOSTIC_QUESTIONS = 5

_QUESTION_TYPES = {"multiple_choice", "true_false", "short_answer", "ordering"}


def _base_questions(title: str) -> List[Dict[str, Any]]:
    return [
        {
            "id": "q1",
            "area": "Core Concepts",
            "question": f"What is the main purpose of {title}?",
            "type": "multiple_choice",
            "options": [
                "To provide foundational understanding",
                "To enable practical application",
                "To support advanced techniques",
                "None of the above",
            ],
            "correct_answer": "To provide foundational understanding",
            "explanation": "Understanding the core purpose helps frame all other learning.",
            "difficulty": 1,
        },
        {
            "id": "q2",
            "area": "Core Concepts",
            "question": f"Which of the following is NOT typically associated with {title}?",
            "type": "multiple_choice",
            "options": [
                "Fundamental principles",
                "Practical techniques",
                "Unrelated domain knowledge",
                "Supporting skills",
            ],
            "correct_answer": "Unrelated domain knowledge",
            "explanation": "Identifying what is not related helps clarify boundaries.",
            "difficulty": 1,
        },
        {
            "id": "q3",
            "area": "Application",
            "question": f"In what scenario would {title} be most useful?",
            "type": "multiple_choice",
            "options": [
                "When starting a new project",
                "When debugging issues",
                "When optimizing performance",
                "All of the above",
            ],
            "correct_answer": "All of the above",
            "explanation": "This skill applies across multiple scenarios.",
            "difficulty": 2,
        },
        {
            "id": "q4",
            "area": "Application",
            "question": f"What is a common mistake when applying {title}?",
            "type": "multiple_choice",
            "options": [
                "Moving too quickly",
                "Skipping fundamentals",
                "Over-engineering solutions",
                "All of the above",
            ],
            "correct_answer": "All of the above",
            "explanation": "These are common pitfalls to avoid.",
            "difficulty": 2,
        },
        {
            "id": "q5",
            "area": "Integration",
            "question": f"How does {title} relate to the overall learning goal?",
            "type": "multiple_choice",
            "options": [
                "It is a prerequisite skill",
                "It is a supporting skill",
                "It is a core skill",
                "It depends on the context",
            ],
            "correct_answer": "It depends on the context",
            "explanation": "The relationship varies based on your specific goals.",
            "difficulty": 3,
        },
    ]


# route -> (area, question, explanation, difficulty)
_ROUTE_QUESTIONS = {
    "recall": (
        "Knowledge Recall",
        "Can you define the key terminology without looking it up?",
        "Recall requires being able to retrieve information from memory.",
        2,
    ),
    "practice": (
        "Procedural Knowledge",
        "Have you successfully completed this type of task before?",
        "Practice builds on previous experience.",
        2,
    ),
    "diagnose": (
        "Pattern Recognition",
        "Can you identify common errors in this domain?",
        "Diagnosis requires recognizing patterns.",
        2,
    ),
    "apply": (
        "Transfer",
        "Could you adapt this skill to a situation you have not seen before?",
        "Applying a skill means transferring it to unfamiliar situations.",
        3,
    ),
    "build": (
        "Creation Skills",
        "Have you built something similar before?",
        "Building requires synthesis of multiple skills.",
        3,
    ),
    "refine": (
        "Quality Judgment",
        "Can you tell what separates good work from great work here?",
        "Refinement depends on knowing the quality standard.",
        3,
    ),
    "plan": (
        "Strategy",
        "Could you lay out the steps and resources needed for this on your own?",
        "Planning requires seeing the whole before the parts.",
        2,
    ),
}


def template_questions(subskill: PlanSubskill) -> List[DiagnosticQuestion]:
    """Deterministic diagnostic: five base questions plus one for the route."""
    questions = _base_questions(subskill.title)

    route = getattr(subskill.route, "value", subskill.route)
    if route in _ROUTE_QUESTIONS:
        area, text, explanation, difficulty = _ROUTE_QUESTIONS[route]
        questions.append({
            "id": "r1",
            "area": area,
            "question": text,
            "type": "true_false",
            "options": ["true", "false"],
            "correct_answer": "true",
            "explanation": explanation,
            "difficulty": difficulty,
        })

    return [DiagnosticQuestion(**q) for q in questions]


def normalize_question(raw: Dict[str, Any], index: int) -> Optional[DiagnosticQuestion]:
    """
    Fill defaults on a model-produced question.

    Returns:
        The question, or None when it has no text or no correct answer
    """
    if not isinstance(raw, dict):
        return None

    text = str(raw.get("question") or "").strip()
    correct = raw.get("correct_answer", raw.get("correctAnswer"))
    if not text or correct in (None, "", []):
        return None

    q_type = raw.get("type") if raw.get("type") in _QUESTION_TYPES else "multiple_choice"

    try:
        difficulty = min(max(int(raw.get("difficulty") or 2), 1), 3)
    except (TypeError, ValueError):
        difficulty = 2

    if isinstance(correct, list):
        correct = [str(c) for c in correct]
    else:
        correct = str(correct)

    try:
        return DiagnosticQuestion(
            id=str(raw.get("id") or f"q{index + 1}"),
            area=str(raw.get("area") or "General"),
            question=text,
            type=q_type,
            options=[str(o) for o in raw.get("options") or []],
            correct_answer=correct,
            explanation=str(raw.get("explanation") or ""),
            difficulty=difficulty
        )
    except ValidationError:
        return None


def ensure_unique_ids(questions: Iterable[DiagnosticQuestion]) -> List[DiagnosticQuestion]:
    """Rename duplicate ids so every question in a set is addressable."""
    seen = set()
    result = []
    for question in questions:
        qid = question.id
        n = len(result) + 1
        while qid in seen:
            qid = f"q{n}"
            n += 1
        seen.add(qid)
        result.append(question if qid == question.id else question.model_copy(update={"id": qid}))
    return result


class AssessmentGenerator:
    """
    Generates diagnostic questions for a subskill.
    """

    def __init__(self, client: Optional[GenerationClient] = None):
        self.client = client

    def generate(self, subskill: PlanSubskill, plan: LessonPlan) -> List[DiagnosticQuestion]:
        """
        Generate a diagnostic test. Never raises on model failures.

        Args:
            subskill: Subskill being diagnosed
            plan: Plan the subskill belongs to

        Returns:
            At least MIN_DIAGNOSTIC_QUESTIONS questions with unique ids
        """
        if self.client is None:
            logger.warning(f"No generation client, using template diagnostic for subskill {subskill.id}")
            return template_questions(subskill)

        try:
            response_text = self.client.generate(
                DIAGNOSTIC_SYSTEM_PROMPT,
                build_diagnostic_user_message(subskill, plan),
                {"temperature": 0.7}
            )
            data = parse_llm_json(response_text)
            raw_questions = data.get("questions")
            if not isinstance(raw_questions, list) or not raw_questions:
                raise ValueError("Response has no questions")

            questions = [
                q for q in (normalize_question(raw, i) for i, raw in enumerate(raw_questions))
                if q is not None
            ]
        except Exception as e:
            logger.warning(f"Diagnostic generation failed for subskill {subskill.id}, using template: {e}")
            return template_questions(subskill)

        if len(questions) < MIN_DIAGNOSTIC_QUESTIONS:
            logger.warning(
                f"Only {len(questions)} valid generated questions for subskill {subskill.id}, backfilling"
            )
            questions = self._backfill(questions, subskill)

        logger.info(f"Generated {len(questions)} diagnostic questions for subskill {subskill.id}")
        return ensure_unique_ids(questions)

    def _backfill(
        self,
        questions: List[DiagnosticQuestion],
        subskill: PlanSubskill
    ) -> List[DiagnosticQuestion]:
        """Top up with template questions until the minimum is reached."""
        filled = ensure_unique_ids(questions)
        used = {q.id for q in filled}
        for template in template_questions(subskill):
            if len(filled) >= MIN_DIAGNOSTIC_QUESTIONS:
                break
            n = len(filled) + 1
            while template.id in used:
                template = template.model_copy(update={"id": f"t{n}"})
                n += 1
            used.add(template.id)
            filled.append(template)
        return filled
