"""
Lesson-plan collaborator.

The router only relies on ``LessonPlanner.generate_lesson_plan``; the default
implementation builds a deterministic, route-shaped outline and stores it in
``subskill_lesson_plans``.
"""
import logging
from typing import List, Optional, Protocol, Sequence

from sqlalchemy.orm import Session

from app.core.agents.runner.schemas import Gap, SessionOutline
from app.models import LessonPlan, PlanSubskill, SubskillLessonPlan

logger = logging.getLogger(__name__)

DEFAULT_DAILY_MINUTES = 30

# route -> [(title, focus, objectives)]; "{title}" is the subskill title
_ROUTE_SESSIONS = {
    "recall": [
        ("Introduction & Exposure", "First exposure to {title} concepts", ["Identify key terminology", "Understand basic structure"]),
        ("Encoding & Connection", "Connect new concepts to existing knowledge", ["Create mental associations", "Build concept maps"]),
        ("Active Retrieval", "Practice recalling without prompts", ["Retrieve from memory", "Identify gaps"]),
    ],
    "practice": [
        ("Demonstration", "Watch and understand {title} in action", ["Observe procedure", "Note key steps"]),
        ("Guided Practice", "Practice with scaffolding and hints", ["Execute with guidance", "Build muscle memory"]),
        ("Independent Practice", "Practice without assistance", ["Execute independently", "Self-correct errors"]),
    ],
    "build": [
        ("Planning & Design", "Plan your {title} project", ["Define requirements", "Create outline"]),
        ("Foundation Building", "Build the core structure", ["Implement basics", "Test foundation"]),
        ("Development", "Add features and functionality", ["Extend functionality", "Handle edge cases"]),
        ("Polish & Review", "Refine and complete", ["Fix issues", "Improve quality"]),
    ],
}

_DEFAULT_SESSIONS = [
    ("Introduction", "Introduction to {title}", ["Understand basics", "See examples"]),
    ("Deep Dive", "Explore {title} in depth", ["Understand details", "Practice application"]),
    ("Application", "Apply {title} to scenarios", ["Solve problems", "Build confidence"]),
]


class LessonPlanner(Protocol):
    def generate_lesson_plan(
        self,
        user_id: str,
        subskill: PlanSubskill,
        plan: LessonPlan,
        is_remediation: bool,
        assessment_id: Optional[int] = None,
        gaps: Optional[Sequence[Gap]] = None
    ) -> SubskillLessonPlan:
        ...


class DefaultLessonPlanner:
    """Persists a template outline. Does not commit; the caller owns the transaction."""

    def __init__(self, db: Session):
        self.db = db

    def generate_lesson_plan(
        self,
        user_id: str,
        subskill: PlanSubskill,
        plan: LessonPlan,
        is_remediation: bool,
        assessment_id: Optional[int] = None,
        gaps: Optional[Sequence[Gap]] = None
    ) -> SubskillLessonPlan:
        gaps = list(gaps or [])
        outline = self.build_outline(subskill, plan, gaps if is_remediation else [])

        lesson_plan = SubskillLessonPlan(
            subskill_id=subskill.id,
            plan_id=plan.id,
            user_id=user_id,
            is_remediation=is_remediation,
            assessment_id=assessment_id,
            gaps=[g.model_dump() for g in gaps] if gaps else None,
            learning_objectives=self.build_objectives(subskill, gaps if is_remediation else []),
            session_outline=[s.model_dump() for s in outline]
        )
        self.db.add(lesson_plan)

        if subskill.estimated_sessions != len(outline):
            subskill.estimated_sessions = len(outline)

        self.db.flush()
        logger.info(
            f"Created {'remediation' if is_remediation else 'full'} lesson plan {lesson_plan.id} "
            f"for subskill {subskill.id} ({len(outline)} sessions)"
        )
        return lesson_plan

    @staticmethod
    def build_objectives(subskill: PlanSubskill, gaps: Sequence[Gap]) -> List[str]:
        title = subskill.title
        complexity = subskill.complexity or 2

        objectives = [
            f"Understand the core concepts of {title}",
            f"Apply {title} in practical scenarios",
        ]
        if complexity >= 2:
            objectives.append(f"Analyze common patterns and variations in {title}")
        if complexity >= 3:
            objectives.append(f"Handle edge cases and complex scenarios in {title}")
        objectives.append("Demonstrate mastery through knowledge check")

        objectives += [f"Address gap: {gap.area}" for gap in gaps if gap.priority == "high"]
        return objectives

    @staticmethod
    def build_outline(
        subskill: PlanSubskill,
        plan: LessonPlan,
        gaps: Sequence[Gap]
    ) -> List[SessionOutline]:
        """
        Remediation plans get one session per gap; full plans follow the
        route's session shape. Both end with the knowledge check session.
        """
        title = subskill.title
        minutes = plan.daily_minutes or DEFAULT_DAILY_MINUTES
        route = getattr(subskill.route, "value", subskill.route)

        if gaps:
            sessions = [
                (f"Remediation: {gap.area}", gap.suggested_focus, [f"Close gap in {gap.area}"])
                for gap in gaps
            ]
        else:
            sessions = [
                (name, focus.format(title=title), objectives)
                for name, focus, objectives in _ROUTE_SESSIONS.get(route, _DEFAULT_SESSIONS)
            ]
        sessions.append((
            "Knowledge Check",
            f"Verify mastery of {title}",
            ["Demonstrate understanding", "Pass mastery test"]
        ))

        return [
            SessionOutline(
                session_number=i,
                title=name,
                focus=focus,
                objectives=objectives,
                estimated_minutes=minutes
            )
            for i, (name, focus, objectives) in enumerate(sessions, 1)
        ]
