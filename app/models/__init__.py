"""Models module - Import all models here for Alembic."""
from app.db.base import Base
from app.models.plan import LessonPlan, PlanSubskill
from app.models.assessment import SubskillAssessment, KnowledgeCheck
from app.models.lesson import SessionSummary, SubskillLessonPlan

__all__ = ["Base", "LessonPlan", "PlanSubskill", "SubskillAssessment", "KnowledgeCheck", "SessionSummary", "SubskillLessonPlan"]
