"""
Session summaries and per-subskill lesson plans.
"""
from sqlalchemy import Column, Integer, String, Boolean, JSON, DateTime, ForeignKey, Text
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func

from app.db.base import Base


class SessionSummary(Base):
    """Summary written when a learning session completes. Append-only."""

    __tablename__ = "session_summaries"

    id = Column(Integer, primary_key=True, index=True)
    subskill_id = Column(Integer, ForeignKey("plan_subskills.id", ondelete="CASCADE"), nullable=False)
    user_id = Column(String, nullable=False, index=True)
    daily_lesson_id = Column(String, nullable=True)
    session_number = Column(Integer, nullable=False)
    summary = Column(Text, nullable=False)
    key_concepts = Column(JSON, nullable=False, default=list)
    created_at = Column(DateTime(timezone=True), server_default=func.now())

    # Relationships
    subskill = relationship("PlanSubskill", back_populates="session_summaries")


class SubskillLessonPlan(Base):
    """Session outline generated when a learner enters the learn flow."""

    __tablename__ = "subskill_lesson_plans"

    id = Column(Integer, primary_key=True, index=True)
    subskill_id = Column(Integer, ForeignKey("plan_subskills.id", ondelete="CASCADE"), nullable=False)
    plan_id = Column(Integer, ForeignKey("lesson_plans.id", ondelete="CASCADE"), nullable=False)
    user_id = Column(String, nullable=False, index=True)

    is_remediation = Column(Boolean, default=False, nullable=False)
    assessment_id = Column(Integer, ForeignKey("subskill_assessments.id", ondelete="SET NULL"), nullable=True)
    gaps = Column(JSON, nullable=True)

    learning_objectives = Column(JSON, nullable=False, default=list)
    session_outline = Column(JSON, nullable=False, default=list)
    generated_at = Column(DateTime(timezone=True), server_default=func.now())

    # Relationships
    subskill = relationship("PlanSubskill", back_populates="lesson_plans")
