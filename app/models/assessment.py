"""
Models for diagnostic assessments and knowledge checks.
"""
from sqlalchemy import Column, Integer, String, Boolean, JSON, DateTime, ForeignKey, Index, text
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func

from app.db.base import Base


class SubskillAssessment(Base):
    """Diagnostic test deciding whether a subskill can be skipped, remediated or learned."""

    __tablename__ = "subskill_assessments"
    # At most one open (not completed) assessment per subskill/learner
    __table_args__ = (
        Index(
            "uq_subskill_assessments_open",
            "subskill_id",
            "user_id",
            unique=True,
            postgresql_where=text("completed_at IS NULL"),
            sqlite_where=text("completed_at IS NULL"),
        ),
    )

    id = Column(Integer, primary_key=True, index=True)
    subskill_id = Column(Integer, ForeignKey("plan_subskills.id", ondelete="CASCADE"), nullable=False)
    user_id = Column(String, nullable=False, index=True)

    questions = Column(JSON, nullable=False)  # list of question dicts
    answers = Column(JSON, nullable=True)

    score = Column(Integer, nullable=True)
    area_results = Column(JSON, nullable=True)
    gaps = Column(JSON, nullable=True)
    strengths = Column(JSON, nullable=True)
    recommendation = Column(String(20), nullable=True)  # autopass, targeted, convert_learn
    outcome = Column(JSON, nullable=True)  # next_action, next_subskill_id, lesson_plan_id

    started_at = Column(DateTime(timezone=True), server_default=func.now())
    completed_at = Column(DateTime(timezone=True), nullable=True)

    # Relationships
    subskill = relationship("PlanSubskill", back_populates="assessments")

    @property
    def is_completed(self) -> bool:
        return self.completed_at is not None


class KnowledgeCheck(Base):
    """Mastery gate taken in the final session of a subskill."""

    __tablename__ = "knowledge_checks"
    __table_args__ = (
        Index(
            "uq_knowledge_checks_open",
            "subskill_id",
            "user_id",
            unique=True,
            postgresql_where=text("completed_at IS NULL"),
            sqlite_where=text("completed_at IS NULL"),
        ),
    )

    id = Column(Integer, primary_key=True, index=True)
    subskill_id = Column(Integer, ForeignKey("plan_subskills.id", ondelete="CASCADE"), nullable=False)
    user_id = Column(String, nullable=False, index=True)
    attempt_number = Column(Integer, default=1, nullable=False)

    questions = Column(JSON, nullable=False)
    answers = Column(JSON, nullable=True)

    score = Column(Integer, nullable=True)
    passed = Column(Boolean, nullable=True)
    missed_questions = Column(JSON, nullable=True)
    feedback = Column(JSON, nullable=True)
    outcome = Column(JSON, nullable=True)  # next_subskill_id, is_plan_complete

    started_at = Column(DateTime(timezone=True), server_default=func.now())
    completed_at = Column(DateTime(timezone=True), nullable=True)

    # Relationships
    subskill = relationship("PlanSubskill", back_populates="knowledge_checks")

    @property
    def is_completed(self) -> bool:
        return self.completed_at is not None
