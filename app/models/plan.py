"""
Learning plan and subskill models.
"""
from sqlalchemy import (
    Column,
    Integer,
    String,
    DateTime,
    Text,
    ForeignKey,
    Float,
    JSON,
    UniqueConstraint,
)
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func

from app.core.exceptions import InvalidTransitionError
from app.db.base import Base
from app.models.enums import (
    ALLOWED_TRANSITIONS,
    PlanStatus,
    Route,
    RouteStatus,
    SubskillStatus,
    enum_type,
)


class LessonPlan(Base):
    """Curriculum instance owned by one learner."""

    __tablename__ = "lesson_plans"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(String, nullable=False, index=True)  # external user id (JWT sub)
    title = Column(String, nullable=False)
    description = Column(Text, nullable=True)
    capstone_statement = Column(Text, nullable=True)
    difficulty = Column(String, default="intermediate")
    daily_minutes = Column(Integer, default=30)
    status = Column(enum_type(PlanStatus), default=PlanStatus.ACTIVE, nullable=False)
    current_subskill_index = Column(Integer, nullable=True)  # `order` of the current subskill
    progress = Column(Float, default=0.0, nullable=False)
    sessions_completed = Column(Integer, default=0, nullable=False)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    started_at = Column(DateTime(timezone=True), nullable=True)
    completed_at = Column(DateTime(timezone=True), nullable=True)

    # Relationships
    subskills = relationship(
        "PlanSubskill",
        back_populates="plan",
        cascade="all, delete-orphan",
        order_by="PlanSubskill.order",
    )


class PlanSubskill(Base):
    """One unit of curriculum inside a plan."""

    __tablename__ = "plan_subskills"
    __table_args__ = (
        UniqueConstraint("plan_id", "order", name="uq_plan_subskills_plan_order"),
    )

    id = Column(Integer, primary_key=True, index=True)
    plan_id = Column(Integer, ForeignKey("lesson_plans.id", ondelete="CASCADE"), nullable=False)
    order = Column(Integer, nullable=False)
    title = Column(String, nullable=False)
    description = Column(Text, nullable=True)
    route = Column(enum_type(Route), default=Route.RECALL, nullable=False)
    route_status = Column(enum_type(RouteStatus), default=RouteStatus.LEARN, nullable=False)
    complexity = Column(Integer, default=2)  # 1-3
    status = Column(enum_type(SubskillStatus), default=SubskillStatus.PENDING, nullable=False)

    sessions_completed = Column(Integer, default=0, nullable=False)
    estimated_sessions = Column(Integer, default=3, nullable=False)
    last_session_date = Column(DateTime(timezone=True), nullable=True)

    assessment_score = Column(Integer, nullable=True)
    assessment_data = Column(JSON, nullable=True)  # area results, gaps, strengths, recommendation
    assessed_at = Column(DateTime(timezone=True), nullable=True)
    mastered_at = Column(DateTime(timezone=True), nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())

    # Relationships
    plan = relationship("LessonPlan", back_populates="subskills")
    assessments = relationship(
        "SubskillAssessment", back_populates="subskill", cascade="all, delete-orphan"
    )
    knowledge_checks = relationship(
        "KnowledgeCheck", back_populates="subskill", cascade="all, delete-orphan"
    )
    session_summaries = relationship(
        "SessionSummary", back_populates="subskill", cascade="all, delete-orphan"
    )
    lesson_plans = relationship(
        "SubskillLessonPlan", back_populates="subskill", cascade="all, delete-orphan"
    )

    @property
    def is_resolved(self) -> bool:
        return self.status in (SubskillStatus.MASTERED, SubskillStatus.SKIPPED)

    def transition_to(self, target: SubskillStatus) -> bool:
        """
        Move to ``target`` if the transition table allows it.

        Returns:
            True when the status changed, False for a same-status no-op

        Raises:
            InvalidTransitionError: If the transition is not allowed
        """
        current = SubskillStatus(self.status)
        if current == target:
            return False
        if target not in ALLOWED_TRANSITIONS[current]:
            raise InvalidTransitionError(
                f"Subskill {self.id} cannot move from {current.value} to {target.value}",
                context={"subskill_id": self.id, "from": current.value, "to": target.value},
            )
        self.status = target
        return True
