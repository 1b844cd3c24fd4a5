import os

# Must be set before any app module reads settings
os.environ["DATABASE_URL"] = "sqlite://"
os.environ["SECRET_KEY"] = "test-secret"
os.environ["OPENAI_API_KEY"] = ""

import pytest
from sqlalchemy import create_engine, event
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from app.models import Base, LessonPlan, PlanSubskill
from app.models.enums import Route, RouteStatus
from tests.helpers import USER_ID


@pytest.fixture
def engine():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=engine)
    yield engine
    Base.metadata.drop_all(bind=engine)
    engine.dispose()


@pytest.fixture
def db(engine):
    session = sessionmaker(autocommit=False, autoflush=False, bind=engine)()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def write_statements(engine):
    """Collects INSERT/UPDATE/DELETE statements issued while the fixture is active."""
    statements = []

    def before_cursor_execute(conn, cursor, statement, parameters, context, executemany):
        if statement.lstrip().upper().startswith(("INSERT", "UPDATE", "DELETE")):
            statements.append(statement)

    event.listen(engine, "before_cursor_execute", before_cursor_execute)
    yield statements
    event.remove(engine, "before_cursor_execute", before_cursor_execute)


@pytest.fixture
def make_plan(db):
    """Create a plan whose subskills have the given statuses, ordered 1..n."""

    def _make_plan(statuses, user_id=USER_ID, route_statuses=None, route=Route.RECALL, **plan_kwargs):
        plan = LessonPlan(user_id=user_id, title="Learn Python", **plan_kwargs)
        for i, status in enumerate(statuses, 1):
            plan.subskills.append(PlanSubskill(
                order=i,
                title=f"Subskill {i}",
                route=route,
                route_status=route_statuses[i - 1] if route_statuses else RouteStatus.LEARN,
                status=status,
                complexity=2,
                estimated_sessions=3,
            ))
        db.add(plan)
        db.commit()
        return plan

    return _make_plan
