import pytest
from fastapi.testclient import TestClient
from jose import jwt

from app.core.config import settings
from app.core.dependencies import get_current_user_id, get_generation_client
from app.db.base import get_db
from app.main import app
from app.models import SubskillAssessment
from app.models.enums import RouteStatus, SubskillStatus
from tests.helpers import OTHER_USER_ID, USER_ID

PREFIX = f"{settings.API_V1_PREFIX}/runner"


@pytest.fixture
def client(db):
    app.dependency_overrides[get_db] = lambda: db
    app.dependency_overrides[get_current_user_id] = lambda: USER_ID
    app.dependency_overrides[get_generation_client] = lambda: None
    with TestClient(app) as test_client:
        yield test_client
    app.dependency_overrides.clear()


def correct_answers(db, assessment_id):
    assessment = db.query(SubskillAssessment).filter(SubskillAssessment.id == assessment_id).one()
    return [{"question_id": q["id"], "answer": q["correct_answer"]} for q in assessment.questions]


def test_health(client):
    assert client.get("/health").json() == {"status": "healthy"}


def test_assess_flow(client, make_plan, db):
    plan = make_plan([SubskillStatus.ASSESS, SubskillStatus.PENDING])
    subskill_id = plan.subskills[0].id

    started = client.post(f"{PREFIX}/subskills/{subskill_id}/start")
    assert started.status_code == 200
    body = started.json()
    assert body["route_type"] == "assess"
    assessment_id = body["assessment"]["id"]
    assert "correct_answer" not in body["assessment"]["questions"][0]

    early = client.get(f"{PREFIX}/assessments/{assessment_id}/results")
    assert early.status_code == 409
    assert early.json()["error_type"] == "InvalidTransitionError"

    submitted = client.post(
        f"{PREFIX}/assessments/{assessment_id}/submit",
        json={"answers": correct_answers(db, assessment_id)},
    )
    assert submitted.status_code == 200
    result = submitted.json()
    assert result["score"] == 100
    assert result["recommendation"] == {"kind": "autopass"}
    assert result["next_subskill_id"] == plan.subskills[1].id

    again = client.post(f"{PREFIX}/assessments/{assessment_id}/submit", json={"answers": []})
    assert again.json() == result

    results = client.get(f"{PREFIX}/assessments/{assessment_id}/results").json()
    assert all(q["is_correct"] for q in results["question_results"])


def test_skip_route(client, make_plan):
    plan = make_plan(
        [SubskillStatus.PENDING, SubskillStatus.PENDING],
        route_statuses=[RouteStatus.SKIP, RouteStatus.LEARN],
    )

    body = client.post(f"{PREFIX}/subskills/{plan.subskills[0].id}/start").json()

    assert body["route_type"] == "skip"
    assert body["subskill"]["status"] == "skipped"
    assert body["next_subskill"]["status"] == "active"


def test_learning_sessions_and_knowledge_check(client, make_plan, db):
    plan = make_plan([SubskillStatus.PENDING])
    subskill_id = plan.subskills[0].id

    learn = client.post(f"{PREFIX}/subskills/{subskill_id}/start").json()
    assert learn["route_type"] == "learn"
    assert learn["lesson_plan"]["is_remediation"] is False

    for _ in range(3):
        done = client.post(
            f"{PREFIX}/subskills/{subskill_id}/sessions/complete",
            json={"summary": "Practiced", "key_concepts": ["loops"]},
        )
        assert done.status_code == 200
    assert done.json()["is_knowledge_check_next"] is True

    today = client.get(f"{PREFIX}/today").json()
    assert today["is_knowledge_check_day"] is True
    assert today["session_number"] == 4

    history = client.get(f"{PREFIX}/subskills/{subskill_id}/sessions").json()
    assert [s["session_number"] for s in history] == [1, 2, 3]

    check = client.post(f"{PREFIX}/subskills/{subskill_id}/knowledge-check").json()
    failed = client.post(f"{PREFIX}/knowledge-checks/{check['id']}/submit", json={"answers": []}).json()
    assert failed["passed"] is False
    assert failed["can_retake"] is True

    progress = client.get(f"{PREFIX}/subskills/{subskill_id}/progress").json()
    assert progress["total_sessions"] == 5


def test_refresh_endpoints(client, make_plan):
    plan = make_plan([SubskillStatus.ACTIVE])
    subskill_id = plan.subskills[0].id

    status = client.get(f"{PREFIX}/subskills/{subskill_id}/refresh").json()
    assert status == {"needs_refresh": False, "gap_days": 0}

    content = client.get(f"{PREFIX}/subskills/{subskill_id}/refresh/content").json()
    assert content["estimated_minutes"] == 5

    completed = client.post(f"{PREFIX}/subskills/{subskill_id}/refresh/complete").json()
    assert completed == {"needs_refresh": False, "gap_days": 0}


def test_today_without_plan_is_null(client):
    response = client.get(f"{PREFIX}/today")

    assert response.status_code == 200
    assert response.json() is None


def test_other_learners_subskill_is_404(client, make_plan):
    plan = make_plan([SubskillStatus.PENDING], user_id=OTHER_USER_ID)

    response = client.post(f"{PREFIX}/subskills/{plan.subskills[0].id}/start")

    assert response.status_code == 404
    assert response.json()["context"] == {"subskill_id": plan.subskills[0].id}


def test_plan_progress_404(client):
    assert client.get(f"{PREFIX}/plans/999/progress").status_code == 404


def test_session_on_inactive_subskill_is_409(client, make_plan):
    plan = make_plan([SubskillStatus.ASSESS])

    response = client.post(f"{PREFIX}/subskills/{plan.subskills[0].id}/sessions/complete", json={})

    assert response.status_code == 409


def test_invalid_answer_payload_is_422(client):
    response = client.post(f"{PREFIX}/assessments/1/submit", json={"answers": [{"answer": "x"}]})

    assert response.status_code == 422


class TestAuth:
    @pytest.fixture
    def auth_client(self, db):
        app.dependency_overrides[get_db] = lambda: db
        app.dependency_overrides[get_generation_client] = lambda: None
        with TestClient(app) as test_client:
            yield test_client
        app.dependency_overrides.clear()

    def test_missing_token(self, auth_client):
        assert auth_client.get(f"{PREFIX}/today").status_code == 401

    def test_bad_token(self, auth_client):
        response = auth_client.get(f"{PREFIX}/today", headers={"Authorization": "Bearer nope"})

        assert response.status_code == 401

    def test_token_subject_scopes_plans(self, auth_client, make_plan):
        make_plan([SubskillStatus.ACTIVE], current_subskill_index=1)
        token = jwt.encode({"sub": USER_ID}, settings.SECRET_KEY, algorithm=settings.ALGORITHM)

        response = auth_client.get(f"{PREFIX}/today", headers={"Authorization": f"Bearer {token}"})

        assert response.status_code == 200
        assert response.json()["current_subskill"]["title"] == "Subskill 1"
