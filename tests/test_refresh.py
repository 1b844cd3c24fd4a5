import json
from datetime import datetime, timedelta, timezone

import pytest

from app.core.agents.runner.refresh import RefreshHandler, needs_refresh
from app.models import PlanSubskill, SessionSummary
from app.models.enums import SubskillStatus
from tests.helpers import USER_ID, FakeGenerationClient

NOW = datetime(2024, 3, 20, 12, 0, tzinfo=timezone.utc)


class TestNeedsRefresh:
    def test_never_studied(self):
        assert needs_refresh(PlanSubskill(last_session_date=None), NOW) == (False, 0)

    def test_exactly_seven_days(self):
        subskill = PlanSubskill(last_session_date=NOW - timedelta(days=7))

        assert needs_refresh(subskill, NOW) == (True, 7)

    def test_just_under_seven_days(self):
        subskill = PlanSubskill(last_session_date=NOW - timedelta(days=7) + timedelta(minutes=1))

        assert needs_refresh(subskill, NOW) == (False, 6)

    def test_naive_timestamps_are_utc(self):
        subskill = PlanSubskill(last_session_date=datetime(2024, 3, 10, 12, 0))

        assert needs_refresh(subskill, NOW) == (True, 10)

    def test_future_timestamp_clamps_to_zero(self):
        subskill = PlanSubskill(last_session_date=NOW + timedelta(days=2))

        assert needs_refresh(subskill, NOW) == (False, 0)


@pytest.fixture
def stale_subskill(make_plan, db):
    plan = make_plan([SubskillStatus.ACTIVE])
    subskill = plan.subskills[0]
    subskill.last_session_date = datetime.now(timezone.utc) - timedelta(days=10)
    db.add_all([
        SessionSummary(subskill_id=subskill.id, user_id=USER_ID, session_number=1,
                       summary="Covered list basics.", key_concepts=["lists", "indexing"]),
        SessionSummary(subskill_id=subskill.id, user_id=USER_ID, session_number=2,
                       summary="Covered slicing.", key_concepts=["slicing", "lists"]),
    ])
    db.commit()
    return subskill


class TestRefreshHandler:
    def test_check(self, db, stale_subskill):
        check = RefreshHandler(db).check(USER_ID, stale_subskill.id)

        assert check.needed
        assert check.gap_days == 10

    def test_fallback_content(self, db, stale_subskill):
        content = RefreshHandler(db).generate_content(USER_ID, stale_subskill.id)

        assert content.gap_days == 10
        assert content.estimated_minutes == 5
        assert content.previous_sessions_summary == ["Covered slicing.", "Covered list basics."]
        assert content.recall_questions[0] == 'What do you remember about "slicing"?'
        assert len(content.recall_questions) == 5
        assert "about a week" in content.summary

    def test_long_gap_fallback_mentions_days(self, db, stale_subskill):
        stale_subskill.last_session_date = datetime.now(timezone.utc) - timedelta(days=20)
        db.commit()

        content = RefreshHandler(db).generate_content(USER_ID, stale_subskill.id)

        assert "20 days" in content.summary

    def test_model_content(self, db, stale_subskill):
        client = FakeGenerationClient(response=json.dumps({
            "summary": "You learned lists.",
            "recall_questions": ["What is a slice?", "How do you index?"],
            "quick_tips": ["Use negative indexes"],
            "estimated_minutes": 4,
        }))

        content = RefreshHandler(db, client).generate_content(USER_ID, stale_subskill.id)

        assert content.summary == "You learned lists."
        assert content.recall_questions == ["What is a slice?", "How do you index?"]
        assert content.estimated_minutes == 4
        assert "slicing" in client.calls[0][1]

    def test_model_without_recall_questions_falls_back(self, db, stale_subskill):
        client = FakeGenerationClient(response=json.dumps({"summary": "Hi", "recall_questions": []}))

        content = RefreshHandler(db, client).generate_content(USER_ID, stale_subskill.id)

        assert content.quick_tips[0].startswith("Take a moment")

    def test_complete_resets_gap(self, db, stale_subskill):
        check = RefreshHandler(db).complete(USER_ID, stale_subskill.id)

        assert check == (False, 0)
        assert stale_subskill.sessions_completed == 0
