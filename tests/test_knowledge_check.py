import json

import pytest

from app.core.agents.runner.knowledge_check import (
    MAX_KNOWLEDGE_CHECK_QUESTIONS,
    MIN_KNOWLEDGE_CHECK_QUESTIONS,
    REMEDIATION_FEEDBACK,
    KnowledgeCheckHandler,
    fallback_questions,
)
from app.core.agents.runner.schemas import UserAnswer
from app.core.exceptions import NotFoundError
from app.models import KnowledgeCheck, PlanSubskill, SessionSummary
from app.models.enums import PlanStatus, SubskillStatus
from tests.helpers import OTHER_USER_ID, USER_ID, FakeGenerationClient


def check_answers(db, check_id, correct_count):
    """Right answers for the first ``correct_count`` questions, wrong for the rest."""
    check = db.query(KnowledgeCheck).filter(KnowledgeCheck.id == check_id).one()
    return [
        UserAnswer(question_id=q["id"], answer=q["correct_answer"] if i < correct_count else "no idea")
        for i, q in enumerate(check.questions)
    ]


def add_summaries(db, subskill, concepts_per_session):
    for number, concepts in enumerate(concepts_per_session, 1):
        db.add(SessionSummary(
            subskill_id=subskill.id,
            user_id=USER_ID,
            session_number=number,
            summary=f"Session {number} recap",
            key_concepts=concepts,
        ))
    db.commit()


@pytest.fixture
def handler(db):
    return KnowledgeCheckHandler(db)


class TestFallbackQuestions:
    def test_without_summaries(self):
        questions = fallback_questions(PlanSubskill(title="Recursion"), [])

        assert len(questions) == MIN_KNOWLEDGE_CHECK_QUESTIONS
        assert [q.id for q in questions[:5]] == ["b1", "b2", "b3", "a1", "a2"]
        assert questions[-1].id == "f10"

    def test_concepts_from_summaries(self):
        summaries = [
            SessionSummary(session_number=1, summary="", key_concepts=["base case", "call stack", "ignored"]),
            SessionSummary(session_number=2, summary="", key_concepts=["memoization"]),
        ]

        questions = fallback_questions(PlanSubskill(title="Recursion"), summaries)

        assert [q.area for q in questions[:3]] == ["base case", "call stack", "memoization"]
        assert len(questions) == MIN_KNOWLEDGE_CHECK_QUESTIONS
        assert len({q.id for q in questions}) == len(questions)

    def test_capped_at_fifteen(self):
        summaries = [
            SessionSummary(session_number=i, summary="", key_concepts=[f"c{i}a", f"c{i}b"])
            for i in range(1, 8)
        ]

        questions = fallback_questions(PlanSubskill(title="Recursion"), summaries)

        assert len(questions) == MAX_KNOWLEDGE_CHECK_QUESTIONS


class TestGetOrCreate:
    def test_creates_first_attempt(self, handler, make_plan):
        plan = make_plan([SubskillStatus.ACTIVE])

        view = handler.get_or_create(USER_ID, plan.subskills[0].id)

        assert view.attempt_number == 1
        assert not view.is_completed
        assert MIN_KNOWLEDGE_CHECK_QUESTIONS <= len(view.questions) <= MAX_KNOWLEDGE_CHECK_QUESTIONS
        assert "correct_answer" not in view.model_dump()["questions"][0]

    def test_returns_open_check(self, handler, make_plan, db):
        plan = make_plan([SubskillStatus.ACTIVE])
        subskill_id = plan.subskills[0].id

        first = handler.get_or_create(USER_ID, subskill_id)
        second = handler.get_or_create(USER_ID, subskill_id)

        assert first.id == second.id
        assert db.query(KnowledgeCheck).count() == 1

    def test_other_learner(self, handler, make_plan):
        plan = make_plan([SubskillStatus.ACTIVE], user_id=OTHER_USER_ID)

        with pytest.raises(NotFoundError):
            handler.get_or_create(USER_ID, plan.subskills[0].id)

    def test_model_questions_padded_to_minimum(self, db, make_plan):
        plan = make_plan([SubskillStatus.ACTIVE])
        client = FakeGenerationClient(response=json.dumps({"questions": [
            {"id": f"k{i}", "question": f"K{i}?", "options": ["x", "y"], "correct_answer": "x"}
            for i in range(1, 4)
        ]}))

        view = KnowledgeCheckHandler(db, client).get_or_create(USER_ID, plan.subskills[0].id)

        assert len(view.questions) == MIN_KNOWLEDGE_CHECK_QUESTIONS
        assert [q.id for q in view.questions[:3]] == ["k1", "k2", "k3"]
        assert len({q.id for q in view.questions}) == len(view.questions)

    def test_model_failure_falls_back(self, db, make_plan):
        plan = make_plan([SubskillStatus.ACTIVE])
        client = FakeGenerationClient(error=RuntimeError("quota exceeded"))

        view = KnowledgeCheckHandler(db, client).get_or_create(USER_ID, plan.subskills[0].id)

        assert view.questions[0].id == "b1"

    def test_retake_prompt_names_weak_areas(self, db, make_plan):
        plan = make_plan([SubskillStatus.ACTIVE])
        subskill = plan.subskills[0]
        add_summaries(db, subskill, [["base case", "call stack"]])
        handler = KnowledgeCheckHandler(db)
        first = handler.get_or_create(USER_ID, subskill.id)
        # c1 and c2 are the concept questions and are answered wrong
        answers = check_answers(db, first.id, 0)
        handler.submit(USER_ID, first.id, answers)

        client = FakeGenerationClient(error=RuntimeError("offline"))
        retake = KnowledgeCheckHandler(db, client).get_or_create(USER_ID, subskill.id)

        assert retake.attempt_number == 2
        user_prompt = client.calls[0][1]
        assert "WEAK AREAS" in user_prompt
        assert "- base case" in user_prompt


class TestSubmit:
    def test_pass_masters_subskill_and_activates_next(self, handler, make_plan, db):
        plan = make_plan([SubskillStatus.ACTIVE, SubskillStatus.PENDING])
        subskill, nxt = plan.subskills
        check = handler.get_or_create(USER_ID, subskill.id)

        result = handler.submit(USER_ID, check.id, check_answers(db, check.id, 7))

        assert result.passed
        assert result.score == 70
        assert not result.can_retake
        assert result.next_subskill_id == nxt.id
        assert not result.is_plan_complete
        db.refresh(subskill)
        assert subskill.status == SubskillStatus.MASTERED
        assert subskill.mastered_at is not None
        assert nxt.status == SubskillStatus.ACTIVE
        db.refresh(plan)
        assert plan.current_subskill_index == 2
        assert plan.progress == 0.5

    def test_pass_on_last_subskill_completes_plan(self, handler, make_plan, db):
        plan = make_plan([SubskillStatus.SKIPPED, SubskillStatus.ACTIVE])
        check = handler.get_or_create(USER_ID, plan.subskills[1].id)

        result = handler.submit(USER_ID, check.id, check_answers(db, check.id, 10))

        assert result.is_plan_complete
        db.refresh(plan)
        assert plan.status == PlanStatus.COMPLETED

    def test_fail_adds_remediation_session(self, handler, make_plan, db):
        plan = make_plan([SubskillStatus.ACTIVE, SubskillStatus.PENDING])
        subskill = plan.subskills[0]
        check = handler.get_or_create(USER_ID, subskill.id)

        result = handler.submit(USER_ID, check.id, check_answers(db, check.id, 6))

        assert not result.passed
        assert result.score == 60
        assert result.can_retake
        assert len(result.missed_questions) == 4
        assert result.feedback[-1] == REMEDIATION_FEEDBACK
        db.refresh(subskill)
        assert subskill.status == SubskillStatus.ACTIVE
        assert subskill.estimated_sessions == 4
        assert plan.subskills[1].status == SubskillStatus.PENDING

    def test_failed_attempt_allows_a_new_check(self, handler, make_plan, db):
        plan = make_plan([SubskillStatus.ACTIVE])
        subskill_id = plan.subskills[0].id
        first = handler.get_or_create(USER_ID, subskill_id)
        handler.submit(USER_ID, first.id, [])

        retake = handler.get_or_create(USER_ID, subskill_id)

        assert retake.id != first.id
        assert retake.attempt_number == 2

    def test_resubmit_returns_stored_result_without_writes(self, handler, make_plan, db, write_statements):
        plan = make_plan([SubskillStatus.ACTIVE])
        check = handler.get_or_create(USER_ID, plan.subskills[0].id)
        first = handler.submit(USER_ID, check.id, check_answers(db, check.id, 5))
        write_statements.clear()

        second = handler.submit(USER_ID, check.id, check_answers(db, check.id, 10))

        assert second == first
        assert write_statements == []
        db.refresh(plan)
        assert plan.subskills[0].estimated_sessions == 4

    def test_unknown_check(self, handler):
        with pytest.raises(NotFoundError):
            handler.submit(USER_ID, 12345, [])

    def test_other_learners_check(self, handler, make_plan):
        plan = make_plan([SubskillStatus.ACTIVE])
        check = handler.get_or_create(USER_ID, plan.subskills[0].id)

        with pytest.raises(NotFoundError):
            handler.submit(OTHER_USER_ID, check.id, [])
