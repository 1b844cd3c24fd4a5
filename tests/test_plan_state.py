import pytest

from app.core.agents.runner.plan_state import (
    activate_next,
    advance_plan,
    complete_plan_if_resolved,
    count_subskills,
    find_next_subskill,
    load_subskill,
)
from app.core.exceptions import InvalidTransitionError, NotFoundError
from app.models import PlanSubskill
from app.models.enums import PlanStatus, SubskillStatus
from tests.helpers import OTHER_USER_ID, USER_ID


class TestTransitions:
    @pytest.mark.parametrize("current,target", [
        (SubskillStatus.PENDING, SubskillStatus.ACTIVE),
        (SubskillStatus.PENDING, SubskillStatus.ASSESS),
        (SubskillStatus.PENDING, SubskillStatus.SKIPPED),
        (SubskillStatus.ASSESS, SubskillStatus.ACTIVE),
        (SubskillStatus.ASSESS, SubskillStatus.MASTERED),
        (SubskillStatus.ACTIVE, SubskillStatus.MASTERED),
        (SubskillStatus.MASTERED, SubskillStatus.ACTIVE),
    ])
    def test_allowed(self, current, target):
        subskill = PlanSubskill(status=current)

        assert subskill.transition_to(target) is True
        assert subskill.status == target

    @pytest.mark.parametrize("current,target", [
        (SubskillStatus.SKIPPED, SubskillStatus.ACTIVE),
        (SubskillStatus.SKIPPED, SubskillStatus.MASTERED),
        (SubskillStatus.MASTERED, SubskillStatus.PENDING),
        (SubskillStatus.ACTIVE, SubskillStatus.PENDING),
        (SubskillStatus.ACTIVE, SubskillStatus.ASSESS),
    ])
    def test_rejected(self, current, target):
        subskill = PlanSubskill(status=current)

        with pytest.raises(InvalidTransitionError) as exc_info:
            subskill.transition_to(target)

        assert exc_info.value.context["from"] == current.value
        assert subskill.status == current

    def test_same_status_is_a_no_op(self):
        subskill = PlanSubskill(status=SubskillStatus.SKIPPED)

        assert subskill.transition_to(SubskillStatus.SKIPPED) is False


def test_load_subskill_scopes_to_owner(db, make_plan):
    plan = make_plan([SubskillStatus.PENDING])
    subskill_id = plan.subskills[0].id

    subskill, loaded_plan = load_subskill(db, USER_ID, subskill_id)

    assert subskill.id == subskill_id
    assert loaded_plan.id == plan.id
    with pytest.raises(NotFoundError):
        load_subskill(db, OTHER_USER_ID, subskill_id)


def test_find_next_skips_resolved(db, make_plan):
    plan = make_plan([
        SubskillStatus.ACTIVE,
        SubskillStatus.MASTERED,
        SubskillStatus.SKIPPED,
        SubskillStatus.ASSESS,
    ])

    assert find_next_subskill(db, plan.subskills[0]).order == 4
    assert find_next_subskill(db, plan.subskills[3]) is None


def test_count_subskills(db, make_plan):
    plan = make_plan([
        SubskillStatus.MASTERED,
        SubskillStatus.MASTERED,
        SubskillStatus.SKIPPED,
        SubskillStatus.ACTIVE,
        SubskillStatus.PENDING,
    ])

    assert count_subskills(db, plan.id) == (3, 5)


def test_activate_next_keeps_assess_target(db, make_plan):
    plan = make_plan([SubskillStatus.MASTERED, SubskillStatus.ASSESS])

    target = activate_next(db, plan.subskills[0], plan)

    assert target.status == SubskillStatus.ASSESS
    assert plan.current_subskill_index == 2


def test_activate_next_activates_pending_target(db, make_plan):
    plan = make_plan([SubskillStatus.MASTERED, SubskillStatus.PENDING])

    target = activate_next(db, plan.subskills[0], plan)

    assert target.status == SubskillStatus.ACTIVE


class TestCompletePlan:
    def test_completes_when_everything_resolved(self, db, make_plan):
        plan = make_plan([SubskillStatus.MASTERED, SubskillStatus.SKIPPED])

        assert complete_plan_if_resolved(db, plan)
        assert plan.status == PlanStatus.COMPLETED
        assert plan.progress == 1.0
        assert plan.completed_at is not None

    def test_unresolved_earlier_subskill_blocks_completion(self, db, make_plan):
        plan = make_plan([SubskillStatus.ASSESS, SubskillStatus.MASTERED])

        assert not complete_plan_if_resolved(db, plan)
        assert plan.status == PlanStatus.ACTIVE

    def test_already_completed_plan_keeps_timestamp(self, db, make_plan):
        plan = make_plan([SubskillStatus.MASTERED])
        complete_plan_if_resolved(db, plan)
        db.commit()
        completed_at = plan.completed_at

        assert complete_plan_if_resolved(db, plan)
        assert plan.completed_at == completed_at


def test_advance_plan_recomputes_progress(db, make_plan):
    plan = make_plan([SubskillStatus.ACTIVE, SubskillStatus.PENDING, SubskillStatus.PENDING, SubskillStatus.PENDING])
    first = plan.subskills[0]
    first.transition_to(SubskillStatus.MASTERED)

    next_subskill, plan_completed = advance_plan(db, first, plan)

    assert next_subskill.order == 2
    assert not plan_completed
    assert plan.progress == 0.25
