from app.core.agents.runner.schemas import UserAnswer
from app.models import SubskillAssessment

USER_ID = "user-1"
OTHER_USER_ID = "user-2"


class FakeGenerationClient:
    """Returns a canned response (or raises) and records every call."""

    def __init__(self, response=None, error=None):
        self.response = response
        self.error = error
        self.calls = []

    def generate(self, system_prompt, user_prompt, options=None):
        self.calls.append((system_prompt, user_prompt, options))
        if self.error is not None:
            raise self.error
        return self.response


def answers_for(db, assessment_id, correct_ids=None):
    """Answers for a stored assessment: correct for ``correct_ids`` (all if None), wrong otherwise."""
    assessment = db.query(SubskillAssessment).filter(SubskillAssessment.id == assessment_id).one()
    answers = []
    for q in assessment.questions:
        if correct_ids is None or q["id"] in correct_ids:
            answers.append(UserAnswer(question_id=q["id"], answer=q["correct_answer"]))
        else:
            answers.append(UserAnswer(question_id=q["id"], answer="definitely wrong"))
    return answers
