"""
Prompts for diagnostic tests, knowledge checks and refresh content.
"""
from typing import List, Sequence

from app.models import LessonPlan, PlanSubskill, SessionSummary


# System prompt for diagnostic generation
DIAGNOSTIC_SYSTEM_PROMPT = """You are an expert assessment designer creating diagnostic tests.

Your task is to create questions that accurately assess a learner's CURRENT knowledge level before they study a topic. This helps determine if they can skip ahead or need to learn from scratch.

## Output Format
Respond with JSON only:
{
  "questions": [
    {
      "id": "q1",
      "area": "Concept Area Being Tested",
      "question": "Question text",
      "type": "multiple_choice",
      "options": ["Option A", "Option B", "Option C", "Option D"],
      "correct_answer": "Option A",
      "explanation": "Why this is correct",
      "difficulty": 1
    }
  ]
}

## Guidelines
- Create 8-12 questions
- Mix difficulty levels: 1=basic (30%), 2=intermediate (50%), 3=advanced (20%)
- Cover different concept areas within the subskill
- Each question should test understanding, not just terminology
- Allowed types: multiple_choice, true_false, short_answer, ordering
- For ordering questions, correct_answer is the list of options in the right order
- Results will determine: skip (85% or more), targeted remediation (50-84%), or full learning (below 50%)"""


DIAGNOSTIC_USER_PROMPT = """Create a diagnostic test for:

## SUBSKILL
Title: {title}
{description}Route: {route}
Complexity: {complexity}/3

## ROUTE GUIDANCE
{route_guidance}

## PLAN CONTEXT
Plan: {plan_title}
{capstone}Difficulty: {difficulty}

## PURPOSE
This diagnostic determines if the learner:
- Already knows this (85% or more) -> can skip
- Knows some (50-84%) -> targeted remediation on gaps
- Needs to learn (below 50%) -> full learning path

Create questions that accurately assess their current knowledge across different aspects of "{title}"."""


KNOWLEDGE_CHECK_SYSTEM_PROMPT = """You are an expert assessment designer creating mastery tests.

Your task is to create questions that verify a learner has achieved mastery of a subskill. Questions should test understanding and application, not just recall.

## Output Format
Respond with JSON only:
{
  "questions": [
    {
      "id": "q1",
      "area": "The concept this tests",
      "question": "Clear, specific question text",
      "type": "multiple_choice",
      "options": ["Option A", "Option B", "Option C", "Option D"],
      "correct_answer": "Option A",
      "explanation": "Why this is correct and why others are wrong"
    }
  ]
}

## Guidelines
- Create 10-15 questions
- Mix question types: primarily multiple_choice (70%), some true_false (30%)
- Questions should test APPLICATION and UNDERSTANDING, not just memorization
- Every question must have a clear, educational explanation
- Distribute questions across all key concepts from the sessions
- Wrong answers (distractors) should be plausible but clearly incorrect
- Passing threshold is 70%"""


REFRESH_SYSTEM_PROMPT = """You are helping a learner refresh their memory after a break from studying.

Your task is to create a brief review that reactivates their knowledge before continuing.

## Output Format
Respond with JSON only:
{
  "summary": "Warm, encouraging welcome-back message that briefly recaps what they learned",
  "recall_questions": [
    "Question that prompts active recall of concept 1",
    "Question that prompts active recall of concept 2"
  ],
  "quick_tips": [
    "Brief tip to remember concept 1"
  ],
  "estimated_minutes": 5
}

## Guidelines
- Keep it brief (5 minutes max)
- Focus on active recall (questions they answer mentally)
- Don't overwhelm - just reactivate, don't re-teach"""


ROUTE_GUIDANCE = {
    "recall": "RECALL - memory and retrieval. Test: can they recall without prompts?",
    "practice": "PRACTICE - procedural skill. Test: can they execute the procedure correctly?",
    "diagnose": "DIAGNOSE - pattern recognition. Test: can they identify issues and patterns?",
    "apply": "APPLY - transfer to new situations. Test: can they handle unfamiliar situations?",
    "build": "BUILD - creation and synthesis. Test: can they create a working artifact?",
    "refine": "REFINE - quality and improvement. Test: can they improve work to meet standards?",
    "plan": "PLAN - organization and strategy. Test: can they create effective plans?",
}


def _value(field) -> str:
    return getattr(field, "value", field)


def build_diagnostic_user_message(subskill: PlanSubskill, plan: LessonPlan) -> str:
    route = _value(subskill.route)
    return DIAGNOSTIC_USER_PROMPT.format(
        title=subskill.title,
        description=f"Description: {subskill.description}\n" if subskill.description else "",
        route=route,
        complexity=subskill.complexity or 2,
        route_guidance=ROUTE_GUIDANCE.get(route, "Focus on understanding and practical application."),
        plan_title=plan.title,
        capstone=f'Goal: "{plan.capstone_statement}"\n' if plan.capstone_statement else "",
        difficulty=plan.difficulty or "intermediate"
    )


def build_knowledge_check_user_message(
    subskill: PlanSubskill,
    plan: LessonPlan,
    summaries: Sequence[SessionSummary],
    weak_areas: Sequence[str]
) -> str:
    goal = f'Goal: "{plan.capstone_statement}"' if plan.capstone_statement else f"Plan: {plan.title}"
    lines = [
        "Create a mastery test for:",
        "",
        "## SUBSKILL",
        f"Title: {subskill.title}",
        f"Route: {_value(subskill.route)}",
        f"Complexity: {subskill.complexity or 2}/3",
        "",
        "## CAPSTONE CONTEXT",
        goal,
    ]

    if summaries:
        concepts: List[str] = []
        lines += ["", "## SESSION SUMMARIES"]
        for summary in summaries:
            lines.append(f"Session {summary.session_number}: {summary.summary}")
            concepts += [c for c in summary.key_concepts or [] if c not in concepts]
        lines += ["", "## KEY CONCEPTS TO TEST"] + [f"- {c}" for c in concepts]

    if weak_areas:
        lines += ["", "## INCLUDE QUESTIONS ON THESE WEAK AREAS"] + [f"- {a}" for a in weak_areas]

    return "\n".join(lines)


def build_refresh_user_message(
    subskill: PlanSubskill,
    plan: LessonPlan,
    summaries: Sequence[SessionSummary],
    gap_days: int
) -> str:
    lines = [
        f"Create refresh content for a learner returning after {gap_days} days:",
        "",
        "## CONTEXT",
        f"Subskill: {subskill.title}",
        f"Plan: {plan.title}",
    ]
    if plan.capstone_statement:
        lines.append(f'Goal: "{plan.capstone_statement}"')

    if summaries:
        lines += ["", "## WHAT THEY PREVIOUSLY LEARNED"]
        for summary in summaries:
            lines.append(f"Session {summary.session_number}: {summary.summary}")
            lines.append(f"Concepts: {', '.join(summary.key_concepts or [])}")

    return "\n".join(lines)
