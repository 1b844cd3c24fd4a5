"""
Subskill lesson runner modules.
"""
from .assessment_generator import AssessmentGenerator
from .generation import LangChainGenerationClient
from .knowledge_check import KnowledgeCheckHandler
from .lesson_planner import DefaultLessonPlanner
from .progress_tracker import ProgressTracker
from .refresh import RefreshHandler, needs_refresh
from .session_tracker import SessionTracker
from .subskill_router import SubskillRouter

__all__ = [
    "AssessmentGenerator",
    "LangChainGenerationClient",
    "KnowledgeCheckHandler",
    "DefaultLessonPlanner",
    "ProgressTracker",
    "RefreshHandler",
    "needs_refresh",
    "SessionTracker",
    "SubskillRouter",
]
