"""
Typed errors raised by the lesson runner.

Each error carries a ``context`` dict that is logged and returned to API
clients alongside the message.
"""
from typing import Any, Dict, Optional


class LessonRunnerError(Exception):
    """Base error for subskill routing and assessment."""

    def __init__(self, message: str, context: Optional[Dict[str, Any]] = None):
        super().__init__(message)
        self.context = context or {}

    def to_dict(self) -> Dict[str, Any]:
        return {
            "error_type": self.__class__.__name__,
            "message": str(self),
            "context": self.context,
        }


class NotFoundError(LessonRunnerError):
    """Record is missing or belongs to a different user."""
    pass


class InvalidTransitionError(LessonRunnerError):
    """Subskill (or assessment) cannot move to the requested state."""
    pass


class GenerationFailedError(LessonRunnerError):
    """Model collaborator failed or returned unusable output.

    Never surfaced to learners: generators catch it and fall back to
    deterministic templates.
    """
    pass
