"""
Model-generation collaborator.

Generators only depend on the ``GenerationClient`` protocol so tests can swap
in a fake; the default implementation talks to OpenAI through LangChain.
"""
import json
import logging
import re
from typing import Any, Dict, Optional, Protocol

from langchain_core.messages import HumanMessage, SystemMessage

from app.core.exceptions import GenerationFailedError
from app.core.llm_config import LLMFactory

logger = logging.getLogger(__name__)

_FENCE_RE = re.compile(r"```(?:json)?\s*", re.IGNORECASE)
_OBJECT_RE = re.compile(r"\{[\s\S]*\}")


class GenerationClient(Protocol):
    def generate(
        self,
        system_prompt: str,
        user_prompt: str,
        options: Optional[Dict[str, Any]] = None
    ) -> str:
        ...


class LangChainGenerationClient:
    """GenerationClient backed by ``ChatOpenAI``."""

    def __init__(self, tracing_project: str = "lesson-runner"):
        self.tracing_project = tracing_project

    def generate(
        self,
        system_prompt: str,
        user_prompt: str,
        options: Optional[Dict[str, Any]] = None
    ) -> str:
        """
        Send one system + user exchange and return the raw response text.

        Args:
            system_prompt: Instructions for the model
            user_prompt: Request body
            options: Optional overrides: ``temperature``, ``timeout``, ``model``

        Raises:
            GenerationFailedError: On any provider error (including timeouts)
                or an empty response
        """
        options = options or {}
        llm = LLMFactory.create_llm(
            model=options.get("model"),
            temperature=options.get("temperature"),
            timeout=options.get("timeout"),
            json_mode=True,
            tracing_project=self.tracing_project
        )

        messages = [
            SystemMessage(content=system_prompt),
            HumanMessage(content=user_prompt)
        ]

        try:
            response = llm.invoke(messages)
        except Exception as e:
            logger.error(f"LLM call failed: {e}")
            raise GenerationFailedError(
                "Model call failed",
                context={"error": str(e), "project": self.tracing_project}
            ) from e

        text = str(response.content).strip()
        if not text:
            raise GenerationFailedError("Model returned an empty response")
        return text


def parse_llm_json(response_text: str) -> Dict[str, Any]:
    """
    Extract the JSON object from a model response, ignoring markdown fences
    and any prose around it.

    Raises:
        GenerationFailedError: If no JSON object can be parsed
    """
    cleaned = _FENCE_RE.sub("", response_text).strip()
    match = _OBJECT_RE.search(cleaned)
    if not match:
        logger.error(f"No JSON found in response: {response_text[:200]}")
        raise GenerationFailedError("No JSON found in model response")

    try:
        return json.loads(match.group(0))
    except json.JSONDecodeError as e:
        logger.error(f"Failed to parse JSON: {match.group(0)[:200]}")
        raise GenerationFailedError(
            "Failed to parse JSON from model response",
            context={"error": str(e)}
        ) from e
