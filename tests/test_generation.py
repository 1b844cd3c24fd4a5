from types import SimpleNamespace

import pytest

from app.core.agents.runner import generation
from app.core.agents.runner.generation import LangChainGenerationClient, parse_llm_json
from app.core.exceptions import GenerationFailedError


class FakeLLM:
    def __init__(self, content=None, error=None):
        self.content = content
        self.error = error
        self.messages = None

    def invoke(self, messages):
        self.messages = messages
        if self.error is not None:
            raise self.error
        return SimpleNamespace(content=self.content)


@pytest.fixture
def fake_llm(monkeypatch):
    llm = FakeLLM()
    created = {}

    def create_llm(**kwargs):
        created.update(kwargs)
        return llm

    monkeypatch.setattr(generation.LLMFactory, "create_llm", staticmethod(create_llm))
    llm.created = created
    return llm


class TestParseLLMJson:
    def test_plain_object(self):
        assert parse_llm_json('{"a": 1}') == {"a": 1}

    def test_fenced_with_prose(self):
        text = 'Here you go:\n```json\n{"questions": []}\n```\nGood luck!'

        assert parse_llm_json(text) == {"questions": []}

    @pytest.mark.parametrize("text", ["no json here", "{broken: json}"])
    def test_unparseable(self, text):
        with pytest.raises(GenerationFailedError):
            parse_llm_json(text)


class TestLangChainGenerationClient:
    def test_returns_response_text(self, fake_llm):
        fake_llm.content = '  {"ok": true}  '

        text = LangChainGenerationClient().generate("system", "user", {"temperature": 0.7, "timeout": 5})

        assert text == '{"ok": true}'
        assert [m.content for m in fake_llm.messages] == ["system", "user"]
        assert fake_llm.created["temperature"] == 0.7
        assert fake_llm.created["timeout"] == 5
        assert fake_llm.created["tracing_project"] == "lesson-runner"

    def test_provider_error_is_wrapped(self, fake_llm):
        fake_llm.error = TimeoutError("timed out")

        with pytest.raises(GenerationFailedError) as exc_info:
            LangChainGenerationClient().generate("system", "user")

        assert exc_info.value.context["error"] == "timed out"

    def test_empty_response(self, fake_llm):
        fake_llm.content = "   "

        with pytest.raises(GenerationFailedError):
            LangChainGenerationClient().generate("system", "user")
