from __future__ import annotations

from types import SimpleNamespace
from typing import Any, Dict, List, Optional

import pytest
from openai import OpenAIError

from agents.page_analyzer_agent import SCORING_SCHEMA
from app.config import Settings
from services.llm_client import ScoringClient, ScoringError, build_openai_client


# -----------------------------
# Test doubles
# -----------------------------
class FakeCompletions:
    def __init__(self, content: Optional[str] = "{}", error: Optional[Exception] = None):
        self.content = content
        self.error = error
        self.calls: List[Dict[str, Any]] = []

    def create(self, **kwargs):
        self.calls.append(kwargs)
        if self.error:
            raise self.error
        message = SimpleNamespace(content=self.content)
        return SimpleNamespace(
            choices=[SimpleNamespace(message=message)],
            usage=SimpleNamespace(total_tokens=123),
        )


def fake_openai(completions: FakeCompletions):
    return SimpleNamespace(chat=SimpleNamespace(completions=completions))


# -----------------------------
# ScoringClient
# -----------------------------
def test_score_sends_strict_json_schema_and_returns_text():
    completions = FakeCompletions(content='{"summary": "ok"}')
    client = ScoringClient(fake_openai(completions), model="gpt-test")

    text = client.score("PROMPT", SCORING_SCHEMA)

    assert text == '{"summary": "ok"}'
    call = completions.calls[0]
    assert call["model"] == "gpt-test"
    assert call["response_format"]["type"] == "json_schema"
    assert call["response_format"]["json_schema"]["strict"] is True
    assert call["response_format"]["json_schema"]["schema"] is SCORING_SCHEMA
    assert call["messages"][-1] == {"role": "user", "content": "PROMPT"}


def test_score_without_client_raises():
    with pytest.raises(ScoringError):
        ScoringClient(None).score("PROMPT", SCORING_SCHEMA)


def test_score_wraps_sdk_errors():
    completions = FakeCompletions(error=OpenAIError("rate limited"))

    with pytest.raises(ScoringError) as exc:
        ScoringClient(fake_openai(completions)).score("PROMPT", SCORING_SCHEMA)

    assert "rate limited" in str(exc.value)


def test_score_empty_content_raises():
    completions = FakeCompletions(content=None)

    with pytest.raises(ScoringError):
        ScoringClient(fake_openai(completions)).score("PROMPT", SCORING_SCHEMA)


# -----------------------------
# build_openai_client
# -----------------------------
def test_build_openai_client_without_key_returns_none():
    assert build_openai_client(Settings(_env_file=None, openai_api_key=None)) is None


def test_build_openai_client_creates_new_instance_each_call():
    settings = Settings(_env_file=None, openai_api_key="sk-test")

    a = build_openai_client(settings)
    b = build_openai_client(settings)

    assert a is not None
    assert a is not b
