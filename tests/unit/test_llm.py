"""Unit tests for LLM response parsing and provider selection."""

import pytest

from vellum.utils import llm
from vellum.utils.llm import (
    api_key_configured,
    get_provider,
    parse_array_response,
    parse_dict_response,
    strip_code_fences,
)


@pytest.mark.unit
def test_strip_code_fences():
    assert strip_code_fences('```json\n{"a": 1}\n```') == '{"a": 1}'
    assert strip_code_fences("plain") == "plain"


@pytest.mark.unit
def test_parse_array_response():
    assert parse_array_response('[{"a": 1}]') == [{"a": 1}]
    assert parse_array_response('```json\n["x", "y"]\n```') == ["x", "y"]
    assert parse_array_response('Here you go: [1, 2] enjoy') == [1, 2]
    assert parse_array_response("no array") == []
    assert parse_array_response('{"not": "a list"}') == []


@pytest.mark.unit
def test_parse_dict_response():
    assert parse_dict_response('{"score": 80}') == {"score": 80}
    assert parse_dict_response('Analysis:\n{"score": 80}\nThanks') == {"score": 80}
    assert parse_dict_response("garbage") == {}
    assert parse_dict_response("garbage", fallback_dict={"score": 0}) == {"score": 0}


@pytest.mark.unit
def test_unknown_provider():
    with pytest.raises(ValueError):
        get_provider("cohere")


@pytest.mark.unit
def test_api_key_configured(monkeypatch):
    monkeypatch.setenv("OPENAI_API_KEY", "sk-test")
    monkeypatch.delenv("ANTHROPIC_API_KEY", raising=False)

    assert api_key_configured("openai") is True
    assert api_key_configured("anthropic") is False
    assert api_key_configured("cohere") is False


@pytest.mark.unit
def test_retry_with_backoff(monkeypatch):
    monkeypatch.setattr(llm.time, "sleep", lambda seconds: None)
    attempts = []

    def flaky():
        attempts.append(1)
        if len(attempts) < 3:
            raise ConnectionError("overloaded")
        return "ok"

    assert llm._retry_with_backoff(flaky, ConnectionError, "Overloaded") == "ok"
    assert len(attempts) == 3


@pytest.mark.unit
def test_retry_gives_up(monkeypatch):
    monkeypatch.setattr(llm.time, "sleep", lambda seconds: None)

    def always_fails():
        raise ConnectionError("overloaded")

    with pytest.raises(ConnectionError):
        llm._retry_with_backoff(always_fails, ConnectionError, "Overloaded")


@pytest.mark.unit
def test_non_retryable_errors_propagate_immediately(monkeypatch):
    monkeypatch.setattr(llm.time, "sleep", lambda seconds: None)
    attempts = []

    def broken():
        attempts.append(1)
        raise KeyError("bad request")

    with pytest.raises(KeyError):
        llm._retry_with_backoff(broken, ConnectionError, "Overloaded")
    assert len(attempts) == 1


@pytest.mark.unit
def test_missing_api_key(monkeypatch):
    monkeypatch.delenv("OPENAI_API_KEY", raising=False)

    with pytest.raises(ValueError, match="OPENAI_API_KEY"):
        get_provider("openai")
