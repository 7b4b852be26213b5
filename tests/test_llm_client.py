from __future__ import annotations

import json
from typing import Any, Dict

import pytest

from prbot.models.llm_client import (
    LLMRequest,
    LLMResponseFormatError,
    LLMRetryError,
    LLMTransportError,
    parse_json_payload,
)
from prbot.models.openai_chat import OpenAIChatClient
from prbot.models.plan_source import ModelPlanSource
from prbot.plan import PlanLimits


def _chat_response(content: str) -> str:
    return json.dumps(
        {
            "id": "chatcmpl-mock",
            "object": "chat.completion",
            "choices": [
                {
                    "index": 0,
                    "message": {"role": "assistant", "content": content},
                    "finish_reason": "stop",
                }
            ],
        }
    )


def test_chat_client_returns_message_content() -> None:
    captured: list[Dict[str, Any]] = []

    def transport(payload: Dict[str, Any]) -> str:
        captured.append(payload)
        return _chat_response('{"changes": []}')

    client = OpenAIChatClient(model="gpt-4o-mini", transport=transport)
    text = client.complete(LLMRequest(prompt="task", system_prompt="rules", temperature=0.2))

    assert text == '{"changes": []}'
    payload = captured[0]
    assert payload["model"] == "gpt-4o-mini"
    assert payload["temperature"] == 0.2
    assert payload["messages"] == [
        {"role": "system", "content": "rules"},
        {"role": "user", "content": "task"},
    ]
    assert payload["response_format"] == {"type": "json_object"}


def test_chat_client_returns_empty_text_when_no_choices() -> None:
    client = OpenAIChatClient(transport=lambda _: json.dumps({"choices": []}))

    assert client.complete(LLMRequest(prompt="task")) == ""


def test_chat_client_retries_transport_errors_then_succeeds() -> None:
    attempts = {"count": 0}

    def transport(_: Dict[str, Any]) -> str:
        attempts["count"] += 1
        if attempts["count"] < 3:
            raise LLMTransportError("flaky")
        return _chat_response("ok")

    client = OpenAIChatClient(transport=transport, max_attempts=3, retry_delay=0)

    assert client.complete(LLMRequest(prompt="task")) == "ok"
    assert attempts["count"] == 3


def test_chat_client_raises_after_exhausting_retries() -> None:
    def transport(_: Dict[str, Any]) -> str:
        raise LLMTransportError("down")

    client = OpenAIChatClient(transport=transport, max_attempts=2, retry_delay=0)

    with pytest.raises(LLMRetryError) as excinfo:
        client.complete(LLMRequest(prompt="task"))
    assert isinstance(excinfo.value.__cause__, LLMTransportError)


def test_chat_client_requires_api_key_for_default_transport() -> None:
    with pytest.raises(ValueError, match="API key"):
        OpenAIChatClient()


def test_parse_json_payload_strips_fences_and_prose() -> None:
    assert parse_json_payload('```json\n{"changes": []}\n```') == {"changes": []}
    assert parse_json_payload('Here you go: {"changes": [],}') == {"changes": []}
    assert parse_json_payload("“not”") == "not"


def test_parse_json_payload_rejects_prose() -> None:
    with pytest.raises(LLMResponseFormatError):
        parse_json_payload("not json")
    with pytest.raises(LLMResponseFormatError):
        parse_json_payload("   ")


def test_model_plan_source_renders_prompts() -> None:
    captured: list[Dict[str, Any]] = []

    def transport(payload: Dict[str, Any]) -> str:
        captured.append(payload)
        return _chat_response('{"changes": []}')

    source = ModelPlanSource(
        OpenAIChatClient(transport=transport),
        limits=PlanLimits(max_files=3, max_lines=100),
    )

    raw = source.propose_plan("Fix typo", actor="octocat", context="--- a.py ---\nx = 1\n")

    assert raw == '{"changes": []}'
    system, user = captured[0]["messages"]
    assert "Edit max 3 files, max 100 lines total." in system["content"]
    assert "Never touch lockfiles or secrets." in system["content"]
    assert user["content"].startswith("Task from @octocat: Fix typo")
    assert "--- a.py ---" in user["content"]
    assert user["content"].endswith("Return ONLY JSON.")
