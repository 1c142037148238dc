"""
Unit tests for the gateway client.

HTTP is served by httpx.MockTransport; no network calls are made.
"""
import json
from typing import Any, Dict

import httpx
import pytest
from pydantic import BaseModel

from app.services.providers.errors import (
    ProviderCallError,
    ProviderResponseError,
    ProviderTimeoutError,
    SchemaValidationError,
)
from app.services.providers.llm_client import GatewayClient, _strip_code_fence


def completion(content: str) -> Dict[str, Any]:
    return {"choices": [{"message": {"role": "assistant", "content": content}}]}


def make_client(handler, api_key: str = "test-key") -> GatewayClient:
    return GatewayClient(
        api_base="https://gateway.test/v1/",
        api_key=api_key,
        timeout_seconds=5.0,
        transport=httpx.MockTransport(handler),
    )


class QuestionSet(BaseModel):
    questions: list


MESSAGES = [{"role": "user", "content": "Generate questions"}]


@pytest.mark.asyncio
async def test_chat_sends_model_and_auth():
    seen = {}

    def handler(request: httpx.Request) -> httpx.Response:
        seen["url"] = str(request.url)
        seen["auth"] = request.headers.get("Authorization")
        seen["body"] = json.loads(request.content)
        return httpx.Response(200, json=completion("{}"))

    client = make_client(handler)
    await client.chat(
        "openai",
        "openai/gpt-5-mini",
        MESSAGES,
        max_tokens=256,
        response_format={"type": "json_object"},
    )

    assert seen["url"] == "https://gateway.test/v1/chat/completions"
    assert seen["auth"] == "Bearer test-key"
    assert seen["body"]["model"] == "openai/gpt-5-mini"
    assert seen["body"]["max_tokens"] == 256
    assert seen["body"]["response_format"] == {"type": "json_object"}


@pytest.mark.asyncio
async def test_generate_json_parses_content():
    client = make_client(lambda request: httpx.Response(200, json=completion('{"questions": [1, 2]}')))

    result = await client.generate_json("gemini", "google/gemini-2.5-flash", MESSAGES)

    assert result == {"questions": [1, 2]}


@pytest.mark.asyncio
async def test_generate_json_strips_code_fence():
    content = '```json\n{"questions": []}\n```'
    client = make_client(lambda request: httpx.Response(200, json=completion(content)))

    result = await client.generate_json("gemini", "google/gemini-2.5-flash", MESSAGES)

    assert result == {"questions": []}


@pytest.mark.asyncio
async def test_generate_json_applies_validator():
    client = make_client(lambda request: httpx.Response(200, json=completion('{"questions": ["q1"]}')))

    result = await client.generate_json(
        "gemini",
        "google/gemini-2.5-flash",
        MESSAGES,
        validator=QuestionSet.model_validate,
    )

    assert isinstance(result, QuestionSet)
    assert result.questions == ["q1"]


@pytest.mark.asyncio
async def test_invalid_json_content_is_schema_error():
    client = make_client(lambda request: httpx.Response(200, json=completion("Sure! Here are your questions")))

    with pytest.raises(SchemaValidationError) as exc_info:
        await client.generate_json("gemini", "google/gemini-2.5-flash", MESSAGES)

    assert exc_info.value.provider == "gemini"


@pytest.mark.asyncio
async def test_validator_failure_is_schema_error():
    client = make_client(lambda request: httpx.Response(200, json=completion('{"items": []}')))

    with pytest.raises(SchemaValidationError):
        await client.generate_json(
            "openai",
            "openai/gpt-5-mini",
            MESSAGES,
            validator=QuestionSet.model_validate,
        )


@pytest.mark.asyncio
async def test_missing_choices_is_schema_error():
    client = make_client(lambda request: httpx.Response(200, json={"error": "nothing"}))

    with pytest.raises(SchemaValidationError):
        await client.generate_json("openai", "openai/gpt-5-mini", MESSAGES)


@pytest.mark.asyncio
async def test_timeout_raises_provider_timeout():
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ReadTimeout("timed out", request=request)

    client = make_client(handler)

    with pytest.raises(ProviderTimeoutError) as exc_info:
        await client.chat("gemini", "google/gemini-2.5-flash", MESSAGES)

    assert exc_info.value.provider == "gemini"


@pytest.mark.asyncio
async def test_transport_error_raises_provider_call_error():
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("connection refused", request=request)

    client = make_client(handler)

    with pytest.raises(ProviderCallError) as exc_info:
        await client.chat("openai", "openai/gpt-5-mini", MESSAGES)

    assert not isinstance(exc_info.value, ProviderTimeoutError)


@pytest.mark.asyncio
async def test_error_status_raises_response_error():
    client = make_client(lambda request: httpx.Response(503, json={"error": "overloaded"}))

    with pytest.raises(ProviderResponseError) as exc_info:
        await client.chat("openai", "openai/gpt-5-mini", MESSAGES)

    assert exc_info.value.status_code == 503


@pytest.mark.asyncio
async def test_non_json_body_is_schema_error():
    client = make_client(lambda request: httpx.Response(200, text="<html>gateway</html>"))

    with pytest.raises(SchemaValidationError):
        await client.chat("openai", "openai/gpt-5-mini", MESSAGES)


@pytest.mark.asyncio
async def test_missing_api_key_fails_without_request():
    calls = []

    def handler(request: httpx.Request) -> httpx.Response:
        calls.append(request)
        return httpx.Response(200, json=completion("{}"))

    client = make_client(handler, api_key=None)

    with pytest.raises(ProviderCallError):
        await client.chat("gemini", "google/gemini-2.5-flash", MESSAGES)

    assert calls == []


def test_strip_code_fence():
    assert _strip_code_fence('```json\n{"a": 1}\n```') == '{"a": 1}'
    assert _strip_code_fence('  {"a": 1}  ') == '{"a": 1}'
