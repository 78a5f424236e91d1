import math

import httpx
import pytest
from google.genai import types

from foundry_bridge.http_transport import HttpConfig
from foundry_bridge.llm.base import CountTokensParameters, GenerateContentParameters
from foundry_bridge.llm.errors import (
    EmptyResponseError,
    FoundryError,
    MalformedResponseError,
    ProviderError,
    ToolArgumentsError,
    UnsupportedFeatureError,
)
from foundry_bridge.llm.providers import azure_foundry
from foundry_bridge.llm.providers.azure_foundry import AzureFoundryContentGenerator
from foundry_bridge.llm.translation import normalize_contents, serialize_contents
from tests.helpers import API_KEY, RecordingHandler, model_turn, user_turn

EXPECTED_URL = (
    "https://example.openai.azure.com/openai/deployments/my-deploy/"
    "chat/completions?api-version=2024-10-21"
)


def _reply(content="hello", finish_reason="stop", **extra) -> dict:
    return {
        "id": "chatcmpl-1",
        "object": "chat.completion",
        "model": "gpt-4o",
        "choices": [
            {
                "index": 0,
                "message": {"role": "assistant", "content": content, **extra},
                "finish_reason": finish_reason,
            }
        ],
    }


# --- Construction ------------------------------------------------------------

@pytest.mark.asyncio
async def test_endpoint_trailing_slash_and_default_deployment():
    gen = AzureFoundryContentGenerator("https://host.example/", "k")
    try:
        assert gen.endpoint == "https://host.example"
        assert gen.deployment == "gpt-4o"
        assert gen.max_tokens == 4096
        assert gen.url == (
            "https://host.example/openai/deployments/gpt-4o/chat/completions"
        )
    finally:
        await gen.close()
    assert gen.http.is_closed


@pytest.mark.asyncio
async def test_injected_client_is_not_closed(make_generator):
    gen = make_generator(RecordingHandler(lambda r: httpx.Response(200, json=_reply())))
    async with gen:
        pass
    assert not gen.http.is_closed
    await gen.http.aclose()


@pytest.mark.asyncio
async def test_http_config_applies_timeout():
    gen = AzureFoundryContentGenerator("https://h", "k", http_config=HttpConfig(timeout=5.0))
    try:
        assert gen.http.timeout.read == 5.0
    finally:
        await gen.close()


# --- Unary exchange ----------------------------------------------------------

@pytest.mark.asyncio
async def test_request_url_headers_and_body(make_generator):
    handler = RecordingHandler(lambda r: httpx.Response(200, json=_reply()))
    gen = make_generator(handler)
    req = GenerateContentParameters(
        model="gemini-ignored",
        contents=[user_turn("hi"), model_turn("hello"), user_turn("again")],
        config=types.GenerateContentConfig(system_instruction="Be brief.", temperature=0.5),
    )

    await gen.generate_content(req, "prompt-1")

    assert len(handler.requests) == 1
    sent = handler.requests[0]
    assert sent.method == "POST"
    assert str(sent.url) == EXPECTED_URL
    assert sent.headers["api-key"] == API_KEY
    assert sent.headers["content-type"] == "application/json"
    assert handler.payload == {
        "model": "my-deploy",
        "messages": [
            {"role": "system", "content": "Be brief."},
            {"role": "user", "content": "hi"},
            {"role": "assistant", "content": "hello"},
            {"role": "user", "content": "again"},
        ],
        "max_tokens": 4096,
        "temperature": 0.5,
    }


@pytest.mark.asyncio
async def test_text_reply(make_generator, simple_request):
    gen = make_generator(RecordingHandler(lambda r: httpx.Response(200, json=_reply())))

    response = await gen.generate_content(simple_request, "p")

    cand = response.candidates[0]
    assert len(response.candidates) == 1
    assert cand.content.role == "model"
    assert [p.text for p in cand.content.parts] == ["hello"]
    assert cand.finish_reason == types.FinishReason.STOP
    assert response.usage_metadata is None


@pytest.mark.asyncio
async def test_tool_call_and_usage(make_generator, simple_request):
    body = _reply(
        content=None,
        finish_reason="tool_calls",
        tool_calls=[
            {
                "id": "call_9",
                "type": "function",
                "function": {"name": "lookup", "arguments": '{"q":"x"}'},
            }
        ],
    )
    body["usage"] = {"prompt_tokens": 3, "completion_tokens": 4, "total_tokens": 7}
    gen = make_generator(RecordingHandler(lambda r: httpx.Response(200, json=body)))

    response = await gen.generate_content(simple_request, "p")

    parts = response.candidates[0].content.parts
    assert len(parts) == 1
    assert parts[0].function_call.name == "lookup"
    assert parts[0].function_call.args == {"q": "x"}
    assert response.usage_metadata.total_token_count == 7


@pytest.mark.asyncio
async def test_non_success_status_raises_provider_error(make_generator, simple_request):
    gen = make_generator(
        RecordingHandler(lambda r: httpx.Response(401, text="invalid subscription key"))
    )

    with pytest.raises(ProviderError) as exc_info:
        await gen.generate_content(simple_request, "p")

    err = exc_info.value
    assert err.status_code == 401
    assert err.body == "invalid subscription key"
    assert str(err) == (
        "Azure Foundry API error: 401 Unauthorized: invalid subscription key"
    )


@pytest.mark.asyncio
async def test_server_error_is_not_retried(make_generator, simple_request):
    handler = RecordingHandler(lambda r: httpx.Response(503, text="busy"))
    gen = make_generator(handler)

    with pytest.raises(ProviderError):
        await gen.generate_content(simple_request, "p")

    assert len(handler.requests) == 1


@pytest.mark.asyncio
async def test_empty_choices_raise(make_generator, simple_request):
    gen = make_generator(
        RecordingHandler(lambda r: httpx.Response(200, json={"id": "x", "choices": []}))
    )

    with pytest.raises(EmptyResponseError, match="No choices in Azure Foundry response"):
        await gen.generate_content(simple_request, "p")


@pytest.mark.asyncio
async def test_bad_tool_arguments_fail_unary_call(make_generator, simple_request):
    body = _reply(
        content=None,
        tool_calls=[{"id": "c", "function": {"name": "lookup", "arguments": "not json"}}],
    )
    gen = make_generator(RecordingHandler(lambda r: httpx.Response(200, json=body)))

    with pytest.raises(ToolArgumentsError):
        await gen.generate_content(simple_request, "p")


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "body",
    [b"<html>gateway</html>", b'{"choices":[null]}', b'{"choices":[{"message":"x"}]}'],
)
async def test_malformed_reply_raises_foundry_error(make_generator, simple_request, body):
    gen = make_generator(RecordingHandler(lambda r: httpx.Response(200, content=body)))

    with pytest.raises(MalformedResponseError) as exc_info:
        await gen.generate_content(simple_request, "p")

    assert isinstance(exc_info.value, FoundryError)


@pytest.mark.asyncio
async def test_transport_errors_propagate(make_generator, simple_request):
    def boom(request):
        raise httpx.ConnectError("refused", request=request)

    gen = make_generator(boom)

    with pytest.raises(httpx.ConnectError):
        await gen.generate_content(simple_request, "p")


# --- Token estimate ----------------------------------------------------------

@pytest.mark.asyncio
@pytest.mark.parametrize(("length", "expected"), [(400, 100), (401, 101), (0, 0)])
async def test_count_tokens_is_quarter_of_serialized_length(
    monkeypatch, length, expected
):
    monkeypatch.setattr(azure_foundry, "serialize_contents", lambda contents: "a" * length)
    gen = AzureFoundryContentGenerator("https://h", "k")
    try:
        result = await gen.count_tokens(
            CountTokensParameters(model="m", contents=[user_turn("x")])
        )
    finally:
        await gen.close()

    assert result.total_tokens == expected


@pytest.mark.asyncio
async def test_count_tokens_uses_contents_json(make_generator):
    calls = []
    gen = make_generator(lambda r: calls.append(r) or httpx.Response(500))
    contents = [user_turn("What is the capital of France?"), model_turn("Paris.")]

    result = await gen.count_tokens(CountTokensParameters(model="m", contents=contents))

    serialized = serialize_contents(normalize_contents(contents))
    assert '"role":"user"' in serialized
    assert result.total_tokens == math.ceil(len(serialized) / 4)
    assert calls == []


@pytest.mark.asyncio
async def test_count_tokens_measures_utf8_bytes(make_generator):
    gen = make_generator(lambda r: httpx.Response(500))
    contents = [user_turn("héllo 日本 " * 5)]

    result = await gen.count_tokens(CountTokensParameters(model="m", contents=contents))

    serialized = serialize_contents(normalize_contents(contents))
    byte_estimate = math.ceil(len(serialized.encode("utf-8")) / 4)
    assert byte_estimate > math.ceil(len(serialized) / 4)
    assert result.total_tokens == byte_estimate


@pytest.mark.asyncio
async def test_count_tokens_sees_grouped_turns(make_generator):
    gen = make_generator(lambda r: httpx.Response(500))

    result = await gen.count_tokens(CountTokensParameters(model="m", contents=["a", "b"]))

    serialized = serialize_contents(normalize_contents(["a", "b"]))
    assert serialized.count('"role":"user"') == 1
    assert '[{"text":"a"},{"text":"b"}]' in serialized
    assert result.total_tokens == math.ceil(len(serialized) / 4)


# --- Embeddings --------------------------------------------------------------

@pytest.mark.asyncio
@pytest.mark.parametrize("contents", [["hello"], [user_turn("x")], []])
async def test_embed_content_always_unsupported(make_generator, contents):
    calls = []
    gen = make_generator(lambda r: calls.append(r) or httpx.Response(200, json={}))

    with pytest.raises(UnsupportedFeatureError) as exc_info:
        await gen.embed_content(types.EmbedContentParameters(model="m", contents=contents))

    assert str(exc_info.value) == (
        "Embeddings are not yet supported with Azure Foundry integration"
    )
    assert isinstance(exc_info.value, FoundryError)
    assert calls == []
