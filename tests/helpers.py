"""Shared test doubles and builders."""

import json
from collections.abc import Callable

import httpx
from google.genai import types


ENDPOINT = "https://example.openai.azure.com/"
API_KEY = "secret-key"
DEPLOYMENT = "my-deploy"

# --- Test doubles ------------------------------------------------------------

class TrackingStream(httpx.AsyncByteStream):
    """Response body served in the given reads; records aclose()."""

    def __init__(self, chunks: list[bytes]):
        self.chunks = chunks
        self.reads = 0
        self.closed = False

    async def __aiter__(self):
        for chunk in self.chunks:
            self.reads += 1
            yield chunk

    async def aclose(self) -> None:
        self.closed = True


class RecordingHandler:
    """MockTransport handler that records requests and replays one response."""

    def __init__(self, respond: Callable[[httpx.Request], httpx.Response]):
        self.respond = respond
        self.requests: list[httpx.Request] = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        return self.respond(request)

    @property
    def payload(self) -> dict:
        return json.loads(self.requests[-1].content)


def sse_lines(*payloads: str) -> bytes:
    return "".join(f"data: {p}\n\n" for p in payloads).encode()


def chunk(content: str | None = None, finish_reason: str | None = None, **delta) -> str:
    if content is not None:
        delta["content"] = content
    return json.dumps(
        {"choices": [{"index": 0, "delta": delta, "finish_reason": finish_reason}]}
    )


def user_turn(text: str) -> types.Content:
    return types.Content(role="user", parts=[types.Part(text=text)])


def model_turn(text: str) -> types.Content:
    return types.Content(role="model", parts=[types.Part(text=text)])


