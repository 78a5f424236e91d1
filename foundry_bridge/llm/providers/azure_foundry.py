# foundry_bridge/llm/providers/azure_foundry.py
"""
Azure Foundry content generator

Adapts Azure-hosted chat completions to the host's ContentGenerator
interface:
- Outbound request translation (turns → messages, tools → function specs)
- One unary or streamed HTTP exchange per call, never retried
- Inbound translation of replies and SSE chunks
- Token count estimate; embeddings are unsupported
"""

from __future__ import annotations

import contextlib
import json
import logging
import math
from collections.abc import AsyncIterator

import httpx
from google.genai import types

from foundry_bridge.config import DEFAULT_DEPLOYMENT, DEFAULT_MAX_TOKENS, FoundryConfig
from foundry_bridge.http_transport import HttpConfig, create_http_client

from ..base import (
    JSON,
    ContentGenerator,
    CountTokensParameters,
    GenerateContentParameters,
)
from ..errors import MalformedResponseError, ProviderError, UnsupportedFeatureError
from ..streaming import DONE_SENTINEL, SSELineBuffer, ToolCallAccumulator, data_payload
from ..translation import (
    from_chat_response,
    from_stream_chunk,
    normalize_contents,
    serialize_contents,
    to_chat_request,
)

logger = logging.getLogger(__name__)


API_VERSION = "2024-10-21"
CHARS_PER_TOKEN = 4


class AzureFoundryContentGenerator(ContentGenerator):
    """
    ContentGenerator bound to one Azure Foundry deployment.

    Holds only immutable configuration plus a pooled httpx client, so
    concurrent calls on one instance are independent.
    """

    def __init__(
        self,
        endpoint: str,
        api_key: str,
        deployment: str = DEFAULT_DEPLOYMENT,
        *,
        max_tokens: int = DEFAULT_MAX_TOKENS,
        accumulate_tool_calls: bool = False,
        http: httpx.AsyncClient | None = None,
        http_config: HttpConfig | None = None,
    ) -> None:
        self.endpoint = endpoint.rstrip("/")
        self.api_key = api_key
        self.deployment = deployment
        self.api_version = API_VERSION
        self.max_tokens = max_tokens
        self.accumulate_tool_calls = accumulate_tool_calls

        self._owns_http = http is None
        self.http = http or create_http_client(http_config)

    @classmethod
    def from_config(
        cls,
        cfg: FoundryConfig,
        *,
        http: httpx.AsyncClient | None = None,
        http_config: HttpConfig | None = None,
    ) -> AzureFoundryContentGenerator:
        return cls(
            cfg.endpoint,
            cfg.api_key,
            cfg.deployment,
            max_tokens=cfg.max_tokens,
            accumulate_tool_calls=cfg.accumulate_tool_calls,
            http=http,
            http_config=http_config,
        )

    # ---------- request ----------
    @property
    def url(self) -> str:
        return f"{self.endpoint}/openai/deployments/{self.deployment}/chat/completions"

    def build_request(
        self, request: GenerateContentParameters, stream: bool = False
    ) -> tuple[str, dict[str, str], dict[str, str], JSON]:
        """
        → (url, query_params, headers, json_payload)
        """
        payload = to_chat_request(
            request, deployment=self.deployment, max_tokens=self.max_tokens
        )
        if stream:
            payload["stream"] = True

        params = {"api-version": self.api_version}
        headers = {
            "Content-Type": "application/json",
            "api-key": self.api_key,
        }
        return (self.url, params, headers, payload)

    def _provider_error(self, response: httpx.Response) -> ProviderError:
        logger.error(
            "Azure Foundry request failed: %d %s", response.status_code, response.reason_phrase
        )
        return ProviderError(response.status_code, response.reason_phrase, response.text)

    # ---------- interface ----------
    async def generate_content(
        self, request: GenerateContentParameters, user_prompt_id: str
    ) -> types.GenerateContentResponse:
        url, params, headers, payload = self.build_request(request)
        logger.info(
            "Azure Foundry generate_content: deployment=%s, prompt_id=%s, messages=%d",
            self.deployment,
            user_prompt_id,
            len(payload["messages"]),
        )

        r = await self.http.post(url, params=params, headers=headers, json=payload)
        if not r.is_success:
            raise self._provider_error(r)

        try:
            data = r.json()
        except json.JSONDecodeError as e:
            raise MalformedResponseError(
                f"Azure Foundry response is not valid JSON: {r.text[:200]!r}"
            ) from e

        response = from_chat_response(data)
        logger.info(
            "Azure Foundry reply: finish_reason=%s, parts=%d",
            response.candidates[0].finish_reason,
            len(response.candidates[0].content.parts or []),
        )
        return response

    async def generate_content_stream(
        self, request: GenerateContentParameters, user_prompt_id: str
    ) -> AsyncIterator[types.GenerateContentResponse]:
        url, params, headers, payload = self.build_request(request, stream=True)
        logger.info(
            "Azure Foundry generate_content_stream: deployment=%s, prompt_id=%s",
            self.deployment,
            user_prompt_id,
        )
        accumulator = ToolCallAccumulator() if self.accumulate_tool_calls else None

        async with self.http.stream(
            "POST", url, params=params, headers=headers, json=payload
        ) as r:
            if not r.is_success:
                await r.aread()
                raise self._provider_error(r)

            async with contextlib.aclosing(self._iter_lines(r)) as lines:
                async for line in lines:
                    data = data_payload(line)
                    if data is None:
                        continue
                    if data == DONE_SENTINEL:
                        break

                    try:
                        chunk = json.loads(data)
                    except json.JSONDecodeError:
                        logger.debug("Skipping malformed stream chunk: %.100s", data)
                        continue
                    if not isinstance(chunk, dict):
                        logger.debug("Skipping non-object stream chunk: %.100s", data)
                        continue

                    fragment = from_stream_chunk(chunk, accumulator)
                    if fragment is not None:
                        yield fragment

        if accumulator is not None and (pending := accumulator.unresolved()):
            logger.warning(f"Stream ended with incomplete tool calls: {pending}")

    async def _iter_lines(self, response: httpx.Response) -> AsyncIterator[str]:
        """Complete lines of the body, read incrementally as text."""
        buffer = SSELineBuffer()
        async for text in response.aiter_text():
            for line in buffer.feed(text):
                yield line
        for line in buffer.flush():
            yield line

    async def count_tokens(
        self, request: CountTokensParameters
    ) -> types.CountTokensResponse:
        # No counting endpoint: estimate ~4 characters per token.
        content = serialize_contents(normalize_contents(request.contents))
        estimated = math.ceil(len(content.encode("utf-8")) / CHARS_PER_TOKEN)
        return types.CountTokensResponse(total_tokens=estimated)

    async def embed_content(
        self, request: types.EmbedContentParameters
    ) -> types.EmbedContentResponse:
        raise UnsupportedFeatureError(
            "Embeddings are not yet supported with Azure Foundry integration"
        )

    async def close(self) -> None:
        if self._owns_http:
            await self.http.aclose()
