# foundry_bridge/llm/base.py
from __future__ import annotations

from abc import ABC, abstractmethod
from collections.abc import AsyncIterator
from typing import Any

from google.genai import types
from pydantic import BaseModel, ConfigDict

JSON = dict[str, Any]


class GenerateContentParameters(BaseModel):
    """Arguments of one generation call: target model, turns, and options."""

    model_config = ConfigDict(arbitrary_types_allowed=True)

    model: str | None = None
    contents: types.ContentListUnion | None = None
    config: types.GenerateContentConfig | None = None


class CountTokensParameters(BaseModel):
    """Arguments of a token count request."""

    model_config = ConfigDict(arbitrary_types_allowed=True)

    model: str | None = None
    contents: types.ContentListUnion | None = None
    config: types.CountTokensConfig | None = None


class ContentGenerator(ABC):
    """
    Strategy interface the host talks to for every model provider.
    Concrete generators translate requests and normalize responses.
    """

    # ---------- interface ----------
    @abstractmethod
    async def generate_content(
        self, request: GenerateContentParameters, user_prompt_id: str
    ) -> types.GenerateContentResponse:
        """One blocking round trip → a single response."""
        ...

    @abstractmethod
    def generate_content_stream(
        self, request: GenerateContentParameters, user_prompt_id: str
    ) -> AsyncIterator[types.GenerateContentResponse]:
        """
        Lazy, finite, non-restartable sequence of response fragments.
        Implementations are async generators.
        """
        ...

    @abstractmethod
    async def count_tokens(
        self, request: CountTokensParameters
    ) -> types.CountTokensResponse:
        ...

    @abstractmethod
    async def embed_content(
        self, request: types.EmbedContentParameters
    ) -> types.EmbedContentResponse:
        ...

    # ---------- lifecycle ----------
    async def close(self) -> None:
        """Release transport resources; no-op by default."""
        return None

    async def __aenter__(self):
        """Async context manager entry."""
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        """Async context manager exit."""
        await self.close()
