"""
LLM Package

Content generator interface, provider implementations and the
request/response translation they share.
"""

from __future__ import annotations

from .base import ContentGenerator, CountTokensParameters, GenerateContentParameters
from .client import create_content_generator
from .errors import (
    EmptyResponseError,
    MalformedResponseError,
    FoundryError,
    ProviderError,
    ToolArgumentsError,
    UnsupportedFeatureError,
)
from .providers import AzureFoundryContentGenerator

__all__ = [
    "AzureFoundryContentGenerator",
    "ContentGenerator",
    "CountTokensParameters",
    "EmptyResponseError",
    "MalformedResponseError",
    "FoundryError",
    "GenerateContentParameters",
    "ProviderError",
    "ToolArgumentsError",
    "UnsupportedFeatureError",
    "create_content_generator",
]
