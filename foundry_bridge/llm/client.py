# foundry_bridge/llm/client.py
from __future__ import annotations

import logging

import httpx

from foundry_bridge.config import Configuration

from .base import ContentGenerator
from .providers import AzureFoundryContentGenerator

logger = logging.getLogger(__name__)

FOUNDRY_PROVIDERS = ("azure_foundry", "azure")


def create_content_generator(
    config: Configuration, http: httpx.AsyncClient | None = None
) -> ContentGenerator:
    """
    Choose the generator for the active provider and build it from config.
    """
    active_name = config.active_provider
    if active_name in FOUNDRY_PROVIDERS:
        foundry_cfg = config.get_foundry_config()
        logger.info(
            f"Using Azure Foundry deployment '{foundry_cfg.deployment}' "
            f"at {foundry_cfg.endpoint}"
        )
        return AzureFoundryContentGenerator.from_config(
            foundry_cfg, http=http, http_config=config.get_http_config()
        )
    raise ValueError(f"Unknown LLM provider: {active_name}")
