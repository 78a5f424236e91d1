"""Configuration management for the content generator bridge."""

from __future__ import annotations

import logging
import os
from typing import Any

import yaml
from dotenv import load_dotenv
from pydantic import BaseModel

from foundry_bridge.http_transport import HttpConfig, create_http_config_from_dict

DEFAULT_CONFIG_PATH = os.path.join(os.path.dirname(__file__), "config.yaml")
DEFAULT_DEPLOYMENT = "gpt-4o"
DEFAULT_MAX_TOKENS = 4096
LOG_FORMAT = "%(asctime)s - %(levelname)s - %(message)s"

# Map provider names to environment variable names
PROVIDER_KEY_MAP = {
    "azure_foundry": "AZURE_FOUNDRY_API_KEY",
    "azure": "AZURE_FOUNDRY_API_KEY",
}


class FoundryConfig(BaseModel):
    """Resolved settings for an Azure Foundry deployment."""

    endpoint: str
    api_key: str
    deployment: str = DEFAULT_DEPLOYMENT
    max_tokens: int = DEFAULT_MAX_TOKENS
    accumulate_tool_calls: bool = False


class Configuration:
    """Manages configuration and environment variables for the bridge."""

    def __init__(self, config_path: str | None = None) -> None:
        """Initialize configuration from YAML and environment variables."""
        self.load_env()  # Load .env for API keys
        self.config_path = config_path or DEFAULT_CONFIG_PATH
        self._config = self._load_yaml_config()

    @staticmethod
    def load_env() -> None:
        """Load environment variables from .env file."""
        load_dotenv()

    def _load_yaml_config(self) -> dict[str, Any]:
        """Load configuration from YAML file."""
        with open(self.config_path) as file:
            return yaml.safe_load(file) or {}

    @property
    def active_provider(self) -> str:
        """Name of the active LLM provider, lower-cased."""
        return (self.get_full_llm_config().get("active") or "azure_foundry").lower()

    @property
    def llm_api_key(self) -> str:
        """Get the API key for the active LLM provider.

        Returns:
            The API key as a string.

        Raises:
            ValueError: If the key is neither in the environment nor in YAML.
        """
        active_provider = self.active_provider
        env_key = PROVIDER_KEY_MAP.get(active_provider)
        if not env_key:
            raise ValueError(
                f"Unknown provider '{active_provider}' - no API key mapping found"
            )

        api_key = os.getenv(env_key) or self.get_llm_config().get("api_key")
        if not api_key:
            raise ValueError(
                f"API key '{env_key}' not found in environment variables "
                f"for provider '{active_provider}'"
            )

        return api_key

    def get_config_dict(self) -> dict[str, Any]:
        """Get the full configuration dictionary."""
        return self._config

    def get_full_llm_config(self) -> dict[str, Any]:
        """Get full LLM configuration including active provider and all providers."""
        return self._config.get("llm") or {}

    def get_llm_config(self) -> dict[str, Any]:
        """Get active LLM provider configuration from YAML.

        Returns:
            Active provider configuration dictionary (empty if not listed).
        """
        providers = self.get_full_llm_config().get("providers") or {}
        return providers.get(self.active_provider) or {}

    def get_http_config(self) -> HttpConfig:
        """Get HTTP transport settings from the `llm.http` section."""
        return create_http_config_from_dict(self.get_full_llm_config())

    def get_logging_config(self) -> dict[str, Any]:
        """Get logging configuration from YAML."""
        return self._config.get("logging") or {}

    def get_foundry_config(self) -> FoundryConfig:
        """Resolve endpoint, key and deployment, environment first.

        Raises:
            ValueError: If no endpoint or API key can be resolved.
        """
        provider_cfg = self.get_llm_config()
        endpoint = os.getenv("AZURE_FOUNDRY_ENDPOINT") or provider_cfg.get("endpoint")
        if not endpoint:
            raise ValueError(
                "Missing endpoint: set AZURE_FOUNDRY_ENDPOINT or "
                f"providers['{self.active_provider}']['endpoint']"
            )

        return FoundryConfig(
            endpoint=endpoint,
            api_key=self.llm_api_key,
            deployment=(
                os.getenv("AZURE_FOUNDRY_DEPLOYMENT")
                or provider_cfg.get("deployment")
                or DEFAULT_DEPLOYMENT
            ),
            max_tokens=provider_cfg.get("max_tokens", DEFAULT_MAX_TOKENS),
            accumulate_tool_calls=provider_cfg.get("accumulate_tool_calls", False),
        )


def configure_logging(logging_cfg: dict[str, Any] | None = None) -> None:
    """Apply basicConfig with the level from the `logging` YAML section."""
    level_name = str((logging_cfg or {}).get("level", "INFO")).upper()
    logging.basicConfig(level=getattr(logging, level_name, logging.INFO), format=LOG_FORMAT)
