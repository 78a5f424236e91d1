"""
HTTP transport for content generators

This module builds the pooled httpx client used for provider calls:
- Configurable timeout
- Connection pooling and keep-alive limits
- Default headers shared by every request

Each generator call issues exactly one request; failures surface to the
caller, who owns retry policy.
"""

from __future__ import annotations

import logging
from typing import Any

import httpx
from pydantic import BaseModel

logger = logging.getLogger(__name__)


class HttpConfig(BaseModel):
    """Configuration for the provider HTTP client."""

    timeout: float = 30.0
    max_keepalive_connections: int = 20
    max_connections: int = 100
    keepalive_expiry: float = 30.0


def create_http_client(
    config: HttpConfig | None = None,
    headers: dict[str, str] | None = None,
) -> httpx.AsyncClient:
    """
    Create an httpx.AsyncClient configured from HttpConfig.

    Args:
        config: Pool and timeout settings; defaults when omitted
        headers: Headers sent with every request from this client

    Returns:
        A pooled async client; the caller owns closing it
    """
    config = config or HttpConfig()
    logger.debug(
        "Creating HTTP client (timeout=%.1fs, max_connections=%d)",
        config.timeout,
        config.max_connections,
    )
    return httpx.AsyncClient(
        timeout=httpx.Timeout(config.timeout),
        headers=headers or {},
        limits=httpx.Limits(
            max_keepalive_connections=config.max_keepalive_connections,
            max_connections=config.max_connections,
            keepalive_expiry=config.keepalive_expiry,
        ),
    )


def create_http_config_from_dict(config_dict: dict[str, Any]) -> HttpConfig:
    """
    Build HttpConfig from the `http` section of an LLM config mapping.

    Keys missing from the section keep the HttpConfig defaults; a missing or
    empty section yields the defaults outright.
    """
    return HttpConfig.model_validate(config_dict.get("http") or {})
