"""
Error types raised by content generators.

Every failure surfaced to the host derives from FoundryError so callers can
catch a single kind and read the message. Transport failures from httpx
(connect errors, timeouts) are not wrapped.
"""

from __future__ import annotations


class FoundryError(Exception):
    """Base class for all content generator failures."""

    pass


class ProviderError(FoundryError):
    """Raised when the provider answers with a non-success HTTP status."""

    def __init__(self, status_code: int, reason: str, body: str) -> None:
        super().__init__(
            f"Azure Foundry API error: {status_code} {reason}: {body}"
        )
        self.status_code = status_code
        self.reason = reason
        self.body = body


class EmptyResponseError(FoundryError):
    """Raised when a successful unary reply carries no choices."""

    pass


class MalformedResponseError(FoundryError):
    """Raised when a successful unary reply does not have the chat-completions shape."""

    pass


class UnsupportedFeatureError(FoundryError):
    """Raised for capabilities this generator does not offer."""

    pass


class ToolArgumentsError(FoundryError):
    """Raised when a tool call's argument string is not valid JSON."""

    def __init__(self, name: str, arguments: str) -> None:
        super().__init__(
            f"Invalid JSON arguments for tool call '{name}': {arguments!r}"
        )
        self.name = name
        self.arguments = arguments
