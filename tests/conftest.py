import httpx
import pytest

from foundry_bridge.llm.base import GenerateContentParameters
from foundry_bridge.llm.providers import AzureFoundryContentGenerator
from tests.helpers import API_KEY, DEPLOYMENT, ENDPOINT, user_turn


@pytest.fixture
def make_generator():
    def _make(handler, **kwargs) -> AzureFoundryContentGenerator:
        http = httpx.AsyncClient(transport=httpx.MockTransport(handler))
        return AzureFoundryContentGenerator(
            ENDPOINT, API_KEY, DEPLOYMENT, http=http, **kwargs
        )

    return _make


@pytest.fixture
def simple_request() -> GenerateContentParameters:
    return GenerateContentParameters(
        model="gemini-ignored",
        contents=[user_turn("hi")],
    )
