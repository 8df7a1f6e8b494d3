import pytest

from genmux.providers.base import BaseAIProvider
from genmux.settings import Settings, get_settings
from genmux.tools import ToolRegistry
from genmux.types import Capability, ModelInfo

EXCHANGE_RATE = 1500

API_KEYS = {
    "openai": "sk-test-openai",
    "anthropic": "sk-test-anthropic",
    "gemini": "AIza-test-google",
    "stability": "sk-test-stability",
    "runway": "key-test-runway",
    "elevenlabs": "xi-test-elevenlabs",
}


class ScriptedProvider(BaseAIProvider):
    """
    Adapter that replays prepared outcomes instead of calling a provider.
    """

    provider_name = "scripted"
    MODELS = (
        ModelInfo(
            model="m1",
            capabilities=frozenset({Capability.TEXT}),
            provider="scripted",
            input_token_price=0.000002,
            output_token_price=0.000008,
        ),
    )

    def __init__(self, outcomes=(), follow_ups=(), **kwargs):
        super().__init__("fake-key", **kwargs)
        self.outcomes = list(outcomes)
        self.follow_ups = list(follow_ups)
        self.calls = []
        self.follow_up_results = []

    def _system_tool(self, name):
        if name == "web_search":
            return {"type": "web_search"}
        return None

    def _user_tool(self, definition):
        return {"name": definition.name, "parameters": definition.parameters}

    async def _complete(self, call):
        self.calls.append(call)
        return self.outcomes.pop(0)

    async def _complete_tool_results(self, call, outcome, results):
        self.follow_up_results.append(results)
        return self.follow_ups.pop(0)


@pytest.fixture(autouse=True)
def clear_settings_cache():
    get_settings.cache_clear()
    yield
    get_settings.cache_clear()


@pytest.fixture
def mock_env(monkeypatch):
    """Mock environment variables for API keys."""
    monkeypatch.setenv("OPENAI_API_KEY", API_KEYS["openai"])
    monkeypatch.setenv("ANTHROPIC_API_KEY", API_KEYS["anthropic"])
    monkeypatch.setenv("GEMINI_API_KEY", API_KEYS["gemini"])
    monkeypatch.setenv("STABILITY_API_KEY", API_KEYS["stability"])
    monkeypatch.setenv("RUNWAY_API_KEY", API_KEYS["runway"])
    monkeypatch.setenv("ELEVENLABS_API_KEY", API_KEYS["elevenlabs"])


@pytest.fixture
def settings():
    return Settings(usd_to_krw=EXCHANGE_RATE, api_margin=1.2, api_keys=dict(API_KEYS))


@pytest.fixture
def registry():
    return ToolRegistry()


@pytest.fixture
def scripted(settings, registry):
    """Factory for a ScriptedProvider sharing the test settings and registry."""
    def make(outcomes=(), follow_ups=(), **kwargs):
        return ScriptedProvider(outcomes, follow_ups, settings=settings, tools=registry, **kwargs)
    return make
