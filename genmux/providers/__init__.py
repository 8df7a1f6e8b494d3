from .base import BaseAIProvider, TextCall
from .openai import OpenAIProvider
from .anthropic import AnthropicProvider
from .gemini import GeminiProvider
from .rest import RestProvider
from .stability import StabilityProvider
from .runway import RunwayProvider
from .elevenlabs import ElevenLabsProvider

__all__ = [
    "BaseAIProvider",
    "TextCall",
    "OpenAIProvider",
    "AnthropicProvider",
    "GeminiProvider",
    "RestProvider",
    "StabilityProvider",
    "RunwayProvider",
    "ElevenLabsProvider",
]
