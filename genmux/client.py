import dataclasses
import logging
import time
from typing import Any, Callable, Dict, List, Mapping, Optional, Tuple

from .errors import UnknownProviderError
from .providers.base import BaseAIProvider
from .providers.openai import OpenAIProvider
from .providers.anthropic import AnthropicProvider
from .providers.gemini import GeminiProvider
from .providers.stability import StabilityProvider
from .providers.runway import RunwayProvider
from .providers.elevenlabs import ElevenLabsProvider
from .settings import Settings, check_api_keys, get_settings
from .tools import ToolRegistry
from .types import (
    GenerationResult, ImageEditRequest, ImageRequest, ModelInfo, TextRequest,
    ToolDefinition, ToolHandler, TranscriptionRequest, TTSRequest, VideoRequest,
)

logger = logging.getLogger(__name__)

# Registration order decides the fallback provider
DEFAULT_PROVIDERS = (
    ("openai", OpenAIProvider),
    ("anthropic", AnthropicProvider),
    ("gemini", GeminiProvider),
    ("stability", StabilityProvider),
    ("runway", RunwayProvider),
    ("elevenlabs", ElevenLabsProvider),
)

PROVIDER_ALIASES = {
    "claude": "anthropic",
    "google": "gemini",
}


class UnifiedAIClient:
    """
    Unified client for text, image, speech, video and transcription across
    several AI providers.

    Each call is routed to one adapter, timed, and returned as a flat
    dictionary (the "envelope"):

        {
            "provider": "openai",
            "model": "gpt-4.1",
            "text": "...",
            "usage": {...},
            "cost": {...},
            "error": None,
            ...remaining GenerationResult fields,
            "meta": {"model": ..., "usage": {...}, "latency_ms": float},
        }

    Provider failures are reported through ``error``; they are never raised.
    """

    def __init__(
        self,
        providers: Optional[Mapping[str, BaseAIProvider]] = None,
        *,
        settings: Optional[Settings] = None,
        tools: Optional[ToolRegistry] = None,
    ):
        """
        Initialize the client.

        Args:
            providers: Ordered name -> adapter mapping. Defaults to every
                       built-in adapter, keyed from ``settings``. Adapters
                       passed here should share ``tools`` with the client.
            settings: Configuration. Defaults to ``get_settings()``.
            tools: Tool registry shared with the adapters.
        """
        self.settings = settings or get_settings()
        self.tools = tools if tools is not None else ToolRegistry()
        self.key_status = check_api_keys(self.settings)

        if providers is None:
            self.providers: Dict[str, BaseAIProvider] = {
                name: provider_cls(
                    self.settings.api_key(name),
                    tools=self.tools,
                    settings=self.settings,
                )
                for name, provider_cls in DEFAULT_PROVIDERS
            }
        else:
            self.providers = dict(providers)

    async def __aenter__(self) -> "UnifiedAIClient":
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        for adapter in self.providers.values():
            await adapter.aclose()

    # ==========================================================================
    # Provider Resolution
    # ==========================================================================

    def resolve_provider(
        self,
        provider: Optional[str] = None,
        model: Optional[str] = None,
    ) -> Tuple[str, BaseAIProvider]:
        """
        Pick the adapter for a call.

        Order: explicit provider (aliases 'claude' and 'google' accepted),
        then the adapter that lists ``model``, then the first registered
        adapter.

        Raises:
            UnknownProviderError: If an explicit provider is not registered.
        """
        if provider:
            name = provider.lower()
            name = PROVIDER_ALIASES.get(name, name)
            if name not in self.providers:
                raise UnknownProviderError(
                    f"Provider '{provider}' not configured or not supported. "
                    f"Available: {', '.join(self.providers)}"
                )
            return name, self.providers[name]

        if model:
            for name, adapter in self.providers.items():
                if adapter.find_model(model) is not None:
                    return name, adapter
            logger.debug("no adapter lists model %s, using the default provider", model)

        if not self.providers:
            raise UnknownProviderError("No providers registered")
        name = next(iter(self.providers))
        return name, self.providers[name]

    # ==========================================================================
    # Generation
    # ==========================================================================

    async def generate_text(self, request: Optional[TextRequest] = None, **kwargs) -> Dict[str, Any]:
        """
        Generate text.

        Args:
            request (TextRequest, optional): The request. Its fields may also
                                             be given as keyword arguments
                                             (prompt, model, provider, ai_rule,
                                             system_tools, user_tools, messages,
                                             use_conversation_state,
                                             previous_response_id, ...).

        Returns:
            Dict[str, Any]: The envelope. ``text`` is always a string.

        Raises:
            UnknownProviderError: If an explicit provider is not registered.
            ConversationModeError: If history and continuation modes are mixed.
            UnsupportedCapabilityError: If the adapter has no text support.
        """
        return await self._dispatch("generate_text", TextRequest, request, kwargs)

    async def generate_image(self, request: Optional[ImageRequest] = None, **kwargs) -> Dict[str, Any]:
        return await self._dispatch("generate_image", ImageRequest, request, kwargs)

    async def edit_image(self, request: Optional[ImageEditRequest] = None, **kwargs) -> Dict[str, Any]:
        return await self._dispatch("edit_image", ImageEditRequest, request, kwargs)

    async def generate_tts(self, request: Optional[TTSRequest] = None, **kwargs) -> Dict[str, Any]:
        return await self._dispatch("generate_tts", TTSRequest, request, kwargs)

    async def generate_video(self, request: Optional[VideoRequest] = None, **kwargs) -> Dict[str, Any]:
        return await self._dispatch("generate_video", VideoRequest, request, kwargs)

    async def transcribe(self, request: Optional[TranscriptionRequest] = None, **kwargs) -> Dict[str, Any]:
        return await self._dispatch("transcribe", TranscriptionRequest, request, kwargs)

    async def check_video_status(self, provider: str, task_id: str) -> Dict[str, Any]:
        """Poll an asynchronous video task on the given provider."""
        name, adapter = self.resolve_provider(provider)
        start = time.perf_counter()
        result = await adapter.check_video_status(task_id)
        return self._envelope(name, result, (time.perf_counter() - start) * 1000)

    async def _dispatch(
        self,
        operation: str,
        request_cls: type,
        request: Optional[Any],
        kwargs: Dict[str, Any],
    ) -> Dict[str, Any]:
        if request is None:
            request = request_cls(**kwargs)
        elif kwargs:
            request = dataclasses.replace(request, **kwargs)

        name, adapter = self.resolve_provider(request.provider, request.model)

        start = time.perf_counter()
        result = await getattr(adapter, operation)(request)
        latency_ms = (time.perf_counter() - start) * 1000

        if result.error:
            logger.warning("%s via %s failed after %.0f ms: %s", operation, name, latency_ms, result.error)
        else:
            logger.info("%s via %s/%s took %.0f ms", operation, name, result.model, latency_ms)

        envelope = self._envelope(name, result, latency_ms)
        if operation == "generate_text" and envelope["text"] is None:
            envelope["text"] = ""
        return envelope

    @staticmethod
    def _envelope(provider: str, result: GenerationResult, latency_ms: float) -> Dict[str, Any]:
        data = result.to_dict()
        return {
            "provider": provider,
            **data,
            "meta": {
                "model": result.model,
                "usage": data["usage"],
                "latency_ms": latency_ms,
            },
        }

    # ==========================================================================
    # Tools & Introspection
    # ==========================================================================

    def register_tool(
        self,
        name: str,
        description: str,
        parameters: Dict[str, Any],
        handler: ToolHandler,
    ) -> ToolDefinition:
        """
        Register a tool callable from every provider.

        Args:
            name (str): Tool name exposed to the models.
            description (str): What the tool does.
            parameters (Dict): JSON schema of the arguments object.
            handler (Callable): Receives the arguments dict; may be async.
        """
        return self.tools.register(name, description, parameters, handler)

    def tool(
        self,
        name: str,
        description: str,
        parameters: Dict[str, Any],
    ) -> Callable[[ToolHandler], ToolHandler]:
        return self.tools.tool(name, description, parameters)

    def list_models(self, provider: Optional[str] = None) -> Dict[str, List[ModelInfo]]:
        """
        Models configured per provider.

        Args:
            provider (str, optional): Restrict to one provider.

        Returns:
            Dict[str, List[ModelInfo]]: provider name -> model descriptors.
        """
        if provider:
            name, adapter = self.resolve_provider(provider)
            return {name: list(adapter.models)}
        return {name: list(adapter.models) for name, adapter in self.providers.items()}

    def api_key_status(self) -> Dict[str, Dict[str, object]]:
        """Result of the advisory key check run at construction."""
        return self.key_status
