import inspect
import logging
from abc import ABC
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Sequence, Tuple

from ..conversation import ConversationManager
from ..errors import ConfigurationError, UnsupportedCapabilityError, describe_error
from ..pricing import calculate_cost, find_model
from ..settings import Settings, get_settings
from ..tools import ToolRegistry
from ..types import (
    Capability, ConversationRef, Cost, FailedGeneration, GenerationOutcome,
    GenerationResult, ImageEditRequest, ImageRequest, Message, ModelInfo,
    TextRequest, ToolCall, ToolCallRequested, ToolDefinition, ToolInvocation,
    TranscriptionRequest, TTSRequest, VideoRequest, as_artifact,
)
from ..utils import stringify_tool_result


@dataclass
class TextCall:
    """
    State of one text generation call, shared by the first request and the
    tool-result follow-up.

    ``payload`` is where an adapter keeps the wire request it sent so the
    follow-up can replay it.
    """
    model: str
    turns: List[Message]
    instructions: Optional[str]
    tools: List[Any]
    temperature: float
    max_tokens: int
    previous_response_id: Optional[str] = None
    payload: Dict[str, Any] = field(default_factory=dict)


class BaseAIProvider(ABC):
    """
    Abstract base class for generation providers.

    Subclasses declare their models in ``MODELS`` and implement the hooks for
    the operations they support:

    - ``_complete`` / ``_complete_tool_results`` (+ ``_system_tool``,
      ``_user_tool``) for text
    - ``_generate_image``, ``_edit_image``, ``_generate_tts``,
      ``_generate_video``, ``_transcribe``, ``_check_video_status``

    The public methods wrap the hooks: provider failures come back as a
    ``GenerationResult`` with ``error`` set, while calling an operation the
    adapter does not implement raises ``UnsupportedCapabilityError``.
    """

    provider_name: str = "base"
    supports_continuation: bool = False
    MODELS: Tuple[ModelInfo, ...] = ()

    def __init__(
        self,
        api_key: Optional[str] = None,
        *,
        tools: Optional[ToolRegistry] = None,
        settings: Optional[Settings] = None,
        models: Optional[Sequence[ModelInfo]] = None,
    ):
        self.api_key = api_key
        self.settings = settings or get_settings()
        self.tools = tools if tools is not None else ToolRegistry()
        self.models: Tuple[ModelInfo, ...] = tuple(models) if models is not None else self.MODELS
        self.logger = logging.getLogger(f"genmux.providers.{self.provider_name}")

    # ==========================================================================
    # Models & Pricing
    # ==========================================================================

    def find_model(self, model: Optional[str]) -> Optional[ModelInfo]:
        return find_model(self.models, model)

    def models_with(self, capability: Capability) -> List[ModelInfo]:
        return [m for m in self.models if m.has_capability(capability)]

    def has_capability(self, capability: Capability) -> bool:
        return bool(self.models_with(capability))

    def default_model(self, capability: Capability) -> Optional[str]:
        candidates = self.models_with(capability)
        return candidates[0].model if candidates else None

    def calculate_cost(self, model: Optional[str], input_tokens: int, output_tokens: int) -> Cost:
        return calculate_cost(
            self.models,
            model,
            input_tokens,
            output_tokens,
            usd_to_krw=self.settings.usd_to_krw,
        )

    # ==========================================================================
    # Public Operations
    # ==========================================================================

    async def generate_text(self, request: TextRequest) -> GenerationResult:
        """
        Generate text, servicing at most one tool-call round trip.

        Flow:
        1. Build the turns (history or single user turn) and the tool list
           (system tools + registry tools in the provider's dialect).
        2. Send the first request.
        3. If the model asked for tools, run each handler once and send a
           single follow-up carrying the results. Tool calls requested by the
           follow-up are not serviced.
        4. Price the call from the first response's usage only.

        Args:
            request (TextRequest): The text request.

        Returns:
            GenerationResult: text, tools, usage, cost and, when a conversation
            mode is active, ``messages`` or ``response_id``.

        Raises:
            UnsupportedCapabilityError: If the adapter has no text support.
            ConversationModeError: If conversation modes are mixed.
        """
        self._ensure_implemented("_complete", "generate_text")
        conversation = ConversationManager.for_provider(
            ConversationManager.resolve(request),
            self.supports_continuation,
            self.provider_name,
        )

        model, failure = self._select_model(request.model, Capability.TEXT, "text generation")
        if failure is not None:
            return failure

        try:
            return await self._generate_text(request, model, conversation)
        except UnsupportedCapabilityError:
            raise
        except Exception as e:
            return GenerationResult.failure(describe_error(e, self.logger), model)

    async def generate_image(self, request: ImageRequest) -> GenerationResult:
        return await self._run("_generate_image", "generate_image", Capability.IMAGE, request)

    async def edit_image(self, request: ImageEditRequest) -> GenerationResult:
        return await self._run("_edit_image", "edit_image", Capability.IMAGE, request)

    async def generate_tts(self, request: TTSRequest) -> GenerationResult:
        return await self._run("_generate_tts", "generate_tts", Capability.TTS, request)

    async def generate_video(self, request: VideoRequest) -> GenerationResult:
        return await self._run("_generate_video", "generate_video", Capability.VIDEO, request)

    async def transcribe(self, request: TranscriptionRequest) -> GenerationResult:
        return await self._run("_transcribe", "transcribe", Capability.STT, request)

    async def check_video_status(self, task_id: str) -> GenerationResult:
        """
        Poll an asynchronous video generation task.

        Returns:
            GenerationResult: ``status`` plus ``video`` (bytes or URL) once done.
        """
        self._ensure_implemented("_check_video_status", "check_video_status")
        try:
            return await self._check_video_status(task_id)
        except UnsupportedCapabilityError:
            raise
        except Exception as e:
            return GenerationResult.failure(describe_error(e, self.logger))

    async def aclose(self) -> None:
        """Release network resources held by the adapter."""

    # ==========================================================================
    # Text Orchestration
    # ==========================================================================

    async def _generate_text(
        self,
        request: TextRequest,
        model: str,
        conversation: Optional[ConversationRef],
    ) -> GenerationResult:
        call = TextCall(
            model=model,
            turns=ConversationManager.build_turns(conversation, request.prompt),
            instructions=request.ai_rule,
            tools=self._build_tools(request.system_tools, request.user_tools),
            temperature=request.temperature,
            max_tokens=request.max_tokens,
            previous_response_id=getattr(conversation, "response_id", None),
        )

        outcome = await self._complete(call)
        if isinstance(outcome, FailedGeneration):
            return GenerationResult.failure(outcome.error, model)

        text = outcome.text or ""
        response_id = outcome.response_id
        tool_names: List[str] = []
        invocations: List[ToolInvocation] = []

        if isinstance(outcome, ToolCallRequested):
            results: List[Tuple[ToolCall, str]] = []
            for tool_call in outcome.calls:
                tool_names.append(tool_call.name)
                definition = self.tools.resolve(tool_call.name)
                if definition is None:
                    self.logger.warning("No handler registered for tool '%s'", tool_call.name)
                    results.append((tool_call, f"Error: No handler for tool '{tool_call.name}'"))
                    continue

                raw_result = await self._execute_tool(definition, tool_call)
                invocations.append(ToolInvocation(tool_call.name, tool_call.arguments, raw_result))

                artifact = as_artifact(raw_result)
                if artifact is not None:
                    result = self._artifact_result(model, outcome, artifact, tool_names, invocations)
                    return ConversationManager.record(
                        conversation, request.prompt, result.text, outcome.response_id, result,
                    )
                results.append((tool_call, stringify_tool_result(raw_result)))

            follow_up = await self._complete_tool_results(call, outcome, results)
            if isinstance(follow_up, FailedGeneration):
                return GenerationResult.failure(follow_up.error, model)
            if isinstance(follow_up, ToolCallRequested):
                self.logger.info(
                    "Follow-up requested tools %s; only one tool round trip is serviced",
                    [c.name for c in follow_up.calls],
                )
            text += follow_up.text or ""
            response_id = follow_up.response_id or response_id

        # Only the first response is billed; the follow-up's tokens are not counted.
        usage = outcome.usage
        result = GenerationResult(
            model=model,
            text=text,
            tools=tool_names,
            tool_invocations=invocations,
            usage=usage,
            cost=self.calculate_cost(model, usage.input_tokens, usage.output_tokens),
        )
        return ConversationManager.record(conversation, request.prompt, text, response_id, result)

    async def _execute_tool(self, definition: ToolDefinition, tool_call: ToolCall) -> Any:
        """
        Run one tool handler, awaiting it when it is asynchronous.

        Handler exceptions are returned as an error string so the model still
        receives a result bound to its call id.
        """
        self.logger.debug("calling tool %s with %s", tool_call.name, tool_call.arguments)
        try:
            result = definition.handler(tool_call.arguments)
            if inspect.isawaitable(result):
                result = await result
        except Exception as e:
            self.logger.warning("Tool '%s' failed: %s", tool_call.name, e)
            return f"Error executing tool '{tool_call.name}': {e}"
        self.logger.debug("tool %s returned %r", tool_call.name, result)
        return result

    def _artifact_result(
        self,
        model: str,
        outcome: ToolCallRequested,
        artifact: GenerationResult,
        tool_names: List[str],
        invocations: List[ToolInvocation],
    ) -> GenerationResult:
        usage = outcome.usage
        cost = self.calculate_cost(model, usage.input_tokens, usage.output_tokens)
        if artifact.cost is not None:
            cost = cost.combine(artifact.cost)
        return GenerationResult(
            model=model,
            text=outcome.text or "",
            image=artifact.image,
            image_type=artifact.image_type,
            audio=artifact.audio,
            audio_format=artifact.audio_format,
            tools=tool_names,
            tool_invocations=invocations,
            usage=artifact.usage,
            cost=cost,
        )

    def _build_tools(self, system_tools: Sequence[str], user_tools: Sequence[str]) -> List[Any]:
        """
        Merge provider-native system tools and registry user tools into one
        request-scoped list in the provider's format.
        """
        tools: List[Any] = []
        for name in system_tools:
            native = self._system_tool(name)
            if native is None:
                self.logger.warning("%s has no system tool '%s'", self.provider_name, name)
                continue
            tools.append(native)
        for name in user_tools:
            definition = self.tools.resolve(name)
            if definition is None:
                self.logger.warning("Tool '%s' is not registered", name)
                continue
            tools.append(self._user_tool(definition))
        return tools

    # ==========================================================================
    # Provider Hooks
    # ==========================================================================

    async def _complete(self, call: TextCall) -> GenerationOutcome:
        """Send the first text request and normalize the response."""
        raise UnsupportedCapabilityError(f"{self.provider_name} does not implement generate_text")

    async def _complete_tool_results(
        self,
        call: TextCall,
        outcome: ToolCallRequested,
        results: List[Tuple[ToolCall, str]],
    ) -> GenerationOutcome:
        """Send the follow-up: original turns, the tool-call response verbatim, tool results."""
        raise UnsupportedCapabilityError(f"{self.provider_name} does not implement tool calling")

    def _system_tool(self, name: str) -> Optional[Any]:
        return None

    def _user_tool(self, definition: ToolDefinition) -> Any:
        raise UnsupportedCapabilityError(f"{self.provider_name} does not implement tool calling")

    async def _generate_image(self, request: ImageRequest, model: str) -> GenerationResult:
        raise UnsupportedCapabilityError(f"{self.provider_name} does not implement generate_image")

    async def _edit_image(self, request: ImageEditRequest, model: str) -> GenerationResult:
        raise UnsupportedCapabilityError(f"{self.provider_name} does not implement edit_image")

    async def _generate_tts(self, request: TTSRequest, model: str) -> GenerationResult:
        raise UnsupportedCapabilityError(f"{self.provider_name} does not implement generate_tts")

    async def _generate_video(self, request: VideoRequest, model: str) -> GenerationResult:
        raise UnsupportedCapabilityError(f"{self.provider_name} does not implement generate_video")

    async def _transcribe(self, request: TranscriptionRequest, model: str) -> GenerationResult:
        raise UnsupportedCapabilityError(f"{self.provider_name} does not implement transcribe")

    async def _check_video_status(self, task_id: str) -> GenerationResult:
        raise UnsupportedCapabilityError(f"{self.provider_name} does not implement check_video_status")

    # ==========================================================================
    # Internals
    # ==========================================================================

    def _require_client(self) -> Any:
        client = getattr(self, "client", None)
        if client is None:
            raise ConfigurationError(f"{self.provider_name} client not configured (missing API key)")
        return client

    def _ensure_implemented(self, hook: str, operation: str) -> None:
        if getattr(type(self), hook) is getattr(BaseAIProvider, hook):
            raise UnsupportedCapabilityError(f"{self.provider_name} does not implement {operation}")

    def _select_model(
        self,
        requested: Optional[str],
        capability: Capability,
        label: str,
    ) -> Tuple[Optional[str], Optional[GenerationResult]]:
        """
        Pick the model for an operation.

        Returns (model, None) on success or (None, failure_result) when no
        configured model can serve the capability.
        """
        if requested is None:
            model = self.default_model(capability)
            if model is None:
                return None, GenerationResult.failure(
                    f"{self.provider_name} has no model configured for {label}"
                )
            return model, None

        info = self.find_model(requested)
        if info is not None and not info.has_capability(capability):
            return None, GenerationResult.failure(
                f"{self.provider_name} model '{requested}' does not support {label}", requested
            )
        if info is None and not self.has_capability(capability):
            return None, GenerationResult.failure(
                f"{self.provider_name} has no model configured for {label}", requested
            )
        return requested, None

    async def _run(self, hook: str, operation: str, capability: Capability, request) -> GenerationResult:
        self._ensure_implemented(hook, operation)
        model, failure = self._select_model(request.model, capability, operation.replace("_", " "))
        if failure is not None:
            return failure
        try:
            return await getattr(self, hook)(request, model)
        except UnsupportedCapabilityError:
            raise
        except Exception as e:
            return GenerationResult.failure(describe_error(e, self.logger), model)
