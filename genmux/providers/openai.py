import base64
from typing import Any, Dict, List, Optional, Tuple

from openai import AsyncOpenAI

from .base import BaseAIProvider, TextCall
from ..errors import ProviderCallError
from ..settings import Settings
from ..tools import ToolRegistry
from ..types import (
    Capability, FailedGeneration, GenerationOutcome, GenerationResult,
    ImageEditRequest, ImageRequest, ModelInfo, PlainText, ToolCall,
    ToolCallRequested, ToolDefinition, TranscriptionRequest, TTSRequest, Usage,
)
from ..utils import parse_tool_arguments

IMAGE_GENERATOR_TOOL = "image_generator"


class OpenAIProvider(BaseAIProvider):
    """
    Provider for the OpenAI API.

    Text goes through the Responses API, which is also the only API here
    that supports server-side conversation state (``previous_response_id``).
    Images use the Images API (generate and edit), speech the Audio API.
    """

    provider_name = "openai"
    supports_continuation = True
    MODELS = (
        ModelInfo(
            model="gpt-4.1",
            capabilities=frozenset({Capability.TEXT}),
            provider="openai",
            input_token_price=0.000002,
            output_token_price=0.000008,
        ),
        ModelInfo(
            model="gpt-4o",
            capabilities=frozenset({Capability.TEXT}),
            provider="openai",
            input_token_price=0.0000025,
            output_token_price=0.00001,
        ),
        ModelInfo(
            model="gpt-image-1",
            capabilities=frozenset({Capability.IMAGE}),
            provider="openai",
            input_token_price=0.000005,
            output_token_price=0.00004,
        ),
        ModelInfo(
            model="gpt-4o-mini-tts",
            capabilities=frozenset({Capability.TTS}),
            provider="openai",
            input_token_price=0.0000006,
            output_token_price=0.000012,
        ),
        # Billed per minute of audio, not per token
        ModelInfo(
            model="whisper-1",
            capabilities=frozenset({Capability.STT}),
            provider="openai",
        ),
    )

    def __init__(
        self,
        api_key: Optional[str],
        *,
        tools: Optional[ToolRegistry] = None,
        settings: Optional[Settings] = None,
        models=None,
        base_url: Optional[str] = None,
    ):
        super().__init__(api_key, tools=tools, settings=settings, models=models)
        self.client = AsyncOpenAI(api_key=api_key, base_url=base_url) if api_key else None

        if self.has_capability(Capability.IMAGE):
            self.tools.register(
                IMAGE_GENERATOR_TOOL,
                "Generate an image from a text prompt",
                {
                    "type": "object",
                    "properties": {
                        "prompt": {
                            "type": "string",
                            "description": "The prompt for image generation",
                        },
                    },
                    "required": ["prompt"],
                    "additionalProperties": False,
                },
                self._image_generator,
            )

    async def _image_generator(self, arguments: Dict[str, Any]) -> Any:
        """Tool handler: returns the image result so text generation can short-circuit on it."""
        result = await self.generate_image(ImageRequest(
            prompt=arguments.get("prompt", ""),
            width=arguments.get("width"),
            height=arguments.get("height"),
        ))
        if result.error:
            return f"Error: {result.error}"
        return result

    # ==========================================================================
    # Text
    # ==========================================================================

    def _system_tool(self, name: str) -> Optional[Dict[str, Any]]:
        if name == "web_search":
            return {"type": "web_search_preview"}
        return {"type": name}

    def _user_tool(self, definition: ToolDefinition) -> Dict[str, Any]:
        return {
            "type": "function",
            "name": definition.name,
            "description": definition.description,
            "parameters": definition.parameters,
        }

    async def _complete(self, call: TextCall) -> GenerationOutcome:
        """
        Send a Responses API request.

        Handles:
        - Developer instruction + turns as ``input`` items.
        - ``previous_response_id`` in continuation mode.
        - Forcing web search when it is the only tool requested.
        """
        client = self._require_client()

        input_items: List[Any] = []
        if call.instructions:
            input_items.append({"role": "developer", "content": call.instructions})
        input_items.extend({"role": m["role"], "content": m["content"]} for m in call.turns)

        request: Dict[str, Any] = {
            "model": call.model,
            "input": input_items,
            "temperature": call.temperature,
            "max_output_tokens": call.max_tokens,
        }
        if call.previous_response_id:
            request["previous_response_id"] = call.previous_response_id
        if call.tools:
            request["tools"] = call.tools
            if all(t.get("type") == "web_search_preview" for t in call.tools):
                request["tool_choice"] = {"type": "web_search_preview"}

        call.payload = request
        self.logger.debug("request %s", request)
        response = await client.responses.create(**request)
        self.logger.debug("response %s", response)
        return self._to_outcome(response)

    async def _complete_tool_results(
        self,
        call: TextCall,
        outcome: ToolCallRequested,
        results: List[Tuple[ToolCall, str]],
    ) -> GenerationOutcome:
        client = self._require_client()

        request = dict(call.payload)
        input_items = list(request["input"])
        for tool_call, output in results:
            input_items.append(tool_call.raw)
            input_items.append({
                "type": "function_call_output",
                "call_id": tool_call.id,
                "output": output,
            })
        request["input"] = input_items

        response = await client.responses.create(**request)
        self.logger.debug("follow-up response %s", response)
        return self._to_outcome(response)

    @staticmethod
    def _to_outcome(response) -> GenerationOutcome:
        """
        Normalize a Responses API response.

        Function calls are ``function_call`` items in ``response.output``;
        their ``call_id`` binds the tool result.
        """
        error = getattr(response, "error", None)
        if getattr(response, "status", None) == "failed" or error:
            message = getattr(error, "message", None) or "response failed"
            return FailedGeneration(error=message)

        calls = []
        for item in response.output or []:
            if getattr(item, "type", None) != "function_call":
                continue
            if getattr(item, "status", None) not in (None, "completed"):
                continue
            calls.append(ToolCall(
                id=item.call_id,
                name=item.name,
                arguments=parse_tool_arguments(item.arguments),
                raw=item,
            ))

        usage = Usage()
        if response.usage is not None:
            usage = Usage(
                input_tokens=response.usage.input_tokens,
                output_tokens=response.usage.output_tokens,
                total_tokens=response.usage.total_tokens,
            )

        text = response.output_text or ""
        if calls:
            return ToolCallRequested(calls=calls, text=text, usage=usage, response_id=response.id, raw=response)
        return PlainText(text=text, usage=usage, response_id=response.id, raw=response)

    # ==========================================================================
    # Images
    # ==========================================================================

    @staticmethod
    def _size(width: Optional[int], height: Optional[int]) -> str:
        if width is None or height is None:
            return "auto"
        return f"{width}x{height}"

    def _image_result(self, model: str, response) -> GenerationResult:
        if not response.data or not response.data[0].b64_json:
            raise ProviderCallError("OpenAI returned no image data")

        usage = Usage()
        if getattr(response, "usage", None) is not None:
            usage = Usage(
                input_tokens=response.usage.input_tokens,
                output_tokens=response.usage.output_tokens,
                total_tokens=response.usage.total_tokens,
            )
        return GenerationResult(
            model=model,
            image=base64.b64decode(response.data[0].b64_json),
            image_type="image/png",
            usage=usage,
            cost=self.calculate_cost(model, usage.input_tokens, usage.output_tokens),
        )

    async def _generate_image(self, request: ImageRequest, model: str) -> GenerationResult:
        client = self._require_client()
        response = await client.images.generate(
            model=model,
            prompt=request.prompt,
            n=request.n,
            size=self._size(request.width, request.height),
            quality="auto",
        )
        return self._image_result(model, response)

    async def _edit_image(self, request: ImageEditRequest, model: str) -> GenerationResult:
        client = self._require_client()
        extension = request.source_mime_type.split("/")[-1]
        response = await client.images.edit(
            model=model,
            image=(f"source.{extension}", request.source_image, request.source_mime_type),
            prompt=request.prompt,
            n=request.n,
            size=self._size(request.width, request.height),
        )
        return self._image_result(model, response)

    # ==========================================================================
    # Audio
    # ==========================================================================

    async def _generate_tts(self, request: TTSRequest, model: str) -> GenerationResult:
        client = self._require_client()
        optional_params = {
            "instructions": request.ai_rule,
        }
        response = await client.audio.speech.create(
            model=model,
            input=request.prompt,
            voice=request.voice or "sage",
            response_format=request.response_format,
            **{k: v for k, v in optional_params.items() if v is not None},
        )
        # The speech endpoint reports no usage
        usage = Usage()
        return GenerationResult(
            model=model,
            audio=response.content,
            audio_format=request.response_format,
            usage=usage,
            cost=self.calculate_cost(model, usage.input_tokens, usage.output_tokens),
        )

    async def _transcribe(self, request: TranscriptionRequest, model: str) -> GenerationResult:
        client = self._require_client()
        optional_params = {"language": request.language}
        response = await client.audio.transcriptions.create(
            model=model,
            file=(request.filename, request.audio),
            **{k: v for k, v in optional_params.items() if v is not None},
        )
        return GenerationResult(
            model=model,
            text=response.text,
            usage=Usage(),
            cost=self.calculate_cost(model, 0, 0),
        )
