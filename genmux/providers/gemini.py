from typing import Any, List, Optional, Sequence, Tuple

from google import genai
from google.genai import types

from .base import BaseAIProvider, TextCall
from ..errors import ProviderCallError
from ..pricing import tiered_pricing
from ..settings import Settings
from ..tools import ToolRegistry
from ..types import (
    Capability, FailedGeneration, GenerationOutcome, GenerationResult,
    ImageRequest, Message, ModelInfo, PlainText, ToolCall, ToolCallRequested,
    ToolDefinition, Usage,
)
from ..utils import strip_schema_keys

# Gemini's schema validator rejects these JSON-schema fields
UNSUPPORTED_SCHEMA_KEYS = ("additionalProperties",)


class GeminiProvider(BaseAIProvider):
    """
    Provider for Google Gemini API (using google-genai SDK).
    """

    provider_name = "gemini"
    MODELS = (
        # Prompts above 200k tokens are billed at the higher tier for both directions
        ModelInfo(
            model="gemini-2.5-pro",
            capabilities=frozenset({Capability.TEXT}),
            provider="gemini",
            tiered_pricing=tiered_pricing(
                200_000,
                base=(0.00000125, 0.00001),
                above=(0.0000025, 0.000015),
            ),
        ),
        ModelInfo(
            model="gemini-2.5-flash",
            capabilities=frozenset({Capability.TEXT}),
            provider="gemini",
            input_token_price=0.0000003,
            output_token_price=0.0000025,
        ),
        ModelInfo(
            model="gemini-2.5-flash-image",
            capabilities=frozenset({Capability.IMAGE}),
            provider="gemini",
            input_token_price=0.0000003,
            output_token_price=0.00003,
        ),
    )

    def __init__(
        self,
        api_key: Optional[str],
        *,
        tools: Optional[ToolRegistry] = None,
        settings: Optional[Settings] = None,
        models=None,
    ):
        super().__init__(api_key, tools=tools, settings=settings, models=models)
        if api_key:
            self.client = genai.Client(api_key=api_key)
        else:
            self.client = None

    # ==========================================================================
    # Tools
    # ==========================================================================

    def _system_tool(self, name: str) -> Optional[types.Tool]:
        if name == "web_search":
            return types.Tool(google_search=types.GoogleSearch())
        return None

    def _user_tool(self, definition: ToolDefinition) -> types.FunctionDeclaration:
        return types.FunctionDeclaration(
            name=definition.name,
            description=definition.description,
            parameters=strip_schema_keys(definition.parameters, UNSUPPORTED_SCHEMA_KEYS),
        )

    def _build_tools(self, system_tools: Sequence[str], user_tools: Sequence[str]) -> List[Any]:
        """Group every function declaration into a single ``types.Tool``."""
        tools = super()._build_tools(system_tools, user_tools)
        declarations = [t for t in tools if isinstance(t, types.FunctionDeclaration)]
        merged = [t for t in tools if not isinstance(t, types.FunctionDeclaration)]
        if declarations:
            merged.append(types.Tool(function_declarations=declarations))
        return merged

    # ==========================================================================
    # Text
    # ==========================================================================

    async def _complete(self, call: TextCall) -> GenerationOutcome:
        """
        Send a generate_content request.

        Handles:
        - Role mapping (assistant -> model).
        - System turns and the instruction as ``system_instruction``.
        - Tool configuration.
        """
        client = self._require_client()
        system_instruction, contents = self._convert_messages(call.turns, call.instructions)

        config_kwargs = {
            "temperature": call.temperature,
            "max_output_tokens": call.max_tokens,
            "system_instruction": system_instruction,
        }
        if call.tools:
            config_kwargs["tools"] = call.tools
        config = types.GenerateContentConfig(**config_kwargs)

        call.payload = {"contents": contents, "config": config}
        self.logger.debug("request model=%s contents=%s tools=%d", call.model, contents, len(call.tools))
        response = await client.aio.models.generate_content(
            model=call.model,
            contents=contents,
            config=config,
        )
        self.logger.debug("response %s", response)
        return self._to_outcome(response)

    async def _complete_tool_results(
        self,
        call: TextCall,
        outcome: ToolCallRequested,
        results: List[Tuple[ToolCall, str]],
    ) -> GenerationOutcome:
        """
        Replay the model's function-call content and answer it with one
        user turn of ``function_response`` parts.
        """
        client = self._require_client()

        response_parts = [
            types.Part(function_response=types.FunctionResponse(
                id=getattr(tool_call.raw, "id", None),
                name=tool_call.name,
                response={"result": output},
            ))
            for tool_call, output in results
        ]
        contents = list(call.payload["contents"]) + [
            outcome.raw.candidates[0].content,
            types.Content(role="user", parts=response_parts),
        ]

        response = await client.aio.models.generate_content(
            model=call.model,
            contents=contents,
            config=call.payload["config"],
        )
        self.logger.debug("follow-up response %s", response)
        return self._to_outcome(response)

    @staticmethod
    def _convert_messages(
        turns: List[Message],
        instructions: Optional[str],
    ) -> Tuple[Optional[str], List[types.Content]]:
        """
        Convert turns to Gemini contents.

        Returns:
            Tuple containing:
            - system_instruction: Instruction and system turns joined (or None)
            - contents: ``types.Content`` list with Gemini roles
        """
        system_parts = [instructions] if instructions else []
        contents = []
        for msg in turns:
            if msg["role"] == "system":
                system_parts.append(msg["content"])
                continue
            gemini_role = "model" if msg["role"] == "assistant" else "user"
            contents.append(types.Content(role=gemini_role, parts=[types.Part(text=msg["content"])]))

        system_instruction = "\n\n".join(system_parts) if system_parts else None
        return system_instruction, contents

    @staticmethod
    def _usage(response) -> Usage:
        um = getattr(response, "usage_metadata", None)
        if um is None:
            return Usage()
        return Usage(
            input_tokens=um.prompt_token_count or 0,
            output_tokens=um.candidates_token_count or 0,
            total_tokens=um.total_token_count,
        )

    @staticmethod
    def _parts(response) -> List[types.Part]:
        candidate = response.candidates[0]
        if candidate.content is None or not candidate.content.parts:
            return []
        return list(candidate.content.parts)

    @classmethod
    def _to_outcome(cls, response) -> GenerationOutcome:
        """
        Normalize a Gemini response.

        Tool requests are ``function_call`` parts. Gemini does not always
        provide call ids, so a positional id is generated when missing.
        """
        if not response.candidates:
            feedback = getattr(response, "prompt_feedback", None)
            reason = getattr(feedback, "block_reason", None)
            return FailedGeneration(error=f"Gemini returned no candidates (block reason: {reason})")

        parts = cls._parts(response)
        text = "".join(p.text for p in parts if p.text and not getattr(p, "thought", None))

        calls = []
        for part in parts:
            if part.function_call:
                fc = part.function_call
                calls.append(ToolCall(
                    id=fc.id or f"gemini_{fc.name}_{len(calls)}",
                    name=fc.name,
                    arguments=dict(fc.args or {}),
                    raw=fc,
                ))

        usage = cls._usage(response)
        response_id = getattr(response, "response_id", None)
        if calls:
            return ToolCallRequested(calls=calls, text=text, usage=usage, response_id=response_id, raw=response)
        return PlainText(text=text, usage=usage, response_id=response_id, raw=response)

    # ==========================================================================
    # Images
    # ==========================================================================

    async def _generate_image(self, request: ImageRequest, model: str) -> GenerationResult:
        client = self._require_client()
        response = await client.aio.models.generate_content(
            model=model,
            contents=request.prompt,
            config=types.GenerateContentConfig(response_modalities=["TEXT", "IMAGE"]),
        )

        if not response.candidates:
            raise ProviderCallError("Gemini returned no candidates")
        for part in self._parts(response):
            if part.text:
                self.logger.debug("image text part: %s", part.text)
            elif part.inline_data is not None and part.inline_data.data:
                usage = self._usage(response)
                return GenerationResult(
                    model=model,
                    image=part.inline_data.data,
                    image_type=part.inline_data.mime_type,
                    usage=usage,
                    cost=self.calculate_cost(model, usage.input_tokens, usage.output_tokens),
                )
        raise ProviderCallError("Gemini returned no image data")
