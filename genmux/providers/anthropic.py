from typing import Any, Dict, List, Optional, Tuple

from anthropic import AsyncAnthropic

from .base import BaseAIProvider, TextCall
from ..settings import Settings
from ..tools import ToolRegistry
from ..types import (
    Capability, GenerationOutcome, Message, ModelInfo, PlainText, ToolCall,
    ToolCallRequested, ToolDefinition, Usage,
)
from ..utils import parse_tool_arguments


class AnthropicProvider(BaseAIProvider):
    """
    Provider for Anthropic (Claude) API. Text only.
    """

    provider_name = "anthropic"
    MODELS = (
        ModelInfo(
            model="claude-sonnet-4-0",
            capabilities=frozenset({Capability.TEXT}),
            provider="anthropic",
            input_token_price=0.000003,
            output_token_price=0.000015,
        ),
        ModelInfo(
            model="claude-opus-4-0",
            capabilities=frozenset({Capability.TEXT}),
            provider="anthropic",
            input_token_price=0.000015,
            output_token_price=0.000075,
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
        self.client = AsyncAnthropic(api_key=api_key) if api_key else None

    def _system_tool(self, name: str) -> Optional[Dict[str, Any]]:
        if name == "web_search":
            return {"type": "web_search_20250305", "name": "web_search", "max_uses": 5}
        return None

    def _user_tool(self, definition: ToolDefinition) -> Dict[str, Any]:
        # Claude uses 'input_schema' instead of 'parameters'
        return {
            "name": definition.name,
            "description": definition.description,
            "input_schema": definition.parameters,
        }

    async def _complete(self, call: TextCall) -> GenerationOutcome:
        """
        Send a Messages API request.

        System turns from the history and the instruction are sent as the
        top-level ``system`` parameter.
        """
        client = self._require_client()
        system_text, messages = self._convert_messages(call.turns, call.instructions)

        request: Dict[str, Any] = {
            "model": call.model,
            "messages": messages,
            "max_tokens": call.max_tokens,
            "temperature": call.temperature,
        }
        if system_text:
            request["system"] = system_text
        if call.tools:
            request["tools"] = call.tools

        call.payload = request
        self.logger.debug("request %s", request)
        response = await client.messages.create(**request)
        self.logger.debug("response %s", response)
        return self._to_outcome(response)

    async def _complete_tool_results(
        self,
        call: TextCall,
        outcome: ToolCallRequested,
        results: List[Tuple[ToolCall, str]],
    ) -> GenerationOutcome:
        """
        Replay the assistant's content blocks and answer every ``tool_use``
        block with a ``tool_result`` in one user turn.
        """
        client = self._require_client()

        request = dict(call.payload)
        request["messages"] = list(request["messages"]) + [
            {"role": "assistant", "content": outcome.raw.content},
            {
                "role": "user",
                "content": [
                    {
                        "type": "tool_result",
                        "tool_use_id": tool_call.id,
                        "content": output,
                    }
                    for tool_call, output in results
                ],
            },
        ]

        response = await client.messages.create(**request)
        self.logger.debug("follow-up response %s", response)
        return self._to_outcome(response)

    @staticmethod
    def _convert_messages(
        turns: List[Message],
        instructions: Optional[str],
    ) -> Tuple[Optional[str], List[Dict[str, Any]]]:
        """
        Split turns into Claude's ``system`` string and ``messages`` list.

        Returns:
            Tuple containing:
            - system_text: Instruction and system turns joined (or None)
            - converted: user/assistant messages
        """
        system_parts = [instructions] if instructions else []
        converted = []
        for msg in turns:
            if msg["role"] == "system":
                system_parts.append(msg["content"])
                continue
            converted.append({"role": msg["role"], "content": msg["content"]})

        system_text = "\n\n".join(system_parts) if system_parts else None
        return system_text, converted

    @staticmethod
    def _to_outcome(response) -> GenerationOutcome:
        """
        Normalize a Claude response.

        Tool requests are ``tool_use`` content blocks, signalled by the
        ``tool_use`` stop reason.
        """
        text = "".join(
            block.text for block in response.content if getattr(block, "type", None) == "text"
        )

        usage = Usage()
        if response.usage is not None:
            usage = Usage(
                input_tokens=response.usage.input_tokens,
                output_tokens=response.usage.output_tokens,
            )

        calls = [
            ToolCall(
                id=block.id,
                name=block.name,
                arguments=parse_tool_arguments(block.input),
                raw=block,
            )
            for block in response.content
            if getattr(block, "type", None) == "tool_use"
        ]

        if calls and response.stop_reason == "tool_use":
            return ToolCallRequested(calls=calls, text=text, usage=usage, response_id=response.id, raw=response)
        return PlainText(text=text, usage=usage, response_id=response.id, raw=response)
