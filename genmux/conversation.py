"""
Conversation state threading for text generation.

Two mutually exclusive modes exist:

- History: the caller keeps the ordered turns and passes them on every call;
  the updated sequence comes back in ``GenerationResult.messages``.
- Continuation token: the provider keeps the context server-side; the caller
  only threads ``GenerationResult.response_id`` into the next call.
"""
import logging
from typing import List, Optional

from .errors import ConversationModeError
from .types import (
    ContinuationToken, ConversationRef, GenerationResult, History, Message,
    TextRequest,
)
from .utils import create_message

logger = logging.getLogger(__name__)


class ConversationManager:

    @staticmethod
    def resolve(request: TextRequest) -> Optional[ConversationRef]:
        """
        Pick the conversation mode of a request.

        Args:
            request (TextRequest): The incoming request.

        Returns:
            Optional[ConversationRef]: ``History``, ``ContinuationToken`` or
            None for a stateless call.

        Raises:
            ConversationModeError: If history and continuation selectors are
                                   combined.
        """
        wants_history = request.messages is not None
        wants_token = request.use_conversation_state or request.previous_response_id is not None

        if request.conversation is not None:
            if wants_history or wants_token:
                raise ConversationModeError(
                    "Pass either 'conversation' or the messages/previous_response_id selectors, not both"
                )
            return request.conversation

        if wants_history and wants_token:
            raise ConversationModeError(
                "History mode (messages) and continuation mode "
                "(use_conversation_state/previous_response_id) cannot be mixed"
            )
        if wants_token:
            return ContinuationToken(request.previous_response_id)
        if wants_history:
            return History(tuple(request.messages))
        return None

    @staticmethod
    def for_provider(
        conversation: Optional[ConversationRef],
        supports_continuation: bool,
        provider_name: str = "",
    ) -> Optional[ConversationRef]:
        """
        Downgrade a continuation request for providers that cannot continue.

        The fallback is a fresh history conversation: the call is answered
        without prior context and the result carries ``messages`` instead of
        a ``response_id``.
        """
        if isinstance(conversation, ContinuationToken) and not supports_continuation:
            logger.warning(
                "%s does not support continuation tokens; falling back to history mode",
                provider_name or "provider",
            )
            return History()
        return conversation

    @staticmethod
    def build_turns(conversation: Optional[ConversationRef], prompt: str) -> List[Message]:
        """Prior turns (history mode only) followed by the new user turn."""
        turns: List[Message] = []
        if isinstance(conversation, History):
            turns.extend(dict(m) for m in conversation.messages)
        turns.append(create_message("user", prompt))
        return turns

    @staticmethod
    def record(
        conversation: Optional[ConversationRef],
        prompt: str,
        text: str,
        response_id: Optional[str],
        result: GenerationResult,
    ) -> GenerationResult:
        """
        Write the updated conversation state into a successful result.

        History mode appends the user and assistant turns (no truncation);
        continuation mode stores the new response id.
        """
        if isinstance(conversation, History):
            result.messages = [dict(m) for m in conversation.messages] + [
                create_message("user", prompt),
                create_message("assistant", text),
            ]
        elif isinstance(conversation, ContinuationToken):
            result.response_id = response_id
        return result
