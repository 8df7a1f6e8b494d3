from dataclasses import dataclass, field, fields, asdict
from enum import Enum
from typing import (
    Any, Callable, Dict, FrozenSet, List, Literal, Mapping, Optional, Tuple,
    TypedDict, Union,
)

# =============================================================================
# Messages
# =============================================================================

Role = Literal["system", "user", "assistant"]


class Message(TypedDict):
    """
    One conversation turn in history mode.
    """
    role: Role
    content: str


# =============================================================================
# Model Descriptors
# =============================================================================

class Capability(str, Enum):
    """
    Output kinds a model can produce.
    """
    TEXT = "text"
    IMAGE = "image"
    TTS = "tts"
    VIDEO = "video"
    STT = "stt"


# (input_tokens, output_tokens) -> (input_cost, output_cost)
TieredPricing = Callable[[int, int], Tuple[float, float]]


@dataclass(frozen=True)
class ModelInfo:
    """
    Immutable description of one model served by an adapter.

    Pricing is either linear (``input_token_price`` / ``output_token_price``,
    USD per token) or delegated to ``tiered_pricing``. Models with neither
    are billed with the zero sentinel.
    """
    model: str
    capabilities: FrozenSet[Capability]
    provider: Optional[str] = None
    input_token_price: Optional[float] = None
    output_token_price: Optional[float] = None
    tiered_pricing: Optional[TieredPricing] = None
    description: str = ""

    def has_capability(self, capability: Capability) -> bool:
        return capability in self.capabilities


# =============================================================================
# Usage & Cost
# =============================================================================

@dataclass(frozen=True)
class Usage:
    input_tokens: int = 0
    output_tokens: int = 0
    total_tokens: Optional[int] = None

    def __post_init__(self):
        if self.total_tokens is None:
            object.__setattr__(self, "total_tokens", self.input_tokens + self.output_tokens)


@dataclass(frozen=True)
class Cost:
    """
    Cost of one generation call in USD and KRW.

    ``model`` is None only for the zero sentinel returned for unknown or
    unpriced models; check it instead of catching exceptions.
    """
    input_cost: float = 0.0
    output_cost: float = 0.0
    total_cost_usd: float = 0.0
    total_cost_krw: float = 0.0
    model: Optional[str] = None

    @classmethod
    def zero(cls) -> "Cost":
        return cls()

    @property
    def known(self) -> bool:
        return self.model is not None

    def combine(self, other: "Cost") -> "Cost":
        return Cost(
            input_cost=self.input_cost + other.input_cost,
            output_cost=self.output_cost + other.output_cost,
            total_cost_usd=self.total_cost_usd + other.total_cost_usd,
            total_cost_krw=self.total_cost_krw + other.total_cost_krw,
            model=self.model if self.model is not None else other.model,
        )


# =============================================================================
# Tools
# =============================================================================

ToolHandler = Callable[[Dict[str, Any]], Any]


@dataclass(frozen=True)
class ToolDefinition:
    name: str
    description: str
    parameters: Dict[str, Any]
    handler: ToolHandler


@dataclass
class ToolCall:
    """
    A tool invocation requested by a model, normalized across providers.

    ``raw`` keeps the provider's own item so it can be replayed verbatim in
    the tool-result follow-up.
    """
    id: str
    name: str
    arguments: Dict[str, Any]
    raw: Any = None


@dataclass
class ToolInvocation:
    tool_name: str
    arguments: Dict[str, Any]
    raw_result: Any


# =============================================================================
# Conversation References
# =============================================================================

@dataclass(frozen=True)
class History:
    """
    Caller-owned ordered turns, sent in full on every call.
    """
    messages: Tuple[Message, ...] = ()


@dataclass(frozen=True)
class ContinuationToken:
    """
    Opaque provider-issued response id; None starts a new chain.
    """
    response_id: Optional[str] = None


ConversationRef = Union[History, ContinuationToken]


# =============================================================================
# Normalized Generation Outcomes
# =============================================================================

@dataclass
class PlainText:
    text: str
    usage: Usage
    response_id: Optional[str] = None
    raw: Any = None


@dataclass
class ToolCallRequested:
    calls: List[ToolCall]
    text: str
    usage: Usage
    response_id: Optional[str] = None
    raw: Any = None


@dataclass
class FailedGeneration:
    error: str


GenerationOutcome = Union[PlainText, ToolCallRequested, FailedGeneration]


# =============================================================================
# Requests
# =============================================================================

@dataclass
class TextRequest:
    """
    Text generation request.

    Conversation state is selected with exactly one of:
    - ``messages``: history mode (pass ``[]`` to start a new conversation)
    - ``use_conversation_state`` / ``previous_response_id``: continuation mode
    - ``conversation``: an explicit ``History`` or ``ContinuationToken``
    """
    prompt: str
    model: Optional[str] = None
    provider: Optional[str] = None
    ai_rule: Optional[str] = None
    temperature: float = 0.7
    max_tokens: int = 2000
    system_tools: List[str] = field(default_factory=list)
    user_tools: List[str] = field(default_factory=list)
    conversation: Optional[ConversationRef] = None
    messages: Optional[List[Message]] = None
    use_conversation_state: bool = False
    previous_response_id: Optional[str] = None


@dataclass
class ImageRequest:
    prompt: str
    model: Optional[str] = None
    provider: Optional[str] = None
    width: Optional[int] = None
    height: Optional[int] = None
    n: int = 1
    negative_prompt: Optional[str] = None


@dataclass
class ImageEditRequest:
    prompt: str
    source_image: bytes
    model: Optional[str] = None
    provider: Optional[str] = None
    source_mime_type: str = "image/png"
    width: Optional[int] = None
    height: Optional[int] = None
    n: int = 1


@dataclass
class TTSRequest:
    prompt: str
    model: Optional[str] = None
    provider: Optional[str] = None
    voice: Optional[str] = None
    response_format: str = "mp3"
    ai_rule: Optional[str] = "Speak in a friendly and engaging tone"


@dataclass
class VideoRequest:
    prompt: str = ""
    model: Optional[str] = None
    provider: Optional[str] = None
    image: Optional[bytes] = None
    image_url: Optional[str] = None
    image_mime_type: str = "image/png"
    duration: int = 5
    ratio: str = "1280:720"
    options: Dict[str, Any] = field(default_factory=dict)


@dataclass
class TranscriptionRequest:
    audio: bytes
    model: Optional[str] = None
    provider: Optional[str] = None
    filename: str = "audio.mp3"
    language: Optional[str] = None


# =============================================================================
# Results
# =============================================================================

@dataclass
class GenerationResult:
    """
    Uniform result of any adapter operation.

    On failure ``error`` is set and every artifact field stays None.
    """
    model: Optional[str] = None
    text: Optional[str] = None
    image: Optional[bytes] = None
    image_type: Optional[str] = None
    audio: Optional[bytes] = None
    audio_format: Optional[str] = None
    video: Optional[Union[bytes, str]] = None
    task_id: Optional[str] = None
    status: Optional[str] = None
    tools: List[str] = field(default_factory=list)
    tool_invocations: List[ToolInvocation] = field(default_factory=list)
    usage: Optional[Usage] = None
    cost: Optional[Cost] = None
    messages: Optional[List[Message]] = None
    response_id: Optional[str] = None
    error: Optional[str] = None

    @classmethod
    def failure(cls, error: str, model: Optional[str] = None) -> "GenerationResult":
        return cls(model=model, error=error)

    @property
    def ok(self) -> bool:
        return self.error is None

    def to_dict(self) -> Dict[str, Any]:
        # asdict() would deep-copy raw tool results
        data = {f.name: getattr(self, f.name) for f in fields(self)}
        data["usage"] = asdict(self.usage) if self.usage is not None else None
        data["cost"] = asdict(self.cost) if self.cost is not None else None
        data["tools"] = list(self.tools)
        data["tool_invocations"] = [
            {"tool_name": inv.tool_name, "arguments": inv.arguments, "raw_result": inv.raw_result}
            for inv in self.tool_invocations
        ]
        return data


def as_artifact(value: Any) -> Optional[GenerationResult]:
    """
    Recognize a tool return value that is itself a generated artifact.

    Accepts a ``GenerationResult`` or a mapping carrying ``image`` or
    ``audio``; anything else returns None.
    """
    if isinstance(value, GenerationResult):
        if value.image is not None or value.audio is not None:
            return value
        return None
    if isinstance(value, Mapping) and (value.get("image") is not None or value.get("audio") is not None):
        usage = value.get("usage")
        cost = value.get("cost")
        return GenerationResult(
            model=value.get("model"),
            image=value.get("image"),
            image_type=value.get("image_type"),
            audio=value.get("audio"),
            audio_format=value.get("audio_format"),
            usage=_from_mapping(Usage, usage),
            cost=_from_mapping(Cost, cost),
        )
    return None


def _from_mapping(cls, value: Any) -> Any:
    # SDK usage payloads carry extra keys (e.g. input_tokens_details)
    if not isinstance(value, Mapping):
        return value
    names = {f.name for f in fields(cls)}
    return cls(**{k: v for k, v in value.items() if k in names})
