from .client import UnifiedAIClient
from .conversation import ConversationManager
from .errors import (
    ConfigurationError, ConversationModeError, GenmuxError, ProviderCallError,
    UnknownProviderError, UnsupportedCapabilityError,
)
from .pricing import calculate_cost, tiered_pricing
from .rich_printer import RichPrinter
from .settings import Settings, get_settings, load_settings
from .tools import ToolRegistry
from .types import (
    Capability, ContinuationToken, Cost, GenerationResult, History,
    ImageEditRequest, ImageRequest, Message, ModelInfo, TextRequest,
    TranscriptionRequest, TTSRequest, Usage, VideoRequest,
)
from .utils import create_message, read_image_file

__all__ = [
    "UnifiedAIClient",
    "ConversationManager",
    "ToolRegistry",
    "RichPrinter",
    "Settings",
    "get_settings",
    "load_settings",
    "calculate_cost",
    "tiered_pricing",
    "create_message",
    "read_image_file",
    "Capability",
    "ModelInfo",
    "Usage",
    "Cost",
    "Message",
    "History",
    "ContinuationToken",
    "TextRequest",
    "ImageRequest",
    "ImageEditRequest",
    "TTSRequest",
    "VideoRequest",
    "TranscriptionRequest",
    "GenerationResult",
    "GenmuxError",
    "ConfigurationError",
    "ConversationModeError",
    "ProviderCallError",
    "UnknownProviderError",
    "UnsupportedCapabilityError",
]
