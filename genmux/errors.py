import logging
from typing import Optional

from openai import APIError as OpenAIAPIError
from anthropic import APIError as AnthropicAPIError
from google.genai import errors as genai_errors

__all__ = [
    "GenmuxError",
    "ConfigurationError",
    "ProviderCallError",
    "UnsupportedCapabilityError",
    "ConversationModeError",
    "UnknownProviderError",
    "describe_error",
]


class GenmuxError(Exception):
    """Base class for errors raised by genmux."""


class ConfigurationError(GenmuxError, RuntimeError):
    """Missing API key or malformed configuration value."""


class ProviderCallError(GenmuxError):
    """A provider endpoint returned an error or an unusable response."""

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.status_code = status_code


class UnsupportedCapabilityError(GenmuxError, NotImplementedError):
    """The adapter does not implement the requested operation."""


class ConversationModeError(GenmuxError, ValueError):
    """History and continuation-token conversation modes were mixed."""


class UnknownProviderError(GenmuxError, ValueError):
    """An explicitly requested provider is not registered."""


# Error type name fragments -> message prefix
ERROR_TYPE_PATTERNS = {
    "ConnectionError": "Connection error",
    "APIConnectionError": "Connection error",
    "ConnectError": "Connection error",
    "TimeoutException": "Timeout",
    "APITimeoutError": "Timeout",
    "RateLimitError": "Rate limit error",
    "HTTPStatusError": "HTTP error",
    "HTTPError": "HTTP error",
}


def describe_error(exception: Exception, logger: logging.Logger) -> str:
    """
    Classify an exception caught at an adapter boundary into a one-line message.

    Args:
        exception: The caught exception.
        logger: Logger of the adapter that caught it.

    Returns:
        str: Message stored in the result's ``error`` field.
    """
    error_type = type(exception).__name__
    error_message = str(exception)

    if isinstance(exception, (OpenAIAPIError, AnthropicAPIError)):
        status_info = getattr(exception, "status_code", "unknown")
        msg = f"API error ({status_info}): {error_message}"
        logger.error(msg)
        return msg

    if isinstance(exception, genai_errors.APIError):
        msg = f"API error ({exception.code}): {error_message}"
        logger.error(msg)
        return msg

    if isinstance(exception, ProviderCallError):
        status_info = exception.status_code if exception.status_code is not None else "unknown"
        msg = f"Provider error ({status_info}): {error_message}"
        logger.error(msg)
        return msg

    if isinstance(exception, ConfigurationError):
        msg = f"Configuration error: {error_message}"
        logger.error(msg)
        return msg

    for pattern, prefix in ERROR_TYPE_PATTERNS.items():
        if pattern in error_type:
            msg = f"{prefix}: {error_message}"
            logger.error(msg)
            return msg

    msg = f"{error_type}: {error_message}"
    logger.exception(msg)
    return msg
