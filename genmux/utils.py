import base64
import json
from pathlib import Path
from typing import Any, Dict, Iterable, Tuple, Union

from .types import Message, Role

# =============================================================================
# Message Helpers
# =============================================================================

def create_message(role: Role, content: str) -> Message:
    """
    Create a conversation turn for history mode.

    Args:
        role (str): 'user', 'assistant' or 'system'.
        content (str): The text of the turn.

    Returns:
        Message: A dictionary {"role": role, "content": content}.
    """
    return {"role": role, "content": content}


# =============================================================================
# Tool Helpers
# =============================================================================

def strip_schema_keys(schema: Any, keys: Iterable[str] = ("additionalProperties",)) -> Any:
    """
    Return a copy of a JSON schema with the given keys removed at every level.

    Some providers reject schema fields the others accept (Gemini refuses
    ``additionalProperties``). The input schema is left untouched.

    Args:
        schema: A JSON-schema fragment (dict, list or scalar).
        keys: Field names to drop.

    Returns:
        The cleaned copy.
    """
    keys = frozenset(keys)
    if isinstance(schema, dict):
        return {
            k: strip_schema_keys(v, keys)
            for k, v in schema.items()
            if k not in keys
        }
    if isinstance(schema, list):
        return [strip_schema_keys(item, keys) for item in schema]
    return schema


def stringify_tool_result(result: Any) -> str:
    """
    Coerce a tool handler's return value into the text sent back to the model.

    Dicts and lists are serialized as JSON; everything else goes through str().
    """
    if isinstance(result, str):
        return result
    if isinstance(result, (dict, list)):
        try:
            return json.dumps(result, ensure_ascii=False, default=str)
        except (TypeError, ValueError):
            return str(result)
    return str(result)


def parse_tool_arguments(arguments: Union[str, Dict[str, Any], None]) -> Dict[str, Any]:
    """
    Parse tool-call arguments that may arrive as a JSON string.

    Unparseable input is kept under ``_raw`` so the handler can still see it.
    """
    if arguments is None:
        return {}
    if isinstance(arguments, dict):
        return arguments
    try:
        parsed = json.loads(arguments)
    except json.JSONDecodeError:
        return {"_raw": arguments}
    return parsed if isinstance(parsed, dict) else {"_raw": parsed}


# =============================================================================
# Image Helpers
# =============================================================================

MIME_TYPES = {
    ".jpg": "image/jpeg",
    ".jpeg": "image/jpeg",
    ".png": "image/png",
    ".gif": "image/gif",
    ".webp": "image/webp",
    ".bmp": "image/bmp",
}


def read_image_file(image_path: Union[str, Path]) -> Tuple[bytes, str]:
    """
    Read a local image file for editing or image-to-video requests.

    Args:
        image_path (Union[str, Path]): Path to the image file.

    Returns:
        Tuple[bytes, str]: The raw bytes and the MIME type guessed from the
        extension (defaults to image/jpeg).

    Raises:
        FileNotFoundError: If the file does not exist.
    """
    path = Path(image_path)
    if not path.exists():
        raise FileNotFoundError(f"Image file not found: {image_path}")

    mime_type = MIME_TYPES.get(path.suffix.lower(), "image/jpeg")
    return path.read_bytes(), mime_type


def to_data_uri(data: bytes, mime_type: str) -> str:
    """Encode raw bytes as a base64 data URI."""
    b64_data = base64.b64encode(data).decode("utf-8")
    return f"data:{mime_type};base64,{b64_data}"
