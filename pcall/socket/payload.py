"""Tagged payload codec for socket frames.

Frame shape: ``{"event": str, "payload": [{"type": ..., "value": ...}, ...]}``.
The vocabulary is closed: ``object`` (JSON text parsed back into a
structure) and ``literal`` (JSON scalars passed through). ``function``
entries are refused in both directions; reconstructing callables from
source text would execute arbitrary code.
"""

from __future__ import annotations

import json
from typing import Any

from pydantic_core import PydanticSerializationError, to_jsonable_python

from pcall.utils.exceptions import PayloadTypeError, SocketProtocolError

OBJECT = "object"
LITERAL = "literal"
FUNCTION = "function"

_LITERAL_TYPES = (str, int, float, bool, type(None))


def encode_value(value: Any) -> dict[str, Any]:
    """Tag one argument for the wire."""
    if isinstance(value, _LITERAL_TYPES):
        return {"type": LITERAL, "value": value}
    if callable(value):
        raise PayloadTypeError("function payloads are not supported", type_tag=FUNCTION)
    try:
        return {"type": OBJECT, "value": json.dumps(to_jsonable_python(value))}
    except PydanticSerializationError as e:
        raise PayloadTypeError(f"Unsupported type {type(value).__name__} for value {value!r}") from e


def decode_value(entry: Any) -> Any:
    """Rebuild one argument from its tagged form."""
    if not isinstance(entry, dict) or "type" not in entry:
        raise PayloadTypeError(f"payload entry must be a tagged object, got {entry!r}")
    tag = entry.get("type")
    value = entry.get("value")
    if tag == LITERAL:
        if not isinstance(value, _LITERAL_TYPES):
            raise PayloadTypeError("literal entry must carry a scalar value", type_tag=LITERAL)
        return value
    if tag == OBJECT:
        if not isinstance(value, str):
            raise PayloadTypeError("object entry must carry JSON text", type_tag=OBJECT)
        try:
            return json.loads(value)
        except json.JSONDecodeError as e:
            raise PayloadTypeError(f"object entry is not valid JSON: {e}", type_tag=OBJECT) from e
    if tag == FUNCTION:
        raise PayloadTypeError("function payloads are not accepted", type_tag=FUNCTION)
    raise PayloadTypeError(f"Unknown type: {tag}", type_tag=str(tag))


def encode_payload(args: tuple[Any, ...] | list[Any]) -> list[dict[str, Any]]:
    return [encode_value(arg) for arg in args]


def decode_payload(entries: list[Any]) -> list[Any]:
    return [decode_value(entry) for entry in entries]


def encode_message(event: str, *args: Any) -> str:
    """Serialize a named event and its arguments into one text frame."""
    return json.dumps({"event": event, "payload": encode_payload(args)})


def decode_message(raw: str | bytes) -> tuple[str, list[Any]]:
    """Parse one text frame into ``(event, args)``."""
    try:
        frame = json.loads(raw)
    except (json.JSONDecodeError, UnicodeDecodeError) as e:
        raise SocketProtocolError(f"frame is not valid JSON: {e}", code="BAD_FRAME") from e
    if not isinstance(frame, dict):
        raise SocketProtocolError("frame must be a JSON object", code="BAD_FRAME")
    event = frame.get("event")
    if not isinstance(event, str) or not event:
        raise SocketProtocolError("frame is missing an event name", code="BAD_FRAME")
    entries = frame.get("payload", [])
    if not isinstance(entries, list):
        raise SocketProtocolError("frame payload must be an array", code="BAD_FRAME", details={"event": event})
    return event, decode_payload(entries)
