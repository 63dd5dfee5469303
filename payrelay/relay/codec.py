"""JSON codec shared by the inbound handlers and the backend client."""

import json
import typing
from typing import Any

from starlette.responses import JSONResponse

from payrelay.relay.errors import MalformedPayload


def _reject_constant(name: str) -> Any:
    raise ValueError(f"{name} is not a JSON number")


def parse(text: str | bytes) -> dict[str, Any]:
    """Parse a JSON object; anything else raises `MalformedPayload`."""

    if isinstance(text, bytes):
        try:
            text = text.decode("utf-8")
        except UnicodeDecodeError as exc:
            raise MalformedPayload("request body is not valid UTF-8") from exc
    if not text.strip():
        raise MalformedPayload("request body is empty")
    try:
        record = json.loads(text, parse_constant=_reject_constant)
    except json.JSONDecodeError as exc:
        raise MalformedPayload(f"request body is not valid JSON: {exc.msg}") from exc
    except (ValueError, RecursionError) as exc:
        raise MalformedPayload(f"request body is not valid JSON: {exc}") from exc
    if not isinstance(record, dict):
        raise MalformedPayload("request body must be a JSON object")
    return record


def serialize(record: dict[str, Any] | list[Any]) -> str:
    """Render a record as JSON text, keys in insertion order."""

    return json.dumps(record, ensure_ascii=False, allow_nan=False, separators=(",", ":"))


class RelayJSONResponse(JSONResponse):
    """JSON response rendered through the relay codec."""

    def render(self, content: typing.Any) -> bytes:
        return serialize(content).encode("utf-8")
