"""Codecs for socket worker messages.

The codec turns a SocketCommand or SocketResponse into the payload bytes that
travel inside one frame (see transport.py), and back again.

JSON payload format (default codec):

    Command:
        {
            "type": "command",
            "name": str,
            "arguments": {str: Any},
            "id": str | None
        }

    Response:
        {
            "type": "response",
            "status": bool,
            "data": {str: Any},
            "id": str | None
        }

Key order of `arguments` and `data` is preserved.
"""

import json
import pickle
from typing import Any, Dict, Protocol, Union

from socketworker.commands import SocketCommand, SocketResponse
from socketworker.errors import CodecError

Message = Union[SocketCommand, SocketResponse]


class Codec(Protocol):
    """Bidirectional transform between a message and bytes."""

    def encode(self, value: Message) -> bytes:
        ...

    def decode(self, data: bytes) -> Message:
        ...


def serialize_command(command: SocketCommand) -> Dict[str, Any]:
    return {
        "type": "command",
        "name": command.name,
        "arguments": dict(command.arguments),
        "id": command.id,
    }


def serialize_response(response: SocketResponse) -> Dict[str, Any]:
    return {
        "type": "response",
        "status": response.status,
        "data": dict(response.data),
        "id": response.id,
    }


def deserialize_message(payload: Dict[str, Any]) -> Message:
    """
    Build a command or response from a decoded payload dict.

    Raises:
        CodecError: If the payload is not a known message shape
    """
    if not isinstance(payload, dict):
        raise CodecError(f"Expected a JSON object, got {type(payload).__name__}")

    kind = payload.get("type")
    try:
        if kind == "command":
            return SocketCommand(
                name=payload["name"],
                arguments=payload.get("arguments") or {},
                id=payload.get("id"),
            )
        if kind == "response":
            status = payload["status"]
            if not isinstance(status, bool):
                raise CodecError("Response 'status' must be a boolean")
            return SocketResponse(
                status=status,
                data=payload.get("data") or {},
                id=payload.get("id"),
            )
    except KeyError as e:
        raise CodecError(f"Missing field {e} in {kind} message") from e
    except (TypeError, ValueError) as e:
        if isinstance(e, CodecError):
            raise
        raise CodecError(f"Invalid {kind} message: {e}") from e

    raise CodecError(f"Unknown message type: {kind!r}")


class JsonCodec:
    """UTF-8 JSON codec. Argument and data values must be JSON-serializable."""

    name = "json"

    def encode(self, value: Message) -> bytes:
        if isinstance(value, SocketCommand):
            payload = serialize_command(value)
        elif isinstance(value, SocketResponse):
            payload = serialize_response(value)
        else:
            raise CodecError(f"Cannot encode {type(value).__name__}")

        try:
            return json.dumps(payload).encode("utf-8")
        except (TypeError, ValueError) as e:
            raise CodecError(f"Message is not JSON-serializable: {e}") from e

    def decode(self, data: bytes) -> Message:
        try:
            payload = json.loads(data.decode("utf-8"))
        except (UnicodeDecodeError, json.JSONDecodeError) as e:
            raise CodecError(f"Invalid JSON message: {e}") from e
        return deserialize_message(payload)


class PickleCodec:
    """
    Pickle codec for arbitrary Python values.

    Only use between trusted processes: unpickling runs code chosen by the peer.
    """

    name = "pickle"

    def encode(self, value: Message) -> bytes:
        if not isinstance(value, (SocketCommand, SocketResponse)):
            raise CodecError(f"Cannot encode {type(value).__name__}")
        try:
            return pickle.dumps(value, protocol=pickle.HIGHEST_PROTOCOL)
        except (pickle.PicklingError, TypeError, AttributeError) as e:
            raise CodecError(f"Message is not picklable: {e}") from e

    def decode(self, data: bytes) -> Message:
        try:
            value = pickle.loads(data)
        except Exception as e:
            raise CodecError(f"Invalid pickle message: {e}") from e
        if not isinstance(value, (SocketCommand, SocketResponse)):
            raise CodecError(f"Unexpected message type: {type(value).__name__}")
        return value


CODECS = {
    JsonCodec.name: JsonCodec,
    PickleCodec.name: PickleCodec,
}


def get_codec(name: str) -> Codec:
    """
    Resolve a codec by name.

    Raises:
        ValueError: If the codec name is unknown
    """
    try:
        return CODECS[name.strip().lower()]()
    except KeyError:
        raise ValueError(
            f"Unknown codec: {name}. Available codecs: {', '.join(CODECS)}"
        ) from None
