"""JSON codec for messages sent over byte-oriented transports."""

import base64
import json
from collections.abc import Iterable
from datetime import datetime
from typing import Any

from pydantic import BaseModel

from poisonpill.core.message import Message, ObjectMessage, PropertyValue, TextMessage

# Tag marking a base64-encoded bytes property value
_BYTES_TAG = "__bytes__"


class CodecError(ValueError):
    """Raised when a message cannot be encoded or decoded."""


_MISSING = object()


def _expect(data: dict[str, Any], field: str, expected: type, default: Any = _MISSING) -> Any:
    """Return data[field], raising CodecError if it is not of the expected type."""
    if field not in data and default is not _MISSING:
        return default
    value = data[field]
    if not isinstance(value, expected):
        raise CodecError(
            f"Field {field!r} must be {expected.__name__}, got {type(value).__name__}"
        )
    return value


class MessageCodec:
    """Encodes messages to JSON strings and back.

    Object payloads are only decoded into registered pydantic models; the
    codec never imports types named by the data it reads.

    Args:
        payload_types: Payload models this codec can decode. Each is
            registered under its class name.
    """

    def __init__(self, payload_types: Iterable[type[BaseModel]] = ()) -> None:
        self._payload_types: dict[str, type[BaseModel]] = {}
        for payload_type in payload_types:
            self.register(payload_type)

    def register(self, payload_type: type[BaseModel], name: str | None = None) -> None:
        """Register a payload model under name (default: its class name)."""
        key = name or payload_type.__name__
        existing = self._payload_types.get(key)
        if existing is not None and existing is not payload_type:
            raise CodecError(f"Payload type name {key!r} already registered for {existing!r}")
        self._payload_types[key] = payload_type

    def _type_name(self, payload: BaseModel) -> str:
        for key, payload_type in self._payload_types.items():
            if type(payload) is payload_type:
                return key
        raise CodecError(f"Payload type {type(payload).__name__} is not registered")

    @staticmethod
    def _encode_property(value: PropertyValue) -> Any:
        if isinstance(value, bytes):
            return {_BYTES_TAG: base64.b64encode(value).decode("ascii")}
        return value

    @staticmethod
    def _decode_property(value: Any) -> PropertyValue:
        if isinstance(value, dict):
            if set(value) != {_BYTES_TAG}:
                raise CodecError(f"Unexpected property value: {value!r}")
            return base64.b64decode(value[_BYTES_TAG])
        return value

    def encode(self, message: Message) -> str:
        """Serialize a message to a JSON string.

        Raises:
            CodecError: For unsupported message kinds or unregistered payloads.
        """
        data: dict[str, Any] = {
            "id": message.id,
            "timestamp": message.timestamp.isoformat(),
            "destination": message.destination,
            "properties": {
                name: self._encode_property(value) for name, value in message.properties.items()
            },
        }
        if isinstance(message, TextMessage):
            data["kind"] = "text"
            data["body"] = message.body
        elif isinstance(message, ObjectMessage):
            data["kind"] = "object"
            data["payload_type"] = self._type_name(message.payload)
            data["payload"] = message.payload.model_dump(mode="json")
        else:
            raise CodecError(f"Cannot encode message of type {type(message).__name__}")
        return json.dumps(data)

    def decode(self, raw: str | bytes) -> Message:
        """Deserialize a message produced by encode().

        Raises:
            CodecError: If the data is malformed or names an unknown payload type.
        """
        try:
            data = json.loads(raw)
        except (TypeError, ValueError) as e:
            raise CodecError(f"Invalid message JSON: {e}") from e
        if not isinstance(data, dict):
            raise CodecError("Message JSON must be an object")

        try:
            timestamp = _expect(data, "timestamp", str)
            properties = _expect(data, "properties", dict, default={})
            envelope = {
                "id": data["id"],
                "timestamp": datetime.fromisoformat(timestamp),
                "destination": data.get("destination"),
                "properties": {
                    name: self._decode_property(value) for name, value in properties.items()
                },
            }
            kind = data["kind"]
            if kind == "text":
                return TextMessage(body=data.get("body", ""), **envelope)
            if kind == "object":
                type_name = _expect(data, "payload_type", str)
                payload_type = self._payload_types.get(type_name)
                if payload_type is None:
                    raise CodecError(f"Unknown payload type: {type_name!r}")
                return ObjectMessage(
                    payload=payload_type.model_validate(data["payload"]), **envelope
                )
        except KeyError as e:
            raise CodecError(f"Message JSON missing field: {e}") from e
        except CodecError:
            raise
        except (TypeError, ValueError) as e:
            raise CodecError(f"Invalid message: {e}") from e
        raise CodecError(f"Unknown message kind: {kind!r}")
