"""Message model for poisonpill."""

import re
from datetime import UTC, datetime
from typing import Any, Literal, Protocol, runtime_checkable
from uuid import uuid4

from pydantic import BaseModel, ConfigDict, Field, field_validator

# UUID v4 regex pattern for validation
_UUID_PATTERN = re.compile(
    r"^[0-9a-f]{8}-[0-9a-f]{4}-4[0-9a-f]{3}-[89ab][0-9a-f]{3}-[0-9a-f]{12}$",
    re.IGNORECASE,
)

# Types a broker can carry as a message property
PropertyValue = bool | int | float | str | bytes
PROPERTY_TYPES = (bool, int, float, str, bytes)


def _check_property(name: Any, value: Any) -> None:
    if not isinstance(name, str) or not name.strip():
        raise ValueError(f"property name must be a non-empty string, got: {name!r}")
    if not isinstance(value, PROPERTY_TYPES):
        raise TypeError(
            f"property {name!r} must be one of bool, int, float, str, bytes, "
            f"got {type(value).__name__}"
        )


class Message(BaseModel):
    """Transport envelope shared by every message variant.

    The envelope is mutable on purpose: brokers hand the same message object
    to the listener, and a retry-count write has to land on that object
    before it is re-sent.

    Attributes:
        id: UUID v4 string, auto-generated if not provided.
        timestamp: UTC datetime, auto-generated if not provided.
        destination: Queue the message was received from or sent to.
        redelivered: Set by receivers when the broker redelivers a message.
        properties: Named scalar attributes carried with the message.
    """

    model_config = ConfigDict(extra="forbid", validate_assignment=True)

    id: str = Field(default_factory=lambda: str(uuid4()))
    timestamp: datetime = Field(default_factory=lambda: datetime.now(UTC))
    destination: str | None = None
    redelivered: bool = False
    properties: dict[str, PropertyValue] = Field(default_factory=dict)

    @field_validator("id")
    @classmethod
    def validate_id(cls, v: str) -> str:
        """Ensure id is a valid UUID v4 string."""
        if not _UUID_PATTERN.match(v):
            raise ValueError(f"id must be a valid UUID v4 string, got: {v!r}")
        return v.lower()

    @field_validator("properties")
    @classmethod
    def validate_properties(cls, v: dict[str, PropertyValue]) -> dict[str, PropertyValue]:
        for name, value in v.items():
            _check_property(name, value)
        return v

    def get_property(self, name: str) -> PropertyValue | None:
        """Return the property value, or None when it is not set."""
        return self.properties.get(name)

    def set_property(self, name: str, value: PropertyValue) -> None:
        """Set a property.

        Raises:
            ValueError: If the name is empty.
            TypeError: If the value is not a supported property type.
        """
        _check_property(name, value)
        self.properties[name] = value

    def property_names(self) -> list[str]:
        return list(self.properties)

    def clear_properties(self) -> None:
        self.properties.clear()


class TextMessage(Message):
    """Message whose payload is a plain string body."""

    kind: Literal["text"] = "text"
    body: str = ""


class ObjectMessage(Message):
    """Message carrying a deserialized application object.

    The payload is any pydantic model. Senders re-serialize it on every send,
    so changes made to the payload object travel with the message.
    """

    kind: Literal["object"] = "object"
    payload: BaseModel


@runtime_checkable
class RetryCount(Protocol):
    """Capability of a payload that stores its own retry count."""

    def get_retry_count(self) -> int: ...

    def set_retry_count(self, retry_count: int) -> None: ...


class RetryCountModel(BaseModel):
    """Base class for payloads that carry their retry count.

    Subclass it for any payload routed through a dispatcher configured with
    the payload counter strategy.
    """

    retry_count: int = 0

    def get_retry_count(self) -> int:
        return self.retry_count

    def set_retry_count(self, retry_count: int) -> None:
        self.retry_count = retry_count
