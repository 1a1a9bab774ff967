"""Retry counter strategies.

A retry counter reads and writes the number of times a message has already
been sent back for redelivery. The count travels inside the message:

    PropertyRetryCounter: as a named property on the message envelope.
    PayloadRetryCounter: as a field of the application payload, which must
        implement the RetryCount capability.
"""

from enum import Enum
from typing import Protocol

from poisonpill.core.errors import CounterAccessError
from poisonpill.core.logging import get_logger
from poisonpill.core.message import Message, ObjectMessage, RetryCount

RETRY_COUNT_PROPERTY = "RetryCount"

_log = get_logger("poisonpill.counter")


class CounterStrategy(Enum):
    """Where the retry count is stored."""

    PROPERTY = "property"
    PAYLOAD = "payload"


class RetryCounter(Protocol):
    """Read/write access to the retry count carried by a message."""

    def get_retry_count(self, message: Message) -> int: ...

    def set_retry_count(self, message: Message, retry_count: int) -> Message: ...


def _as_count(value: object, source: str, message_id: str | None) -> int:
    # bool is an int subclass but never a valid count
    if isinstance(value, int) and not isinstance(value, bool):
        return value if value > 0 else 0
    _log.warning(
        f"Unexpected type for retry count {source}: {type(value).__name__}",
        extra={"message_id": message_id, "value": repr(value)},
    )
    return 0


class PropertyRetryCounter:
    """Stores the retry count as a message property.

    Reads never fail on malformed values: a missing, negative or non-integer
    property counts as zero. Writes keep every other property intact.
    """

    def __init__(self, property_name: str = RETRY_COUNT_PROPERTY) -> None:
        if not property_name or not property_name.strip():
            raise ValueError("property_name must not be empty")
        self.property_name = property_name

    def get_retry_count(self, message: Message) -> int:
        try:
            value = message.get_property(self.property_name)
        except AttributeError as e:
            raise CounterAccessError(
                f"Problem accessing properties of {type(message).__name__}"
            ) from e
        if value is None:
            return 0
        return _as_count(value, f"property {self.property_name!r}", message.id)

    def set_retry_count(self, message: Message, retry_count: int) -> Message:
        """Write the retry count, preserving all other properties.

        Other properties are copied out, the envelope's properties are
        cleared, the count is written, then the copies are restored.
        Some brokers only allow properties to be rewritten after a clear.
        """
        try:
            preserved = {
                name: message.get_property(name)
                for name in message.property_names()
                if name != self.property_name
            }
            message.clear_properties()
            message.set_property(self.property_name, retry_count)
            for name, value in preserved.items():
                message.set_property(name, value)
        except (AttributeError, TypeError, ValueError) as e:
            raise CounterAccessError(
                f"Could not set retry count property {self.property_name!r}"
            ) from e
        return message


class PayloadRetryCounter:
    """Stores the retry count on the application payload.

    Only ObjectMessage instances whose payload implements RetryCount are
    supported. Anything else is a handler configuration mistake and raises
    CounterAccessError instead of silently counting from zero.
    """

    def _carrier(self, message: Message) -> RetryCount:
        if not isinstance(message, ObjectMessage):
            raise CounterAccessError(
                f"Payload retry counting requires an ObjectMessage, got {type(message).__name__}"
            )
        if not isinstance(message.payload, RetryCount):
            raise CounterAccessError(
                f"Payload {type(message.payload).__name__} does not implement RetryCount"
            )
        return message.payload

    def get_retry_count(self, message: Message) -> int:
        value = self._carrier(message).get_retry_count()
        return _as_count(value, "payload field", message.id)

    def set_retry_count(self, message: Message, retry_count: int) -> Message:
        carrier = self._carrier(message)
        try:
            carrier.set_retry_count(retry_count)
        except (TypeError, ValueError) as e:
            raise CounterAccessError(
                f"Could not set retry count on payload {type(carrier).__name__}"
            ) from e
        return message


def create_counter(strategy: CounterStrategy) -> RetryCounter:
    """Return the counter implementation for a strategy."""
    if strategy is CounterStrategy.PROPERTY:
        return PropertyRetryCounter()
    if strategy is CounterStrategy.PAYLOAD:
        return PayloadRetryCounter()
    raise ValueError(f"Unknown counter strategy: {strategy!r}")
