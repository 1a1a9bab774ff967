"""Core components for poisonpill.

This module exposes the primary types, constants, and utilities:

Types:
    Message: Envelope with id, timestamp, destination and typed properties.
    TextMessage, ObjectMessage: Message variants with a string body or an
        application object payload.
    RetryCount: Capability protocol for payloads that carry a retry count.
    RetryCountModel: pydantic base class implementing RetryCount.
    MessageHandler: Base class for listeners.
    RetryingDispatcher: Handler wrapper routing failed messages.
    RetryPolicy: Immutable dispatcher configuration.
    ListenerContainer: Receive loop that acks or releases messages.

Counting:
    CounterStrategy: Enum selecting PROPERTY or PAYLOAD counting.
    PropertyRetryCounter, PayloadRetryCounter: The two counter strategies.

Errors:
    ConfigurationError, CounterAccessError, RoutingSendError,
    TransportError, QueueFullError, ReceiverUnavailableError.

Constants:
    RETRY_COUNT_PROPERTY: Name of the retry count property ("RetryCount").
    DEFAULT_MAX_RETRIES: Default max_retries (5).
"""

from poisonpill.core.codec import CodecError, MessageCodec
from poisonpill.core.container import ContainerStats, ListenerContainer
from poisonpill.core.counter import (
    RETRY_COUNT_PROPERTY,
    CounterStrategy,
    PayloadRetryCounter,
    PropertyRetryCounter,
    RetryCounter,
    create_counter,
)
from poisonpill.core.dispatcher import (
    DispatchOutcome,
    RetryingDispatcher,
    Route,
    with_retry_routing,
)
from poisonpill.core.errors import (
    ConfigurationError,
    CounterAccessError,
    PoisonPillError,
    QueueFullError,
    ReceiverUnavailableError,
    RoutingSendError,
    TransportError,
)
from poisonpill.core.handler import (
    FunctionHandler,
    HandlerFailure,
    HandlerResult,
    HandlerSuccess,
    MessageHandler,
)
from poisonpill.core.message import (
    Message,
    ObjectMessage,
    RetryCount,
    RetryCountModel,
    TextMessage,
)
from poisonpill.core.policy import DEFAULT_MAX_RETRIES, RetryPolicy

__all__ = [
    "Message",
    "TextMessage",
    "ObjectMessage",
    "RetryCount",
    "RetryCountModel",
    "MessageHandler",
    "FunctionHandler",
    "HandlerResult",
    "HandlerSuccess",
    "HandlerFailure",
    "RetryingDispatcher",
    "DispatchOutcome",
    "Route",
    "with_retry_routing",
    "RetryPolicy",
    "DEFAULT_MAX_RETRIES",
    "ListenerContainer",
    "ContainerStats",
    "MessageCodec",
    "CodecError",
    "CounterStrategy",
    "RetryCounter",
    "PropertyRetryCounter",
    "PayloadRetryCounter",
    "create_counter",
    "RETRY_COUNT_PROPERTY",
    "PoisonPillError",
    "ConfigurationError",
    "CounterAccessError",
    "RoutingSendError",
    "TransportError",
    "QueueFullError",
    "ReceiverUnavailableError",
]
