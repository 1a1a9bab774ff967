"""poisonpill - Retry-count routing for poison messages."""

from poisonpill.core import (
    DEFAULT_MAX_RETRIES,
    RETRY_COUNT_PROPERTY,
    ConfigurationError,
    CounterAccessError,
    CounterStrategy,
    DispatchOutcome,
    ListenerContainer,
    Message,
    MessageHandler,
    ObjectMessage,
    PoisonPillError,
    RetryCount,
    RetryCountModel,
    RetryingDispatcher,
    RetryPolicy,
    RoutingSendError,
    TextMessage,
    TransportError,
    with_retry_routing,
)
from poisonpill.transport import (
    InMemoryBroker,
    InMemoryReceiver,
    InMemorySender,
    PayloadOnlySender,
    Receiver,
    Sender,
)

__version__ = "0.1.0"

__all__ = [
    # Core
    "Message",
    "TextMessage",
    "ObjectMessage",
    "MessageHandler",
    "RetryingDispatcher",
    "RetryPolicy",
    "DispatchOutcome",
    "ListenerContainer",
    "with_retry_routing",
    # Retry counting
    "CounterStrategy",
    "RetryCount",
    "RetryCountModel",
    "RETRY_COUNT_PROPERTY",
    "DEFAULT_MAX_RETRIES",
    # Errors
    "PoisonPillError",
    "ConfigurationError",
    "CounterAccessError",
    "RoutingSendError",
    "TransportError",
    # Transports
    "Sender",
    "Receiver",
    "InMemoryBroker",
    "InMemorySender",
    "PayloadOnlySender",
    "InMemoryReceiver",
    # Meta
    "__version__",
]
