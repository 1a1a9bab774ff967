"""Exception types for poisonpill."""


class PoisonPillError(Exception):
    """Base class for all poisonpill errors."""


class ConfigurationError(PoisonPillError):
    """Raised at construction time when a dispatcher cannot route messages."""


class CounterAccessError(PoisonPillError):
    """Raised when the retry count of a message cannot be read or written."""


class TransportError(PoisonPillError):
    """Raised by transports for failures in their own messaging I/O.

    Dispatchers never treat this as a handler failure: it propagates so the
    broker can decide whether to redeliver.
    """


class QueueFullError(TransportError):
    """Raised when a bounded queue cannot accept more messages."""


class RoutingSendError(PoisonPillError):
    """Raised when sending a failed message to its retry or error route fails.

    Attributes:
        original: The exception raised by the sender.
        route: "retry" or "error".
        destination: The destination the send was aimed at, if known.
    """

    def __init__(self, original: Exception, route: str, destination: str | None = None):
        self.original = original
        self.route = route
        self.destination = destination
        super().__init__(str(original))

    def __str__(self) -> str:
        base = super().__str__()
        target = self.destination or "<default>"
        return f"{self.route} send to {target} failed: {base}"


class ReceiverUnavailableError(PoisonPillError):
    """Raised when a receiver fails consecutively beyond threshold.

    Attributes:
        failure_count: Number of consecutive failures that triggered this error.
        last_error: The last exception message from the receiver.
    """

    def __init__(self, message: str, failure_count: int = 0, last_error: str | None = None):
        self.failure_count = failure_count
        self.last_error = last_error
        super().__init__(message)

    def __str__(self) -> str:
        base = super().__str__()
        if self.last_error:
            return f"{base} (last error: {self.last_error})"
        return base
