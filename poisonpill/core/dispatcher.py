"""RetryingDispatcher: poison-message routing for a wrapped handler.

The dispatcher invokes a handler for each message. When the handler fails it:
- Reads the retry count carried by the message
- Sends the message back to the retry route with the count incremented, or
- Sends the unmodified message to the error route once max_retries is spent

Dead-lettering returns normally so the inbound message is consumed. A failure
while routing propagates; the broker then redelivers the original message
without an incremented count.
"""

from collections.abc import Callable
from dataclasses import dataclass
from enum import Enum
from typing import TYPE_CHECKING

from poisonpill.core.counter import RetryCounter, create_counter
from poisonpill.core.errors import ConfigurationError, RoutingSendError
from poisonpill.core.handler import (
    HandlerFailure,
    HandlerFunc,
    MessageHandler,
    as_handler,
    invoke_handler,
)
from poisonpill.core.logging import get_logger
from poisonpill.core.message import Message
from poisonpill.core.policy import RetryPolicy

if TYPE_CHECKING:
    from poisonpill.transport.base import Sender


class DispatchOutcome(Enum):
    """What happened to a dispatched message."""

    SUCCESS = "success"
    REQUEUED = "requeued"
    DEAD_LETTERED = "dead_lettered"


@dataclass(frozen=True)
class Route:
    """A resolved sender and destination pair.

    destination None means the sender's default destination.
    """

    name: str
    sender: "Sender"
    destination: str | None = None

    @property
    def target(self) -> str | None:
        return self.destination or self.sender.default_destination


class RetryingDispatcher(MessageHandler):
    """Wraps a handler and routes its failed messages."""

    def __init__(
        self,
        handler: MessageHandler | HandlerFunc,
        retry_sender: "Sender | None",
        error_sender: "Sender | None" = None,
        policy: RetryPolicy | None = None,
        counter: RetryCounter | None = None,
        name: str | None = None,
    ) -> None:
        """Build a dispatcher and validate its routes.

        Args:
            handler: The wrapped handler, a MessageHandler or a callable.
            retry_sender: Sender used for redelivery. Usually bound to the
                handler's own input queue.
            error_sender: Sender used for dead letters. None reuses the
                retry sender.
            policy: Routing configuration. Defaults to RetryPolicy().
            counter: Retry counter override. Defaults to the counter for
                policy.counter.
            name: Optional name used in logs.

        Raises:
            ConfigurationError: If a route has no usable destination.
        """
        self.handler = as_handler(handler)
        super().__init__(name=name or f"Retrying{self.handler.name}")
        self.policy = policy or RetryPolicy()
        self.counter = counter or create_counter(self.policy.counter)
        self._log = get_logger("poisonpill.dispatcher")
        self.retry_route, self.error_route = self._resolve_routes(retry_sender, error_sender)

    def _resolve_routes(
        self,
        retry_sender: "Sender | None",
        error_sender: "Sender | None",
    ) -> tuple[Route, Route]:
        if retry_sender is None:
            raise ConfigurationError("A retry sender must be provided")
        if retry_sender.default_destination is None and self.policy.retry_destination is None:
            raise ConfigurationError(
                "A retry destination must be provided if the retry sender has no default"
            )
        retry_route = Route("retry", retry_sender, self.policy.retry_destination)

        if error_sender is None:
            self._log.warning(
                "No separate error sender set for consistently failing messages. "
                "Will use the retry sender instead.",
                extra={"handler": self.handler.name},
            )
            error_route = Route(
                "error",
                retry_sender,
                self.policy.error_destination or self.policy.retry_destination,
            )
            return retry_route, error_route

        if error_sender.default_destination is None and self.policy.error_destination is None:
            raise ConfigurationError(
                "An error destination must be provided if the error sender has no default"
            )
        return retry_route, Route("error", error_sender, self.policy.error_destination)

    @property
    def max_retries(self) -> int:
        return self.policy.max_retries

    async def on_message(self, message: Message) -> None:
        await self.dispatch(message)

    async def dispatch(self, message: Message) -> DispatchOutcome:
        """Handle a message and route it if the handler fails.

        Returns:
            The outcome for this message.

        Raises:
            TransportError: Raised by the handler's own messaging I/O.
            CounterAccessError: If the retry count cannot be read or written.
            RoutingSendError: If the retry or error send fails.
        """
        result = await invoke_handler(self.handler, message)
        if not isinstance(result, HandlerFailure):
            return DispatchOutcome.SUCCESS

        self._log.error(
            f"Error in message handler {self.handler.name}: {result.error}",
            exc_info=result.error,
            extra={
                "message_id": message.id,
                "handler": self.handler.name,
                "error": str(result.error),
            },
        )

        retries = self.counter.get_retry_count(message)
        self._log.info(
            f"Number of retries for this message is {retries}. "
            f"Max retries is configured to {self.max_retries}.",
            extra={
                "message_id": message.id,
                "handler": self.handler.name,
                "retry_count": retries,
                "max_retries": self.max_retries,
            },
        )

        if retries + 1 > self.max_retries:
            self._log.error(
                f"Number of retries ({retries}) reached max retries ({self.max_retries}). "
                "Sending to error destination.",
                extra={
                    "message_id": message.id,
                    "handler": self.handler.name,
                    "retry_count": retries,
                    "max_retries": self.max_retries,
                    "route": self.error_route.name,
                    "destination": self.error_route.target,
                    "outcome": DispatchOutcome.DEAD_LETTERED.value,
                },
            )
            await self._send(self.error_route, message)
            return DispatchOutcome.DEAD_LETTERED

        self.counter.set_retry_count(message, retries + 1)
        await self._send(self.retry_route, message)
        self._log.info(
            f"Requeued message for retry {retries + 1}/{self.max_retries}",
            extra={
                "message_id": message.id,
                "handler": self.handler.name,
                "retry_count": retries + 1,
                "max_retries": self.max_retries,
                "route": self.retry_route.name,
                "destination": self.retry_route.target,
                "outcome": DispatchOutcome.REQUEUED.value,
            },
        )
        return DispatchOutcome.REQUEUED

    async def _send(self, route: Route, message: Message) -> None:
        try:
            await route.sender.send(message, route.destination)
        except Exception as e:
            self._log.error(
                f"Failed to send message to {route.name} destination: {e}",
                extra={
                    "message_id": message.id,
                    "handler": self.handler.name,
                    "route": route.name,
                    "destination": route.target,
                    "error": str(e),
                },
            )
            raise RoutingSendError(e, route.name, route.target) from e


def with_retry_routing(
    retry_sender: "Sender",
    error_sender: "Sender | None" = None,
    policy: RetryPolicy | None = None,
    counter: RetryCounter | None = None,
) -> Callable[[HandlerFunc], RetryingDispatcher]:
    """Decorator turning a handler function into a RetryingDispatcher.

    Example:
        @with_retry_routing(retry_sender, error_sender, RetryPolicy(max_retries=3))
        async def handle_order(message: Message) -> None:
            ...
    """

    def decorator(func: HandlerFunc) -> RetryingDispatcher:
        return RetryingDispatcher(
            func,
            retry_sender=retry_sender,
            error_sender=error_sender,
            policy=policy,
            counter=counter,
        )

    return decorator
