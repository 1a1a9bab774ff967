"""Handler contract for poisonpill."""

import inspect
from abc import ABC, abstractmethod
from collections.abc import Awaitable, Callable
from dataclasses import dataclass

from poisonpill.core.errors import TransportError
from poisonpill.core.message import Message

HandlerFunc = Callable[[Message], Awaitable[None] | None]


class MessageHandler(ABC):
    """Base class for message listeners.

    Subclasses implement on_message, either as a plain method or as a
    coroutine. A handler signals failure by raising.
    """

    def __init__(self, name: str | None = None) -> None:
        """Initialize the handler.

        Args:
            name: Optional name used in logs. Defaults to the class name.
        """
        self.name = name or self.__class__.__name__

    @abstractmethod
    def on_message(self, message: Message) -> Awaitable[None] | None:
        """Handle one delivered message."""
        ...


class FunctionHandler(MessageHandler):
    """Adapts a plain function or coroutine function to MessageHandler."""

    def __init__(self, func: HandlerFunc, name: str | None = None) -> None:
        super().__init__(name=name or getattr(func, "__name__", None))
        self._func = func

    def on_message(self, message: Message) -> Awaitable[None] | None:
        return self._func(message)


def as_handler(handler: MessageHandler | HandlerFunc) -> MessageHandler:
    """Return handler unchanged if it is a MessageHandler, else wrap it."""
    if isinstance(handler, MessageHandler):
        return handler
    if not callable(handler):
        raise TypeError(f"handler must be a MessageHandler or callable, got {type(handler).__name__}")
    return FunctionHandler(handler)


@dataclass(frozen=True)
class HandlerSuccess:
    """The handler returned normally."""


@dataclass(frozen=True)
class HandlerFailure:
    """The handler raised an application error."""

    error: Exception


HandlerResult = HandlerSuccess | HandlerFailure


async def invoke_handler(handler: MessageHandler, message: Message) -> HandlerResult:
    """Run the handler and turn application errors into a HandlerFailure.

    TransportError and BaseException subclasses (cancellation, interpreter
    exit) are not application errors and propagate unchanged.
    """
    try:
        result = handler.on_message(message)
        if inspect.isawaitable(result):
            await result
    except TransportError:
        raise
    except Exception as e:
        return HandlerFailure(error=e)
    return HandlerSuccess()
