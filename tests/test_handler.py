"""Tests for the handler contract."""

import pytest
from hypothesis import given, settings
from hypothesis import strategies as st

from poisonpill.core.errors import QueueFullError, RoutingSendError, TransportError
from poisonpill.core.handler import (
    FunctionHandler,
    HandlerFailure,
    HandlerSuccess,
    MessageHandler,
    as_handler,
    invoke_handler,
)
from poisonpill.core.message import Message, TextMessage

valid_class_names = st.from_regex(r"[A-Z][A-Za-z0-9_]{0,30}", fullmatch=True)


def create_handler_class(class_name: str) -> type[MessageHandler]:
    def on_message(self, message: Message) -> None:
        return None

    return type(class_name, (MessageHandler,), {"on_message": on_message})


@given(class_name=valid_class_names)
@settings(max_examples=50)
def test_handler_name_defaults_to_class_name(class_name: str):
    assert create_handler_class(class_name)().name == class_name


def test_explicit_name_overrides_default():
    assert create_handler_class("OrderHandler")(name="orders").name == "orders"


class TestAsHandler:
    def test_handler_returned_unchanged(self):
        handler = create_handler_class("OrderHandler")()
        assert as_handler(handler) is handler

    def test_function_wrapped(self):
        def handle_order(message: Message) -> None:
            pass

        handler = as_handler(handle_order)
        assert isinstance(handler, FunctionHandler)
        assert handler.name == "handle_order"

    def test_non_callable_rejected(self):
        with pytest.raises(TypeError):
            as_handler("handle_order")


class TestInvokeHandler:
    async def test_sync_success(self):
        result = await invoke_handler(as_handler(lambda m: None), TextMessage())
        assert result == HandlerSuccess()

    async def test_async_success(self):
        async def handler(message: Message) -> None:
            return None

        assert isinstance(await invoke_handler(as_handler(handler), TextMessage()), HandlerSuccess)

    async def test_application_error_becomes_failure(self):
        error = ValueError("bad order")

        async def handler(message: Message) -> None:
            raise error

        result = await invoke_handler(as_handler(handler), TextMessage())
        assert isinstance(result, HandlerFailure)
        assert result.error is error

    async def test_routing_error_from_nested_dispatcher_is_a_failure(self):
        def handler(message: Message) -> None:
            raise RoutingSendError(ConnectionError("down"), "retry", "orders")

        result = await invoke_handler(as_handler(handler), TextMessage())
        assert isinstance(result, HandlerFailure)

    @pytest.mark.parametrize("error", [TransportError("closed"), QueueFullError("full")])
    async def test_transport_errors_propagate(self, error):
        def handler(message: Message) -> None:
            raise error

        with pytest.raises(TransportError):
            await invoke_handler(as_handler(handler), TextMessage())
