"""Handlers and payloads for the order processing demo."""

from poisonpill.core.handler import MessageHandler
from poisonpill.core.message import Message, ObjectMessage, RetryCountModel, TextMessage


class OrderPlaced(RetryCountModel):
    """Order payload that carries its own retry count."""

    order_id: str
    sku: str
    quantity: int


class FlakyOrderHandler(MessageHandler):
    """Fulfils orders, failing the first few attempts for chosen order ids.

    Args:
        failures: order_id -> number of attempts that raise before one
            succeeds. Use a large number for an order that never succeeds.
    """

    def __init__(self, failures: dict[str, int] | None = None, name: str | None = None) -> None:
        super().__init__(name=name)
        self._failures = dict(failures or {})
        self.attempts: dict[str, int] = {}
        self.fulfilled: list[str] = []

    @staticmethod
    def order_id(message: Message) -> str:
        if isinstance(message, ObjectMessage) and isinstance(message.payload, OrderPlaced):
            return message.payload.order_id
        if isinstance(message, TextMessage):
            return message.body
        raise TypeError(f"Unsupported order message: {type(message).__name__}")

    async def on_message(self, message: Message) -> None:
        order_id = self.order_id(message)
        self.attempts[order_id] = self.attempts.get(order_id, 0) + 1
        if self.attempts[order_id] <= self._failures.get(order_id, 0):
            raise RuntimeError(f"Inventory lookup failed for order {order_id}")
        self.fulfilled.append(order_id)
