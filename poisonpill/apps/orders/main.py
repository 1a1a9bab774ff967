"""Order processing demo entrypoint.

Orders arrive on the "orders" queue. Some of them fail a few times before
they succeed, one never succeeds. Failing orders are sent back to "orders"
with an incremented retry count until max_retries is spent, then they are
dead-lettered to "orders.dlq".

Usage:
    python -m poisonpill.apps.orders.main
    python -m poisonpill.apps.orders.main --counter payload --max-retries 3
"""

import argparse
import asyncio
import logging
import sys
from dataclasses import dataclass

from poisonpill.apps.orders.handlers import FlakyOrderHandler, OrderPlaced
from poisonpill.core.container import ContainerStats, ListenerContainer
from poisonpill.core.counter import RETRY_COUNT_PROPERTY, CounterStrategy
from poisonpill.core.dispatcher import RetryingDispatcher
from poisonpill.core.message import Message, ObjectMessage, TextMessage
from poisonpill.core.policy import RetryPolicy
from poisonpill.transport.inmemory import (
    InMemoryBroker,
    InMemoryReceiver,
    InMemorySender,
    PayloadOnlySender,
)

ORDERS_QUEUE = "orders"
DEAD_LETTER_QUEUE = "orders.dlq"

SAMPLE_ORDERS = [
    ("A-1001", "widget", 2),
    ("A-1002", "gadget", 1),
    ("A-1003", "gizmo", 5),
    ("A-1004", "doohickey", 3),
]

# order_id -> failing attempts before success
SAMPLE_FAILURES = {"A-1002": 1, "A-1003": 100}


class StopWhenIdleReceiver(InMemoryReceiver):
    """Receiver that stops the container once a poll finds the queue empty."""

    def __init__(self, broker: InMemoryBroker, destination: str, container_holder: list) -> None:
        super().__init__(broker, destination)
        self._container_holder = container_holder

    async def pull(self, timeout: float = 1.0) -> Message | None:
        message = await super().pull(timeout)
        if message is None and self._container_holder[0]:
            self._container_holder[0].stop()
        return message


@dataclass
class DemoResult:
    """Outcome of a demo run."""

    stats: ContainerStats
    handler: FlakyOrderHandler
    dead_letters: list[Message]


def build_message(order_id: str, sku: str, quantity: int, counter: CounterStrategy) -> Message:
    if counter is CounterStrategy.PAYLOAD:
        return ObjectMessage(payload=OrderPlaced(order_id=order_id, sku=sku, quantity=quantity))
    return TextMessage(body=order_id, properties={"sku": sku, "quantity": quantity})


def retry_count_of(message: Message) -> int | None:
    if isinstance(message, ObjectMessage) and isinstance(message.payload, OrderPlaced):
        return message.payload.retry_count
    value = message.get_property(RETRY_COUNT_PROPERTY)
    return value if isinstance(value, int) else None


async def run_orders(
    max_retries: int = 2,
    counter: CounterStrategy = CounterStrategy.PROPERTY,
    orders: list[tuple[str, str, int]] | None = None,
    failures: dict[str, int] | None = None,
) -> DemoResult:
    """Run the order pipeline until the orders queue is drained.

    Args:
        max_retries: Redeliveries before an order is dead-lettered.
        counter: Retry count storage. PAYLOAD uses a payload-only sender,
            which drops envelope properties on every resend.
        orders: (order_id, sku, quantity) tuples. Defaults to SAMPLE_ORDERS.
        failures: order_id -> failing attempts. Defaults to SAMPLE_FAILURES.
    """
    orders = SAMPLE_ORDERS if orders is None else orders
    failures = SAMPLE_FAILURES if failures is None else failures

    broker = InMemoryBroker()
    sender_type = PayloadOnlySender if counter is CounterStrategy.PAYLOAD else InMemorySender
    retry_sender = sender_type(broker, default_destination=ORDERS_QUEUE)
    error_sender = sender_type(broker, default_destination=DEAD_LETTER_QUEUE)

    handler = FlakyOrderHandler(failures=failures)
    dispatcher = RetryingDispatcher(
        handler,
        retry_sender=retry_sender,
        error_sender=error_sender,
        policy=RetryPolicy(max_retries=max_retries, counter=counter),
    )

    for order_id, sku, quantity in orders:
        await broker.put(ORDERS_QUEUE, build_message(order_id, sku, quantity, counter))

    container_holder: list[ListenerContainer | None] = [None]
    container = ListenerContainer(
        StopWhenIdleReceiver(broker, ORDERS_QUEUE, container_holder),
        dispatcher,
        poll_timeout=0.05,
    )
    container_holder[0] = container
    stats = await container.run()

    return DemoResult(stats=stats, handler=handler, dead_letters=broker.drain(DEAD_LETTER_QUEUE))


def main(argv: list[str] | None = None) -> None:
    """Main entry point for the orders demo."""
    parser = argparse.ArgumentParser(description="poisonpill order processing demo")
    parser.add_argument("--max-retries", type=int, default=2)
    parser.add_argument(
        "--counter",
        choices=[strategy.value for strategy in CounterStrategy],
        default=CounterStrategy.PROPERTY.value,
    )
    args = parser.parse_args(argv)

    logging.basicConfig(level=logging.INFO, format="%(message)s", stream=sys.stderr)

    result = asyncio.run(
        run_orders(max_retries=args.max_retries, counter=CounterStrategy(args.counter))
    )
    print(f"Fulfilled: {', '.join(result.handler.fulfilled) or '-'}")
    for message in result.dead_letters:
        print(
            f"Dead-lettered: {FlakyOrderHandler.order_id(message)} "
            f"(retry count {retry_count_of(message)})"
        )
    print(f"Outcomes: {dict(result.stats.outcomes)}")


if __name__ == "__main__":
    main()
