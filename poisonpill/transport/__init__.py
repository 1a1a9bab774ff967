"""Transport implementations for sending and receiving messages."""

from poisonpill.transport.base import Receiver, Sender
from poisonpill.transport.inmemory import (
    InMemoryBroker,
    InMemoryReceiver,
    InMemorySender,
    PayloadOnlySender,
)

__all__ = [
    "Sender",
    "Receiver",
    "InMemoryBroker",
    "InMemorySender",
    "PayloadOnlySender",
    "InMemoryReceiver",
]
