"""Environment-driven settings.

Every field can be set with a POISONPILL_ prefixed environment variable or
in a .env file, e.g. POISONPILL_MAX_RETRIES=3.
"""

from dataclasses import dataclass

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

from poisonpill.core.codec import MessageCodec
from poisonpill.core.container import ListenerContainer
from poisonpill.core.counter import CounterStrategy
from poisonpill.core.dispatcher import RetryingDispatcher
from poisonpill.core.errors import ConfigurationError
from poisonpill.core.handler import HandlerFunc, MessageHandler
from poisonpill.core.policy import DEFAULT_MAX_RETRIES, RetryPolicy
from poisonpill.transport.redis import RedisConnection, RedisReceiver, RedisSender


@dataclass
class RedisTransport:
    """Redis connection with the receiver and senders of one input queue."""

    connection: RedisConnection
    receiver: RedisReceiver
    retry_sender: RedisSender
    error_sender: RedisSender | None


class RetrySettings(BaseSettings):
    """Retry routing and Redis transport settings."""

    model_config = SettingsConfigDict(env_file=".env", env_prefix="POISONPILL_", extra="ignore")

    # Redeliveries before a failing message is dead-lettered
    max_retries: int = Field(DEFAULT_MAX_RETRIES, ge=0)
    retry_destination: str | None = None
    error_destination: str | None = None
    counter_strategy: CounterStrategy = CounterStrategy.PROPERTY

    redis_url: str = "redis://localhost:6379"
    stream_prefix: str = "poisonpill:"
    consumer_group: str = "poisonpill"
    claim_min_idle_ms: int = Field(30000, ge=0)
    poll_timeout_seconds: float = Field(1.0, gt=0)

    def to_policy(self) -> RetryPolicy:
        return RetryPolicy(
            max_retries=self.max_retries,
            retry_destination=self.retry_destination,
            error_destination=self.error_destination,
            counter=self.counter_strategy,
        )

    def redis_transport(self, codec: MessageCodec) -> RedisTransport:
        """Build the Redis transport for retry_destination.

        The receiver reads retry_destination, which is also where the retry
        sender writes. No error sender is built without an error_destination.

        Raises:
            ConfigurationError: If no retry_destination is set.
        """
        if not self.retry_destination:
            raise ConfigurationError("POISONPILL_RETRY_DESTINATION must be set for Redis")

        connection = RedisConnection(self.redis_url)
        receiver = RedisReceiver(
            connection,
            codec,
            self.retry_destination,
            consumer_group=self.consumer_group,
            claim_min_idle_ms=self.claim_min_idle_ms,
            stream_prefix=self.stream_prefix,
        )
        retry_sender = RedisSender(
            connection,
            codec,
            default_destination=self.retry_destination,
            stream_prefix=self.stream_prefix,
        )
        error_sender = None
        if self.error_destination:
            error_sender = RedisSender(
                connection,
                codec,
                default_destination=self.error_destination,
                stream_prefix=self.stream_prefix,
            )
        return RedisTransport(connection, receiver, retry_sender, error_sender)

    def redis_container(
        self,
        handler: MessageHandler | HandlerFunc,
        codec: MessageCodec,
        max_messages: int | None = None,
    ) -> tuple[ListenerContainer, RedisTransport]:
        """Wrap handler in a RetryingDispatcher fed by the Redis transport."""
        transport = self.redis_transport(codec)
        dispatcher = RetryingDispatcher(
            handler,
            retry_sender=transport.retry_sender,
            error_sender=transport.error_sender,
            policy=self.to_policy(),
        )
        container = ListenerContainer(
            transport.receiver,
            dispatcher,
            max_messages=max_messages,
            poll_timeout=self.poll_timeout_seconds,
        )
        return container, transport
