"""Redis Streams transport.

Features:
- One stream per destination ({stream_prefix}{destination})
- Consumer groups with XREADGROUP/XACK
- Automatic consumer group creation
- Native redelivery of released messages via XPENDING/XCLAIM
- Undecodable entries moved to a poison stream and acked
- Connection pooling with reconnection on a failed ping
"""

import asyncio
import logging
from datetime import UTC, datetime
from typing import Any
from urllib.parse import urlparse, urlunparse
from uuid import uuid4

from poisonpill.core.codec import CodecError, MessageCodec
from poisonpill.core.errors import TransportError
from poisonpill.core.message import Message

logger = logging.getLogger("poisonpill.redis")

DEFAULT_STREAM_PREFIX = "poisonpill:"


def _sanitize_url(url: str) -> str:
    """Mask password in Redis URL for logging."""
    try:
        parsed = urlparse(url)
        if parsed.password:
            netloc = f"{parsed.username}:****@{parsed.hostname}"
            if parsed.port:
                netloc += f":{parsed.port}"
            return urlunparse(
                (parsed.scheme, netloc, parsed.path, parsed.params, parsed.query, parsed.fragment)
            )
        return f"{parsed.hostname}:{parsed.port or 6379}"
    except ValueError:
        return "<url>"


class RedisConnection:
    """Lazily created, pooled Redis client shared by senders and receivers."""

    def __init__(self, redis_url: str, pool_size: int = 10) -> None:
        self._url = redis_url
        self._url_safe = _sanitize_url(redis_url)
        self._pool_size = pool_size
        self._redis: Any = None
        self._connected = False
        self._lock = asyncio.Lock()
        self.reconnections = 0

    @property
    def redis_url(self) -> str:
        return self._url

    async def client(self) -> Any:
        """Return a live client, reconnecting if the current one fails a ping."""
        try:
            from redis.asyncio import ConnectionPool, Redis
        except ImportError as e:
            raise ImportError("Install redis: pip install poisonpill[redis]") from e

        if self._redis is not None:
            try:
                await self._redis.ping()
                return self._redis
            except Exception as e:
                logger.warning(f"Redis connection lost: {e}, reconnecting...")

        async with self._lock:
            # Another coroutine may have reconnected while we waited
            if self._redis is not None:
                try:
                    await self._redis.ping()
                    return self._redis
                except Exception:
                    pass

            old_redis = self._redis
            if old_redis is not None:
                try:
                    await old_redis.aclose()
                except Exception as close_err:
                    logger.debug(f"Error closing old connection: {close_err}")

            is_reconnection = self._connected
            pool = ConnectionPool.from_url(
                self._url, max_connections=self._pool_size, decode_responses=True
            )
            new_redis = Redis(connection_pool=pool)
            try:
                await new_redis.ping()
            except Exception:
                await new_redis.aclose()
                raise

            self._redis = new_redis
            self._connected = True
            if is_reconnection:
                self.reconnections += 1
                logger.info(f"Reconnected to Redis at {self._url_safe}")
            else:
                logger.info(f"Connected to Redis at {self._url_safe}")
            return self._redis

    async def close(self) -> None:
        """Close Redis connection."""
        if self._redis is not None:
            await self._redis.aclose()
            self._redis = None
            logger.info("Closed Redis connection")


class RedisSender:
    """Envelope-preserving sender writing to Redis streams with XADD."""

    def __init__(
        self,
        connection: RedisConnection,
        codec: MessageCodec,
        default_destination: str | None = None,
        stream_prefix: str = DEFAULT_STREAM_PREFIX,
    ) -> None:
        self._connection = connection
        self._codec = codec
        self._default_destination = default_destination
        self.stream_prefix = stream_prefix

    @property
    def default_destination(self) -> str | None:
        return self._default_destination

    def stream_key(self, destination: str) -> str:
        return f"{self.stream_prefix}{destination}"

    async def send(self, message: Message, destination: str | None = None) -> None:
        target = destination or self._default_destination
        if target is None:
            raise TransportError("No destination given and no default destination set")

        copy = message.model_copy(deep=True)
        copy.destination = target
        try:
            data = self._codec.encode(copy)
        except CodecError as e:
            raise TransportError(f"Cannot encode message {message.id}: {e}") from e

        try:
            redis = await self._connection.client()
            await redis.xadd(self.stream_key(target), {"message": data})
        except Exception as e:
            raise TransportError(f"XADD to {target!r} failed: {e}") from e
        logger.debug(f"Sent {message.id} to {self.stream_key(target)}")


class RedisReceiver:
    """Consumer-group receiver for one destination stream.

    Released messages are left pending. Once idle for claim_min_idle_ms they
    are claimed again and redelivered as they were originally added.

    Entries that cannot be decoded never reach a listener. They are copied
    to poison_stream (default {stream_key}:poison) and acked.
    """

    def __init__(
        self,
        connection: RedisConnection,
        codec: MessageCodec,
        destination: str,
        consumer_group: str = "poisonpill",
        consumer_name: str | None = None,
        claim_min_idle_ms: int = 30000,
        stream_prefix: str = DEFAULT_STREAM_PREFIX,
        poison_stream: str | None = None,
    ) -> None:
        self._connection = connection
        self._codec = codec
        self.destination = destination
        self.stream_key = f"{stream_prefix}{destination}"
        self.poison_stream = poison_stream or f"{self.stream_key}:poison"
        self.consumer_group = consumer_group
        self.consumer_name = consumer_name or f"consumer-{uuid4().hex[:8]}"
        self._claim_min_idle_ms = claim_min_idle_ms
        self._group_created = False
        # message.id -> stream entry ID for pulled, unacked messages
        self._entry_ids: dict[str, str] = {}
        self._map_lock = asyncio.Lock()

    @property
    def claim_min_idle_ms(self) -> int:
        return self._claim_min_idle_ms

    async def _ensure_consumer_group(self) -> Any:
        redis = await self._connection.client()
        if self._group_created:
            return redis
        try:
            await redis.xgroup_create(self.stream_key, self.consumer_group, id="0", mkstream=True)
            logger.info(f"Created consumer group '{self.consumer_group}' on '{self.stream_key}'")
        except Exception as e:
            if "BUSYGROUP" not in str(e):
                raise
            logger.debug(f"Consumer group '{self.consumer_group}' already exists")
        self._group_created = True
        return redis

    async def _settle_poison(self, redis: Any, entry_id: str, fields: Any, reason: str) -> None:
        """Copy an undecodable entry to the poison stream and ack it."""
        raw = fields.get("message", "") if isinstance(fields, dict) else str(fields)
        try:
            await redis.xadd(
                self.poison_stream,
                {
                    "original_id": entry_id,
                    "message": raw,
                    "reason": reason,
                    "failed_at": datetime.now(UTC).isoformat(),
                },
            )
            await redis.xack(self.stream_key, self.consumer_group, entry_id)
            logger.warning(f"Moved {entry_id} to {self.poison_stream}: {reason}")
        except Exception as e:
            logger.error(f"Failed to move {entry_id} to {self.poison_stream}: {e}")

    async def _deserialize(self, redis: Any, entry: tuple, redelivered: bool) -> Message | None:
        entry_id, fields = entry
        try:
            message = self._codec.decode(fields["message"])
        except (KeyError, TypeError, CodecError) as e:
            logger.error(f"Failed to deserialize {entry_id}: {e}")
            await self._settle_poison(redis, entry_id, fields, f"Undecodable entry: {e}")
            return None
        message.redelivered = redelivered
        async with self._map_lock:
            self._entry_ids[message.id] = entry_id
        return message

    async def _recover_pending(self, redis: Any) -> Message | None:
        try:
            pending = await redis.xpending_range(
                self.stream_key,
                self.consumer_group,
                min="-",
                max="+",
                count=10,
            )
        except Exception as e:
            logger.warning(f"XPENDING failed on {self.stream_key}: {e}")
            return None

        for entry in pending:
            if entry["time_since_delivered"] < self._claim_min_idle_ms:
                continue
            entry_id = entry["message_id"]
            try:
                claimed = await redis.xclaim(
                    self.stream_key,
                    self.consumer_group,
                    self.consumer_name,
                    min_idle_time=self._claim_min_idle_ms,
                    message_ids=[entry_id],
                )
            except Exception as e:
                logger.warning(f"Failed to claim {entry_id}: {e}")
                continue
            if claimed:
                return await self._deserialize(redis, claimed[0], redelivered=True)
        return None

    async def pull(self, timeout: float = 1.0) -> Message | None:
        """Read the next message, recovering idle pending entries first."""
        redis = await self._ensure_consumer_group()

        recovered = await self._recover_pending(redis)
        if recovered is not None:
            return recovered

        try:
            response = await redis.xreadgroup(
                groupname=self.consumer_group,
                consumername=self.consumer_name,
                streams={self.stream_key: ">"},
                count=1,
                block=int(timeout * 1000),
            )
        except Exception as e:
            raise TransportError(f"XREADGROUP on {self.stream_key} failed: {e}") from e

        if not response:
            return None
        _, entries = response[0]
        if not entries:
            return None
        return await self._deserialize(redis, entries[0], redelivered=False)

    async def ack(self, message: Message) -> None:
        """Acknowledge a message with XACK."""
        async with self._map_lock:
            entry_id = self._entry_ids.get(message.id)
        if not entry_id:
            logger.warning(f"No stream entry found for message {message.id}, cannot ack")
            return

        redis = await self._connection.client()
        try:
            await redis.xack(self.stream_key, self.consumer_group, entry_id)
            logger.debug(f"Acked entry {entry_id} for message {message.id}")
        except Exception as e:
            raise TransportError(f"XACK failed for entry {entry_id}: {e}") from e
        finally:
            async with self._map_lock:
                self._entry_ids.pop(message.id, None)

    async def release(self, message: Message) -> None:
        """Leave the entry pending so it is claimed and redelivered later."""
        async with self._map_lock:
            entry_id = self._entry_ids.pop(message.id, None)
        logger.info(
            f"Released message {message.id} (entry {entry_id}) for redelivery "
            f"after {self._claim_min_idle_ms}ms"
        )
