"""Event fan-out and presence counting for the real-time channel.

`LocalBroker` delivers straight into this process's registry. `RedisBroker`
publishes every event on a Redis pub/sub channel; each process subscribes and
delivers to its own connections, so rooms span all workers.
"""

from __future__ import annotations

import asyncio
import json
import logging
from collections import Counter
from collections.abc import Iterable
from typing import Any

from redis import asyncio as redis_asyncio
from redis.exceptions import RedisError

from kiu_social.realtime.registry import ConnectionRegistry

logger = logging.getLogger(__name__)


class BrokerError(RuntimeError):
    """Raised when the shared event channel cannot be reached."""


class LocalBroker:
    """In-process broker; suitable for a single worker."""

    def __init__(self, registry: ConnectionRegistry) -> None:
        self.registry = registry
        self._open: Counter[str] = Counter()

    async def start(self) -> None:
        """Nothing to connect for in-process delivery."""

    async def stop(self) -> None:
        """Nothing to release for in-process delivery."""

    async def publish(
        self,
        rooms: Iterable[str],
        event: str,
        data: Any,
        exclude: str | None = None,
    ) -> None:
        """Deliver an event to every connection in the given rooms."""
        await self.registry.deliver(list(rooms), event, data, exclude=exclude)

    async def connection_opened(self, user_id: str) -> int:
        """Count a new connection for the user and return the open total."""
        self._open[user_id] += 1
        return self._open[user_id]

    async def connection_closed(self, user_id: str) -> int:
        """Drop one connection for the user and return how many remain."""
        remaining = max(self._open[user_id] - 1, 0)
        if remaining:
            self._open[user_id] = remaining
        else:
            self._open.pop(user_id, None)
        return remaining


class RedisBroker(LocalBroker):
    """Broker sharing events and presence counts through Redis."""

    def __init__(
        self,
        registry: ConnectionRegistry,
        url: str,
        channel: str,
        client: Any | None = None,
    ) -> None:
        super().__init__(registry)
        self.channel = channel
        self.presence_key = f"{channel}:presence"
        self._redis = client if client is not None else redis_asyncio.from_url(
            url, decode_responses=True
        )
        self._pubsub: Any | None = None
        self._task: asyncio.Task[None] | None = None

    async def start(self) -> None:
        """Subscribe to the channel and start the delivery loop."""
        if self._task is not None and not self._task.done():
            return
        self._pubsub = self._redis.pubsub()
        await self._pubsub.subscribe(self.channel)
        self._task = asyncio.create_task(self._listen())
        logger.info("Subscribed to real-time channel %s", self.channel)

    async def stop(self) -> None:
        """Cancel the delivery loop and close the Redis connection."""
        if self._task is not None:
            self._task.cancel()
            try:
                await self._task
            except asyncio.CancelledError:
                pass
            self._task = None
        if self._pubsub is not None:
            await self._pubsub.unsubscribe(self.channel)
            await self._pubsub.aclose()
            self._pubsub = None
        await self._redis.aclose()

    async def publish(
        self,
        rooms: Iterable[str],
        event: str,
        data: Any,
        exclude: str | None = None,
    ) -> None:
        envelope = {"rooms": list(rooms), "event": event, "data": data, "exclude": exclude}
        try:
            await self._redis.publish(self.channel, json.dumps(envelope))
        except RedisError as exc:
            raise BrokerError(f"Could not publish {event}") from exc

    async def handle_payload(self, raw: str) -> int:
        """Deliver one published envelope to this process's connections."""
        try:
            envelope = json.loads(raw)
            rooms = envelope["rooms"]
            event = envelope["event"]
        except (ValueError, KeyError, TypeError) as exc:
            logger.warning("Ignoring malformed real-time envelope: %s", exc)
            return 0
        return await self.registry.deliver(
            rooms, event, envelope.get("data"), exclude=envelope.get("exclude")
        )

    async def _listen(self) -> None:
        assert self._pubsub is not None
        while True:
            try:
                async for message in self._pubsub.listen():
                    if message.get("type") != "message":
                        continue
                    await self.handle_payload(message["data"])
            except RedisError as exc:
                logger.warning("Real-time subscription interrupted: %s", exc)
                await asyncio.sleep(1.0)
                continue
            # listen() only returns once the channel is unsubscribed
            logger.info("Real-time subscription to %s ended", self.channel)
            return

    async def connection_opened(self, user_id: str) -> int:
        try:
            return int(await self._redis.hincrby(self.presence_key, user_id, 1))
        except RedisError as exc:
            raise BrokerError("Could not count connection") from exc

    async def connection_closed(self, user_id: str) -> int:
        try:
            remaining = int(await self._redis.hincrby(self.presence_key, user_id, -1))
            if remaining <= 0:
                await self._redis.hdel(self.presence_key, user_id)
                return 0
        except RedisError as exc:
            raise BrokerError("Could not release connection") from exc
        return remaining
