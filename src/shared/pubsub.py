"""
Pub/sub broadcaster for stock state and inventory events.

Two implementations share one interface:
- InMemoryBroadcaster delivers to handlers registered in this process.
- RedisBroadcaster publishes on Redis channels and runs a listener task that
  delivers every received message to local handlers, so several API processes
  observe each other's movements.
"""
import asyncio
import json
from typing import Any, Awaitable, Callable, Dict, List, Optional

import redis.asyncio as redis

from src.shared.utils import get_logger

logger = get_logger(__name__)

MessageHandler = Callable[[Dict[str, Any]], Awaitable[None]]


class Broadcaster:
    """Base broadcaster: handler registry and isolated dispatch"""

    def __init__(self):
        self._handlers: Dict[str, List[MessageHandler]] = {}

    def subscribe(self, channel: str, handler: MessageHandler) -> None:
        self._handlers.setdefault(channel, []).append(handler)
        logger.debug(f"Registered handler for channel: {channel}")

    async def publish(self, channel: str, message: Dict[str, Any]) -> None:
        raise NotImplementedError

    async def start(self) -> None:
        return None

    async def stop(self) -> None:
        return None

    async def _dispatch(self, channel: str, message: Dict[str, Any]) -> None:
        handlers = self._handlers.get(channel, [])
        if not handlers:
            return

        results = await asyncio.gather(
            *(handler(message) for handler in handlers), return_exceptions=True
        )
        for result in results:
            if isinstance(result, Exception):
                logger.error(
                    f"Handler for channel {channel} failed: {result}", exc_info=result
                )


class InMemoryBroadcaster(Broadcaster):
    """Delivers messages to local handlers before publish() returns"""

    async def publish(self, channel: str, message: Dict[str, Any]) -> None:
        # Round-trip through JSON so handlers see exactly what Redis would carry
        payload = json.loads(json.dumps(message, default=str))
        await self._dispatch(channel, payload)


class RedisBroadcaster(Broadcaster):
    """Publishes JSON messages on Redis channels"""

    def __init__(self, client: redis.Redis):
        super().__init__()
        self._client = client
        self._pubsub: Optional[redis.client.PubSub] = None
        self._listener: Optional[asyncio.Task] = None

    def subscribe(self, channel: str, handler: MessageHandler) -> None:
        is_new_channel = channel not in self._handlers
        super().subscribe(channel, handler)
        if is_new_channel and self._pubsub is not None:
            asyncio.create_task(self._pubsub.subscribe(channel))

    async def publish(self, channel: str, message: Dict[str, Any]) -> None:
        try:
            await self._client.publish(channel, json.dumps(message, default=str))
        except Exception as e:
            # Broadcasting is best-effort; the write that triggered it stands
            logger.warning(f"Redis publish to {channel} failed: {e}")

    async def start(self) -> None:
        if self._listener is not None:
            return

        self._pubsub = self._client.pubsub(ignore_subscribe_messages=True)
        if self._handlers:
            await self._pubsub.subscribe(*self._handlers.keys())
        self._listener = asyncio.create_task(self._listen())
        logger.info(f"Redis broadcaster listening on: {list(self._handlers.keys())}")

    async def stop(self) -> None:
        if self._listener is not None:
            self._listener.cancel()
            try:
                await self._listener
            except asyncio.CancelledError:
                pass
            self._listener = None

        if self._pubsub is not None:
            await self._pubsub.aclose()
            self._pubsub = None
        logger.info("Redis broadcaster stopped")

    async def _listen(self) -> None:
        while True:
            try:
                if not self._pubsub.subscribed:
                    await asyncio.sleep(1)
                    continue
                message = await self._pubsub.get_message(timeout=1.0)
                if message is None or message.get("type") != "message":
                    continue
                channel = message["channel"]
                payload = json.loads(message["data"])
                await self._dispatch(channel, payload)
            except asyncio.CancelledError:
                raise
            except Exception as e:
                logger.error(f"Error processing pub/sub message: {e}")
                await asyncio.sleep(1)
