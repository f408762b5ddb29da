"""Pull-style adapter over the push-style streaming client."""
from __future__ import annotations

import asyncio
from collections import deque
from typing import Any, AsyncIterator, Deque, Iterable

from yfclient.config import StreamSettings
from yfclient.stream.client import StreamingClient
from yfclient.stream.messages import StreamMessage


class AsyncStreamBridge:
    """Expose streaming events as an endless async iterator.

    Events are queued without bound until a consumer asks for them; a consumer
    already waiting receives the next event directly.
    """

    def __init__(self, client: StreamingClient | None = None, *, settings: StreamSettings | None = None) -> None:
        self._client = client or StreamingClient(settings)
        self._queue: Deque[StreamMessage] = deque()
        self._waiters: Deque[asyncio.Future] = deque()

        self._client.on("connect", lambda _: self._enqueue(StreamMessage(type="connect")))
        self._client.on("disconnect", lambda data: self._enqueue(StreamMessage(type="disconnect", data=data)))
        self._client.on("price", lambda data: self._enqueue(StreamMessage(type="price", data=data)))
        self._client.on("error", lambda error: self._enqueue(StreamMessage(type="error", error=str(error))))

    @property
    def client(self) -> StreamingClient:
        return self._client

    def pending(self) -> int:
        return len(self._queue)

    async def connect(self) -> None:
        await self._client.connect()

    async def disconnect(self) -> None:
        await self._client.disconnect()

    async def subscribe(self, symbols: str | Iterable[str]) -> None:
        await self._client.subscribe(symbols)

    async def unsubscribe(self, symbols: str | Iterable[str]) -> None:
        await self._client.unsubscribe(symbols)

    def get_subscribed_symbols(self) -> list[str]:
        return self._client.get_subscribed_symbols()

    def is_connected(self) -> bool:
        return self._client.is_connected()

    async def messages(self) -> AsyncIterator[StreamMessage]:
        """Yield events forever; stop by breaking out of the loop or cancelling."""

        loop = asyncio.get_running_loop()
        while True:
            if self._queue:
                yield self._queue.popleft()
                continue

            waiter: asyncio.Future = loop.create_future()
            self._waiters.append(waiter)
            try:
                message = await waiter
            except asyncio.CancelledError:
                if waiter.done() and not waiter.cancelled():
                    # delivered before the cancellation landed; hand it to the next consumer
                    self._queue.appendleft(waiter.result())
                elif waiter in self._waiters:
                    self._waiters.remove(waiter)
                raise
            yield message

    def _enqueue(self, message: StreamMessage) -> None:
        while self._waiters:
            waiter = self._waiters.popleft()
            if not waiter.done():
                waiter.set_result(message)
                return
        self._queue.append(message)


__all__ = ["AsyncStreamBridge"]
