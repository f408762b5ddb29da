"""Tests for the pull-style stream adapter."""
from __future__ import annotations

import asyncio
import json

import pytest

from yfclient.config import StreamSettings
from yfclient.stream import AsyncStreamBridge, PriceUpdate, StreamingClient


class FakeConnection:
    def __init__(self):
        self.sent = []
        self.close_code = None
        self.close_reason = None
        self._inbox = asyncio.Queue()

    async def send(self, data):
        self.sent.append(data)

    async def close(self, code=1000, reason=""):
        self.close_code = code
        self.close_reason = reason
        await self._inbox.put(None)

    def feed(self, payload):
        self._inbox.put_nowait(json.dumps(payload))

    def __aiter__(self):
        return self

    async def __anext__(self):
        item = await self._inbox.get()
        if item is None:
            raise StopAsyncIteration
        return item


def make_bridge():
    connections = []

    async def connector(url):
        connection = FakeConnection()
        connections.append(connection)
        return connection

    settings = StreamSettings(heartbeat_interval=10.0, auto_reconnect=False)
    bridge = AsyncStreamBridge(StreamingClient(settings, connector=connector))
    return bridge, connections


def test_queued_events_are_yielded_in_order() -> None:
    bridge, connections = make_bridge()

    async def scenario():
        await bridge.connect()
        await bridge.subscribe(["AAPL", "MSFT"])
        bridge.client.handle_message(json.dumps({"symbol": "AAPL", "price": 150.25}))
        bridge.client.handle_message(json.dumps({"symbol": "MSFT", "price": 410.0}))
        assert bridge.pending() == 3

        received = []
        async for message in bridge.messages():
            received.append(message)
            if len(received) == 3:
                break
        await bridge.disconnect()
        return received

    received = asyncio.run(scenario())

    assert [message.type for message in received] == ["connect", "price", "price"]
    assert [message.data.id for message in received[1:]] == ["AAPL", "MSFT"]
    assert isinstance(received[1].data, PriceUpdate)
    assert received[1].data.price == 150.25


def test_waiting_consumer_receives_next_event_directly() -> None:
    bridge, connections = make_bridge()

    async def consume():
        async for message in bridge.messages():
            if message.type == "price":
                return message

    async def scenario():
        await bridge.connect()
        consumer = asyncio.create_task(consume())
        await asyncio.sleep(0)
        connections[0].feed({"symbol": "TSLA", "price": 250})
        message = await asyncio.wait_for(consumer, timeout=1.0)
        pending = bridge.pending()
        await bridge.disconnect()
        return message, pending

    message, pending = asyncio.run(scenario())

    assert message.data.id == "TSLA"
    assert message.data.price == 250.0
    assert pending == 0


def test_error_and_disconnect_events_become_messages() -> None:
    bridge, _ = make_bridge()

    async def scenario():
        await bridge.connect()
        bridge.client.handle_message(json.dumps({"error": "bad symbol"}))
        await bridge.disconnect()

        received = []
        async for message in bridge.messages():
            received.append(message)
            if message.type == "disconnect":
                break
        return received

    received = asyncio.run(scenario())

    assert [message.type for message in received] == ["connect", "error", "disconnect"]
    assert received[1].error == "bad symbol"
    assert received[2].data == {"code": 1000, "reason": "Client disconnect"}


def test_cancelled_consumer_does_not_swallow_events() -> None:
    bridge, _ = make_bridge()

    async def first_message():
        async for message in bridge.messages():
            return message

    async def scenario():
        waiting = asyncio.create_task(first_message())
        await asyncio.sleep(0)
        waiting.cancel()
        with pytest.raises(asyncio.CancelledError):
            await waiting

        await bridge.connect()
        message = await asyncio.wait_for(first_message(), timeout=1.0)
        await bridge.disconnect()
        return message

    assert asyncio.run(scenario()).type == "connect"


def test_bridge_delegates_subscription_state() -> None:
    bridge, connections = make_bridge()

    async def scenario():
        await bridge.connect()
        await bridge.subscribe("AAPL")
        await bridge.subscribe(["AAPL", "GOOG"])
        await bridge.unsubscribe("GOOG")
        symbols = bridge.get_subscribed_symbols()
        connected = bridge.is_connected()
        await bridge.disconnect()
        return symbols, connected

    symbols, connected = asyncio.run(scenario())

    assert symbols == ["AAPL"]
    assert connected is True
    assert not bridge.is_connected()


def test_message_delivered_to_cancelled_consumer_is_requeued() -> None:
    bridge, _ = make_bridge()

    async def first_message():
        async for message in bridge.messages():
            return message

    async def scenario():
        waiting = asyncio.create_task(first_message())
        await asyncio.sleep(0)
        bridge.client.handle_message(json.dumps({"symbol": "AAPL", "price": 1}))
        waiting.cancel()
        with pytest.raises(asyncio.CancelledError):
            await waiting

        pending = bridge.pending()
        message = await asyncio.wait_for(first_message(), timeout=1.0)
        return pending, message

    pending, message = asyncio.run(scenario())

    assert pending == 1
    assert message.type == "price"
    assert message.data.id == "AAPL"
