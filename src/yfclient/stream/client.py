"""Live price streaming over a persistent WebSocket with heartbeat and reconnect."""
from __future__ import annotations

import asyncio
import contextlib
import json
import logging
from enum import Enum
from typing import Any, Awaitable, Callable, Dict, Iterable, List

import websockets
from websockets.exceptions import ConnectionClosed, WebSocketException

from yfclient.config import StreamSettings
from yfclient.errors import NotConnectedError, StreamConnectError, StreamError
from yfclient.stream.messages import PriceUpdate

LOGGER = logging.getLogger(__name__)

NORMAL_CLOSURE = 1000
ABNORMAL_CLOSURE = 1006
EVENTS = ("connect", "disconnect", "price", "error")

Handler = Callable[[Any], None]
Connector = Callable[[str], Awaitable[Any]]
Sleep = Callable[[float], Awaitable[Any]]


class ConnectionState(str, Enum):
    DISCONNECTED = "disconnected"
    CONNECTING = "connecting"
    CONNECTED = "connected"


async def _websocket_connector(url: str) -> Any:
    return await websockets.connect(url)


class StreamingClient:
    """Stream live price updates for a dynamic set of symbols.

    Consumers register callbacks with :meth:`on`; every event flows through
    :meth:`_publish`, which is also what :class:`AsyncStreamBridge` listens to.
    An unexpected closure schedules a reconnect whose delay grows linearly with
    the attempt number. Only :meth:`disconnect` closes without reconnecting.
    """

    def __init__(
        self,
        settings: StreamSettings | None = None,
        *,
        connector: Connector | None = None,
        logger: logging.Logger | None = None,
        sleep: Sleep = asyncio.sleep,
    ) -> None:
        self._settings = settings or StreamSettings()
        self._connector = connector or _websocket_connector
        self._logger = logger or LOGGER
        self._sleep = sleep
        self._connect_lock = asyncio.Lock()
        self._state = ConnectionState.DISCONNECTED
        self._ws: Any = None
        self._subscriptions: Dict[str, None] = {}
        self._handlers: Dict[str, List[Handler]] = {event: [] for event in EVENTS}
        self._reconnect_attempts = 0
        self._heartbeat_task: asyncio.Task | None = None
        self._reader_task: asyncio.Task | None = None
        self._reconnect_task: asyncio.Task | None = None
        self._closing = False

    @property
    def settings(self) -> StreamSettings:
        return self._settings

    @property
    def state(self) -> ConnectionState:
        return self._state

    @property
    def reconnect_attempts(self) -> int:
        return self._reconnect_attempts

    def is_connected(self) -> bool:
        return self._state is ConnectionState.CONNECTED

    def get_subscribed_symbols(self) -> list[str]:
        return list(self._subscriptions)

    def on(self, event: str, handler: Handler) -> None:
        if event not in self._handlers:
            raise ValueError(f"Unknown event: {event}")
        self._handlers[event].append(handler)

    def off(self, event: str, handler: Handler) -> None:
        with contextlib.suppress(KeyError, ValueError):
            self._handlers[event].remove(handler)

    async def connect(self) -> None:
        """Open the connection; raises :class:`StreamConnectError` on failure or timeout.

        Overlapping calls share one handshake: a caller arriving while another
        connect (or a scheduled reconnect) is in flight waits for its outcome.
        """

        async with self._connect_lock:
            if self._state is ConnectionState.CONNECTED:
                self._logger.warning("Stream is already connected")
                return
            await self._open()

    async def _open(self) -> None:
        url = await self._resolve_url()
        self._logger.info("Connecting to stream: %s", url)
        self._state = ConnectionState.CONNECTING
        try:
            ws = await asyncio.wait_for(self._connector(url), timeout=self._settings.connect_timeout)
        except asyncio.CancelledError:
            self._state = ConnectionState.DISCONNECTED
            raise
        except asyncio.TimeoutError as exc:
            self._state = ConnectionState.DISCONNECTED
            error = StreamConnectError(f"stream handshake timed out after {self._settings.connect_timeout}s")
            self._publish("error", error)
            raise error from exc
        except (OSError, WebSocketException) as exc:
            self._state = ConnectionState.DISCONNECTED
            error = StreamConnectError(f"stream handshake failed: {exc}")
            self._publish("error", error)
            raise error from exc

        self._ws = ws
        self._closing = False
        self._state = ConnectionState.CONNECTED
        self._reconnect_attempts = 0
        self._logger.info("Stream connected")
        self._heartbeat_task = asyncio.create_task(self._heartbeat_loop(ws))
        self._reader_task = asyncio.create_task(self._read_loop(ws))
        self._publish("connect", None)

        if self._subscriptions:
            await self._replay_subscriptions(ws)

    async def disconnect(self) -> None:
        if self._ws is None or self._state is not ConnectionState.CONNECTED:
            # nothing to close, but a pending reconnect must not outlive the call
            await self._clear_reconnect_task()
            return

        self._logger.info("Disconnecting stream")
        self._closing = True
        ws = self._ws
        await self._stop_heartbeat()
        await self._clear_reconnect_task()
        await ws.close(code=NORMAL_CLOSURE, reason="Client disconnect")
        reader, self._reader_task = self._reader_task, None
        if reader is not None and reader is not asyncio.current_task():
            await reader

        self._ws = None
        self._state = ConnectionState.DISCONNECTED
        self._subscriptions.clear()
        self._closing = False
        self._publish("disconnect", {"code": NORMAL_CLOSURE, "reason": "Client disconnect"})

    async def subscribe(self, symbols: str | Iterable[str]) -> None:
        ws = self._require_connection()
        for symbol in _symbol_list(symbols):
            if symbol in self._subscriptions:
                continue
            self._logger.debug("Subscribing to %s", symbol)
            await ws.send(json.dumps({"subscribe": [symbol]}))
            self._subscriptions[symbol] = None

    async def unsubscribe(self, symbols: str | Iterable[str]) -> None:
        ws = self._require_connection()
        for symbol in _symbol_list(symbols):
            if symbol not in self._subscriptions:
                continue
            self._logger.debug("Unsubscribing from %s", symbol)
            await ws.send(json.dumps({"unsubscribe": [symbol]}))
            del self._subscriptions[symbol]

    def handle_message(self, frame: str | bytes) -> None:
        """Decode one inbound frame and publish the resulting event; never raises."""

        try:
            message = json.loads(frame)
        except (TypeError, ValueError) as exc:
            self._logger.error("Failed to parse stream message: %s", exc)
            return
        if not isinstance(message, dict):
            self._logger.warning("Dropping unexpected stream payload: %r", message)
            return

        if "price" in message:
            try:
                update = PriceUpdate.from_frame(message)
            except ValueError as exc:
                self._logger.warning("Dropping malformed price frame: %s", exc)
                return
            self._publish("price", update)
        elif message.get("error"):
            self._logger.error("Stream reported error: %s", message["error"])
            self._publish("error", StreamError(str(message["error"])))

    def _publish(self, event: str, payload: Any) -> None:
        for handler in list(self._handlers.get(event, ())):
            try:
                handler(payload)
            except Exception:
                self._logger.exception("Handler for %s event raised", event)

    async def _resolve_url(self) -> str:
        return self._settings.url

    def _require_connection(self) -> Any:
        if self._state is not ConnectionState.CONNECTED or self._ws is None:
            raise NotConnectedError("stream is not connected")
        return self._ws

    async def _replay_subscriptions(self, ws: Any) -> None:
        symbols = list(self._subscriptions)
        self._logger.info("Re-subscribing to %d symbols", len(symbols))
        for symbol in symbols:
            try:
                await ws.send(json.dumps({"subscribe": [symbol]}))
            except ConnectionClosed:
                self._logger.warning("Connection closed while re-subscribing to %s", symbol)
                return

    async def _read_loop(self, ws: Any) -> None:
        try:
            async for frame in ws:
                self.handle_message(frame)
        except ConnectionClosed as exc:
            self._logger.debug("Stream reader stopped: %s", exc)
        code = getattr(ws, "close_code", None) or ABNORMAL_CLOSURE
        reason = getattr(ws, "close_reason", None) or ""
        if self._closing or ws is not self._ws:
            return
        self._on_closed(code, reason)

    def _on_closed(self, code: int, reason: str) -> None:
        self._logger.info("Stream closed: %s - %s", code, reason)
        self._ws = None
        self._reader_task = None
        self._state = ConnectionState.DISCONNECTED
        if self._heartbeat_task is not None:
            self._heartbeat_task.cancel()
            self._heartbeat_task = None
        if not self._settings.resubscribe_on_reconnect:
            self._subscriptions.clear()
        self._publish("disconnect", {"code": code, "reason": reason})

        if self._settings.auto_reconnect and code != NORMAL_CLOSURE:
            self._schedule_reconnect()

    async def _heartbeat_loop(self, ws: Any) -> None:
        interval = self._settings.heartbeat_interval
        while True:
            await asyncio.sleep(interval)
            if self._state is not ConnectionState.CONNECTED or ws is not self._ws:
                return
            try:
                await ws.send(json.dumps({"heartbeat": True}))
            except ConnectionClosed:
                return

    async def _stop_heartbeat(self) -> None:
        task, self._heartbeat_task = self._heartbeat_task, None
        if task is None:
            return
        task.cancel()
        with contextlib.suppress(asyncio.CancelledError):
            await task

    def _schedule_reconnect(self) -> None:
        if self._reconnect_attempts >= self._settings.max_reconnect_attempts:
            self._logger.error("Max reconnect attempts reached")
            self._publish("error", StreamError("Max reconnect attempts reached"))
            return

        self._reconnect_attempts += 1
        delay = self._settings.reconnect_interval * self._reconnect_attempts
        self._logger.info("Scheduling reconnect attempt %d in %.2fs", self._reconnect_attempts, delay)
        self._reconnect_task = asyncio.get_running_loop().create_task(self._reconnect_after(delay))

    async def _reconnect_after(self, delay: float) -> None:
        await self._sleep(delay)
        try:
            await self.connect()
        except StreamConnectError as exc:
            self._logger.error("Reconnect failed: %s", exc)
            if self._settings.auto_reconnect:
                self._schedule_reconnect()

    async def _clear_reconnect_task(self) -> None:
        task, self._reconnect_task = self._reconnect_task, None
        if task is None or task.done() or task is asyncio.current_task():
            return
        task.cancel()
        with contextlib.suppress(asyncio.CancelledError):
            await task


def _symbol_list(symbols: str | Iterable[str]) -> list[str]:
    if isinstance(symbols, str):
        return [symbols]
    return list(symbols)


__all__ = ["ConnectionState", "StreamingClient"]
