"""Live price streaming."""

from yfclient.stream.bridge import AsyncStreamBridge
from yfclient.stream.client import ConnectionState, StreamingClient
from yfclient.stream.messages import PriceUpdate, StreamMessage

__all__ = ["AsyncStreamBridge", "ConnectionState", "PriceUpdate", "StreamMessage", "StreamingClient"]
