"""Resilient Yahoo Finance transport and live streaming client."""

from yfclient.client import YahooFinanceClient, get_default_client
from yfclient.config import ClientSettings, StreamSettings, TransportSettings, load_settings
from yfclient.stream import AsyncStreamBridge, PriceUpdate, StreamingClient, StreamMessage
from yfclient.transport import AuthenticationEngine, AuthStrategy, CookieStore, Transport

__version__ = "0.1.0"

__all__ = [
    "AsyncStreamBridge",
    "AuthStrategy",
    "AuthenticationEngine",
    "ClientSettings",
    "CookieStore",
    "PriceUpdate",
    "StreamMessage",
    "StreamSettings",
    "StreamingClient",
    "Transport",
    "TransportSettings",
    "YahooFinanceClient",
    "get_default_client",
    "load_settings",
]
