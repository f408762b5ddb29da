"""Authenticated HTTP transport layer."""

from yfclient.transport.auth import AuthEndpoints, AuthenticationEngine, AuthStrategy
from yfclient.transport.client import AUTH_PATH_PREFIXES, Transport
from yfclient.transport.cookies import Cookie, CookieStore

__all__ = [
    "AUTH_PATH_PREFIXES",
    "AuthEndpoints",
    "AuthStrategy",
    "AuthenticationEngine",
    "Cookie",
    "CookieStore",
    "Transport",
]
