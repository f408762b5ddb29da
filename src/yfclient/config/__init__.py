"""Configuration subpackage."""

from yfclient.config.settings import (
    ClientSettings,
    ProxySettings,
    StreamSettings,
    TransportSettings,
    load_settings,
)

__all__ = ["ClientSettings", "ProxySettings", "StreamSettings", "TransportSettings", "load_settings"]
