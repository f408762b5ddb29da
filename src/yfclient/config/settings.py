"""Configuration management for the Yahoo Finance client."""
from __future__ import annotations

import tomllib
from pathlib import Path
from typing import Literal, Optional

from pydantic import BaseModel, Field, ValidationError, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

DEFAULT_USER_AGENT = (
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 "
    "(KHTML, like Gecko) Chrome/116.0.0.0 Safari/537.36"
)


class ProxySettings(BaseModel):
    """Structured proxy definition, rendered to a proxy URL for httpx."""

    host: str
    port: int = Field(..., ge=1, le=65535)
    username: str | None = None
    password: str | None = None
    type: Literal["http", "https", "socks5"] = "http"

    def url(self) -> str:
        auth = ""
        if self.username:
            auth = self.username if self.password is None else f"{self.username}:{self.password}"
            auth += "@"
        return f"{self.type}://{auth}{self.host}:{self.port}"


class TransportSettings(BaseModel):
    """HTTP transport, retry and cookie-jar parameters."""

    base_url: str = Field("https://finance.yahoo.com")
    timeout: float = Field(30.0, gt=0.0, description="Per-attempt request timeout in seconds")
    retries: int = Field(3, ge=0, description="Retries after the initial attempt")
    retry_delay: float = Field(1.0, ge=0.0, description="Base delay multiplied by the attempt number")
    pacing_delay: float = Field(0.1, ge=0.0, description="Fixed delay inserted before every outbound call")
    user_agent: str = Field(DEFAULT_USER_AGENT)
    cookie_jar: bool = Field(True, description="Persist cookies between processes")
    cookie_path: Path = Field(Path("~/.cache/yfclient/cookies.txt"))
    proxy: str | ProxySettings | None = None
    auth_strategy: Literal["basic", "consent"] = Field("basic")

    @field_validator("cookie_path")
    @classmethod
    def _expand_cookie_path(cls, value: Path) -> Path:
        return value.expanduser()

    def proxy_url(self) -> str | None:
        if isinstance(self.proxy, ProxySettings):
            return self.proxy.url()
        return self.proxy


class StreamSettings(BaseModel):
    """Live price streaming connection parameters."""

    url: str = Field("wss://streamer.finance.yahoo.com")
    auto_reconnect: bool = Field(True)
    reconnect_interval: float = Field(5.0, gt=0.0, description="Base reconnect delay in seconds")
    max_reconnect_attempts: int = Field(10, ge=0)
    heartbeat_interval: float = Field(30.0, gt=0.0)
    connect_timeout: float = Field(10.0, gt=0.0)
    resubscribe_on_reconnect: bool = Field(
        True,
        description="Keep subscriptions across unexpected closures and replay them after reconnecting",
    )


class ClientSettings(BaseSettings):
    """Client-wide configuration composed from the transport and stream domains."""

    model_config = SettingsConfigDict(
        case_sensitive=False,
        env_prefix="YFCLIENT_",
        env_nested_delimiter="__",
        env_file=".env",
    )

    transport: TransportSettings = TransportSettings()
    stream: StreamSettings = StreamSettings()


def load_settings(path: Optional[Path] = None) -> ClientSettings:
    """Load settings from a TOML file, falling back to environment variables."""

    if path is None:
        path = Path("config/yfclient.toml")

    try:
        if path.exists():
            raw_data = tomllib.loads(path.read_text())
            return ClientSettings.model_validate(raw_data)
        return ClientSettings()
    except ValidationError as exc:
        raise RuntimeError(
            f"Unable to load configuration. Check {path} or the YFCLIENT_* environment variables."
        ) from exc


__all__ = ["ClientSettings", "ProxySettings", "StreamSettings", "TransportSettings", "load_settings"]
