"""Event payloads produced by the streaming client."""
from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Any, Literal, Mapping

from yfclient.utils import utc_now

MessageType = Literal["connect", "disconnect", "price", "error"]


@dataclass(slots=True)
class PriceUpdate:
    """Normalised live price tick. Missing numeric fields are reported as ``0.0``."""

    id: str
    price: float
    change: float = 0.0
    change_percent: float = 0.0
    volume: float = 0.0
    market_cap: float = 0.0
    timestamp: datetime | None = None

    @classmethod
    def from_frame(cls, frame: Mapping[str, Any], *, received_at: datetime | None = None) -> "PriceUpdate":
        """Build an update from a decoded inbound frame; raises ``ValueError`` on a non-numeric price."""

        return cls(
            id=str(frame.get("symbol") or ""),
            price=_number(frame.get("price"), required=True),
            change=_number(frame.get("change")),
            change_percent=_number(frame.get("changePercent")),
            volume=_number(frame.get("volume")),
            market_cap=_number(frame.get("marketCap")),
            timestamp=received_at or utc_now(),
        )


@dataclass(slots=True)
class StreamMessage:
    """Tagged event handed out by the async bridge."""

    type: MessageType
    data: Any = None
    error: str | None = None


def _number(value: Any, *, required: bool = False) -> float:
    if value is None:
        if required:
            raise ValueError("price field is null")
        return 0.0
    if isinstance(value, bool):
        raise ValueError(f"expected a number, got {value!r}")
    try:
        return float(value)
    except (TypeError, ValueError) as exc:
        raise ValueError(f"expected a number, got {value!r}") from exc


__all__ = ["MessageType", "PriceUpdate", "StreamMessage"]
