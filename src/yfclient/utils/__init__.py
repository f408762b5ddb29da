"""Utility helpers."""

from yfclient.utils.datetime import ensure_utc, parse_http_date, utc_now

__all__ = ["ensure_utc", "parse_http_date", "utc_now"]
