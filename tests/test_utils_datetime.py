"""Tests for datetime utilities."""
from datetime import datetime, timedelta, timezone

import pytest

from yfclient.utils import ensure_utc, parse_http_date, utc_now


def test_parse_http_date_returns_utc() -> None:
    parsed = parse_http_date("Wed, 21 Oct 2015 07:28:00 GMT")
    assert parsed == datetime(2015, 10, 21, 7, 28, tzinfo=timezone.utc)
    assert parsed.tzinfo is timezone.utc


def test_parse_http_date_accepts_dashed_cookie_format() -> None:
    parsed = parse_http_date("Wed, 21-Oct-2099 07:28:00 GMT")
    assert parsed == datetime(2099, 10, 21, 7, 28, tzinfo=timezone.utc)


def test_parse_http_date_converts_offsets() -> None:
    parsed = parse_http_date("Wed, 21 Oct 2015 09:28:00 +0200")
    assert parsed == datetime(2015, 10, 21, 7, 28, tzinfo=timezone.utc)


def test_parse_http_date_raises_for_invalid_input() -> None:
    with pytest.raises(ValueError):
        parse_http_date("not-a-date")


def test_ensure_utc_adds_timezone() -> None:
    naive = datetime(2020, 1, 1, 12, 0)
    result = ensure_utc(naive)
    assert result.tzinfo is timezone.utc


def test_ensure_utc_converts_aware_values() -> None:
    aware = datetime(2020, 1, 1, 12, 0, tzinfo=timezone(timedelta(hours=-5)))
    assert ensure_utc(aware) == datetime(2020, 1, 1, 17, 0, tzinfo=timezone.utc)


def test_utc_now_is_aware() -> None:
    assert utc_now().tzinfo is timezone.utc
