"""Domain/path scoped cookie cache persisted in the Netscape cookie-file format."""
from __future__ import annotations

import os
import tempfile
import threading
import time
from dataclasses import dataclass
from pathlib import Path
from typing import Callable, Iterable, Mapping, Union
from urllib.parse import urlsplit

import httpx
from loguru import logger

from yfclient.utils import parse_http_date

COOKIE_FILE_HEADER = "# Netscape HTTP Cookie File"
HTTP_ONLY_PREFIX = "#HttpOnly_"

HeaderSource = Union[httpx.Headers, Mapping[str, Union[str, Iterable[str]]], Iterable[str]]


@dataclass(slots=True)
class Cookie:
    """A single stored cookie. ``expires`` is epoch seconds, ``None`` for session cookies."""

    domain: str
    path: str
    name: str
    value: str
    secure: bool = False
    http_only: bool = False
    expires: float | None = None
    host_only: bool = True

    def is_expired(self, now: float) -> bool:
        return self.expires is not None and self.expires <= now

    def matches(self, host: str, path: str, scheme: str) -> bool:
        if self.secure and scheme != "https":
            return False
        if host != self.domain:
            if self.host_only or not host.endswith("." + self.domain):
                return False
        return path.startswith(self.path)


class CookieStore:
    """Thread-safe cookie jar keyed by ``(domain, name)``.

    The jar is read from disk at most once, lazily, and written back after
    every call to :meth:`save`. Passing ``path=None`` keeps cookies in memory.
    """

    def __init__(self, path: Path | None = None, *, clock: Callable[[], float] = time.time) -> None:
        self._path = path
        self._clock = clock
        self._cookies: dict[tuple[str, str], Cookie] = {}
        self._lock = threading.RLock()
        self._loaded = False

    @property
    def path(self) -> Path | None:
        return self._path

    def __len__(self) -> int:
        with self._lock:
            return len(self._cookies)

    def all(self) -> list[Cookie]:
        with self._lock:
            return list(self._cookies.values())

    def load(self) -> None:
        """Read persisted cookies once; failures leave the jar empty."""

        with self._lock:
            if self._loaded:
                return
            self._loaded = True
            if self._path is None or not self._path.exists():
                return
            try:
                text = self._path.read_text(encoding="utf-8")
            except (OSError, UnicodeDecodeError) as exc:
                logger.warning("Unable to read cookie jar {path}: {error}", path=self._path, error=exc)
                return

            loaded = 0
            for line_no, line in enumerate(text.splitlines(), start=1):
                cookie = self._parse_line(line)
                if cookie is None:
                    if line.strip() and not line.startswith("#"):
                        logger.debug("Skipping malformed cookie line {line_no}", line_no=line_no)
                    continue
                self._cookies[(cookie.domain, cookie.name)] = cookie
                loaded += 1
            logger.debug("Loaded {count} cookies from {path}", count=loaded, path=self._path)

    def cookies_for(self, url: str) -> list[str]:
        """Return ``name=value`` pairs for every live cookie matching ``url``."""

        parts = urlsplit(url)
        host = (parts.hostname or "").lower()
        path = parts.path or "/"
        scheme = parts.scheme.lower()
        now = self._clock()
        with self._lock:
            matching = [
                cookie
                for cookie in self._cookies.values()
                if not cookie.is_expired(now) and cookie.matches(host, path, scheme)
            ]
        # stable sort keeps insertion order among equal path lengths
        matching.sort(key=lambda cookie: len(cookie.path), reverse=True)
        return [f"{cookie.name}={cookie.value}" for cookie in matching]

    def update(self, url: str, headers: HeaderSource) -> None:
        """Record every ``Set-Cookie`` directive carried by a response for ``url``."""

        parts = urlsplit(url)
        host = (parts.hostname or "").lower()
        if not host:
            return
        now = self._clock()
        for directive in _set_cookie_values(headers):
            cookie = self._parse_directive(directive, host, now)
            if cookie is None:
                continue
            key = (cookie.domain, cookie.name)
            with self._lock:
                if cookie.is_expired(now):
                    self._cookies.pop(key, None)
                else:
                    # re-insert so the newest write also wins insertion order
                    self._cookies.pop(key, None)
                    self._cookies[key] = cookie

    def save(self) -> None:
        """Persist the jar by writing a temporary file and renaming it into place.

        Write failures are logged and leave the in-memory jar untouched.
        """

        if self._path is None:
            return
        with self._lock:
            lines = [COOKIE_FILE_HEADER, ""]
            lines.extend(self._format_line(cookie) for cookie in self._cookies.values())
            payload = "\n".join(lines) + "\n"

            tmp_name: str | None = None
            try:
                directory = self._path.parent
                directory.mkdir(parents=True, exist_ok=True)
                fd, tmp_name = tempfile.mkstemp(prefix=".cookies-", dir=directory)
                with os.fdopen(fd, "w", encoding="utf-8") as handle:
                    handle.write(payload)
                os.replace(tmp_name, self._path)
            except OSError as exc:
                logger.warning("Unable to write cookie jar {path}: {error}", path=self._path, error=exc)
                if tmp_name is not None:
                    Path(tmp_name).unlink(missing_ok=True)

    def clear(self, domain: str | None = None) -> None:
        """Drop the cookies of ``domain`` (and its subdomains) or the whole jar."""

        with self._lock:
            if domain is None:
                self._cookies.clear()
                return
            target = domain.lower().lstrip(".")
            for key in [
                key
                for key, cookie in self._cookies.items()
                if cookie.domain == target or cookie.domain.endswith("." + target)
            ]:
                del self._cookies[key]

    def _parse_directive(self, directive: str, host: str, now: float) -> Cookie | None:
        pieces = [piece.strip() for piece in directive.split(";")]
        if not pieces or "=" not in pieces[0]:
            return None
        name, _, value = pieces[0].partition("=")
        name = name.strip()
        if not name:
            return None
        value = value.strip()
        if len(value) >= 2 and value[0] == value[-1] == '"':
            value = value[1:-1]

        cookie = Cookie(domain=host, path="/", name=name, value=value)
        max_age: float | None = None
        expires: float | None = None
        for attribute in pieces[1:]:
            key, _, raw = attribute.partition("=")
            key = key.strip().lower()
            raw = raw.strip()
            if key == "path" and raw.startswith("/"):
                cookie.path = raw
            elif key == "domain" and raw:
                domain = raw.lower().lstrip(".")
                if host != domain and not host.endswith("." + domain):
                    logger.debug("Rejecting cookie {name} for foreign domain {domain}", name=name, domain=domain)
                    return None
                cookie.domain = domain
                cookie.host_only = False
            elif key == "secure":
                cookie.secure = True
            elif key == "httponly":
                cookie.http_only = True
            elif key == "max-age":
                try:
                    max_age = float(int(raw))
                except ValueError:
                    continue
            elif key == "expires":
                try:
                    expires = parse_http_date(raw).timestamp()
                except ValueError:
                    continue

        if max_age is not None:
            cookie.expires = now + max_age
        elif expires is not None:
            cookie.expires = expires
        return cookie

    @staticmethod
    def _format_line(cookie: Cookie) -> str:
        domain = cookie.domain if cookie.host_only else f".{cookie.domain}"
        if cookie.http_only:
            domain = HTTP_ONLY_PREFIX + domain
        expires = "0" if cookie.expires is None else _format_epoch(cookie.expires)
        return "\t".join(
            [
                domain,
                "FALSE" if cookie.host_only else "TRUE",
                cookie.path,
                "TRUE" if cookie.secure else "FALSE",
                expires,
                cookie.name,
                cookie.value,
            ]
        )

    @staticmethod
    def _parse_line(line: str) -> Cookie | None:
        http_only = False
        if line.startswith(HTTP_ONLY_PREFIX):
            http_only = True
            line = line[len(HTTP_ONLY_PREFIX):]
        elif not line.strip() or line.startswith("#"):
            return None

        fields = line.rstrip("\r\n").split("\t")
        if len(fields) != 7:
            return None
        domain, subdomains, path, secure, expires_raw, name, value = fields
        if not domain or not name:
            return None
        try:
            expires = float(expires_raw)
        except ValueError:
            return None

        return Cookie(
            domain=domain.lower().lstrip("."),
            path=path or "/",
            name=name,
            value=value,
            secure=secure.upper() == "TRUE",
            http_only=http_only,
            expires=None if expires == 0 else expires,
            host_only=subdomains.upper() != "TRUE",
        )


def _format_epoch(value: float) -> str:
    if float(value).is_integer():
        return str(int(value))
    return repr(float(value))


def _set_cookie_values(headers: HeaderSource) -> list[str]:
    if isinstance(headers, httpx.Headers):
        return headers.get_list("set-cookie")
    if isinstance(headers, Mapping):
        values: list[str] = []
        for key, raw in headers.items():
            if key.lower() != "set-cookie":
                continue
            if isinstance(raw, str):
                values.append(raw)
            else:
                values.extend(raw)
        return values
    return [value for value in headers if isinstance(value, str)]


__all__ = ["COOKIE_FILE_HEADER", "Cookie", "CookieStore"]
