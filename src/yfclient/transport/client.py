"""Retrying, cookie-aware HTTP transport for the provider's unofficial endpoints."""
from __future__ import annotations

import asyncio
from typing import Any, Awaitable, Callable, Mapping

import httpx
from loguru import logger
from tenacity import (
    AsyncRetrying,
    RetryCallState,
    RetryError,
    retry_if_exception_type,
    stop_after_attempt,
    wait_incrementing,
)

from yfclient.config import TransportSettings
from yfclient.errors import (
    AuthenticationError,
    DecodeError,
    MaxRetriesExceeded,
    TerminalClientError,
    TransientNetworkError,
)
from yfclient.transport.auth import AuthEndpoints, AuthenticationEngine
from yfclient.transport.cookies import CookieStore

AUTH_PATH_PREFIXES = (
    "/v7/finance/",
    "/v10/finance/",
    "/v11/finance/",
    "/ws/fundamentals-timeseries/",
)
TRANSIENT_STATUSES = frozenset({408, 429, 503})
AUTH_STATUSES = frozenset({401, 403})
MAX_REDIRECTS = 10

DEFAULT_HEADERS = {
    "Accept": "text/html,application/xhtml+xml,application/xml;q=0.9,*/*;q=0.8",
    "Accept-Language": "en-US,en;q=0.5",
    "DNT": "1",
    "Upgrade-Insecure-Requests": "1",
}

Sleep = Callable[[float], Awaitable[Any]]


class Transport:
    """Issue provider requests with crumb/cookie handling, pacing and bounded retries."""

    def __init__(
        self,
        settings: TransportSettings | None = None,
        *,
        client: httpx.AsyncClient | None = None,
        cookies: CookieStore | None = None,
        endpoints: AuthEndpoints | None = None,
        sleep: Sleep = asyncio.sleep,
    ) -> None:
        self._settings = settings or TransportSettings()
        self._owns_client = client is None
        self._client = client or self._build_client(self._settings)
        if cookies is None:
            cookies = CookieStore(self._settings.cookie_path if self._settings.cookie_jar else None)
        self._cookies = cookies
        self._sleep = sleep
        self._auth = AuthenticationEngine(
            self._send,
            self._cookies,
            strategy=self._settings.auth_strategy,
            endpoints=endpoints,
        )

    @staticmethod
    def _build_client(settings: TransportSettings) -> httpx.AsyncClient:
        headers = dict(DEFAULT_HEADERS)
        headers["User-Agent"] = settings.user_agent
        return httpx.AsyncClient(
            timeout=settings.timeout,
            headers=headers,
            proxy=settings.proxy_url(),
            follow_redirects=False,
        )

    @property
    def settings(self) -> TransportSettings:
        return self._settings

    @property
    def auth(self) -> AuthenticationEngine:
        return self._auth

    @property
    def cookies(self) -> CookieStore:
        return self._cookies

    async def __aenter__(self) -> "Transport":
        return self

    async def __aexit__(self, *_) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        """Release the underlying HTTP client when it is owned by the transport."""

        if self._owns_client:
            await self._client.aclose()

    @staticmethod
    def requires_auth(url: str) -> bool:
        path = httpx.URL(url).path
        return any(path.startswith(prefix) for prefix in AUTH_PATH_PREFIXES)

    async def request(
        self,
        method: str,
        url: str,
        *,
        params: Mapping[str, Any] | None = None,
        data: Mapping[str, Any] | None = None,
        json: Any = None,
        headers: Mapping[str, str] | None = None,
    ) -> httpx.Response:
        """Send a request, retrying transient and authentication failures.

        Raises:
            TerminalClientError: the provider rejected the request with a 4xx.
            MaxRetriesExceeded: every attempt failed with a retryable error.
        """

        retrying = AsyncRetrying(
            sleep=self._sleep,
            stop=stop_after_attempt(self._settings.retries + 1),
            wait=wait_incrementing(start=self._settings.retry_delay, increment=self._settings.retry_delay),
            retry=retry_if_exception_type((TransientNetworkError, AuthenticationError)),
            before_sleep=self._before_retry,
        )
        try:
            async for attempt in retrying:
                with attempt:
                    return await self._attempt(method, url, params=params, data=data, json=json, headers=headers)
        except RetryError as exc:
            cause = exc.last_attempt.exception()
            attempts = exc.last_attempt.attempt_number
            logger.error(
                "Request to {url} failed after {attempts} attempts: {error}",
                url=url,
                attempts=attempts,
                error=cause,
            )
            raise MaxRetriesExceeded(
                f"max retries exceeded for {url} after {attempts} attempts",
                url=url,
                attempts=attempts,
                cause=cause,
            ) from cause
        raise AssertionError("unreachable: retry loop exited without outcome")  # pragma: no cover

    async def get(self, url: str, **kwargs: Any) -> httpx.Response:
        return await self.request("GET", url, **kwargs)

    async def post(self, url: str, **kwargs: Any) -> httpx.Response:
        return await self.request("POST", url, **kwargs)

    async def get_text(self, url: str, **kwargs: Any) -> str:
        response = await self.request("GET", url, **kwargs)
        return response.text

    async def get_json(self, url: str, **kwargs: Any) -> Any:
        response = await self.request("GET", url, **kwargs)
        try:
            return response.json()
        except ValueError as exc:
            raise DecodeError(f"response from {url} is not valid JSON") from exc

    async def _attempt(
        self,
        method: str,
        url: str,
        *,
        params: Mapping[str, Any] | None,
        data: Mapping[str, Any] | None,
        json: Any,
        headers: Mapping[str, str] | None,
    ) -> httpx.Response:
        requires_auth = self.requires_auth(url)
        query = dict(params or {})
        if requires_auth:
            crumb = await self._auth.get_crumb()
            if crumb:
                query["crumb"] = crumb

        try:
            response = await self._send(method, url, params=query or None, data=data, json=json, headers=headers)
        except httpx.RequestError as exc:
            raise TransientNetworkError(f"network error for {url}: {exc}", url=url, cause=exc) from exc

        status = response.status_code
        if status < 400:
            return response
        if requires_auth and status in AUTH_STATUSES:
            raise AuthenticationError(f"authentication rejected for {url} ({status})", url=url)
        if status in TRANSIENT_STATUSES or status >= 500:
            raise TransientNetworkError(f"{url} answered {status}", url=url, status_code=status)
        raise TerminalClientError(f"{url} answered {status}", url=url, status_code=status)

    def _before_retry(self, retry_state: RetryCallState) -> None:
        exc = retry_state.outcome.exception() if retry_state.outcome else None
        if isinstance(exc, AuthenticationError):
            self._auth.invalidate()
            self._cookies.clear()
        logger.debug(
            "Request failed, retrying ({attempt}/{retries}) in {delay:.2f}s: {error}",
            attempt=retry_state.attempt_number,
            retries=self._settings.retries,
            delay=retry_state.next_action.sleep if retry_state.next_action else 0.0,
            error=exc,
        )

    async def _send(
        self,
        method: str,
        url: str,
        *,
        params: Mapping[str, Any] | None = None,
        data: Mapping[str, Any] | None = None,
        json: Any = None,
        headers: Mapping[str, str] | None = None,
    ) -> httpx.Response:
        """Single paced exchange, following redirects so every hop sees the cookie store."""

        await asyncio.to_thread(self._cookies.load)
        method = method.upper()
        target = url
        for _ in range(MAX_REDIRECTS + 1):
            if self._settings.pacing_delay > 0:
                await self._sleep(self._settings.pacing_delay)

            request_headers = dict(headers or {})
            cookie_pairs = self._cookies.cookies_for(target)
            if cookie_pairs:
                request_headers["Cookie"] = "; ".join(cookie_pairs)

            logger.debug("{method} {url}", method=method, url=target)
            response = await self._client.request(
                method,
                target,
                params=params,
                data=data,
                json=json,
                headers=request_headers,
            )
            # the store is the only cookie source; keep httpx's own jar empty
            self._client.cookies.clear()
            self._cookies.update(str(response.url), response.headers)
            await asyncio.to_thread(self._cookies.save)

            if not response.has_redirect_location:
                return response

            target = str(response.url.join(response.headers["location"]))
            params = None
            if response.status_code == httpx.codes.SEE_OTHER or (
                response.status_code in (httpx.codes.MOVED_PERMANENTLY, httpx.codes.FOUND) and method == "POST"
            ):
                method, data, json = "GET", None, None

        raise httpx.TooManyRedirects(f"exceeded {MAX_REDIRECTS} redirects for {url}", request=response.request)


__all__ = ["AUTH_PATH_PREFIXES", "Transport"]
