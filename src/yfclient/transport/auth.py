"""Crumb acquisition with two interchangeable strategies and sticky fallback."""
from __future__ import annotations

import asyncio
import re
from dataclasses import dataclass
from enum import Enum
from typing import Any, Awaitable, Callable, Dict

import httpx
from loguru import logger

from yfclient.errors import AuthenticationError, CrumbUnavailableError
from yfclient.transport.cookies import CookieStore

Sender = Callable[..., Awaitable[httpx.Response]]

_CSRF_TOKEN = re.compile(r'name=["\']csrfToken["\'][^>]*?value=["\']([^"\']+)["\']')
_SESSION_ID = re.compile(r'name=["\']sessionId["\'][^>]*?value=["\']([^"\']+)["\']')


class AuthStrategy(str, Enum):
    """Procedures able to produce a crumb."""

    BASIC = "basic"
    CONSENT = "consent"

    @property
    def fallback(self) -> "AuthStrategy":
        return AuthStrategy.CONSENT if self is AuthStrategy.BASIC else AuthStrategy.BASIC


@dataclass(frozen=True)
class AuthEndpoints:
    """Provider endpoints visited while obtaining a crumb."""

    bootstrap_url: str = "https://fc.yahoo.com"
    crumb_url: str = "https://query1.finance.yahoo.com/v1/test/getcrumb"
    consent_url: str = "https://guce.yahoo.com/consent"
    collect_consent_url: str = "https://consent.yahoo.com/v2/collectConsent"
    copy_consent_url: str = "https://guce.yahoo.com/copyConsent"
    consent_crumb_url: str = "https://query2.finance.yahoo.com/v1/test/getcrumb"
    done_url: str = "https://finance.yahoo.com/"


class AuthenticationEngine:
    """Obtain and cache the crumb required by authenticated provider endpoints.

    The active strategy is sticky: it only changes when it fails to produce a
    crumb, in which case the other strategy is tried once. Requests go through
    ``send``, a single-shot sender that applies pacing and cookies but never
    retries, so authentication steps cannot recurse into the retry loop.
    """

    def __init__(
        self,
        send: Sender,
        cookies: CookieStore,
        *,
        strategy: AuthStrategy | str = AuthStrategy.BASIC,
        endpoints: AuthEndpoints | None = None,
    ) -> None:
        self._send = send
        self._cookies = cookies
        self._strategy = AuthStrategy(strategy)
        self._endpoints = endpoints or AuthEndpoints()
        self._crumb: str | None = None
        self._crumb_strategy: AuthStrategy | None = None
        self._lock = asyncio.Lock()
        self._runners: Dict[AuthStrategy, Callable[[], Awaitable[str]]] = {
            AuthStrategy.BASIC: self._run_basic,
            AuthStrategy.CONSENT: self._run_consent,
        }

    @property
    def strategy(self) -> AuthStrategy:
        return self._strategy

    @property
    def crumb(self) -> str | None:
        return self._crumb

    async def get_crumb(self) -> str | None:
        """Return a trusted crumb, acquiring one if needed; ``None`` when both strategies fail."""

        async with self._lock:
            if self._crumb is not None and self._crumb_strategy is self._strategy:
                return self._crumb

            strategy = self._strategy
            crumb = await self._attempt(strategy)
            if crumb is None:
                strategy = strategy.fallback
                logger.info("Switching crumb strategy to {strategy}", strategy=strategy.value)
                self.switch_strategy(strategy)
                crumb = await self._attempt(strategy)

            if crumb is None:
                logger.error("No crumb available from either strategy; continuing unauthenticated")
                return None

            self._crumb = crumb
            self._crumb_strategy = strategy
            return crumb

    def invalidate(self) -> None:
        """Forget the cached crumb while keeping the active strategy."""

        self._crumb = None
        self._crumb_strategy = None

    def switch_strategy(self, to: AuthStrategy | str) -> None:
        target = AuthStrategy(to)
        if target is self._strategy:
            return
        self.invalidate()
        self._cookies.clear()
        self._strategy = target

    async def _attempt(self, strategy: AuthStrategy) -> str | None:
        try:
            return await self._runners[strategy]()
        except (AuthenticationError, httpx.HTTPError) as exc:
            logger.warning(
                "Crumb acquisition with {strategy} strategy failed: {error}",
                strategy=strategy.value,
                error=exc,
            )
            return None

    async def _run_basic(self) -> str:
        endpoints = self._endpoints
        # status is irrelevant, the visit only seeds session cookies
        await self._send("GET", endpoints.bootstrap_url)
        response = await self._send("GET", endpoints.crumb_url)
        return _validate_crumb(response, endpoints.crumb_url)

    async def _run_consent(self) -> str:
        endpoints = self._endpoints
        page = await self._send("GET", endpoints.consent_url)
        csrf_match = _CSRF_TOKEN.search(page.text)
        session_match = _SESSION_ID.search(page.text)
        if csrf_match is None or session_match is None:
            raise CrumbUnavailableError(
                "consent page did not expose csrfToken/sessionId",
                url=endpoints.consent_url,
            )

        session_id = session_match.group(1)
        form: Dict[str, Any] = {
            "agree": ["agree", "agree"],
            "consentUUID": "default",
            "sessionId": session_id,
            "csrfToken": csrf_match.group(1),
            "originalDoneUrl": endpoints.done_url,
            "namespace": "yahoo",
        }
        await self._send("POST", endpoints.collect_consent_url, params={"sessionId": session_id}, data=form)
        await self._send("GET", endpoints.copy_consent_url, params={"sessionId": session_id})

        response = await self._send("GET", endpoints.consent_crumb_url)
        return _validate_crumb(response, endpoints.consent_crumb_url)


def _validate_crumb(response: httpx.Response, url: str) -> str:
    text = response.text.strip()
    if response.status_code == httpx.codes.TOO_MANY_REQUESTS or "Too Many Requests" in text:
        raise CrumbUnavailableError("crumb endpoint is rate limiting", url=url)
    if response.status_code >= 400:
        raise CrumbUnavailableError(f"crumb endpoint answered {response.status_code}", url=url)
    if not text or "<html" in text.lower():
        raise CrumbUnavailableError("crumb endpoint returned no token", url=url)
    return text


__all__ = ["AuthEndpoints", "AuthStrategy", "AuthenticationEngine"]
