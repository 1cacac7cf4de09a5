from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from enum import Enum
from typing import Dict, Optional

import aiohttp
from aiohttp import ClientSession, ClientTimeout

logger = logging.getLogger(__name__)


class FetchErrorKind(str, Enum):
    NETWORK = "network-unreachable"
    TIMEOUT = "timeout"
    HTTP_4XX = "http-4xx"
    HTTP_5XX = "http-5xx"
    OTHER = "other"


@dataclass(frozen=True)
class FetchError:
    kind: FetchErrorKind
    message: str
    status: Optional[int] = None

    def __str__(self) -> str:
        if self.status is not None:
            return f"{self.kind.value} ({self.status}): {self.message}"
        return f"{self.kind.value}: {self.message}"


@dataclass(frozen=True)
class FetchResult:
    url: str
    html: Optional[str] = None
    error: Optional[FetchError] = None

    @property
    def ok(self) -> bool:
        return self.error is None and self.html is not None


def browser_headers(user_agent: str) -> Dict[str, str]:
    return {
        "User-Agent": user_agent,
        "Accept": "text/html,application/xhtml+xml,application/xml;q=0.9,image/webp,*/*;q=0.8",
        "Accept-Language": "en-US,en;q=0.5",
        "Connection": "keep-alive",
        "Upgrade-Insecure-Requests": "1",
    }


def classify_exception(exc: BaseException) -> FetchError:
    """Map an aiohttp/asyncio failure onto the fetch error taxonomy."""
    # ServerTimeoutError is both a ClientError and a TimeoutError; check timeouts first.
    if isinstance(exc, (asyncio.TimeoutError, TimeoutError)):
        return FetchError(FetchErrorKind.TIMEOUT, "request timed out")
    if isinstance(exc, aiohttp.ClientResponseError):
        kind = FetchErrorKind.HTTP_5XX if exc.status >= 500 else (
            FetchErrorKind.HTTP_4XX if exc.status >= 400 else FetchErrorKind.OTHER
        )
        return FetchError(kind, exc.message or "bad status", status=exc.status)
    if isinstance(exc, (aiohttp.ClientConnectionError, OSError)):
        return FetchError(FetchErrorKind.NETWORK, repr(exc))
    return FetchError(FetchErrorKind.OTHER, repr(exc))


async def fetch_text(
    session: ClientSession,
    url: str,
    *,
    timeout: float = 15.0,
) -> FetchResult:
    """
    GET a URL and return its body text, or a classified error.
    There are no retries here; retry policy belongs to the engine.
    """
    try:
        async with session.get(url, timeout=ClientTimeout(total=timeout)) as resp:
            resp.raise_for_status()
            return FetchResult(url=url, html=await resp.text())
    except (aiohttp.ClientError, asyncio.TimeoutError, OSError, UnicodeDecodeError) as exc:
        error = classify_exception(exc)
        logger.debug("fetch_text failed for %s: %s", url, error)
        return FetchResult(url=url, error=error)


def create_session(user_agent: str, timeout: float = 15.0) -> ClientSession:
    """
    Create a shared aiohttp ClientSession carrying browser-like default headers.
    """
    # Note: caller is responsible for closing the session (await session.close()).
    connector = aiohttp.TCPConnector(limit=0)  # concurrency is capped by the engine's worker pool
    return aiohttp.ClientSession(
        connector=connector,
        headers=browser_headers(user_agent),
        timeout=ClientTimeout(total=timeout),
    )


class HttpFetcher:
    """
    Callable fetcher owning one session: ``async with HttpFetcher(...) as fetch: await fetch(url)``.
    """

    def __init__(self, user_agent: str, timeout: float = 15.0) -> None:
        self.user_agent = user_agent
        self.timeout = timeout
        self._session: Optional[ClientSession] = None

    async def __aenter__(self) -> "HttpFetcher":
        self._session = create_session(self.user_agent, self.timeout)
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.close()

    async def close(self) -> None:
        if self._session is not None:
            await self._session.close()
            self._session = None

    async def __call__(self, url: str) -> FetchResult:
        if self._session is None:
            raise RuntimeError("HttpFetcher used outside of its context manager")
        return await fetch_text(self._session, url, timeout=self.timeout)
