"""
PageWalker HTTP transport
=========================
Thin httpx wrapper used by BrowserSession.

Every call opens its own httpx.Client and closes it before returning, so a
session holds no connections between navigations. httpx failures are
re-raised as TransportError.
"""

from __future__ import annotations

import time
from contextlib import contextmanager
from dataclasses import dataclass, field
from typing import Iterator, Mapping

import httpx

from pagewalker.config import logger
from pagewalker.core.errors import TransportError

# ═══════════════════════════════════════════════════════════════════════════════
# DATA MODELS
# ═══════════════════════════════════════════════════════════════════════════════


@dataclass(frozen=True)
class HttpResponse:
    """Fully read response of one request."""
    url: str
    status_code: int
    headers: httpx.Headers = field(default_factory=httpx.Headers)
    # Cookies set anywhere along the redirect chain
    cookies: dict[str, str] = field(default_factory=dict)
    content: bytes = b""
    encoding: str | None = None
    elapsed_ms: int = 0

    def header(self, name: str) -> str:
        return self.headers.get(name, "")

    @property
    def content_type(self) -> str:
        return self.headers.get("content-type", "")


def proxy_url(host: str | None, port: int | str | None) -> str | None:
    """http://host:port, or None unless both parts are present."""
    if not host or not port:
        return None
    return f"http://{host}:{port}"


# ═══════════════════════════════════════════════════════════════════════════════
# HTTP CLIENT
# ═══════════════════════════════════════════════════════════════════════════════


class HttpClient:
    """
    Executes single requests with per-call settings.

    transport is handed to httpx.Client as-is; tests pass an
    httpx.MockTransport here.
    """

    def __init__(self, transport: httpx.BaseTransport | None = None):
        self._transport = transport

    def _client(
        self,
        headers: Mapping[str, str] | None,
        cookies: Mapping[str, str] | None,
        proxy: str | None,
        timeout_ms: int,
        follow_redirects: bool,
    ) -> httpx.Client:
        return httpx.Client(
            headers=dict(headers or {}),
            cookies=dict(cookies or {}),
            proxy=proxy,
            timeout=httpx.Timeout(timeout_ms / 1000),
            follow_redirects=follow_redirects,
            transport=self._transport,
        )

    @staticmethod
    def _payload(method: str, data: Mapping[str, str] | None) -> dict:
        if data is None:
            return {}
        # GET forms travel in the query string
        if method == "GET":
            return {"params": dict(data)}
        return {"data": dict(data)}

    def execute(
        self,
        url: str,
        method: str = "GET",
        headers: Mapping[str, str] | None = None,
        cookies: Mapping[str, str] | None = None,
        proxy: str | None = None,
        data: Mapping[str, str] | None = None,
        timeout_ms: int = 10000,
        follow_redirects: bool = True,
    ) -> HttpResponse:
        """
        Run one request and read the whole body.

        Raises TransportError on connect, timeout, proxy, redirect-loop or
        URL errors. HTTP error statuses are returned, not raised.
        """
        method = method.upper()
        start = time.time()
        try:
            with self._client(headers, cookies, proxy, timeout_ms, follow_redirects) as client:
                resp = client.request(method, url, **self._payload(method, data))
        except (httpx.HTTPError, httpx.InvalidURL) as e:
            logger.warning(f"HttpClient: {method} {url} failed: {e!r}")
            raise TransportError(f"Error opening URL: {e}") from e

        received: dict[str, str] = {}
        for r in (*resp.history, resp):
            for cookie in r.cookies.jar:
                received[cookie.name] = cookie.value or ""

        result = HttpResponse(
            url=str(resp.url),
            status_code=resp.status_code,
            headers=resp.headers,
            cookies=received,
            content=resp.content,
            encoding=resp.charset_encoding,
            elapsed_ms=int((time.time() - start) * 1000),
        )
        logger.debug(
            f"HttpClient: {method} {url} -> {result.status_code} "
            f"({len(result.content)} bytes, {result.elapsed_ms}ms)"
        )
        return result

    @contextmanager
    def stream(
        self,
        url: str,
        method: str = "GET",
        headers: Mapping[str, str] | None = None,
        proxy: str | None = None,
        data: Mapping[str, str] | None = None,
        timeout_ms: int = 10000,
        follow_redirects: bool = True,
    ) -> Iterator[httpx.Response]:
        """
        Open a streaming request; the body is read by the caller.

        Client and response are closed when the block exits, whichever way
        it exits. httpx errors raised inside the block (read timeouts while
        iterating the body) also surface as TransportError.
        """
        method = method.upper()
        try:
            with self._client(headers, None, proxy, timeout_ms, follow_redirects) as client:
                with client.stream(method, url, **self._payload(method, data)) as resp:
                    yield resp
        except (httpx.HTTPError, httpx.InvalidURL) as e:
            logger.warning(f"HttpClient: stream {method} {url} failed: {e!r}")
            raise TransportError(f"Error opening URL: {e}") from e
