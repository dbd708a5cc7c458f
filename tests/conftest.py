"""
Pytest fixtures for the PageWalker test suite.

HTTP never leaves the process: every session talks to a FakeSite through
httpx.MockTransport.
"""

import sys
from pathlib import Path
from typing import Callable

import httpx
import pytest

# Ensure pagewalker package is importable
sys.path.insert(0, str(Path(__file__).parent.parent / "agent"))

from pagewalker.config import DEFAULT_USER_AGENT, BrowserConfig  # noqa: E402
from pagewalker.core.session import BrowserSession  # noqa: E402
from pagewalker.core.transport import HttpClient  # noqa: E402

BASE = "https://shop.example.com"

HOME_HTML = """<!DOCTYPE html>
<html>
<head>
  <title>  Test
     Shop </title>
  <link rel="stylesheet" type="text/css" href="/static/site.css">
  <link rel="icon" href="/favicon.ico">
  <script src="/static/app.JS?v=2"></script>
  <script>inline();</script>
</head>
<body>
  <h1>Welcome</h1>
  <a href="/about">About</a>
  <a href="https://other.example.org/x">Other</a>
  <a href="http://[broken">Broken</a>
  <a name="top">No href</a>
  <img src="/img/logo.PNG">
  <img src="/img/pixel.svg">
  <img src="photo.jpg">
  <form id="search" action="/search" method="get">
    <input name="q" value="">
    <input type="submit" value="Go">
  </form>
  <form id="login" action="" method="POST">
    <input name="user" value="alice">
    <input name="password">
    <input name="user" value="bob">
  </form>
  <form id="upload" method="put">
    <input name="file" value="a.txt">
  </form>
</body>
</html>
"""

RESULTS_HTML = """<html><head><title>Results</title></head>
<body><a href="/item/1">Item 1</a><a href="/item/2">Item 2</a></body></html>
"""

PLAIN_HTML = """<html><head><title>{title}</title></head><body><p>{title}</p></body></html>"""


class FakeSite:
    """Route table for httpx.MockTransport; records every request."""

    def __init__(self):
        self.routes: dict[str, Callable[[httpx.Request], httpx.Response]] = {}
        self.requests: list[httpx.Request] = []

    def html(self, path: str, body: str, status: int = 200, headers: dict | None = None):
        def _handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(
                status,
                content=body.encode("utf-8"),
                headers={"content-type": "text/html; charset=utf-8", **(headers or {})},
            )
        self.routes[path] = _handler

    def route(self, path: str, handler: Callable[[httpx.Request], httpx.Response]):
        self.routes[path] = handler

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        handler = self.routes.get(request.url.path)
        if handler is None:
            return httpx.Response(
                404, content=b"<html><body>Not found</body></html>",
                headers={"content-type": "text/html"},
            )
        return handler(request)

    @property
    def last(self) -> httpx.Request:
        return self.requests[-1]


@pytest.fixture
def site() -> FakeSite:
    site = FakeSite()
    site.html("/", HOME_HTML, headers={"set-cookie": "sid=abc; Path=/"})
    site.html("/account/login", HOME_HTML)
    site.html("/search", RESULTS_HTML)
    site.html("/about", PLAIN_HTML.format(title="About"))
    site.html(
        "/dashboard", PLAIN_HTML.format(title="Dashboard"),
        headers={"set-cookie": "auth=1; Path=/"},
    )
    site.route("/go", lambda request: httpx.Response(
        302, headers={"location": "/dashboard", "set-cookie": "hop=yes; Path=/"},
    ))
    site.route("/logo.png", lambda request: httpx.Response(
        200, content=b"\x89PNG\r\n\x1a\n", headers={"content-type": "image/png"},
    ))
    return site


@pytest.fixture
def browser_config() -> BrowserConfig:
    return BrowserConfig(
        user_agent=DEFAULT_USER_AGENT,
        timeout_ms=10000,
        follow_redirects=True,
        handle_cookies=True,
        auto_parse=True,
        proxy_host="",
        proxy_port=0,
        download_chunk_size=4,
    )


@pytest.fixture
def http_client(site) -> HttpClient:
    return HttpClient(transport=httpx.MockTransport(site))


@pytest.fixture
def session(browser_config, http_client) -> BrowserSession:
    return BrowserSession(settings=browser_config, http=http_client)
