"""
PageWalker Browser Session: headless, stateful page navigation
================================================================
A programmable browser built on httpx + BeautifulSoup. No JavaScript and no
rendering: pages are fetched, parsed and mined for links, assets and forms.

Capabilities:
1. Navigation with session persistence (cookies, headers across requests)
2. History of visited pages
3. Link / image / script / stylesheet extraction with absolute URLs
4. Form selection, parameter filling and submission (GET / POST)
5. Side-effect-free fetching of other pages
6. Raw downloads streamed to disk

Usage:
    session = BrowserSession()
    session.open("https://example.com/login")
    if session.select_form_by_attr("id", "login"):
        session.set_form_param("user", "alice")
        session.set_form_param("password", "secret")
        session.submit_form()
    print(session.page_title, session.urls[UrlKind.HYPERLINK])
"""

from __future__ import annotations

import time
from dataclasses import dataclass, field
from enum import Enum
from http import HTTPStatus
from pathlib import Path
from typing import Any, Mapping

from pagewalker.config import BrowserConfig, config, logger
from pagewalker.core.document import Document, DocumentParser, Element, parse_document
from pagewalker.core.errors import (
    DownloadError,
    NoFormSelectedError,
    NoPageError,
    TransportError,
    UnsupportedMethodError,
)
from pagewalker.core.transport import HttpClient, HttpResponse, proxy_url

# ═══════════════════════════════════════════════════════════════════════════════
# CONSTANTS
# ═══════════════════════════════════════════════════════════════════════════════

IMAGE_EXTENSIONS = (".png", ".jpg", ".jpeg", ".gif")

FORM_METHODS = ("get", "post")

# ═══════════════════════════════════════════════════════════════════════════════
# DATA MODELS
# ═══════════════════════════════════════════════════════════════════════════════


class UrlKind(str, Enum):
    """Categories of URLs extracted from a page."""
    HYPERLINK = "href"
    IMAGE = "img"
    SCRIPT = "js"
    STYLESHEET = "css"


@dataclass(frozen=True)
class PageState:
    """Everything known about the current page. Replaced as a whole."""
    url: str
    html: str
    document: Document
    response: HttpResponse
    cookies: dict[str, str] = field(default_factory=dict)


@dataclass
class BrowsingStats:
    """Request counters across the lifetime of a session."""
    total_requests: int = 0
    total_bytes: int = 0
    start_time: float = field(default_factory=time.time)

    def record(self, nbytes: int) -> None:
        self.total_requests += 1
        self.total_bytes += nbytes

    @property
    def duration_ms(self) -> int:
        return int((time.time() - self.start_time) * 1000)


# ═══════════════════════════════════════════════════════════════════════════════
# COOKIE / HEADER STRINGS
# ═══════════════════════════════════════════════════════════════════════════════


def _split_pairs(text: str, sep: str) -> dict[str, str]:
    pairs: dict[str, str] = {}
    for segment in text.split(sep):
        segment = segment.strip()
        if not segment:
            continue
        name, eq, value = segment.partition("=")
        if eq:
            pairs[name] = value
    return pairs


def parse_cookies(text: str) -> dict[str, str]:
    """
    Parse "a=1; b=2" (optionally prefixed with "Cookie: " or "Set-Cookie: ").
    Segments without "=" are dropped.
    """
    for prefix in ("Cookie: ", "Set-Cookie: "):
        if text.startswith(prefix):
            text = text[len(prefix):]
            break
    return _split_pairs(text, ";")


def parse_headers(text: str) -> dict[str, str]:
    """Parse "name=value, name=value"."""
    return _split_pairs(text, ",")


# ═══════════════════════════════════════════════════════════════════════════════
# BROWSER SESSION
# ═══════════════════════════════════════════════════════════════════════════════


class BrowserSession:
    """
    One logical browser instance.

    Navigation (open, submit_form) replaces the current page in one step and
    appends to history. Request headers and the cookie jar survive
    navigation; form selection and extracted data do not.

    Not thread-safe: guard the whole session with one lock if it is shared.
    """

    parse_cookies = staticmethod(parse_cookies)
    parse_headers = staticmethod(parse_headers)

    def __init__(
        self,
        settings: BrowserConfig | None = None,
        http: HttpClient | None = None,
        parser: DocumentParser | None = None,
    ):
        settings = settings or config.browser
        self._http = http or HttpClient()
        self._parse_document = parser or parse_document

        self._page: PageState | None = None
        self._parsed = False
        self._history: list[str] = []
        self._urls: dict[UrlKind, list[str]] = {kind: [] for kind in UrlKind}
        self._forms: list[Element] = []
        self._selected_form: Element | None = None
        self._form_params: dict[str, str] = {}
        self._request_headers: dict[str, str] = {}
        self._cookies: dict[str, str] = {}
        self._proxy: dict[str, str] = {}
        self._stats = BrowsingStats()

        self.timeout_ms: int = settings.timeout_ms
        self.follow_redirects: bool = settings.follow_redirects
        self.handle_cookies: bool = settings.handle_cookies
        self.auto_parse: bool = settings.auto_parse
        self._chunk_size = settings.download_chunk_size
        self._user_agent = settings.user_agent

        if settings.proxy_host and settings.proxy_port:
            self.set_proxy(settings.proxy_host, settings.proxy_port)
        if self._user_agent:
            self.set_request_header("User-Agent", self._user_agent)

    # ─── Configuration ───────────────────────────────────────────────────

    @property
    def user_agent(self) -> str:
        """Default User-Agent this session was created with."""
        return self._user_agent

    def set_proxy(self, host: str, port: int | str) -> None:
        self._proxy["host"] = host
        self._proxy["port"] = str(port)

    def clear_proxy(self) -> None:
        self._proxy.clear()

    @property
    def proxy(self) -> dict[str, str]:
        return dict(self._proxy)

    def _proxy_url(self) -> str | None:
        return proxy_url(self._proxy.get("host"), self._proxy.get("port"))

    # ─── Request headers ─────────────────────────────────────────────────

    def set_request_header(self, key: str, value: str) -> None:
        """Header sent with every future request. Use set_cookie for cookies."""
        self._request_headers[key] = value

    def set_request_headers(self, headers: Mapping[str, str]) -> None:
        self._request_headers.update(headers)

    def get_request_header(self, key: str) -> str | None:
        return self._request_headers.get(key)

    @property
    def request_headers(self) -> dict[str, str]:
        return dict(self._request_headers)

    # ─── Cookies ─────────────────────────────────────────────────────────

    def set_cookie(self, name: str, value: str) -> None:
        self._cookies[name] = value

    def set_cookies(self, cookies: Mapping[str, str]) -> None:
        self._cookies.update(cookies)

    def get_cookie(self, name: str) -> str | None:
        return self._cookies.get(name)

    @property
    def cookies(self) -> dict[str, str]:
        return dict(self._cookies)

    def clear_cookies(self) -> None:
        self._cookies.clear()

    def cookies_string(self) -> str:
        """Jar as a "Cookie" header value. Cookies with empty values are skipped."""
        return "; ".join(
            f"{name}={value}" for name, value in self._cookies.items() if value
        )

    @property
    def page_cookies(self) -> dict[str, str]:
        """Cookies received with the current page."""
        if self._page is None:
            return {}
        return dict(self._page.cookies)

    # ─── Navigation ──────────────────────────────────────────────────────

    def _request(
        self,
        url: str,
        method: str,
        data: Mapping[str, str] | None,
    ) -> tuple[HttpResponse, Document]:
        response = self._http.execute(
            url,
            method=method,
            headers=self._request_headers,
            cookies=self._cookies,
            proxy=self._proxy_url(),
            data=data,
            timeout_ms=self.timeout_ms,
            follow_redirects=self.follow_redirects,
        )
        self._stats.record(len(response.content))
        document = self._parse_document(
            response.content,
            response.url,
            content_type=response.content_type,
            encoding=response.encoding,
        )
        return response, document

    def open(
        self,
        url: str,
        method: str = "GET",
        data: Mapping[str, str] | None = None,
    ) -> None:
        """
        Navigate to url and make it the current page.

        Raises TransportError or ParseError. Either way the session is left
        exactly as it was before the call.
        """
        response, document = self._request(url, method, data)

        page_url = document.location()
        self._page = PageState(
            url=page_url,
            html=document.body_html(),
            document=document,
            response=response,
            cookies=dict(response.cookies),
        )
        self._parsed = False
        self._selected_form = None
        self._form_params.clear()
        self._forms.clear()
        for bucket in self._urls.values():
            bucket.clear()
        self._history.append(page_url)
        if self.handle_cookies:
            self._cookies.update(response.cookies)

        logger.debug(
            f"BrowserSession: opened {page_url} ({response.status_code}, "
            f"{len(response.content)} bytes, {response.elapsed_ms}ms)"
        )
        if self.auto_parse:
            self.parse()

    def fetch(
        self,
        url: str,
        method: str = "GET",
        data: Mapping[str, str] | None = None,
    ) -> Document:
        """Fetch and parse a page without touching the session state."""
        _, document = self._request(url, method, data)
        return document

    def download(
        self,
        url: str,
        data: Mapping[str, str] | None,
        destination: str | Path,
    ) -> int:
        """
        Save the body of url to destination, bypassing the HTML parser.

        POST when data is given, GET otherwise. Returns the number of bytes
        written. Raises DownloadError on a non-200 status or any transport
        or I/O failure; a partially written file is removed.
        """
        target = Path(destination)
        headers = dict(self._request_headers)
        cookie_header = self.cookies_string()
        if cookie_header:
            headers["Cookie"] = cookie_header
        method = "POST" if data is not None else "GET"

        written = 0
        opened = False
        try:
            with self._http.stream(
                url,
                method=method,
                headers=headers,
                proxy=self._proxy_url(),
                data=data,
                timeout_ms=self.timeout_ms,
                follow_redirects=self.follow_redirects,
            ) as resp:
                if resp.status_code != HTTPStatus.OK:
                    raise DownloadError(
                        f"Download error: non 200 HTTP response code "
                        f"obtained ({resp.status_code})"
                    )
                with target.open("wb") as fh:
                    opened = True
                    for chunk in resp.iter_bytes(self._chunk_size):
                        fh.write(chunk)
                        written += len(chunk)
        except (TransportError, OSError) as e:
            logger.warning(f"BrowserSession: download of {url} failed: {e}")
            if opened:
                target.unlink(missing_ok=True)
            raise DownloadError(f"Download error: {e}") from e
        finally:
            self._stats.record(written)

        logger.debug(f"BrowserSession: downloaded {url} -> {target} ({written} bytes)")
        return written

    # ─── Extraction ──────────────────────────────────────────────────────

    def parse(self) -> None:
        """
        Extract URLs and forms from the current page.
        Runs automatically after navigation unless auto_parse is off;
        a second call on the same page does nothing.
        """
        if self._page is None:
            raise NoPageError("No page available to parse!")
        if self._parsed:
            return

        document = self._page.document
        for bucket in self._urls.values():
            bucket.clear()

        self._urls[UrlKind.HYPERLINK].extend(
            el.abs_url("href") for el in document.select("a[href]")
        )
        self._urls[UrlKind.IMAGE].extend(
            el.abs_url("src") for el in document.select("img[src]")
            if el.attr("src").strip().lower().endswith(IMAGE_EXTENSIONS)
        )
        self._urls[UrlKind.SCRIPT].extend(
            el.abs_url("src") for el in document.select("script[src]")
            if ".js" in el.attr("src").lower()
        )
        self._urls[UrlKind.STYLESHEET].extend(
            el.abs_url("href") for el in document.select("link")
            if el.attr("type") == "text/css"
        )
        # abs_url gives "" when resolution fails
        for bucket in self._urls.values():
            bucket[:] = [u for u in bucket if u]

        self._forms[:] = document.select("form")
        self._parsed = True

        logger.debug(
            f"BrowserSession: parsed {self._page.url}: "
            + ", ".join(f"{k.value}={len(v)}" for k, v in self._urls.items())
            + f", forms={len(self._forms)}"
        )

    @property
    def parsed(self) -> bool:
        return self._parsed

    @property
    def urls(self) -> dict[UrlKind, list[str]]:
        """Extracted absolute URLs by kind. Filled by parse()."""
        return {kind: list(bucket) for kind, bucket in self._urls.items()}

    @property
    def history(self) -> list[str]:
        return list(self._history)

    # ─── Current page ────────────────────────────────────────────────────

    def _require_page(self) -> PageState:
        if self._page is None:
            raise NoPageError("No page loaded")
        return self._page

    @property
    def page_url(self) -> str | None:
        return self._page.url if self._page else None

    @property
    def page_html(self) -> str | None:
        """HTML of the current page body."""
        return self._page.html if self._page else None

    @property
    def page_document(self) -> Document:
        return self._require_page().document

    @property
    def page_response(self) -> HttpResponse:
        return self._require_page().response

    @property
    def page_title(self) -> str:
        return self._require_page().document.title()

    @property
    def page_text(self) -> str:
        return self._require_page().document.text()

    @property
    def status_code(self) -> int:
        return self._require_page().response.status_code

    @property
    def page_content_type(self) -> str:
        return self._require_page().response.content_type

    def response_header(self, name: str) -> str:
        return self._require_page().response.header(name)

    def elements_by_attr(self, tag: str, name: str, value: str) -> list[Element]:
        """Elements under tag whose attribute name equals value exactly."""
        document = self._require_page().document
        return [el for el in document.select(tag) if el.attr(name) == value]

    # ─── Forms ───────────────────────────────────────────────────────────

    @property
    def forms(self) -> list[Element]:
        return list(self._forms)

    def get_form(self, index: int) -> Element | None:
        if 0 <= index < len(self._forms):
            return self._forms[index]
        return None

    def get_form_by_id(self, form_id: str) -> Element | None:
        for form in self._forms:
            if form.attr("id") == form_id:
                return form
        return None

    @property
    def selected_form(self) -> Element | None:
        return self._selected_form

    def select_form(self, index: int) -> bool:
        """
        Select the form at index and load its input names/values as params.
        Returns False (with nothing selected) when index is out of range.
        """
        self._selected_form = None
        self._form_params.clear()

        form = self.get_form(index)
        if form is None:
            logger.debug(f"BrowserSession: no form at index {index}")
            return False

        self._selected_form = form
        for input_field in form.find_all("input"):
            name = input_field.attr("name")
            if name:
                self._form_params[name] = input_field.attr("value")
        return True

    def select_form_by_attr(self, name: str, value: str) -> bool:
        """Select the first form whose attribute name equals value."""
        for index, form in enumerate(self._forms):
            if form.attr(name) == value:
                return self.select_form(index)
        self._selected_form = None
        self._form_params.clear()
        return False

    def form_input_fields(self) -> list[Element]:
        if self._selected_form is None:
            return []
        return list(self._selected_form.find_all("input"))

    def set_form_param(self, name: str, value: str) -> None:
        if self._selected_form is not None:
            self._form_params[name] = value

    def get_form_param(self, name: str) -> str | None:
        return self._form_params.get(name)

    @property
    def form_params(self) -> dict[str, str]:
        return dict(self._form_params)

    def form_attrs(self) -> dict[str, str] | None:
        if self._selected_form is None:
            return None
        return self._selected_form.attributes()

    def form_satisfied(self) -> bool:
        """True when a form is selected and every parameter has a value."""
        if self._selected_form is None or not self._form_params:
            return False
        return all(self._form_params.values())

    def submit_form(self) -> None:
        """
        Submit the selected form through open().
        Raises NoFormSelectedError or UnsupportedMethodError.
        """
        form = self._selected_form
        if form is None:
            raise NoFormSelectedError("No form selected!")

        url = form.abs_url("action") or self._require_page().url
        method = form.attr("method").lower()
        if method not in FORM_METHODS:
            raise UnsupportedMethodError(f"Invalid form submission method: {method}")

        logger.debug(f"BrowserSession: submitting form {method.upper()} {url}")
        self.open(url, method.upper(), dict(self._form_params))

    # ─── Stats ───────────────────────────────────────────────────────────

    def session_stats(self) -> dict[str, Any]:
        return {
            "pages_visited": len(self._history),
            "total_requests": self._stats.total_requests,
            "total_bytes": self._stats.total_bytes,
            "duration_ms": self._stats.duration_ms,
        }
