"""
PageWalker HTML Document
========================
Parsed-page capability used by BrowserSession.

The session only talks to the Document / Element protocols below, so any
parser can stand behind it. The default implementation wraps BeautifulSoup
(html.parser backend, CSS selectors through soupsieve).
"""

from __future__ import annotations

import copy
import re
from typing import Protocol, Sequence
from urllib.parse import urljoin, urlparse

from bs4 import BeautifulSoup
from bs4.element import Tag

from pagewalker.core.errors import ParseError

# ═══════════════════════════════════════════════════════════════════════════════
# CONSTANTS
# ═══════════════════════════════════════════════════════════════════════════════

# Tags to strip when extracting text
STRIP_TAGS = {
    "script", "style", "nav", "footer", "header", "aside",
    "noscript", "iframe", "svg", "form", "button", "input",
    "select", "textarea", "meta", "link",
}

_XML_CONTENT_TYPE = re.compile(r"(application|text)/[\w.-]*\+?xml.*", re.IGNORECASE)

# ═══════════════════════════════════════════════════════════════════════════════
# CAPABILITY PROTOCOLS
# ═══════════════════════════════════════════════════════════════════════════════


class Element(Protocol):
    """Opaque element handle: attribute lookup, descendant query, URL resolution."""

    @property
    def tag_name(self) -> str: ...

    def attr(self, name: str) -> str: ...

    def has_attr(self, name: str) -> bool: ...

    def abs_url(self, name: str) -> str: ...

    def attributes(self) -> dict[str, str]: ...

    def select(self, selector: str) -> Sequence["Element"]: ...

    def find_all(self, tag: str) -> Sequence["Element"]: ...


class Document(Protocol):
    def select(self, selector: str) -> Sequence[Element]: ...

    def title(self) -> str: ...

    def body_html(self) -> str: ...

    def location(self) -> str: ...

    def text(self) -> str: ...


class DocumentParser(Protocol):
    def __call__(
        self,
        content: bytes,
        base_url: str,
        content_type: str = "",
        encoding: str | None = None,
    ) -> Document: ...


# ═══════════════════════════════════════════════════════════════════════════════
# BEAUTIFULSOUP IMPLEMENTATION
# ═══════════════════════════════════════════════════════════════════════════════


def resolve_url(base_url: str, value: str) -> str:
    """
    Resolve value against base_url.
    Returns "" when the result is not an absolute URL.
    """
    try:
        resolved = urljoin(base_url, value.strip())
        scheme = urlparse(resolved).scheme
    except ValueError:
        return ""
    return resolved if scheme else ""


class SoupElement:
    """Element backed by a bs4 Tag."""

    __slots__ = ("_tag", "_base_url")

    def __init__(self, tag: Tag, base_url: str):
        self._tag = tag
        self._base_url = base_url

    @property
    def tag_name(self) -> str:
        return self._tag.name

    def attr(self, name: str) -> str:
        value = self._tag.get(name)
        if value is None:
            return ""
        # bs4 splits multi-valued attributes such as class
        if isinstance(value, list):
            return " ".join(value)
        return value

    def has_attr(self, name: str) -> bool:
        return self._tag.has_attr(name)

    def abs_url(self, name: str) -> str:
        if not self._tag.has_attr(name):
            return ""
        return resolve_url(self._base_url, self.attr(name))

    def attributes(self) -> dict[str, str]:
        return {key: self.attr(key) for key in self._tag.attrs}

    def select(self, selector: str) -> list[SoupElement]:
        return [SoupElement(t, self._base_url) for t in self._tag.select(selector)]

    def find_all(self, tag: str) -> list[SoupElement]:
        return [SoupElement(t, self._base_url) for t in self._tag.find_all(tag)]

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, SoupElement):
            return NotImplemented
        return self._tag is other._tag

    def __hash__(self) -> int:
        return id(self._tag)

    def __str__(self) -> str:
        return str(self._tag)

    def __repr__(self) -> str:
        return f"<SoupElement {self._tag.name} {self.attributes()!r}>"


class SoupDocument:
    """Parsed page. location is the final URL after redirects."""

    def __init__(self, soup: BeautifulSoup, location: str):
        self._soup = soup
        self._location = location
        self._base_url = location
        base = soup.find("base", href=True)
        if base is not None:
            self._base_url = urljoin(location, base["href"].strip())

    def select(self, selector: str) -> list[SoupElement]:
        return [SoupElement(t, self._base_url) for t in self._soup.select(selector)]

    def title(self) -> str:
        if self._soup.title is None:
            return ""
        return " ".join(self._soup.title.get_text().split())

    def body_html(self) -> str:
        body = self._soup.body
        return str(body) if body is not None else str(self._soup)

    def location(self) -> str:
        return self._location

    def text(self) -> str:
        """Readable text of the page, without navigation and form chrome."""
        soup = copy.copy(self._soup)
        for tag in soup.find_all(STRIP_TAGS):
            tag.decompose()
        text = soup.get_text(separator="\n", strip=True)
        text = re.sub(r'\n{3,}', '\n\n', text)
        text = re.sub(r'[ \t]{2,}', ' ', text)
        return text.strip()


def parse_document(
    content: bytes,
    base_url: str,
    content_type: str = "",
    encoding: str | None = None,
) -> SoupDocument:
    """
    Parse a response body into a SoupDocument.

    Only text/* and XML content types are accepted; anything else
    (images, archives, PDFs) raises ParseError.
    """
    mime = content_type.split(";", 1)[0].strip().lower()
    if mime and not mime.startswith("text/") and not _XML_CONTENT_TYPE.match(mime):
        raise ParseError(f"Unhandled content type: {mime} ({base_url})")
    try:
        soup = BeautifulSoup(content, "html.parser", from_encoding=encoding)
    except Exception as exc:
        raise ParseError(f"Error parsing page: {exc}") from exc
    return SoupDocument(soup, base_url)
