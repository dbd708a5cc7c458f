"""
PageWalker errors.

Every failure a BrowserSession raises is a BrowserError carrying a
human-readable cause. Form-selection misses are not errors: they come back
as False / None.
"""

from __future__ import annotations


class BrowserError(Exception):
    """Base class for all session failures."""

    def __init__(self, cause: str):
        super().__init__(cause)
        self.cause = cause

    def __str__(self) -> str:
        return self.cause


class NavigationError(BrowserError):
    """A navigation could not complete."""


class TransportError(NavigationError):
    """Network, connect, timeout or proxy failure."""


class ParseError(BrowserError):
    """Response body could not be parsed as HTML."""


class NoPageError(BrowserError):
    """Page data was requested before any page was loaded."""


class NoFormSelectedError(BrowserError):
    pass


class UnsupportedMethodError(BrowserError):
    """Form declares a method other than GET or POST."""


class DownloadError(BrowserError):
    """Non-200 response or I/O failure while saving a download."""
