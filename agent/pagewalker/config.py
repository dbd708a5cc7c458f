"""
PageWalker Configuration
========================
Central configuration module.
Defaults for every browser session, logging setup and constants live here.

Configuration is read from a .env file and the process environment.
Supports validation, defaults and overrides via env.
"""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path

from dotenv import find_dotenv, load_dotenv

# ─── .env loading ────────────────────────────────────────────────────────────
# .env next to config.py first, then the working directory
_THIS_DIR = Path(__file__).resolve().parent
load_dotenv(_THIS_DIR / ".env")
load_dotenv(find_dotenv(usecwd=True))


def _env(key: str, default: str = "") -> str:
    """Environment variable with a default."""
    return os.getenv(key, default)


def _env_int(key: str, default: int = 0) -> int:
    """Integer environment variable."""
    val = os.getenv(key)
    if val is None:
        return default
    try:
        return int(val)
    except ValueError:
        return default


def _env_bool(key: str, default: bool = False) -> bool:
    """Boolean environment variable."""
    val = os.getenv(key, "").lower()
    if val in ("1", "true", "yes", "on"):
        return True
    if val in ("0", "false", "no", "off"):
        return False
    return default


# ─── Constants ───────────────────────────────────────────────────────────────

DEFAULT_USER_AGENT = (
    "Mozilla/5.0 (X11; Linux x86_64) AppleWebKit/537.36 "
    "(KHTML, like Gecko) Chrome/79.0.3945.117 Safari/537.36"
)


# ─── Log levels ──────────────────────────────────────────────────────────────

class LogLevel(str, Enum):
    DEBUG = "DEBUG"
    INFO = "INFO"
    WARNING = "WARNING"
    ERROR = "ERROR"
    CRITICAL = "CRITICAL"


def _log_level() -> LogLevel:
    try:
        return LogLevel(_env("PAGEWALKER_LOG_LEVEL", "INFO").upper())
    except ValueError:
        return LogLevel.INFO


LOG_LEVEL = _log_level()
LOG_FILE = _env("PAGEWALKER_LOG_FILE", "")


# ─── Browser session ─────────────────────────────────────────────────────────

@dataclass(frozen=True)
class BrowserConfig:
    """
    Defaults for a new BrowserSession.

    Every session copies these values at construction time; changing a
    session afterwards never touches the config.
    """
    # Sent unless the caller overrides the User-Agent header
    user_agent: str = _env("PAGEWALKER_USER_AGENT", DEFAULT_USER_AGENT)
    # Read timeout (ms)
    timeout_ms: int = _env_int("PAGEWALKER_TIMEOUT_MS", 10000)
    follow_redirects: bool = _env_bool("PAGEWALKER_FOLLOW_REDIRECTS", True)
    # Merge cookies received from pages into the outgoing jar
    handle_cookies: bool = _env_bool("PAGEWALKER_HANDLE_COOKIES", True)
    # Run extraction right after every navigation
    auto_parse: bool = _env_bool("PAGEWALKER_AUTO_PARSE", True)
    # Proxy (optional, used only when both are set)
    proxy_host: str = _env("PAGEWALKER_PROXY_HOST", "")
    proxy_port: int = _env_int("PAGEWALKER_PROXY_PORT", 0)
    # Bytes per write when streaming downloads to disk
    download_chunk_size: int = _env_int("PAGEWALKER_DOWNLOAD_CHUNK_SIZE", 9999)

    def validate(self) -> None:
        if self.timeout_ms <= 0:
            raise ValueError("PAGEWALKER_TIMEOUT_MS must be positive")
        if self.download_chunk_size <= 0:
            raise ValueError("PAGEWALKER_DOWNLOAD_CHUNK_SIZE must be positive")
        if self.proxy_port and not 0 < self.proxy_port < 65536:
            raise ValueError(
                f"PAGEWALKER_PROXY_PORT out of range: {self.proxy_port}")


# ─── Aggregate ───────────────────────────────────────────────────────────────

@dataclass(frozen=True)
class AppConfig:
    """
    Top-level configuration.

    Usage:
        config = AppConfig.load()
        config.validate()
        print(config.browser.timeout_ms)
    """
    browser: BrowserConfig = field(default_factory=BrowserConfig)

    @classmethod
    def load(cls) -> "AppConfig":
        """Load configuration from .env and defaults."""
        return cls()

    def validate(self) -> list[str]:
        """
        Validate configuration.
        Returns a list of warnings (non-critical problems).
        Raises ValueError on critical errors.
        """
        warnings: list[str] = []

        self.browser.validate()

        if bool(self.browser.proxy_host) != bool(self.browser.proxy_port):
            warnings.append(
                "Proxy needs both PAGEWALKER_PROXY_HOST and "
                "PAGEWALKER_PROXY_PORT, it will not be used")

        if not self.browser.user_agent:
            warnings.append("Empty User-Agent, requests will go out without one")

        return warnings


# ─── Logging ─────────────────────────────────────────────────────────────────

def setup_logging(level: LogLevel = LOG_LEVEL) -> logging.Logger:
    """
    Logging setup for the whole package.
    Logs go to the console, and to LOG_FILE when it is set.
    """
    logger = logging.getLogger("pagewalker")
    logger.setLevel(getattr(logging, level.value))

    if logger.handlers:
        return logger

    fmt = logging.Formatter(
        "%(asctime)s | %(levelname)-8s | %(name)-25s | %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )

    console_handler = logging.StreamHandler()
    console_handler.setFormatter(fmt)
    logger.addHandler(console_handler)

    if LOG_FILE:
        log_path = Path(LOG_FILE)
        log_path.parent.mkdir(parents=True, exist_ok=True)
        file_handler = logging.FileHandler(log_path, encoding="utf-8")
        file_handler.setFormatter(fmt)
        logger.addHandler(file_handler)

    return logger


# ─── Global instances ────────────────────────────────────────────────────────

config = AppConfig.load()
logger = setup_logging()
