"""Configuration management for Feedscout.

This module provides centralized configuration for feed discovery and
content extraction. All settings are loaded from environment variables
with sensible defaults.

Environment Variables:
    Collaborator (content-extraction LLM):
        GEMINI_API_KEY: Google Gemini API key for the extractor agent
        EXTRACTOR_MODEL: PydanticAI model string (provider:model), or
            'openai:{model}@{base_url}' for a local OpenAI-compatible server
        AI_EXTRACTION_ENABLED: Try the AI strategies before heuristic parsing

    Timeouts (seconds, per attempt):
        PROBE_TIMEOUT: Feed path probe (HEAD + verification GET)
        HOMEPAGE_TIMEOUT: Homepage fetch for <link> tag scanning
        PAGE_TIMEOUT: Article page fetch
        AI_DIRECT_TIMEOUT: Collaborator browsing the URL itself
        AI_ASSIST_TIMEOUT: Collaborator parsing markup we fetched

    Limits:
        MAX_REDIRECTS: Redirect hops followed per fetch
        MAX_RESPONSE_BYTES: Largest response body read
        MAX_MARKUP_CHARS: Markup ceiling sent to the collaborator
        MAX_CONTENT_CHARS: Extracted text ceiling
        MIN_CONTENT_CHARS: Shortest text accepted as an article

    Conventions (comma-separated lists):
        FEED_PATHS: Conventional feed locations probed against the origin
        PLATFORM_FEED_PATH: Publishing-platform default feed path
        CONTENT_SELECTORS: CSS selectors for article containers
        BOT_SIGNATURES: Markers of bot-challenge interstitials

    Optional Features:
        ENABLE_LOGFIRE: Enable Logfire/OpenTelemetry tracing

    Logging:
        LOG_LEVEL: Logging verbosity (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        LOG_BACKUP_COUNT: Number of rotated log files to keep
        LOG_MAX_BYTES: Max log file size in bytes (0 = time-based rotation)
        LOG_FORMAT: Log format ('text' or 'json' for structured logging)
"""

import os
from dataclasses import dataclass, field
from pathlib import Path

import soupsieve


def _env(key: str, default: str = "") -> str:
    """Get string environment variable with optional default."""
    return os.environ.get(key, default)


def _env_int(key: str, default: int) -> int:
    """Get integer environment variable with default.

    Raises:
        ValueError: If value is set but cannot be parsed as integer
    """
    val = os.environ.get(key)
    if not val:
        return default
    try:
        return int(val)
    except ValueError:
        raise ValueError(f"Invalid integer value for {key}: '{val}'")


def _env_float(key: str, default: float) -> float:
    """Get float environment variable with default.

    Raises:
        ValueError: If value is set but cannot be parsed as float
    """
    val = os.environ.get(key)
    if not val:
        return default
    try:
        return float(val)
    except ValueError:
        raise ValueError(f"Invalid float value for {key}: '{val}'")


def _env_bool(key: str, default: bool = False) -> bool:
    """Get boolean environment variable with default.

    Recognizes truthy values: '1', 'true', 'yes', 'on'
    Recognizes falsy values: '0', 'false', 'no', 'off'
    """
    val = os.environ.get(key, "").lower()
    if val in ("1", "true", "yes", "on"):
        return True
    if val in ("0", "false", "no", "off"):
        return False
    return default


def _env_list(key: str, default: list[str]) -> list[str]:
    """Get comma-separated list environment variable with default.

    Blank items are dropped; an unset or blank variable yields a copy
    of the default.
    """
    val = os.environ.get(key, "")
    items = [item.strip() for item in val.split(",") if item.strip()]
    return items or list(default)


# Conventional feed locations, tried in order against the site origin
DEFAULT_FEED_PATHS = [
    "/feed",
    "/rss",
    "/feed.xml",
    "/rss.xml",
    "/atom.xml",
    "/feed.rss",
    "/rss.php",
    "/feed/",
    "/rss/",
    "/index.xml",
    "/blog/feed",
    "/blog/rss",
    "/news/feed",
    "/news/rss",
]

# WordPress default, the most common platform convention
DEFAULT_PLATFORM_FEED_PATH = "/feed/"

# Article container selectors, ranked; the densest match wins
DEFAULT_CONTENT_SELECTORS = [
    ".article-content",
    ".article-body",
    ".post-content",
    ".entry-content",
    ".story-body",
    ".post-body",
    ".content-body",
    "#article-body",
    ".article",
    ".post",
    ".entry",
    ".content",
    "#content",
]

# Interstitial and anti-bot script markers (matched lower-cased)
DEFAULT_BOT_SIGNATURES = [
    # Cloudflare
    "checking your browser before accessing",
    "<title>just a moment...</title>",
    "cf-browser-verification",
    "/cdn-cgi/challenge-platform/",
    "attention required! | cloudflare",
    "ddos protection by cloudflare",
    # PerimeterX / HUMAN
    "px-captcha",
    "window._pxappid",
    # DataDome
    "geo.captcha-delivery.com",
    "window.ddjskey",
    # Imperva Incapsula
    "_incapsula_resource",
    # Generic challenges
    "please verify you are human",
    "are you a robot",
    "enable javascript and cookies to continue",
]


@dataclass
class Config:
    """Application configuration loaded from environment variables.

    All settings can be overridden via environment variables. Use Config.load()
    to create an instance with values from the environment; tests construct
    Config(...) directly with minimal fixtures.

    Example:
        >>> config = Config.load()
        >>> if error := config.validate():
        ...     print(f"Config error: {error}")
    """

    # === Collaborator ===
    gemini_api_key: str = ""  # GEMINI_API_KEY - Google AI API key
    # PydanticAI format: provider:model, or openai:{model}@{base_url} for local
    extractor_model: str = "google-gla:gemini-2.5-flash"  # EXTRACTOR_MODEL
    ai_extraction_enabled: bool = True  # AI_EXTRACTION_ENABLED

    # === Timeouts (seconds, per attempt) ===
    probe_timeout: float = 5.0  # PROBE_TIMEOUT
    homepage_timeout: float = 10.0  # HOMEPAGE_TIMEOUT
    page_timeout: float = 30.0  # PAGE_TIMEOUT
    ai_direct_timeout: float = 90.0  # AI_DIRECT_TIMEOUT - browsing can be slow
    ai_assist_timeout: float = 90.0  # AI_ASSIST_TIMEOUT

    # === Limits ===
    max_redirects: int = 5  # MAX_REDIRECTS
    max_response_bytes: int = 5_000_000  # MAX_RESPONSE_BYTES
    max_markup_chars: int = 100_000  # MAX_MARKUP_CHARS
    max_content_chars: int = 10_000  # MAX_CONTENT_CHARS
    min_content_chars: int = 200  # MIN_CONTENT_CHARS

    # === Conventions ===
    feed_paths: list[str] = field(default_factory=lambda: DEFAULT_FEED_PATHS.copy())
    platform_feed_path: str = DEFAULT_PLATFORM_FEED_PATH
    content_selectors: list[str] = field(default_factory=lambda: DEFAULT_CONTENT_SELECTORS.copy())
    bot_signatures: list[str] = field(default_factory=lambda: DEFAULT_BOT_SIGNATURES.copy())

    # === Output Directories ===
    log_dir: Path = field(default_factory=lambda: Path("log"))  # LOG_DIR

    # === Logging Configuration ===
    log_level: str = "INFO"  # LOG_LEVEL - DEBUG, INFO, WARNING, ERROR
    log_backup_count: int = 30  # LOG_BACKUP_COUNT - Number of rotated logs to keep
    log_max_bytes: int = 0  # LOG_MAX_BYTES - Max file size (0 = time-based rotation)
    log_format: str = "text"  # LOG_FORMAT - 'text' or 'json' for structured logging

    # === Optional: Observability ===
    # Requires: pip install logfire
    enable_logfire: bool = False  # ENABLE_LOGFIRE - Enable distributed tracing
    logfire_token: str = ""  # LOGFIRE_TOKEN - Authentication token

    @classmethod
    def load(cls) -> "Config":
        """Load configuration from environment variables."""
        return cls(
            gemini_api_key=_env("GEMINI_API_KEY"),
            extractor_model=_env("EXTRACTOR_MODEL", "google-gla:gemini-2.5-flash"),
            ai_extraction_enabled=_env_bool("AI_EXTRACTION_ENABLED", True),
            probe_timeout=_env_float("PROBE_TIMEOUT", 5.0),
            homepage_timeout=_env_float("HOMEPAGE_TIMEOUT", 10.0),
            page_timeout=_env_float("PAGE_TIMEOUT", 30.0),
            ai_direct_timeout=_env_float("AI_DIRECT_TIMEOUT", 90.0),
            ai_assist_timeout=_env_float("AI_ASSIST_TIMEOUT", 90.0),
            max_redirects=_env_int("MAX_REDIRECTS", 5),
            max_response_bytes=_env_int("MAX_RESPONSE_BYTES", 5_000_000),
            max_markup_chars=_env_int("MAX_MARKUP_CHARS", 100_000),
            max_content_chars=_env_int("MAX_CONTENT_CHARS", 10_000),
            min_content_chars=_env_int("MIN_CONTENT_CHARS", 200),
            feed_paths=_env_list("FEED_PATHS", DEFAULT_FEED_PATHS),
            platform_feed_path=_env("PLATFORM_FEED_PATH", DEFAULT_PLATFORM_FEED_PATH),
            content_selectors=_env_list("CONTENT_SELECTORS", DEFAULT_CONTENT_SELECTORS),
            bot_signatures=_env_list("BOT_SIGNATURES", DEFAULT_BOT_SIGNATURES),
            log_dir=Path(_env("LOG_DIR", "log")),
            enable_logfire=_env_bool("ENABLE_LOGFIRE", False),
            logfire_token=_env("LOGFIRE_TOKEN"),
            log_level=_env("LOG_LEVEL", "INFO").upper(),
            log_backup_count=_env_int("LOG_BACKUP_COUNT", 30),
            log_max_bytes=_env_int("LOG_MAX_BYTES", 0),
            log_format=_env("LOG_FORMAT", "text").lower(),
        )

    @property
    def uses_local_model(self) -> bool:
        """True when the extractor points at a local OpenAI-compatible server."""
        return self.extractor_model.startswith("openai:") and "@" in self.extractor_model

    @property
    def ai_available(self) -> bool:
        """True when the AI strategies can run with the current settings."""
        if not self.ai_extraction_enabled:
            return False
        return self.uses_local_model or bool(self.gemini_api_key)

    def validate(self) -> str | None:
        """Validate configuration for valid values.

        Checks:
            - Timeouts and limits are positive
            - Path lists are non-empty and absolute
            - Logging settings are recognized

        Returns:
            Error message string if invalid, None if valid.
        """
        for name in ("probe_timeout", "homepage_timeout", "page_timeout",
                     "ai_direct_timeout", "ai_assist_timeout"):
            if getattr(self, name) <= 0:
                return f"{name.upper()} must be positive"
        if self.max_redirects < 0:
            return "MAX_REDIRECTS must be non-negative"
        for name in ("max_response_bytes", "max_markup_chars", "max_content_chars"):
            if getattr(self, name) <= 0:
                return f"{name.upper()} must be positive"
        if self.min_content_chars < 0:
            return "MIN_CONTENT_CHARS must be non-negative"
        if self.min_content_chars >= self.max_content_chars:
            return "MIN_CONTENT_CHARS must be smaller than MAX_CONTENT_CHARS"
        if not self.feed_paths:
            return "No FEED_PATHS configured"
        bad_paths = [p for p in [*self.feed_paths, self.platform_feed_path] if not p.startswith("/")]
        if bad_paths:
            return f"Feed paths must start with '/': {', '.join(bad_paths)}"
        if not self.content_selectors:
            return "No CONTENT_SELECTORS configured"
        for selector in self.content_selectors:
            try:
                soupsieve.compile(selector)
            except soupsieve.SelectorSyntaxError as e:
                return f"Invalid CONTENT_SELECTORS entry '{selector}': {str(e).splitlines()[0]}"
        if self.log_level not in ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"):
            return f"Invalid LOG_LEVEL '{self.log_level}' - must be DEBUG, INFO, WARNING, ERROR, or CRITICAL"
        if self.log_format not in ("text", "json"):
            return f"Invalid LOG_FORMAT '{self.log_format}' - must be 'text' or 'json'"
        if self.log_backup_count < 0:
            return "LOG_BACKUP_COUNT must be non-negative"
        if self.log_max_bytes < 0:
            return "LOG_MAX_BYTES must be non-negative"
        return None
