"""Shared utilities for tools module.

This module contains shared constants and utility functions
used by multiple tools to avoid code duplication.
"""

import ssl
import certifi

# Browser-like User-Agent to avoid being blocked by some servers
USER_AGENT = (
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64) "
    "AppleWebKit/537.36 (KHTML, like Gecko) "
    "Chrome/120.0.0.0 Safari/537.36"
)

# Sent with every outbound fetch so all requests identify the same way
BROWSER_HEADERS = {
    "User-Agent": USER_AGENT,
    "Accept": "text/html,application/xhtml+xml,application/xml;q=0.9,*/*;q=0.8",
    "Accept-Language": "en-US,en;q=0.9",
}


def create_ssl_context() -> ssl.SSLContext:
    """Create an SSL context that verifies certificates with the certifi bundle.

    Returns:
        Configured SSL context
    """
    return ssl.create_default_context(cafile=certifi.where())


def collapse_whitespace(text: str) -> str:
    """Collapse runs of whitespace into single spaces and strip."""
    return " ".join(text.split())
