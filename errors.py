"""Error taxonomy shared by the guard, feed discovery and content extraction.

Every failure in this package is a ScoutError with a stable ``code`` so the
extraction pipeline can treat all strategies uniformly: catch, record,
move on to the next strategy.

Hierarchy:
    ScoutError
    ├── URLRejected                 (raised by the SSRF guard, never downgraded)
    │   ├── InvalidURL
    │   ├── UnsupportedProtocol
    │   ├── DNSResolutionFailure
    │   └── PrivateAddressBlocked
    ├── FetchTimeout
    ├── HTTPStatusError
    ├── ConnectionFailure
    ├── ResponseTooLarge
    ├── AntiBotDetected
    ├── MalformedCollaboratorResponse
    ├── CollaboratorUnavailable
    ├── InsufficientContent
    ├── FeedNotFound
    ├── UnexpectedStrategyError     (anything else a strategy raised)
    └── ExtractionFailed            (every strategy exhausted)
"""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from models.extraction import StrategyAttempt


class ScoutError(Exception):
    """Base class for every expected failure in discovery and extraction."""

    code = "error"

    def __init__(self, message: str = ""):
        super().__init__(message or self.code)
        self.message = message or self.code

    def __str__(self) -> str:
        return f"{self.code}: {self.message}"


class URLRejected(ScoutError):
    """The SSRF guard refused a URL before any connection was made."""

    code = "url_rejected"


class InvalidURL(URLRejected):
    code = "invalid_url"


class UnsupportedProtocol(URLRejected):
    code = "unsupported_protocol"

    def __init__(self, scheme: str):
        super().__init__(f"scheme '{scheme}' is not allowed")
        self.scheme = scheme


class DNSResolutionFailure(URLRejected):
    code = "dns_failure"

    def __init__(self, host: str, reason: str = ""):
        super().__init__(f"could not resolve {host}" + (f" ({reason})" if reason else ""))
        self.host = host


class PrivateAddressBlocked(URLRejected):
    """A hostname resolved to at least one non-public address."""

    code = "private_address_blocked"

    def __init__(self, host: str, address: str, reason: str):
        super().__init__(f"{host} resolves to {address} ({reason})")
        self.host = host
        self.address = address
        self.reason = reason


class FetchTimeout(ScoutError):
    code = "timeout"

    def __init__(self, url: str, seconds: float):
        super().__init__(f"{url} timed out after {seconds:g}s")
        self.url = url
        self.seconds = seconds


class HTTPStatusError(ScoutError):
    code = "http_status"

    def __init__(self, url: str, status: int, detail: str = ""):
        super().__init__(f"HTTP {status} for {url}" + (f" ({detail})" if detail else ""))
        self.url = url
        self.status = status


class ConnectionFailure(ScoutError):
    code = "connection_failure"


class ResponseTooLarge(ScoutError):
    code = "too_large"

    def __init__(self, url: str, limit: int):
        super().__init__(f"{url} exceeds {limit} bytes")
        self.url = url
        self.limit = limit


class AntiBotDetected(ScoutError):
    """The fetched page is a bot-challenge interstitial, not the article."""

    code = "anti_bot"

    def __init__(self, url: str, signature: str):
        super().__init__(f"bot challenge at {url} (matched '{signature}')")
        self.url = url
        self.signature = signature


class MalformedCollaboratorResponse(ScoutError):
    code = "malformed_response"


class CollaboratorUnavailable(ScoutError):
    code = "collaborator_unavailable"


class InsufficientContent(ScoutError):
    code = "insufficient_content"

    def __init__(self, length: int, minimum: int):
        super().__init__(f"extracted {length} chars, need at least {minimum}")
        self.length = length
        self.minimum = minimum


class FeedNotFound(ScoutError):
    code = "not_found"


class UnexpectedStrategyError(ScoutError):
    """A strategy failed with an exception outside this taxonomy."""

    code = "unexpected_error"

    def __init__(self, exc: Exception):
        super().__init__(f"{type(exc).__name__}: {exc}")
        self.exc = exc


class ExtractionFailed(ScoutError):
    """Every extraction strategy failed; ``attempts`` holds each failure."""

    code = "extraction_failed"

    def __init__(self, url: str, attempts: list[StrategyAttempt]):
        summary = "; ".join(f"{a.strategy.value}={a.error.code}" for a in attempts)
        super().__init__(f"all strategies failed for {url}" + (f" [{summary}]" if summary else ""))
        self.url = url
        self.attempts = attempts
