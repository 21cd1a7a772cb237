"""Guarded HTTP fetching shared by feed discovery and content extraction.

Every request goes through the SSRF guard immediately before it is sent.
Redirects are never followed by the HTTP client: each Location is resolved
against the current URL and validated again, so a public page cannot
bounce the fetcher onto an internal host.

Features:
    - Per-hop SSRF validation (redirect targets included)
    - One timeout bounding the whole attempt, all hops included
    - Response size ceiling enforced while streaming
    - Consistent browser-like headers and certifi-backed TLS

Errors (all ScoutError subclasses):
    URLRejected subclasses: Raised by the guard for any hop
    HTTPStatusError: Status >= 400, missing Location, too many redirects
    FetchTimeout: The attempt exceeded its timeout
    ConnectionFailure: Network-level failure (refused, reset, TLS, ...)
    ResponseTooLarge: Body larger than the configured ceiling
"""

import asyncio
import logging
from dataclasses import dataclass, field
from urllib.parse import urljoin

import aiohttp

from errors import ConnectionFailure, FetchTimeout, HTTPStatusError, ResponseTooLarge
from safety.ssrf_guard import SSRFGuard
from tools.utils import BROWSER_HEADERS, create_ssl_context

logger = logging.getLogger(__name__)

REDIRECT_STATUSES = frozenset({301, 302, 303, 307, 308})
CHUNK_SIZE = 64 * 1024


@dataclass
class FetchedPage:
    """A successfully fetched response.

    Attributes:
        url: URL originally requested
        final_url: URL after redirects (use this to resolve relative links)
        status: Final HTTP status
        content_type: Content-Type header ('' if absent)
        text: Decoded body ('' for HEAD requests)
        headers: Response headers of the final hop
    """

    url: str
    final_url: str
    status: int
    content_type: str = ""
    text: str = ""
    headers: dict[str, str] = field(default_factory=dict)


async def _read_limited(resp: aiohttp.ClientResponse, max_bytes: int, url: str) -> bytes:
    """Read a response body, refusing anything larger than ``max_bytes``."""
    declared = resp.headers.get("Content-Length")
    if declared and declared.isdigit() and int(declared) > max_bytes:
        raise ResponseTooLarge(url, max_bytes)

    chunks = []
    size = 0
    async for chunk in resp.content.iter_chunked(CHUNK_SIZE):
        size += len(chunk)
        if size > max_bytes:
            raise ResponseTooLarge(url, max_bytes)
        chunks.append(chunk)
    return b"".join(chunks)


def _decode(body: bytes, charset: str | None) -> str:
    try:
        return body.decode(charset or "utf-8", errors="replace")
    except LookupError:
        return body.decode("utf-8", errors="replace")


async def _fetch(
    session: aiohttp.ClientSession,
    url: str,
    guard: SSRFGuard,
    timeout: float,
    method: str,
    max_redirects: int,
    max_bytes: int,
    read_body: bool,
) -> FetchedPage:
    current = url
    ssl_context = create_ssl_context()
    status = 0

    for hop in range(max_redirects + 1):
        await guard.validate(current)
        async with session.request(
            method,
            current,
            headers=BROWSER_HEADERS,
            allow_redirects=False,
            timeout=aiohttp.ClientTimeout(total=timeout),
            ssl=ssl_context,
        ) as resp:
            status = resp.status
            if status in REDIRECT_STATUSES:
                location = resp.headers.get("Location")
                if not location:
                    raise HTTPStatusError(current, status, "redirect without Location")
                target = urljoin(current, location)
                logger.debug("Redirect | hop=%d status=%d from=%s to=%s", hop + 1, status, current, target)
                current = target
                continue

            if status >= 400:
                raise HTTPStatusError(current, status)

            text = ""
            if read_body and method != "HEAD":
                body = await _read_limited(resp, max_bytes, current)
                text = _decode(body, resp.charset)

            return FetchedPage(
                url=url,
                final_url=current,
                status=status,
                content_type=resp.headers.get("Content-Type", ""),
                text=text,
                headers=dict(resp.headers),
            )

    raise HTTPStatusError(current, status, f"more than {max_redirects} redirects")


async def fetch_page(
    session: aiohttp.ClientSession,
    url: str,
    *,
    guard: SSRFGuard,
    timeout: float,
    method: str = "GET",
    max_redirects: int = 5,
    max_bytes: int = 5_000_000,
    read_body: bool = True,
) -> FetchedPage:
    """Fetch a URL with SSRF validation on every hop.

    Args:
        session: aiohttp client session (owned by the caller)
        url: URL to fetch
        guard: SSRF guard used before every request
        timeout: Seconds allowed for the whole attempt
        method: HTTP method ('GET' or 'HEAD')
        max_redirects: Maximum redirect hops to follow
        max_bytes: Maximum body size to read
        read_body: Read and decode the body (ignored for HEAD)

    Returns:
        FetchedPage for the final, non-redirect response

    Raises:
        ScoutError: See module docstring
    """
    try:
        return await asyncio.wait_for(
            _fetch(session, url, guard, timeout, method, max_redirects, max_bytes, read_body),
            timeout,
        )
    except asyncio.TimeoutError:
        logger.debug("Fetch timed out | method=%s url=%s timeout=%.1fs", method, url, timeout)
        raise FetchTimeout(url, timeout)
    except aiohttp.ClientError as e:
        logger.debug("Fetch failed | method=%s url=%s error=%s: %s", method, url, type(e).__name__, e)
        raise ConnectionFailure(f"{url}: {type(e).__name__}: {e}")
