"""Feed discovery: find a verified syndication feed for a website.

Given a human-facing site URL, the engine tries three strategies in a
fixed order and stops at the first verified feed:

    1. Path probing: conventional locations on the site origin
       (/feed, /rss.xml, /atom.xml, ...), HEAD first, then GET + sniff
    2. Link-tag scan: <link rel="alternate" type="application/rss+xml">
       tags on the homepage, each href resolved and re-validated
    3. Platform default: the WordPress-style /feed/ path

Verification:
    A candidate is accepted only if the response succeeds, its declared
    content type mentions XML/RSS/Atom, and the body actually opens an
    <rss>, <feed> or <rdf:RDF> element. Servers that label HTML as XML
    (or the reverse) are rejected as false positives.

Error Handling Strategy:
    - Every fetch goes through the SSRF guard (inside fetch_page)
    - A failed candidate (network, timeout, mismatch) advances to the next
    - "No feed" is an expected outcome: discover() returns None
"""

import logging
import re
from typing import Callable
from urllib.parse import urljoin

import aiohttp
import feedparser
from bs4 import BeautifulSoup, Tag

from config import Config
from errors import HTTPStatusError, ScoutError, URLRejected
from models.feed import DiscoveryStrategy, FeedCandidate, FeedInfo
from observability.logging import request_context
from observability.tracing import trace_operation
from safety.ssrf_guard import SSRFGuard
from tools.fetch import fetch_page

logger = logging.getLogger(__name__)

SessionFactory = Callable[[], aiohttp.ClientSession]

# Declared content types that suggest a feed
FEED_TYPE_MARKERS = ("xml", "rss", "atom")

# Opening tag of an RSS, Atom or RSS 1.0 (RDF) document
FEED_ROOT_RE = re.compile(r"<(?:rss|feed|rdf:rdf)[\s>/]", re.IGNORECASE)
SNIFF_CHARS = 4096

# <link type="..."> values that announce a feed
LINK_TYPE_MARKERS = ("rss", "atom", "rdf")
LINK_RELS = frozenset({"alternate", "feed"})

_SCHEME_RE = re.compile(r"^[a-zA-Z][a-zA-Z0-9+.-]*://")
_OPAQUE_SCHEME_RE = re.compile(r"^[a-zA-Z][a-zA-Z0-9+.-]*:(?!\d)")


def normalize_site_url(site_url: str) -> str:
    """Prepend https:// to a bare host such as 'example.com'.

    URLs with an explicit scheme (including disallowed ones like ftp:// or
    mailto:) are returned unchanged so the guard can reject them.
    """
    text = (site_url or "").strip()
    if not text or _SCHEME_RE.match(text) or _OPAQUE_SCHEME_RE.match(text):
        return text
    return "https://" + text.lstrip("/")


def looks_like_feed_type(content_type: str) -> bool:
    """True if a Content-Type header suggests XML/RSS/Atom."""
    lowered = content_type.lower()
    return any(marker in lowered for marker in FEED_TYPE_MARKERS)


def sniff_feed(body: str) -> bool:
    """True if the body opens an <rss>, <feed> or <rdf:RDF> element."""
    return bool(FEED_ROOT_RE.search(body[:SNIFF_CHARS]))


def parse_feed_title(body: str) -> str | None:
    """Feed title as parsed by feedparser, or None."""
    parsed = feedparser.parse(body)
    title = (parsed.feed.get("title") or "").strip()
    return title or None


def find_feed_links(html: str, base_url: str) -> list[FeedCandidate]:
    """Collect feed <link> tags from a page, in document order.

    Args:
        html: Homepage markup
        base_url: URL the markup came from, for resolving relative hrefs

    Returns:
        Unverified LINK_TAG candidates with absolute URLs
    """
    soup = BeautifulSoup(html, "html.parser")
    candidates: list[FeedCandidate] = []
    seen: set[str] = set()
    for link in soup.find_all("link", href=True):
        if not isinstance(link, Tag):
            continue
        rels = link.get("rel") or []
        if isinstance(rels, str):
            rels = rels.split()
        if not LINK_RELS.intersection(r.lower() for r in rels):
            continue
        link_type = str(link.get("type") or "").lower()
        if not any(marker in link_type for marker in LINK_TYPE_MARKERS):
            continue
        url = urljoin(base_url, str(link["href"]).strip())
        if url in seen:
            continue
        seen.add(url)
        title = str(link.get("title") or "").strip() or None
        candidates.append(FeedCandidate(url=url, strategy=DiscoveryStrategy.LINK_TAG, title=title))
    return candidates


class FeedDiscovery:
    """Discovers and verifies syndication feeds for websites.

    Each call opens its own HTTP session and shares nothing with other
    calls, so any number of discoveries may run concurrently.

    Example:
        >>> discovery = FeedDiscovery(config)
        >>> info = await discovery.discover("example.com")
        >>> if info:
        ...     print(info.url, info.strategy)
    """

    def __init__(
        self,
        config: Config,
        guard: SSRFGuard | None = None,
        session_factory: SessionFactory | None = None,
    ):
        """Initialize the discovery engine.

        Args:
            config: Paths, timeouts and limits
            guard: SSRF guard (default: getaddrinfo-backed)
            session_factory: Creates the per-call aiohttp session
        """
        self.config = config
        self.guard = guard or SSRFGuard()
        self._session_factory = session_factory or aiohttp.ClientSession

    async def discover(self, site_url: str) -> FeedInfo | None:
        """Find a verified feed for a website.

        Args:
            site_url: Untrusted site URL ('example.com' is accepted)

        Returns:
            FeedInfo for the first verified feed, or None if none was found
        """
        url = normalize_site_url(site_url)
        with request_context(), trace_operation("feed_discovery", {"site_url": url}) as span:
            try:
                validated = await self.guard.validate(url)
            except URLRejected as e:
                logger.warning("Discovery refused | url=%s error=%s", url, e)
                span["outcome"] = e.code
                return None

            origin = validated.url.origin
            strategies = (
                (DiscoveryStrategy.PATH_PROBE, self._probe_paths),
                (DiscoveryStrategy.LINK_TAG, self._scan_link_tags),
                (DiscoveryStrategy.PLATFORM_DEFAULT, self._try_platform_default),
            )
            async with self._session_factory() as session:
                for strategy, run in strategies:
                    candidate = await run(session, origin)
                    if candidate is not None:
                        info = FeedInfo.from_candidate(candidate)
                        logger.info(
                            "Feed found | site=%s strategy=%s feed=%s",
                            origin, strategy.value, info.url,
                        )
                        span["outcome"] = strategy.value
                        return info
                    logger.debug("Discovery strategy exhausted | site=%s strategy=%s", origin, strategy.value)

            logger.info("No feed found | site=%s", origin)
            span["outcome"] = "not_found"
            return None

    async def check_feed(self, feed_url: str) -> FeedInfo | None:
        """Verify a URL the caller claims is already a feed.

        Args:
            feed_url: Untrusted feed URL

        Returns:
            FeedInfo with strategy DIRECT, or None if it is not a feed
        """
        url = normalize_site_url(feed_url)
        candidate = FeedCandidate(url=url, strategy=DiscoveryStrategy.DIRECT)
        with request_context():
            async with self._session_factory() as session:
                verified = await self._verify(session, candidate)
        if verified is None:
            logger.info("Not a feed | url=%s", url)
            return None
        return FeedInfo.from_candidate(verified)

    async def _probe_paths(self, session: aiohttp.ClientSession, origin: str) -> FeedCandidate | None:
        for path in self.config.feed_paths:
            candidate = FeedCandidate(url=origin + path, strategy=DiscoveryStrategy.PATH_PROBE)
            verified = await self._verify(session, candidate)
            if verified is not None:
                return verified
        return None

    async def _scan_link_tags(self, session: aiohttp.ClientSession, origin: str) -> FeedCandidate | None:
        homepage = origin + "/"
        try:
            page = await fetch_page(
                session,
                homepage,
                guard=self.guard,
                timeout=self.config.homepage_timeout,
                max_redirects=self.config.max_redirects,
                max_bytes=self.config.max_response_bytes,
            )
        except ScoutError as e:
            logger.debug("Homepage fetch failed | url=%s error=%s", homepage, e)
            return None

        candidates = find_feed_links(page.text, page.final_url)
        logger.debug("Feed link tags | url=%s count=%d", page.final_url, len(candidates))
        for candidate in candidates:
            try:
                await self.guard.validate(candidate.url)
            except URLRejected as e:
                logger.warning("Feed link rejected | page=%s href=%s error=%s", page.final_url, candidate.url, e)
                continue
            verified = await self._verify(session, candidate)
            if verified is not None:
                return verified
        return None

    async def _try_platform_default(self, session: aiohttp.ClientSession, origin: str) -> FeedCandidate | None:
        candidate = FeedCandidate(
            url=origin + self.config.platform_feed_path,
            strategy=DiscoveryStrategy.PLATFORM_DEFAULT,
        )
        return await self._verify(session, candidate)

    async def _verify(self, session: aiohttp.ClientSession, candidate: FeedCandidate) -> FeedCandidate | None:
        """Check that a candidate really serves a feed.

        HEAD first for the content type; servers that refuse HEAD (405/501)
        go straight to the GET. The GET response is held to the content
        type check as well, whatever HEAD said, and its body is sniffed.

        Returns:
            The candidate marked verified (with title), or None
        """
        fetch_kwargs = dict(
            guard=self.guard,
            timeout=self.config.probe_timeout,
            max_redirects=self.config.max_redirects,
            max_bytes=self.config.max_response_bytes,
        )
        try:
            head = await fetch_page(session, candidate.url, method="HEAD", **fetch_kwargs)
            if not looks_like_feed_type(head.content_type):
                logger.debug("Probe rejected | url=%s reason=content_type type=%s", candidate.url, head.content_type)
                return None
        except HTTPStatusError as e:
            if e.status not in (405, 501):
                logger.debug("Probe failed | url=%s error=%s", candidate.url, e)
                return None
        except ScoutError as e:
            logger.debug("Probe failed | url=%s error=%s", candidate.url, e)
            return None

        try:
            page = await fetch_page(session, candidate.url, **fetch_kwargs)
        except ScoutError as e:
            logger.debug("Probe body fetch failed | url=%s error=%s", candidate.url, e)
            return None

        if not looks_like_feed_type(page.content_type):
            logger.debug("Probe rejected | url=%s reason=content_type type=%s", candidate.url, page.content_type)
            return None
        if not sniff_feed(page.text):
            logger.debug("Probe rejected | url=%s reason=no_feed_root", candidate.url)
            return None

        title = parse_feed_title(page.text) or candidate.title
        return candidate.model_copy(update={"url": page.final_url, "verified": True, "title": title})
