"""Content extraction pipeline: article URL in, clean text plus images out.

The pipeline runs a fixed chain of strategies and returns the first
result that passes validation:

Strategy Chain:
    1. AI_DIRECT: Validate the URL, let the collaborator browse it
    2. FETCH_THEN_AI: Guarded fetch, anti-bot check, markup truncated and
       handed to the collaborator
    3. HEURISTIC_DOM: Local DOM heuristics over the page (the page fetched
       by step 2 is reused within the same call)

Every result, AI or heuristic, must have a title and enough readable text.
Collaborator image URLs are made absolute, filtered like heuristic ones,
and the [IMAGE_n] markers renumbered to match.

Error Handling Strategy:
    - Each strategy failure is recorded as a StrategyAttempt and logged
      with the elapsed time; the chain moves on
    - Guard rejections inside a strategy are fatal for that strategy only
    - Only exhaustion reaches the caller, as ExtractionFailed
"""

import asyncio
import logging
import re
import time
from dataclasses import dataclass
from typing import Callable, Iterable

import aiohttp

from agents.extractor import ArticleExtractor, ExtractorAgent
from config import Config
from errors import (
    AntiBotDetected,
    CollaboratorUnavailable,
    ConnectionFailure,
    ExtractionFailed,
    FetchTimeout,
    InsufficientContent,
    MalformedCollaboratorResponse,
    ScoutError,
    UnexpectedStrategyError,
)
from models.extraction import (
    IMAGE_MARKER_RE,
    ExtractedArticle,
    ExtractionRequest,
    ExtractionResult,
    ExtractionStrategy,
    StrategyAttempt,
    image_marker,
    strip_markers,
)
from observability.logging import request_context
from observability.tracing import trace_operation
from safety.ssrf_guard import SSRFGuard
from tools.antibot import detect_bot_challenge
from tools.dom import extract_article, normalize_image_url, truncate_content
from tools.fetch import FetchedPage, fetch_page
from tools.utils import collapse_whitespace

logger = logging.getLogger(__name__)

SessionFactory = Callable[[], aiohttp.ClientSession]

DEFAULT_STRATEGIES = (
    ExtractionStrategy.AI_DIRECT,
    ExtractionStrategy.FETCH_THEN_AI,
    ExtractionStrategy.HEURISTIC_DOM,
)

_BLANK_LINES_RE = re.compile(r"\n{3,}")


@dataclass
class _CallState:
    """Per-call scratch space shared between strategies of one extract()."""

    url: str
    page: FetchedPage | None = None


def _renumber_images(article: ExtractedArticle, base_url: str) -> tuple[str, list[str]]:
    """Resolve and filter collaborator images, rewriting markers to match.

    Markers pointing at dropped or missing images are removed; duplicate
    URLs share one index.
    """
    images: list[str] = []
    mapping: dict[int, int] = {}
    for old_index, source in enumerate(article.images, start=1):
        url = normalize_image_url(source, base_url)
        if url is None:
            continue
        if url not in images:
            images.append(url)
        mapping[old_index] = images.index(url) + 1

    def replace(match: re.Match) -> str:
        new_index = mapping.get(int(match.group(1)))
        return image_marker(new_index) if new_index else ""

    content = IMAGE_MARKER_RE.sub(replace, article.content)
    content = _BLANK_LINES_RE.sub("\n\n", content).strip()
    return content, images


class ExtractionPipeline:
    """Extracts article content through an ordered strategy chain.

    Calls are independent: each extract() opens its own HTTP sessions and
    keeps nothing between calls, so any number may run concurrently.

    Example:
        >>> pipeline = ExtractionPipeline(config)
        >>> result = await pipeline.extract("https://example.com/post")
        >>> print(result.strategy, result.title)
    """

    def __init__(
        self,
        config: Config,
        extractor: ArticleExtractor | None = None,
        guard: SSRFGuard | None = None,
        session_factory: SessionFactory | None = None,
        strategies: Iterable[ExtractionStrategy] | None = None,
    ):
        """Initialize the pipeline.

        Args:
            config: Timeouts, limits, selectors and collaborator settings
            extractor: Collaborator (default: ExtractorAgent when AI is available)
            guard: SSRF guard (default: getaddrinfo-backed)
            session_factory: Creates per-strategy aiohttp sessions
            strategies: Strategy order (default: all three)
        """
        self.config = config
        if extractor is None and config.ai_available:
            extractor = ExtractorAgent(config)
        self.extractor = extractor
        self.guard = guard or SSRFGuard()
        self._session_factory = session_factory or aiohttp.ClientSession
        self.strategies = list(strategies) if strategies is not None else list(DEFAULT_STRATEGIES)

        self._runners = {
            ExtractionStrategy.AI_DIRECT: self._ai_direct,
            ExtractionStrategy.FETCH_THEN_AI: self._fetch_then_ai,
            ExtractionStrategy.HEURISTIC_DOM: self._heuristic_dom,
        }

    def _timeout_for(self, strategy: ExtractionStrategy) -> float:
        if strategy == ExtractionStrategy.AI_DIRECT:
            return self.config.ai_direct_timeout
        if strategy == ExtractionStrategy.FETCH_THEN_AI:
            return self.config.ai_assist_timeout
        return self.config.page_timeout

    async def extract(self, article_url: str) -> ExtractionResult:
        """Extract an article, trying each strategy in order.

        Args:
            article_url: Untrusted article URL

        Returns:
            ExtractionResult from the first strategy that succeeds

        Raises:
            ExtractionFailed: Every strategy failed; ``attempts`` lists why
        """
        with request_context(), trace_operation("content_extraction", {"url": article_url}) as span:
            state = _CallState(url=article_url)
            attempts: list[StrategyAttempt] = []
            logger.info(
                "Extraction started | url=%s strategies=%s",
                article_url, ",".join(s.value for s in self.strategies),
            )

            for strategy in self.strategies:
                start = time.monotonic()
                try:
                    article = await self._runners[strategy](state)
                except ScoutError as e:
                    error = e
                except asyncio.TimeoutError:
                    error = FetchTimeout(article_url, self._timeout_for(strategy))
                except aiohttp.ClientError as e:
                    error = ConnectionFailure(f"{article_url}: {type(e).__name__}: {e}")
                except Exception as e:
                    logger.error(
                        "Strategy raised unexpected error | url=%s strategy=%s type=%s",
                        article_url, strategy.value, type(e).__name__, exc_info=True,
                    )
                    error = UnexpectedStrategyError(e)
                else:
                    elapsed = time.monotonic() - start
                    result = ExtractionResult.from_article(article, article_url, strategy)
                    logger.info(
                        "Extraction succeeded | url=%s strategy=%s chars=%d images=%d elapsed=%.2fs",
                        article_url, strategy.value, len(result.content), len(result.images), elapsed,
                    )
                    span["strategy"] = strategy.value
                    span["failed_attempts"] = len(attempts)
                    return result

                elapsed = time.monotonic() - start
                attempts.append(StrategyAttempt(strategy=strategy, error=error, elapsed=elapsed))
                logger.warning(
                    "Strategy failed | url=%s strategy=%s error=%s elapsed=%.2fs",
                    article_url, strategy.value, error, elapsed,
                )

            span["strategy"] = "none"
            span["failed_attempts"] = len(attempts)
            logger.error("Extraction failed | url=%s attempts=%d", article_url, len(attempts))
            raise ExtractionFailed(article_url, attempts)

    # === Strategies ===

    async def _ai_direct(self, state: _CallState) -> ExtractedArticle:
        extractor = self._require_extractor()
        await self.guard.validate(state.url)
        article = await asyncio.wait_for(
            extractor.extract(ExtractionRequest(url=state.url)),
            self.config.ai_direct_timeout,
        )
        return self._check_collaborator_article(article, state.url)

    async def _fetch_then_ai(self, state: _CallState) -> ExtractedArticle:
        extractor = self._require_extractor()
        page = await self._fetch(state)
        self._check_bot_challenge(page)

        markup = page.text[: self.config.max_markup_chars]
        if len(page.text) > len(markup):
            logger.debug("Markup truncated | url=%s from=%d to=%d", page.final_url, len(page.text), len(markup))
        article = await asyncio.wait_for(
            extractor.extract(ExtractionRequest(url=page.final_url, html=markup)),
            self.config.ai_assist_timeout,
        )
        return self._check_collaborator_article(article, page.final_url)

    async def _heuristic_dom(self, state: _CallState) -> ExtractedArticle:
        page = state.page
        if page is None:
            page = await self._fetch(state)
        else:
            logger.debug("Reusing fetched page | url=%s", page.final_url)
        self._check_bot_challenge(page)

        return extract_article(
            page.text,
            page.final_url,
            selectors=self.config.content_selectors,
            min_chars=self.config.min_content_chars,
            max_chars=self.config.max_content_chars,
        )

    # === Helpers ===

    def _require_extractor(self) -> ArticleExtractor:
        if self.extractor is None:
            raise CollaboratorUnavailable("AI extraction disabled or no credentials configured")
        return self.extractor

    async def _fetch(self, state: _CallState) -> FetchedPage:
        """Guarded GET in a session that closes before the next strategy."""
        async with self._session_factory() as session:
            page = await fetch_page(
                session,
                state.url,
                guard=self.guard,
                timeout=self.config.page_timeout,
                max_redirects=self.config.max_redirects,
                max_bytes=self.config.max_response_bytes,
            )
        state.page = page
        return page

    def _check_bot_challenge(self, page: FetchedPage) -> None:
        signature = detect_bot_challenge(page.text, self.config.bot_signatures)
        if signature:
            raise AntiBotDetected(page.final_url, signature)

    def _check_collaborator_article(self, article: ExtractedArticle, base_url: str) -> ExtractedArticle:
        """Hold collaborator output to the same bar as heuristic output."""
        title = collapse_whitespace(article.title or "")
        if not title:
            raise MalformedCollaboratorResponse("response has no title")

        content, images = _renumber_images(article, base_url)
        content, images = truncate_content(content, images, self.config.max_content_chars)

        readable = len(collapse_whitespace(strip_markers(content)))
        if readable < self.config.min_content_chars:
            raise InsufficientContent(readable, self.config.min_content_chars)
        return ExtractedArticle(title=title, content=content, images=images)
