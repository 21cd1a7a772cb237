"""Content extraction models.

This module defines the collaborator contract (ExtractionRequest in,
ExtractedArticle out) and the pipeline's own result types.

Image Markers:
    Downstream consumers work with flat text, not a DOM tree, so images are
    spliced into ``content`` as ``[IMAGE_n]`` markers on their own line.
    ``n`` is the 1-based index into ``images``.
"""

import re
from dataclasses import dataclass
from enum import Enum

from pydantic import BaseModel, Field

from errors import ScoutError

IMAGE_MARKER = "[IMAGE_{index}]"
IMAGE_MARKER_RE = re.compile(r"\[IMAGE_(\d+)\]")


def image_marker(index: int) -> str:
    """Marker for the image at 1-based ``index``."""
    return IMAGE_MARKER.format(index=index)


def strip_markers(text: str) -> str:
    """Remove image markers, leaving only readable text."""
    return IMAGE_MARKER_RE.sub("", text)


class ExtractionStrategy(str, Enum):
    """Extraction strategies in priority order.

    AI_DIRECT: Collaborator fetches and structures the URL itself
    FETCH_THEN_AI: We fetch the markup, collaborator structures it
    HEURISTIC_DOM: Local DOM heuristics, no collaborator
    """

    AI_DIRECT = "ai_direct"
    FETCH_THEN_AI = "fetch_then_ai"
    HEURISTIC_DOM = "heuristic_dom"


class ExtractionRequest(BaseModel):
    """Input to the content-extraction collaborator.

    A bare ``url`` asks the collaborator to browse; ``html`` carries markup
    we already fetched (truncated to the configured ceiling).
    """

    url: str = Field(description="Article URL")
    html: str | None = Field(default=None, description="Fetched markup, if any")

    @property
    def is_direct(self) -> bool:
        return self.html is None


class ExtractedArticle(BaseModel):
    """Structured article returned by the collaborator or the DOM heuristics."""

    title: str = Field(description="Article headline")
    content: str = Field(
        description="Article body as plain text; images as [IMAGE_n] markers on their own line"
    )
    images: list[str] = Field(
        default_factory=list,
        description="Absolute image URLs in order of appearance; [IMAGE_1] is the first",
    )


class ExtractionResult(BaseModel):
    """Complete extraction result handed to the article-drafting workflow.

    Attributes:
        title: Article headline
        content: Plain text with inline [IMAGE_n] markers
        images: Ordered absolute image URLs
        source_url: The article URL that was extracted
        strategy: Strategy that produced the result
    """

    title: str
    content: str
    images: list[str] = Field(default_factory=list)
    source_url: str
    strategy: ExtractionStrategy

    @classmethod
    def from_article(
        cls,
        article: ExtractedArticle,
        source_url: str,
        strategy: ExtractionStrategy,
    ) -> "ExtractionResult":
        return cls(
            title=article.title,
            content=article.content,
            images=list(article.images),
            source_url=source_url,
            strategy=strategy,
        )

    def __str__(self) -> str:
        return (
            f"ExtractionResult({self.strategy.value}, '{self.title[:50]}', "
            f"chars={len(self.content)} images={len(self.images)})"
        )


@dataclass
class StrategyAttempt:
    """A failed strategy attempt, kept for logging and the final error."""

    strategy: ExtractionStrategy
    error: ScoutError
    elapsed: float = 0.0

    def __str__(self) -> str:
        return f"{self.strategy.value}: {self.error} ({self.elapsed:.2f}s)"
