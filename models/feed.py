"""Feed discovery models.

A FeedCandidate is any URL a discovery strategy proposes. Only candidates
that pass content-sniffing verification become a FeedInfo returned to the
caller.
"""

from enum import Enum

from pydantic import BaseModel, Field


class DiscoveryStrategy(str, Enum):
    """Which heuristic produced a feed candidate.

    PATH_PROBE: Conventional path on the site origin (e.g. /feed, /rss.xml)
    LINK_TAG: <link rel="alternate"> tag on the homepage
    PLATFORM_DEFAULT: Publishing-platform default path (WordPress /feed/)
    DIRECT: URL given by the caller and verified as a feed
    """

    PATH_PROBE = "path_probe"
    LINK_TAG = "link_tag"
    PLATFORM_DEFAULT = "platform_default"
    DIRECT = "direct"


class FeedCandidate(BaseModel):
    """A proposed feed URL and whether it has been verified."""

    url: str = Field(description="Absolute feed URL")
    strategy: DiscoveryStrategy = Field(description="Strategy that proposed the URL")
    verified: bool = Field(default=False, description="Passed content sniffing")
    title: str | None = Field(default=None, description="Feed title, if known")

    def __str__(self) -> str:
        status = "verified" if self.verified else "unverified"
        return f"FeedCandidate({self.strategy.value}, {status}, {self.url})"


class FeedInfo(BaseModel):
    """A verified syndication feed, consumed by the feed-ingestion workflow.

    Example:
        >>> info = FeedInfo(url="https://example.com/feed", strategy=DiscoveryStrategy.PATH_PROBE)
        >>> info.url
        'https://example.com/feed'
    """

    url: str = Field(description="Verified feed URL")
    title: str | None = Field(default=None, description="Feed title from the feed itself")
    strategy: DiscoveryStrategy = Field(description="Strategy that found the feed")

    @classmethod
    def from_candidate(cls, candidate: FeedCandidate) -> "FeedInfo":
        """Promote a verified candidate.

        Raises:
            ValueError: If the candidate has not been verified
        """
        if not candidate.verified:
            raise ValueError(f"Unverified feed candidate: {candidate.url}")
        return cls(url=candidate.url, title=candidate.title, strategy=candidate.strategy)

    def __str__(self) -> str:
        return f"FeedInfo({self.strategy.value}, {self.url})"
