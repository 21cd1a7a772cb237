"""Data models for Feedscout.

This package contains the data models shared by the guard, feed discovery
and the content extraction pipeline:

CandidateURL / ResolvedAddress / ValidatedURL:
    Ephemeral URL and DNS values produced by the SSRF guard.

AddressVerdict / BlockReason:
    Output of the IP classifier.

FeedCandidate / FeedInfo / DiscoveryStrategy:
    Feed discovery candidates and the verified result.

ExtractionRequest / ExtractedArticle:
    Content-extraction collaborator contract.

ExtractionResult / ExtractionStrategy / StrategyAttempt:
    Pipeline output, strategy enum, and recorded failures.

Example:
    >>> from models import FeedInfo, DiscoveryStrategy
    >>> FeedInfo(url="https://example.com/feed", strategy=DiscoveryStrategy.PATH_PROBE)
"""

from models.url import (
    AddressVerdict,
    BlockReason,
    CandidateURL,
    ResolvedAddress,
    ValidatedURL,
)
from models.feed import DiscoveryStrategy, FeedCandidate, FeedInfo
from models.extraction import (
    ExtractedArticle,
    ExtractionRequest,
    ExtractionResult,
    ExtractionStrategy,
    StrategyAttempt,
    image_marker,
    strip_markers,
)

__all__ = [
    "AddressVerdict",
    "BlockReason",
    "CandidateURL",
    "ResolvedAddress",
    "ValidatedURL",
    "DiscoveryStrategy",
    "FeedCandidate",
    "FeedInfo",
    "ExtractedArticle",
    "ExtractionRequest",
    "ExtractionResult",
    "ExtractionStrategy",
    "StrategyAttempt",
    "image_marker",
    "strip_markers",
]
