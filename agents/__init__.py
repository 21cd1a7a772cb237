"""PydanticAI agents for Feedscout.

ExtractorAgent:
    The content-extraction collaborator used by the AI strategies of the
    extraction pipeline. Browses bare URLs (remote models) or structures
    fetched markup (remote or local models).

Example:
    >>> from agents import ExtractorAgent
    >>> extractor = ExtractorAgent(config)
"""

from agents.extractor import ArticleExtractor, ExtractorAgent, parse_article_json

__all__ = [
    "ArticleExtractor",
    "ExtractorAgent",
    "parse_article_json",
]
