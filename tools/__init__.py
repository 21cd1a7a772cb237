"""Network and markup tools shared by discovery and extraction.

fetch_page:
    Guarded HTTP fetch; SSRF validation on every redirect hop,
    per-attempt timeout, response size ceiling.

detect_bot_challenge:
    Recognise bot-challenge interstitials in fetched markup.

extract_article:
    Heuristic DOM extraction with inline [IMAGE_n] markers.

Example:
    >>> from tools import fetch_page
    >>> page = await fetch_page(session, url, guard=guard, timeout=30)
    >>> page.final_url
"""

from tools.utils import BROWSER_HEADERS, USER_AGENT, create_ssl_context
from tools.fetch import FetchedPage, fetch_page
from tools.antibot import detect_bot_challenge
from tools.dom import extract_article, extract_title

__all__ = [
    "BROWSER_HEADERS",
    "USER_AGENT",
    "create_ssl_context",
    "FetchedPage",
    "fetch_page",
    "detect_bot_challenge",
    "extract_article",
    "extract_title",
]
