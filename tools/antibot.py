"""Bot-challenge detection for fetched pages.

Sites behind Cloudflare, PerimeterX, DataDome or Incapsula often answer a
plain HTTP client with a 200 interstitial ("Checking your browser...")
instead of the article. Feeding that page to the collaborator or the DOM
heuristics wastes a round trip and can produce a plausible-looking but
wrong result, so the extraction strategies check first and fail fast.
"""

import logging

logger = logging.getLogger(__name__)

# Only the head of the page is scanned; challenge markers sit near the top
SCAN_CHARS = 20_000


def detect_bot_challenge(html: str, signatures: list[str]) -> str | None:
    """Look for a known bot-challenge signature.

    Args:
        html: Fetched markup
        signatures: Lower-case markers to look for

    Returns:
        The first matching signature, or None
    """
    if not html:
        return None
    head = html[:SCAN_CHARS].lower()
    for signature in signatures:
        if signature and signature.lower() in head:
            logger.debug("Bot challenge signature matched | signature=%s", signature)
            return signature
    return None
