"""Heuristic article extraction from raw HTML.

This is the last-resort extraction strategy: no collaborator, just DOM
heuristics over BeautifulSoup.

Steps:
    1. Title from og:title, <title>, or the first <h1>
    2. Strip boilerplate: scripts, styles, navigation, headers, footers,
       asides, forms, HTML comments, and ad/share/comment blocks
       recognised by class or id
    3. Pick the content container: <article>, else <main>, else the
       densest match among the configured selectors, else <body>
    4. Resolve images (lazy-load attributes first), drop icons/logos/
       tracking pixels, make URLs absolute, splice [IMAGE_n] markers
    5. Linearize to paragraphs, cap the length, enforce a minimum

The container text is measured with link text subtracted, so link-heavy
blocks (menus, tag clouds, "related posts") lose to prose.
"""

import logging
import re
from urllib.parse import urljoin, urlsplit

from bs4 import BeautifulSoup, Comment, NavigableString, Tag

from errors import InsufficientContent
from models.extraction import IMAGE_MARKER_RE, ExtractedArticle, image_marker, strip_markers
from tools.utils import collapse_whitespace

logger = logging.getLogger(__name__)

UNTITLED = "Untitled Article"

# Removed wholesale before container selection
STRIP_TAGS = [
    "script", "style", "noscript", "template", "iframe", "form", "svg",
    "nav", "footer", "header", "aside", "button", "select", "dialog",
]

# Class/id tokens marking ads, share bars, comment threads and similar.
# Matched per token from its start: 'ad-slot' and 'comments' match,
# 'has-ads' and 'post-sidebar' do not.
BOILERPLATE_RE = re.compile(
    r"^(?:ad|ads|adsbygoogle|advert|advertisement|banner|sponsor|sponsored|"
    r"promo|share|sharing|social|related|newsletter|subscribe|comment|comments|"
    r"cookie|consent|popup|modal|sidebar|breadcrumb|breadcrumbs)(?:[-_].*)?$",
    re.IGNORECASE,
)

# Never removed by the class/id heuristic
PROTECTED_TAGS = frozenset({"html", "body", "main", "article"})

# Lazy-load attributes win over the plain src
IMAGE_SOURCE_ATTRS = (
    "data-src",
    "data-lazy-src",
    "data-original",
    "data-lazy",
    "data-url",
    "data-srcset",
    "srcset",
    "src",
)

# Decorative or tracking images, matched against the URL path
JUNK_IMAGE_RE = re.compile(r"icon|logo|spacer|pixel|avatar|blank|1x1|tracking|badge|sprite", re.IGNORECASE)

BLOCK_TAGS = [
    "p", "div", "section", "article", "main", "blockquote", "pre",
    "h1", "h2", "h3", "h4", "h5", "h6",
    "ul", "ol", "li", "dl", "dt", "dd",
    "figure", "figcaption", "table", "tr", "hr",
]


def extract_title(soup: BeautifulSoup) -> str:
    """Find the article title.

    Order: og:title meta, <title>, first <h1>, then a placeholder.
    """
    meta = soup.find("meta", attrs={"property": "og:title"})
    if isinstance(meta, Tag) and meta.get("content"):
        title = collapse_whitespace(str(meta["content"]))
        if title:
            return title
    for tag_name in ("title", "h1"):
        tag = soup.find(tag_name)
        if isinstance(tag, Tag):
            title = collapse_whitespace(tag.get_text(" "))
            if title:
                return title
    return UNTITLED


def _is_boilerplate(tag: Tag) -> bool:
    if tag.name in PROTECTED_TAGS:
        return False
    tokens = list(tag.get("class") or [])
    if tag.get("id"):
        tokens.append(str(tag["id"]))
    return any(BOILERPLATE_RE.match(token) for token in tokens)


def strip_boilerplate(soup: BeautifulSoup) -> None:
    """Remove non-content elements in place."""
    for comment in soup.find_all(string=lambda s: isinstance(s, Comment)):
        comment.extract()
    for tag in soup.find_all(STRIP_TAGS):
        if not tag.decomposed:
            tag.decompose()
    for tag in [t for t in soup.find_all(True) if _is_boilerplate(t)]:
        if not tag.decomposed:
            tag.decompose()


def _text_length(tag: Tag) -> int:
    return len(collapse_whitespace(tag.get_text(" ")))


def text_density(tag: Tag) -> int:
    """Text length with link text subtracted."""
    link_chars = sum(len(collapse_whitespace(a.get_text(" "))) for a in tag.find_all("a"))
    return _text_length(tag) - link_chars


def select_container(soup: BeautifulSoup, selectors: list[str]) -> Tag:
    """Choose the element most likely to hold the article body.

    Args:
        soup: Document with boilerplate already stripped
        selectors: Ranked CSS selectors for conventional content classes

    Returns:
        The chosen element (the document itself as a last resort)
    """
    articles = soup.find_all("article")
    if articles:
        return max(articles, key=text_density)

    main = soup.find("main") or soup.find(attrs={"role": "main"})
    if isinstance(main, Tag):
        return main

    matches: list[Tag] = []
    for selector in selectors:
        matches.extend(soup.select(selector))
    if matches:
        best = max(matches, key=text_density)
        if text_density(best) > 0:
            return best

    return soup.body or soup


def _image_source(img: Tag) -> str | None:
    for attr in IMAGE_SOURCE_ATTRS:
        value = img.get(attr)
        if not value:
            continue
        value = str(value).strip()
        if attr.endswith("srcset"):
            value = value.split(",")[0].strip().split(" ")[0]
        if value and not value.startswith("data:"):
            return value
    return None


def resolve_image_url(img: Tag, page_url: str) -> str | None:
    """Absolute URL for an <img>, or None if it should be dropped."""
    source = _image_source(img)
    if not source:
        return None
    return normalize_image_url(source, page_url)


def normalize_image_url(source: str, page_url: str) -> str | None:
    """Absolute http(s) URL for an image reference, or None for junk."""
    source = source.strip()
    if not source or source.startswith("data:"):
        return None
    absolute = urljoin(page_url, source)
    parts = urlsplit(absolute)
    if parts.scheme not in ("http", "https"):
        return None
    if JUNK_IMAGE_RE.search(parts.path):
        return None
    return absolute


def _splice_images(container: Tag, page_url: str) -> list[str]:
    """Replace kept images with [IMAGE_n] markers; return their URLs in order."""
    images: list[str] = []
    for img in container.find_all("img"):
        url = resolve_image_url(img, page_url)
        if url is None:
            img.decompose()
            continue
        if url not in images:
            images.append(url)
        marker = image_marker(images.index(url) + 1)
        img.replace_with(NavigableString(f"\n{marker}\n"))
    return images


def _linearize(container: Tag) -> str:
    for br in container.find_all("br"):
        br.replace_with(NavigableString("\n"))
    for block in container.find_all(BLOCK_TAGS):
        block.insert_before(NavigableString("\n"))
        block.insert_after(NavigableString("\n"))
    lines = (collapse_whitespace(line) for line in container.get_text().splitlines())
    return "\n\n".join(line for line in lines if line)


def truncate_content(content: str, images: list[str], max_chars: int) -> tuple[str, list[str]]:
    """Cap content length without cutting a marker; drop images cut off."""
    if len(content) <= max_chars:
        return content, images
    content = content[:max_chars]
    bracket = content.rfind("[")
    if bracket != -1 and "]" not in content[bracket:]:
        content = content[:bracket]
    content = content.rstrip()
    indexes = [int(m) for m in IMAGE_MARKER_RE.findall(content)]
    return content, images[: max(indexes, default=0)]


def extract_article(
    html: str,
    page_url: str,
    *,
    selectors: list[str],
    min_chars: int = 200,
    max_chars: int = 10_000,
) -> ExtractedArticle:
    """Extract an article from raw HTML using DOM heuristics.

    The chosen container is final: a short container fails rather than
    widening to the whole body and its unrelated page text.

    Args:
        html: Page markup
        page_url: URL the markup came from (final URL after redirects)
        selectors: Ranked content-class selectors
        min_chars: Minimum readable text length (markers excluded)
        max_chars: Maximum content length

    Returns:
        ExtractedArticle with [IMAGE_n] markers in content

    Raises:
        InsufficientContent: Readable text shorter than ``min_chars``
    """
    soup = BeautifulSoup(html, "html.parser")
    title = extract_title(soup)
    strip_boilerplate(soup)

    container = select_container(soup, selectors)

    images = _splice_images(container, page_url)
    content, images = truncate_content(_linearize(container), images, max_chars)

    readable = len(collapse_whitespace(strip_markers(content)))
    if readable < min_chars:
        raise InsufficientContent(readable, min_chars)

    logger.debug(
        "Heuristic extraction | url=%s container=%s chars=%d images=%d",
        page_url, container.name, len(content), len(images),
    )
    return ExtractedArticle(title=title, content=content, images=images)
