import unittest

from discovery import FeedDiscovery, find_feed_links, normalize_site_url, sniff_feed
from models.feed import DiscoveryStrategy
from safety.ssrf_guard import SSRFGuard
from tests.fakes import FakeResolver, FakeResponse, FakeSession, feed_response, make_config

HOMEPAGE_WITH_LINKS = """<!doctype html>
<html><head>
  <title>Example</title>
  <link rel="stylesheet" href="/style.css">
  <link rel="alternate" type="application/atom+xml" title="Example Atom" href="/atom-feed">
  <link rel="alternate" type="application/rss+xml" href="https://example.com/rss-feed">
</head><body><p>Hi</p></body></html>"""


def make_discovery(routes=None, resolver=None, **config):
    session = FakeSession(routes)
    guard = SSRFGuard(resolver=resolver or FakeResolver())
    discovery = FeedDiscovery(make_config(**config), guard=guard, session_factory=lambda: session)
    return discovery, session


class HelperTests(unittest.TestCase):
    def test_normalize_site_url(self):
        self.assertEqual(normalize_site_url("example.com"), "https://example.com")
        self.assertEqual(normalize_site_url("  example.com/blog "), "https://example.com/blog")
        self.assertEqual(normalize_site_url("http://example.com"), "http://example.com")
        self.assertEqual(normalize_site_url("ftp://example.com"), "ftp://example.com")
        self.assertEqual(normalize_site_url("mailto:me@example.com"), "mailto:me@example.com")

    def test_sniff_feed(self):
        self.assertTrue(sniff_feed('<?xml version="1.0"?><rss version="2.0">'))
        self.assertTrue(sniff_feed('<feed xmlns="http://www.w3.org/2005/Atom">'))
        self.assertTrue(sniff_feed('<rdf:RDF xmlns:rdf="...">'))
        self.assertFalse(sniff_feed("<!doctype html><html><body>rss feed</body></html>"))
        self.assertFalse(sniff_feed("<feedback>no</feedback>"))

    def test_find_feed_links_in_document_order(self):
        candidates = find_feed_links(HOMEPAGE_WITH_LINKS, "https://example.com/")

        self.assertEqual(
            [c.url for c in candidates],
            ["https://example.com/atom-feed", "https://example.com/rss-feed"],
        )
        self.assertEqual(candidates[0].title, "Example Atom")
        self.assertTrue(all(c.strategy == DiscoveryStrategy.LINK_TAG for c in candidates))
        self.assertFalse(any(c.verified for c in candidates))


class DiscoverTests(unittest.IsolatedAsyncioTestCase):
    async def test_path_probe_finds_feed_and_short_circuits(self):
        discovery, session = make_discovery({
            ("HEAD", "https://example.com/feed/"): feed_response(),
            ("GET", "https://example.com/feed/"): feed_response(),
        })

        info = await discovery.discover("https://example.com")

        self.assertIsNotNone(info)
        self.assertEqual(info.url, "https://example.com/feed/")
        self.assertEqual(info.strategy, DiscoveryStrategy.PATH_PROBE)
        self.assertEqual(info.title, "Example Feed")
        # Later paths and the homepage are never requested
        self.assertEqual(session.requested("https://example.com/rss/"), [])
        self.assertEqual(session.requested("https://example.com/"), [])
        self.assertEqual(session.closed, 1)

    async def test_bare_host_gets_https(self):
        discovery, _ = make_discovery({
            ("HEAD", "https://example.com/feed"): feed_response(),
            ("GET", "https://example.com/feed"): feed_response(),
        })

        info = await discovery.discover("example.com")

        self.assertEqual(info.url, "https://example.com/feed")

    async def test_link_tag_discovery(self):
        discovery, session = make_discovery({
            ("GET", "https://example.com/"): FakeResponse(body=HOMEPAGE_WITH_LINKS),
            ("HEAD", "https://example.com/atom-feed"): feed_response(title="", content_type="application/atom+xml"),
            ("GET", "https://example.com/atom-feed"): feed_response(title="", content_type="application/atom+xml"),
        })

        info = await discovery.discover("https://example.com/some/page")

        self.assertEqual(info.url, "https://example.com/atom-feed")
        self.assertEqual(info.strategy, DiscoveryStrategy.LINK_TAG)
        # Feed has no title of its own, so the link tag's title is used
        self.assertEqual(info.title, "Example Atom")
        self.assertEqual(session.requested("https://example.com/rss-feed"), [])

    async def test_link_to_private_host_is_not_requested(self):
        homepage = '<link rel="alternate" type="application/rss+xml" href="http://intranet.example/feed">'
        resolver = FakeResolver({"intranet.example": ["192.168.1.20"]})
        discovery, session = make_discovery({
            ("GET", "https://example.com/"): FakeResponse(body=homepage),
            ("HEAD", "http://intranet.example/feed"): feed_response(),
            ("GET", "http://intranet.example/feed"): feed_response(),
        }, resolver=resolver)

        info = await discovery.discover("https://example.com")

        self.assertIsNone(info)
        self.assertEqual(session.requested("http://intranet.example/feed"), [])

    async def test_platform_default_tried_last(self):
        discovery, session = make_discovery(
            {
                ("HEAD", "https://example.com/wp/feed/"): feed_response(),
                ("GET", "https://example.com/wp/feed/"): feed_response(),
            },
            feed_paths=["/feed", "/rss.xml"],
            platform_feed_path="/wp/feed/",
        )

        info = await discovery.discover("https://example.com")

        self.assertEqual(info.strategy, DiscoveryStrategy.PLATFORM_DEFAULT)
        self.assertEqual(session.requested("https://example.com/"), ["GET"])

    async def test_not_found_returns_none(self):
        discovery, session = make_discovery()

        info = await discovery.discover("https://example.com")

        self.assertIsNone(info)
        # Every conventional path, the homepage and the platform default were tried
        self.assertTrue(session.requested("https://example.com/rss.xml"))
        self.assertTrue(session.requested("https://example.com/"))
        self.assertEqual(session.requested("https://example.com/feed/"), ["HEAD", "HEAD"])

    async def test_html_labelled_page_is_rejected(self):
        page = "<!doctype html><html><body><a href='/rss'>RSS</a></body></html>"
        discovery, _ = make_discovery(
            {
                ("HEAD", "https://example.com/feed"): FakeResponse(body=page, content_type="text/html"),
                ("GET", "https://example.com/feed"): FakeResponse(body=page, content_type="text/html"),
            },
            feed_paths=["/feed"],
            platform_feed_path="/feed",
        )

        self.assertIsNone(await discovery.discover("https://example.com"))

    async def test_xml_labelled_html_body_is_rejected(self):
        page = "<!doctype html><html><body>Not a feed</body></html>"
        discovery, _ = make_discovery(
            {
                ("HEAD", "https://example.com/feed"): FakeResponse(body=page, content_type="application/xml"),
                ("GET", "https://example.com/feed"): FakeResponse(body=page, content_type="application/xml"),
            },
            feed_paths=["/feed"],
            platform_feed_path="/feed",
        )

        self.assertIsNone(await discovery.discover("https://example.com"))

    async def test_get_content_type_checked_after_head_passes(self):
        html_labelled = feed_response(content_type="text/html")
        discovery, session = make_discovery(
            {
                ("HEAD", "https://example.com/feed"): feed_response(),
                ("GET", "https://example.com/feed"): html_labelled,
            },
            feed_paths=["/feed"],
            platform_feed_path="/feed",
        )

        self.assertIsNone(await discovery.discover("https://example.com"))
        self.assertIn("GET", session.requested("https://example.com/feed"))

    async def test_head_not_allowed_falls_back_to_get(self):
        discovery, session = make_discovery({
            ("HEAD", "https://example.com/feed"): FakeResponse(status=405),
            ("GET", "https://example.com/feed"): feed_response(),
        })

        info = await discovery.discover("https://example.com")

        self.assertEqual(info.url, "https://example.com/feed")
        self.assertEqual(session.requested("https://example.com/feed"), ["HEAD", "GET"])

    async def test_rejected_site_makes_no_requests(self):
        discovery, session = make_discovery(resolver=FakeResolver({"lan.example": ["10.0.0.2"]}))

        self.assertIsNone(await discovery.discover("ftp://example.com"))
        self.assertIsNone(await discovery.discover("http://lan.example"))
        self.assertEqual(session.requests, [])


class CheckFeedTests(unittest.IsolatedAsyncioTestCase):
    async def test_direct_feed_verified(self):
        discovery, _ = make_discovery({
            ("HEAD", "https://example.com/custom.xml"): feed_response(),
            ("GET", "https://example.com/custom.xml"): feed_response(),
        })

        info = await discovery.check_feed("https://example.com/custom.xml")

        self.assertEqual(info.strategy, DiscoveryStrategy.DIRECT)
        self.assertEqual(info.title, "Example Feed")

    async def test_direct_non_feed(self):
        discovery, _ = make_discovery({
            ("HEAD", "https://example.com/page"): FakeResponse(body="<html></html>"),
        })

        self.assertIsNone(await discovery.check_feed("https://example.com/page"))

    async def test_direct_private_feed_refused(self):
        discovery, session = make_discovery()

        self.assertIsNone(await discovery.check_feed("http://127.0.0.1/feed"))
        self.assertEqual(session.requests, [])


if __name__ == "__main__":
    unittest.main()
