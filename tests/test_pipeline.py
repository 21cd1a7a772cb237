import asyncio
import unittest

from errors import ExtractionFailed, MalformedCollaboratorResponse
from models.extraction import ExtractedArticle, ExtractionStrategy
from pipeline import ExtractionPipeline
from safety.ssrf_guard import SSRFGuard
from tests.fakes import FakeResolver, FakeResponse, FakeSession, make_config

URL = "https://news.example.com/2024/05/transit"

BODY = (
    "The city council approved the new transit plan on Tuesday after a long debate "
    "about funding, routes and the timeline for construction across the river. "
) * 3

ARTICLE_PAGE = f"""<html><head><title>Transit plan approved</title></head>
<body><nav><a href="/">Home</a></nav>
<article><h1>Transit plan approved</h1><p>{BODY}</p>
<img data-lazy-src="/images/map.jpg"><img src="/img/icon-share.png"></article>
</body></html>"""

CHALLENGE_PAGE = """<html><head><title>Just a moment...</title></head>
<body>Checking your browser before accessing news.example.com.</body></html>"""

NAV_ONLY_PAGE = """<html><body><nav><a href="/">Home</a><a href="/a">A</a></nav>
<footer>Copyright</footer></body></html>"""


class FakeExtractor:
    """Returns or raises a queued outcome per call, recording requests."""

    def __init__(self, *outcomes):
        self.outcomes = list(outcomes)
        self.requests = []

    async def extract(self, request):
        self.requests.append(request)
        outcome = self.outcomes.pop(0)
        if isinstance(outcome, BaseException):
            raise outcome
        if callable(outcome):
            return await outcome(request)
        return outcome


def good_article(**overrides):
    values = dict(title="Transit plan approved", content=BODY.strip(), images=[])
    values.update(overrides)
    return ExtractedArticle(**values)


def make_pipeline(routes=None, extractor=None, resolver=None, strategies=None, **config):
    session = FakeSession(routes)
    pipeline = ExtractionPipeline(
        make_config(**config),
        extractor=extractor,
        guard=SSRFGuard(resolver=resolver or FakeResolver()),
        session_factory=lambda: session,
        strategies=strategies,
    )
    return pipeline, session


class ExtractionPipelineTests(unittest.IsolatedAsyncioTestCase):
    async def test_ai_direct_success(self):
        extractor = FakeExtractor(good_article())
        pipeline, session = make_pipeline(extractor=extractor)

        result = await pipeline.extract(URL)

        self.assertEqual(result.strategy, ExtractionStrategy.AI_DIRECT)
        self.assertEqual(result.source_url, URL)
        self.assertEqual(result.title, "Transit plan approved")
        self.assertTrue(extractor.requests[0].is_direct)
        self.assertEqual(session.requests, [])

    async def test_ai_images_resolved_filtered_and_renumbered(self):
        content = f"{BODY}\n\n[IMAGE_1]\n\nMore text.\n\n[IMAGE_2]\n\n[IMAGE_3]"
        article = good_article(
            content=content,
            images=["/static/logo.png", "/img/a.jpg", "https://cdn.example.com/b.jpg"],
        )
        pipeline, _ = make_pipeline(extractor=FakeExtractor(article))

        result = await pipeline.extract(URL)

        self.assertEqual(result.images, ["https://news.example.com/img/a.jpg", "https://cdn.example.com/b.jpg"])
        self.assertIn("[IMAGE_1]", result.content)
        self.assertIn("[IMAGE_2]", result.content)
        self.assertNotIn("[IMAGE_3]", result.content)
        self.assertNotIn("\n\n\n", result.content)

    async def test_fallback_order_and_page_reuse(self):
        extractor = FakeExtractor(
            MalformedCollaboratorResponse("not json"),
            MalformedCollaboratorResponse("schema mismatch"),
        )
        pipeline, session = make_pipeline(
            {("GET", URL): FakeResponse(body=ARTICLE_PAGE)},
            extractor=extractor,
        )

        result = await pipeline.extract(URL)

        self.assertEqual(result.strategy, ExtractionStrategy.HEURISTIC_DOM)
        self.assertEqual(result.images, ["https://news.example.com/images/map.jpg"])
        self.assertEqual([r.is_direct for r in extractor.requests], [True, False])
        self.assertIn("<article>", extractor.requests[1].html)
        # The page fetched for fetch-then-AI is reused by the heuristic strategy
        self.assertEqual(session.requested(URL), ["GET"])
        self.assertEqual(session.opened, session.closed)

    async def test_fetch_then_ai_uses_final_url_and_truncates_markup(self):
        extractor = FakeExtractor(MalformedCollaboratorResponse("no"), good_article())
        pipeline, _ = make_pipeline(
            {
                ("GET", URL): FakeResponse(status=301, headers={"Location": "/amp/transit"}, content_type=""),
                ("GET", "https://news.example.com/amp/transit"): FakeResponse(body=ARTICLE_PAGE),
            },
            extractor=extractor,
            max_markup_chars=50,
        )

        result = await pipeline.extract(URL)

        self.assertEqual(result.strategy, ExtractionStrategy.FETCH_THEN_AI)
        request = extractor.requests[1]
        self.assertEqual(request.url, "https://news.example.com/amp/transit")
        self.assertEqual(len(request.html), 50)

    async def test_no_collaborator_falls_through_to_heuristics(self):
        pipeline, _ = make_pipeline({("GET", URL): FakeResponse(body=ARTICLE_PAGE)})

        result = await pipeline.extract(URL)

        self.assertIsNone(pipeline.extractor)
        self.assertEqual(result.strategy, ExtractionStrategy.HEURISTIC_DOM)

    async def test_all_strategies_fail_with_attempts(self):
        pipeline, _ = make_pipeline({("GET", URL): FakeResponse(body=NAV_ONLY_PAGE)})

        with self.assertRaises(ExtractionFailed) as ctx:
            await pipeline.extract(URL)

        attempts = ctx.exception.attempts
        self.assertEqual(
            [a.strategy for a in attempts],
            [ExtractionStrategy.AI_DIRECT, ExtractionStrategy.FETCH_THEN_AI, ExtractionStrategy.HEURISTIC_DOM],
        )
        self.assertEqual(
            [a.error.code for a in attempts],
            ["collaborator_unavailable", "collaborator_unavailable", "insufficient_content"],
        )
        self.assertTrue(all(a.elapsed >= 0 for a in attempts))

    async def test_bot_challenge_fails_fast(self):
        extractor = FakeExtractor(MalformedCollaboratorResponse("blocked"))
        pipeline, _ = make_pipeline({("GET", URL): FakeResponse(body=CHALLENGE_PAGE)}, extractor=extractor)

        with self.assertRaises(ExtractionFailed) as ctx:
            await pipeline.extract(URL)

        codes = [a.error.code for a in ctx.exception.attempts]
        self.assertEqual(codes, ["malformed_response", "anti_bot", "anti_bot"])
        # The challenge markup never reaches the collaborator
        self.assertEqual(len(extractor.requests), 1)

    async def test_private_url_never_fetched(self):
        extractor = FakeExtractor()
        resolver = FakeResolver({"intranet.example": ["10.1.2.3"]})
        pipeline, session = make_pipeline(extractor=extractor, resolver=resolver)

        with self.assertRaises(ExtractionFailed) as ctx:
            await pipeline.extract("http://intranet.example/wiki")

        self.assertEqual(
            {a.error.code for a in ctx.exception.attempts},
            {"private_address_blocked"},
        )
        self.assertEqual(extractor.requests, [])
        self.assertEqual(session.requests, [])

    async def test_collaborator_timeout_moves_on(self):
        async def slow(request):
            await asyncio.sleep(5)

        extractor = FakeExtractor(slow, good_article())
        pipeline, _ = make_pipeline(
            {("GET", URL): FakeResponse(body=ARTICLE_PAGE)},
            extractor=extractor,
            ai_direct_timeout=0.05,
        )

        result = await pipeline.extract(URL)

        self.assertEqual(result.strategy, ExtractionStrategy.FETCH_THEN_AI)

    async def test_unexpected_collaborator_exception_moves_on(self):
        extractor = FakeExtractor(RuntimeError("boom"), KeyError("title"))
        pipeline, _ = make_pipeline({("GET", URL): FakeResponse(body=ARTICLE_PAGE)}, extractor=extractor)

        with self.assertLogs("pipeline", level="ERROR") as logs:
            result = await pipeline.extract(URL)

        self.assertEqual(result.strategy, ExtractionStrategy.HEURISTIC_DOM)
        self.assertEqual(len(extractor.requests), 2)
        self.assertIn("RuntimeError", logs.output[0])
        self.assertIsNotNone(logs.records[0].exc_info)

    async def test_unexpected_exceptions_recorded_as_attempts(self):
        extractor = FakeExtractor(RuntimeError("boom"), ValueError("bad"))
        pipeline, _ = make_pipeline(
            {("GET", URL): FakeResponse(body=NAV_ONLY_PAGE)},
            extractor=extractor,
            content_selectors=["div[unclosed"],
        )

        with self.assertLogs("pipeline", level="ERROR"), self.assertRaises(ExtractionFailed) as ctx:
            await pipeline.extract(URL)

        attempts = ctx.exception.attempts
        self.assertEqual([a.error.code for a in attempts], ["unexpected_error"] * 3)
        self.assertIsInstance(attempts[0].error.exc, RuntimeError)
        self.assertIn("SelectorSyntaxError", str(attempts[2].error))

    async def test_short_ai_result_rejected(self):
        extractor = FakeExtractor(good_article(content="Too short."), good_article(title="  "))
        pipeline, _ = make_pipeline({("GET", URL): FakeResponse(body=ARTICLE_PAGE)}, extractor=extractor)

        result = await pipeline.extract(URL)

        self.assertEqual(result.strategy, ExtractionStrategy.HEURISTIC_DOM)

    async def test_short_ai_result_error_codes(self):
        extractor = FakeExtractor(good_article(content="Too short."), good_article(title="  "))
        pipeline, _ = make_pipeline(
            {("GET", URL): FakeResponse(body=NAV_ONLY_PAGE)},
            extractor=extractor,
        )

        with self.assertRaises(ExtractionFailed) as ctx:
            await pipeline.extract(URL)

        codes = [a.error.code for a in ctx.exception.attempts]
        self.assertEqual(codes, ["insufficient_content", "malformed_response", "insufficient_content"])

    async def test_heuristic_only_strategy_list(self):
        extractor = FakeExtractor()
        pipeline, _ = make_pipeline(
            {("GET", URL): FakeResponse(body=ARTICLE_PAGE)},
            extractor=extractor,
            strategies=[ExtractionStrategy.HEURISTIC_DOM],
        )

        result = await pipeline.extract(URL)

        self.assertEqual(result.strategy, ExtractionStrategy.HEURISTIC_DOM)
        self.assertEqual(extractor.requests, [])

    async def test_http_error_recorded(self):
        pipeline, _ = make_pipeline(strategies=[ExtractionStrategy.HEURISTIC_DOM])

        with self.assertRaises(ExtractionFailed) as ctx:
            await pipeline.extract(URL)

        self.assertEqual(ctx.exception.attempts[0].error.code, "http_status")
        self.assertIn("heuristic_dom=http_status", str(ctx.exception))


if __name__ == "__main__":
    unittest.main()
