"""Extractor agent: the LLM collaborator behind the AI extraction strategies.

The pipeline talks to the collaborator through one narrow call:

    async extract(ExtractionRequest) -> ExtractedArticle

Two request shapes:
    - Bare URL (AI-direct): the model browses the page itself via the
      built-in URL-context tool
    - URL + markup (fetch-then-AI): the model structures markup we fetched

Model selection follows the PydanticAI model string:
    - "google-gla:gemini-2.5-flash" and other provider:model strings run
      through PydanticAI agents
    - "openai:{model}@{base_url}" targets a local OpenAI-compatible server
      with a single chat-completion call; local models cannot browse, so
      bare-URL requests raise CollaboratorUnavailable without any request

Responses are untrusted. Free-text replies go through parse_article_json,
and every failure mode (invalid JSON, schema mismatch, agent/API errors)
surfaces as MalformedCollaboratorResponse. A model PydanticAI refuses to
run (missing provider, unsupported built-in tool) raises
CollaboratorUnavailable.
"""

import json
import logging
import re
from typing import Protocol

import openai
from openai import AsyncOpenAI
from pydantic import ValidationError
from pydantic_ai import Agent, UrlContextTool, UsageLimits
from pydantic_ai.exceptions import AgentRunError, UserError

from config import Config
from errors import CollaboratorUnavailable, MalformedCollaboratorResponse
from models.extraction import ExtractedArticle, ExtractionRequest

logger = logging.getLogger(__name__)


_OUTPUT_RULES = """## Output
Return a single JSON object and nothing else:
{"title": "...", "content": "...", "images": ["https://...", ...]}

- title: the article headline
- content: the article body as plain text, paragraphs separated by blank
  lines. Place each in-article image on its own line as [IMAGE_1],
  [IMAGE_2], ... in order of appearance.
- images: absolute image URLs; images[0] is [IMAGE_1]

## Rules
1. Only the article itself: no navigation, ads, share buttons, comments,
   related links, newsletter prompts or cookie banners.
2. Skip logos, icons, avatars and tracking pixels.
3. Do not summarize or rewrite. Keep the author's wording.
4. Never invent content. If the page has no article, return an empty content."""

BROWSE_PROMPT = f"""You are a precise web content extractor.

Open the URL you are given and extract the main article on that page.

{_OUTPUT_RULES}"""

PARSE_PROMPT = f"""You are a precise web content extractor.

You will receive the URL of a page and its raw HTML (possibly truncated).
Extract the main article from the HTML. Resolve relative image URLs
against the page URL.

{_OUTPUT_RULES}"""


class ArticleExtractor(Protocol):
    """Anything that can turn an ExtractionRequest into an article."""

    async def extract(self, request: ExtractionRequest) -> ExtractedArticle: ...


# === Response parsing ===

_FENCE_RE = re.compile(r"^```[a-zA-Z]*\s*|\s*```$")
_JSON_ESCAPES = frozenset('"\\/bfnrtu')
_CONTROL_ESCAPES = {"\n": "\\n", "\r": "\\r", "\t": "\\t"}


def _strip_fences(text: str) -> str:
    return _FENCE_RE.sub("", text.strip()).strip()


def _outermost_object(text: str) -> str:
    start = text.find("{")
    end = text.rfind("}")
    if start == -1 or end <= start:
        raise MalformedCollaboratorResponse("no JSON object in response")
    return text[start:end + 1]


def _repair(text: str) -> str:
    """Escape stray backslashes and raw line breaks inside string values."""
    out: list[str] = []
    in_string = False
    i = 0
    while i < len(text):
        ch = text[i]
        if in_string:
            if ch == "\\":
                nxt = text[i + 1:i + 2]
                if nxt and nxt in _JSON_ESCAPES:
                    out.append(ch + nxt)
                    i += 2
                    continue
                ch = "\\\\"
            elif ch == '"':
                in_string = False
            else:
                ch = _CONTROL_ESCAPES.get(ch, ch)
        elif ch == '"':
            in_string = True
        out.append(ch)
        i += 1
    return "".join(out)


def parse_article_json(text: str) -> ExtractedArticle:
    """Parse a free-text collaborator reply into an ExtractedArticle.

    Accepts Markdown-fenced JSON and leading/trailing chatter around the
    object. A reply that fails to parse is retried once after escaping
    stray backslashes and raw newlines, which models often emit inside
    long string values.

    Raises:
        MalformedCollaboratorResponse: Not a JSON object, or the object
            does not match ExtractedArticle
    """
    if not text or not text.strip():
        raise MalformedCollaboratorResponse("empty response")

    payload = _outermost_object(_strip_fences(text))
    try:
        data = json.loads(payload)
    except json.JSONDecodeError:
        try:
            data = json.loads(_repair(payload))
        except json.JSONDecodeError as e:
            raise MalformedCollaboratorResponse(f"invalid JSON: {e}") from e

    if not isinstance(data, dict):
        raise MalformedCollaboratorResponse("response is not a JSON object")
    try:
        return ExtractedArticle.model_validate(data)
    except ValidationError as e:
        raise MalformedCollaboratorResponse(f"schema mismatch: {e.error_count()} error(s)") from e


# === Model selection ===

def _parse_local_model(model_str: str) -> tuple[str, str] | None:
    """Parse local model string into (model_name, base_url) or None if not local."""
    if model_str.startswith("openai:") and "@" in model_str:
        rest = model_str[7:]
        model_name, base_url = rest.split("@", 1)
        return model_name, base_url
    return None


def _build_parse_message(request: ExtractionRequest) -> str:
    return "\n".join([
        f"Page URL: {request.url}",
        "",
        "=== BEGIN HTML ===",
        request.html or "",
        "=== END HTML ===",
    ])


def _create_browse_agent(model: str) -> Agent[None, str]:
    """Agent that fetches the page itself through URL context.

    Gemini does not combine URL context with a response schema, so this
    agent returns text and the reply goes through parse_article_json.
    """
    return Agent(
        model,
        output_type=str,
        system_prompt=BROWSE_PROMPT,
        builtin_tools=[UrlContextTool()],
        retries=1,
        defer_model_check=True,
    )


def _create_parse_agent(model: str) -> Agent[None, ExtractedArticle]:
    """Agent that structures markup we already fetched."""
    return Agent(
        model,
        output_type=ExtractedArticle,
        system_prompt=PARSE_PROMPT,
        retries=2,
        defer_model_check=True,
    )


class ExtractorAgent:
    """LLM-backed ArticleExtractor.

    Agents are created once and reused; each extract() call is independent
    and safe to run concurrently with others.

    Example:
        >>> extractor = ExtractorAgent(config)
        >>> article = await extractor.extract(ExtractionRequest(url=url))
    """

    def __init__(self, config: Config):
        """Initialize the extractor.

        Args:
            config: Application configuration with model settings
        """
        self.config = config
        self._local = _parse_local_model(config.extractor_model)
        self._browse_agent: Agent[None, str] | None = None
        self._parse_agent: Agent[None, ExtractedArticle] | None = None
        self._client: AsyncOpenAI | None = None

        if self._local:
            model_name, base_url = self._local
            logger.info("Using local model | model=%s base_url=%s", model_name, base_url)
            self._client = AsyncOpenAI(base_url=base_url, api_key="local-model")
        else:
            self._browse_agent = _create_browse_agent(config.extractor_model)
            self._parse_agent = _create_parse_agent(config.extractor_model)

    @property
    def can_browse(self) -> bool:
        return self._local is None

    async def extract(self, request: ExtractionRequest) -> ExtractedArticle:
        """Extract an article from a URL or from fetched markup.

        Raises:
            CollaboratorUnavailable: Bare URL with a model that cannot browse
            MalformedCollaboratorResponse: Unusable or failed response
        """
        if request.is_direct and not self.can_browse:
            raise CollaboratorUnavailable("local model cannot browse; markup required")

        if self._client is not None:
            return await self._extract_local(request)
        if request.is_direct:
            return await self._extract_browse(request)
        return await self._extract_parse(request)

    async def _extract_browse(self, request: ExtractionRequest) -> ExtractedArticle:
        try:
            result = await self._browse_agent.run(
                f"Extract the article at: {request.url}",
                usage_limits=UsageLimits(request_limit=3),
            )
        except AgentRunError as e:
            logger.debug("Browse agent failed | url=%s error=%s", request.url, e)
            raise MalformedCollaboratorResponse(f"agent run failed: {e}") from e
        except UserError as e:
            logger.debug("Browse agent misconfigured | url=%s error=%s", request.url, e)
            raise CollaboratorUnavailable(f"model cannot serve this request: {e}") from e

        usage = result.usage()
        logger.debug(
            "Browse agent done | url=%s input_tokens=%d output_tokens=%d",
            request.url, usage.request_tokens or 0, usage.response_tokens or 0,
        )
        return parse_article_json(result.output)

    async def _extract_parse(self, request: ExtractionRequest) -> ExtractedArticle:
        try:
            result = await self._parse_agent.run(
                _build_parse_message(request),
                usage_limits=UsageLimits(request_limit=3),
            )
        except AgentRunError as e:
            logger.debug("Parse agent failed | url=%s error=%s", request.url, e)
            raise MalformedCollaboratorResponse(f"agent run failed: {e}") from e
        except UserError as e:
            logger.debug("Parse agent misconfigured | url=%s error=%s", request.url, e)
            raise CollaboratorUnavailable(f"model cannot serve this request: {e}") from e

        usage = result.usage()
        logger.debug(
            "Parse agent done | url=%s input_tokens=%d output_tokens=%d",
            request.url, usage.request_tokens or 0, usage.response_tokens or 0,
        )
        return result.output

    async def _extract_local(self, request: ExtractionRequest) -> ExtractedArticle:
        model_name, _ = self._local
        try:
            response = await self._client.chat.completions.create(
                model=model_name,
                messages=[
                    {"role": "system", "content": PARSE_PROMPT},
                    {"role": "user", "content": _build_parse_message(request)},
                ],
                temperature=0,
            )
        except openai.OpenAIError as e:
            logger.debug("Local model request failed | url=%s error=%s", request.url, e)
            raise MalformedCollaboratorResponse(f"local model error: {type(e).__name__}: {e}") from e

        if not response.choices:
            raise MalformedCollaboratorResponse("local model returned no choices")
        return parse_article_json(response.choices[0].message.content or "")
