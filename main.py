#!/usr/bin/env python3
"""Feedscout: feed discovery and article extraction for untrusted URLs.

This CLI finds syndication feeds for websites and extracts clean article
text (with inline image markers) from article URLs. Every outbound
request passes the SSRF guard.

Commands:
    discover    Find a verified RSS/Atom feed for a website
    check-feed  Verify that a URL really serves a feed
    extract     Extract an article's title, text and images
    check-url   Show how the SSRF guard judges a URL

Examples:
    python main.py discover example.com
    python main.py check-feed https://example.com/feed.xml
    python main.py extract https://example.com/2024/05/post
    python main.py extract --no-ai https://example.com/2024/05/post
    python main.py check-url http://169.254.169.254/latest/meta-data

Environment:
    GEMINI_API_KEY: Enables the AI extraction strategies
    See config.py for all configuration options
"""

import argparse
import asyncio
import json
import logging
import sys

from config import Config
from errors import ExtractionFailed, FeedNotFound, URLRejected
from observability.logging import setup_logging
from observability.tracing import setup_tracing

# Exit code for "ran fine, nothing found"
EXIT_NOT_FOUND = 2


def cmd_discover(args: argparse.Namespace, config: Config) -> int:
    """Discover a feed for a website.

    Returns:
        Exit code (0 found, 2 not found)
    """
    from discovery import FeedDiscovery

    info = asyncio.run(FeedDiscovery(config).discover(args.url))
    if info is None:
        print(f"Error: {FeedNotFound(f'no feed found for {args.url}')}", file=sys.stderr)
        return EXIT_NOT_FOUND
    print(info.model_dump_json(indent=2))
    return 0


def cmd_check_feed(args: argparse.Namespace, config: Config) -> int:
    """Verify a direct feed URL.

    Returns:
        Exit code (0 valid feed, 2 not a feed)
    """
    from discovery import FeedDiscovery

    info = asyncio.run(FeedDiscovery(config).check_feed(args.url))
    if info is None:
        print(f"Error: {FeedNotFound(f'{args.url} is not a feed')}", file=sys.stderr)
        return EXIT_NOT_FOUND
    print(info.model_dump_json(indent=2))
    return 0


def cmd_extract(args: argparse.Namespace, config: Config) -> int:
    """Extract an article.

    Returns:
        Exit code (0 success, 1 every strategy failed)
    """
    from models.extraction import ExtractionStrategy
    from pipeline import ExtractionPipeline

    if args.no_ai:
        config.ai_extraction_enabled = False
        strategies = [ExtractionStrategy.HEURISTIC_DOM]
    else:
        strategies = None
        if not config.ai_available:
            logging.getLogger(__name__).info("AI extraction unavailable, heuristic strategy only will succeed")

    pipeline = ExtractionPipeline(config, strategies=strategies)
    try:
        result = asyncio.run(pipeline.extract(args.url))
    except ExtractionFailed as e:
        print(f"Error: {e.message}", file=sys.stderr)
        for attempt in e.attempts:
            print(f"  - {attempt}", file=sys.stderr)
        return 1
    print(result.model_dump_json(indent=2))
    return 0


def cmd_check_url(args: argparse.Namespace, config: Config) -> int:
    """Run the SSRF guard on a URL and print the verdicts.

    Returns:
        Exit code (0 allowed, 1 rejected)
    """
    from safety.ssrf_guard import SSRFGuard

    try:
        validated = asyncio.run(SSRFGuard().validate(args.url))
    except URLRejected as e:
        print(json.dumps({"url": args.url, "allowed": False, "error": e.code, "detail": e.message}, indent=2))
        return 1

    print(json.dumps({
        "url": args.url,
        "allowed": True,
        "host": validated.url.host,
        "addresses": [
            {"address": v.address, "public": v.public}
            for v in validated.resolved.verdicts
        ],
    }, indent=2))
    return 0


def main() -> int:
    """Main entry point.

    Returns:
        Exit code
    """
    parser = argparse.ArgumentParser(
        description="Feedscout: feed discovery and article extraction",
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    parser.add_argument(
        "-v", "--verbose",
        action="store_true",
        help="Enable debug logging",
    )

    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    discover_parser = subparsers.add_parser("discover", help="Find a feed for a website")
    discover_parser.add_argument("url", help="Website URL (bare hosts get https://)")

    check_feed_parser = subparsers.add_parser("check-feed", help="Verify a direct feed URL")
    check_feed_parser.add_argument("url", help="Feed URL")

    extract_parser = subparsers.add_parser("extract", help="Extract article content")
    extract_parser.add_argument("url", help="Article URL")
    extract_parser.add_argument(
        "--no-ai",
        action="store_true",
        help="Skip the AI strategies and use DOM heuristics only",
    )

    check_url_parser = subparsers.add_parser("check-url", help="Run the SSRF guard on a URL")
    check_url_parser.add_argument("url", help="URL to check")

    args = parser.parse_args()

    # Load configuration
    config = Config.load()

    error = config.validate()
    if error:
        print(f"Configuration error: {error}", file=sys.stderr)
        return 1

    # Setup logging and optional tracing
    setup_logging(config, verbose=args.verbose)
    setup_tracing(
        enabled=config.enable_logfire,
        service_name="feedscout",
        token=config.logfire_token,
    )

    # Route to command handler
    commands = {
        "discover": cmd_discover,
        "check-feed": cmd_check_feed,
        "extract": cmd_extract,
        "check-url": cmd_check_url,
    }

    if args.command in commands:
        try:
            return commands[args.command](args, config)
        except KeyboardInterrupt:
            logging.getLogger(__name__).info("Stopped by user (Ctrl+C)")
            return 130  # Standard exit code for SIGINT
        except Exception as e:
            logging.getLogger(__name__).error("Command failed | cmd=%s error=%s", args.command, e, exc_info=True)
            print(f"Error: {e}", file=sys.stderr)
            return 1
    else:
        parser.print_help()
        return 0


if __name__ == "__main__":
    sys.exit(main())
