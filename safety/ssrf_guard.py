"""SSRF guard: the single gate in front of every outbound fetch.

Given a URL, the guard parses it, enforces the protocol allow-list,
resolves the hostname to its full address set and classifies every
address. A URL passes only if every address is public.

Rules:
    - Unparseable URL or missing host -> InvalidURL
    - Scheme other than http/https -> UnsupportedProtocol (no DNS lookup)
    - Resolution failure or empty result -> DNSResolutionFailure (fail closed)
    - Any single blocked address -> PrivateAddressBlocked, even when other
      addresses are public (a multi-homed host with one internal-facing
      address is unsafe)

The guard keeps no state. Call it immediately before each fetch, including
every redirect hop and every URL resolved from page markup; a result from
an earlier call says nothing about the host's current resolution.
"""

import asyncio
import logging
import socket
from typing import Awaitable, Callable

from errors import DNSResolutionFailure, PrivateAddressBlocked, URLRejected, UnsupportedProtocol
from models.url import CandidateURL, ResolvedAddress, ValidatedURL
from safety.ip_classifier import classify_address, parse_ip_literal

logger = logging.getLogger(__name__)

ALLOWED_SCHEMES = frozenset({"http", "https"})

# (host, port) -> every address the host resolves to
Resolver = Callable[[str, int], Awaitable[list[str]]]


async def resolve_host(host: str, port: int) -> list[str]:
    """Resolve a hostname to all of its addresses via getaddrinfo.

    Args:
        host: Hostname to resolve
        port: Port, passed through to getaddrinfo

    Returns:
        Unique addresses in resolver order

    Raises:
        DNSResolutionFailure: If resolution fails
    """
    loop = asyncio.get_running_loop()
    try:
        infos = await loop.getaddrinfo(host, port, type=socket.SOCK_STREAM)
    except (socket.gaierror, UnicodeError, OSError) as e:
        raise DNSResolutionFailure(host, str(e))
    return list(dict.fromkeys(info[4][0] for info in infos))


class SSRFGuard:
    """Validates URLs before any network fetch.

    Example:
        >>> guard = SSRFGuard()
        >>> validated = await guard.validate("https://example.com/feed")
        >>> validated.resolved.addresses
        ['93.184.216.34']
    """

    def __init__(self, resolver: Resolver | None = None):
        """Initialize the guard.

        Args:
            resolver: Async (host, port) -> addresses function; defaults to
                getaddrinfo. Tests inject a fake.
        """
        self._resolver = resolver or resolve_host

    async def validate(self, url: str) -> ValidatedURL:
        """Validate a URL for fetching.

        Args:
            url: Untrusted URL string

        Returns:
            ValidatedURL with the parsed URL and classified address set

        Raises:
            InvalidURL: URL cannot be parsed or has no host
            UnsupportedProtocol: Scheme is not http/https
            DNSResolutionFailure: Host does not resolve
            PrivateAddressBlocked: Any resolved address is not public
        """
        candidate = CandidateURL.parse(url)
        if candidate.scheme not in ALLOWED_SCHEMES:
            logger.info("URL rejected | reason=unsupported_protocol scheme=%s", candidate.scheme or "-")
            raise UnsupportedProtocol(candidate.scheme or "(none)")

        literal = parse_ip_literal(candidate.host)
        if literal is not None:
            addresses = [str(literal)]
        else:
            addresses = await self._resolver(candidate.host, candidate.effective_port)
            if not addresses:
                raise DNSResolutionFailure(candidate.host, "no addresses")

        resolved = ResolvedAddress(
            host=candidate.host,
            verdicts=tuple(classify_address(a) for a in addresses),
        )
        blocked = resolved.blocked
        if blocked:
            first = blocked[0]
            logger.warning(
                "URL rejected | reason=private_address host=%s address=%s class=%s resolved=%d",
                candidate.host, first.address, first.reason.value, len(resolved.verdicts),
            )
            raise PrivateAddressBlocked(candidate.host, first.address, first.reason.value)

        logger.debug("URL allowed | host=%s addresses=%s", candidate.host, ",".join(resolved.addresses))
        return ValidatedURL(url=candidate, resolved=resolved)

    async def is_safe(self, url: str) -> bool:
        """Return True if ``url`` passes validation, False otherwise."""
        try:
            await self.validate(url)
        except URLRejected:
            return False
        return True
