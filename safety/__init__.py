"""Network-boundary safety for outbound fetches.

classify_address:
    Pure IP classification (loopback, private, link-local, multicast,
    reserved; IPv4-mapped and shorthand forms normalized first).

SSRFGuard:
    Parse, scheme allow-list, DNS resolution, classification of every
    resolved address. Called before every fetch.

Example:
    >>> from safety import SSRFGuard
    >>> await SSRFGuard().validate("http://127.1/")  # raises PrivateAddressBlocked
"""

from safety.ip_classifier import classify_address, is_public_address, parse_ip_literal
from safety.ssrf_guard import ALLOWED_SCHEMES, Resolver, SSRFGuard, resolve_host

__all__ = [
    "classify_address",
    "is_public_address",
    "parse_ip_literal",
    "ALLOWED_SCHEMES",
    "Resolver",
    "SSRFGuard",
    "resolve_host",
]
