"""IP address classification for outbound fetch targets.

Decides whether a resolved address is an ordinary public internet endpoint
or belongs to a loopback, private, link-local, multicast or reserved block.
This is a pure function: no DNS, no I/O.

Normalization before classification:
    - Brackets and IPv6 zone ids are stripped ('[fe80::1%eth0]')
    - Shorthand IPv4 literals are expanded ('127.1', '2130706433', '0x7f.1')
    - IPv4-mapped IPv6 ('::ffff:127.0.0.1', '::ffff:7f00:1') and the
      deprecated IPv4-compatible form ('::127.0.0.1') are unwrapped and
      classified with the IPv4 table
    - NAT64 ('64:ff9b::7f00:1') and 6to4 ('2002:7f00:1::') addresses are
      unwrapped the same way, since gateways forward them to the embedded
      IPv4 destination

A naive string-prefix check misses every one of these forms, which is why
the address is always parsed to an integer value first.
"""

import ipaddress
import re
import socket

from models.url import AddressVerdict, BlockReason

IPAddress = ipaddress.IPv4Address | ipaddress.IPv6Address

_BLOCKED_IPV4: list[tuple[ipaddress.IPv4Network, BlockReason]] = [
    (ipaddress.IPv4Network("127.0.0.0/8"), BlockReason.LOOPBACK),
    (ipaddress.IPv4Network("10.0.0.0/8"), BlockReason.PRIVATE),
    (ipaddress.IPv4Network("172.16.0.0/12"), BlockReason.PRIVATE),
    (ipaddress.IPv4Network("192.168.0.0/16"), BlockReason.PRIVATE),
    (ipaddress.IPv4Network("169.254.0.0/16"), BlockReason.LINK_LOCAL),
    (ipaddress.IPv4Network("0.0.0.0/8"), BlockReason.THIS_NETWORK),
    (ipaddress.IPv4Network("224.0.0.0/4"), BlockReason.MULTICAST),
    (ipaddress.IPv4Network("240.0.0.0/4"), BlockReason.RESERVED),
]

_BLOCKED_IPV6: list[tuple[ipaddress.IPv6Network, BlockReason]] = [
    (ipaddress.IPv6Network("::1/128"), BlockReason.LOOPBACK),
    (ipaddress.IPv6Network("::/128"), BlockReason.UNSPECIFIED),
    (ipaddress.IPv6Network("fc00::/7"), BlockReason.UNIQUE_LOCAL),
    (ipaddress.IPv6Network("fe80::/10"), BlockReason.LINK_LOCAL),
    (ipaddress.IPv6Network("ff00::/8"), BlockReason.MULTICAST),
]

# ::a.b.c.d (IPv4-compatible, deprecated) lives in ::/96 next to :: and ::1
_IPV4_COMPATIBLE = ipaddress.IPv6Network("::/96")

# NAT64 well-known prefix: the low 32 bits are the IPv4 destination
_NAT64 = ipaddress.IPv6Network("64:ff9b::/96")

# Dotted numbers in decimal, octal or hex with one to four parts
_SHORTHAND_IPV4 = re.compile(r"^(0x[0-9a-f]*|\d+)(\.(0x[0-9a-f]*|\d+)){0,3}$", re.IGNORECASE)


def parse_ip_literal(value: str) -> IPAddress | None:
    """Parse a host string as an IP address, if it is one.

    Accepts canonical IPv4/IPv6, bracketed IPv6, zone ids, and the shorthand
    IPv4 forms that inet_aton(3) accepts ('127.1', '10.1.1', '2130706433',
    '0x7f.0.0.1', '0177.0.0.1').

    Args:
        value: Host or address string

    Returns:
        Parsed address, or None if the value is not an IP literal
    """
    text = value.strip()
    if text.startswith("[") and text.endswith("]"):
        text = text[1:-1]
    if "%" in text:
        text = text.split("%", 1)[0]
    if not text:
        return None

    try:
        return ipaddress.ip_address(text)
    except ValueError:
        pass

    if _SHORTHAND_IPV4.match(text):
        try:
            return ipaddress.IPv4Address(socket.inet_aton(text))
        except OSError:
            return None
    return None


def _unwrap_ipv4(ip: IPAddress) -> IPAddress:
    """Return the IPv4 address embedded in mapped, compatible, NAT64 or 6to4 forms."""
    if isinstance(ip, ipaddress.IPv4Address):
        return ip
    if ip.ipv4_mapped is not None:
        return ip.ipv4_mapped
    if ip in _IPV4_COMPATIBLE and int(ip) > 1:
        return ipaddress.IPv4Address(int(ip) & 0xFFFFFFFF)
    if ip in _NAT64:
        return ipaddress.IPv4Address(int(ip) & 0xFFFFFFFF)
    if ip.sixtofour is not None:
        return ip.sixtofour
    return ip


def classify_address(address: str | IPAddress) -> AddressVerdict:
    """Classify an address as public or blocked.

    Args:
        address: Resolved address (string or ipaddress object)

    Returns:
        AddressVerdict; strings that are not addresses at all are blocked
        with reason INVALID (fail closed)

    Example:
        >>> classify_address("::ffff:7f00:1").reason
        <BlockReason.LOOPBACK: 'loopback'>
    """
    if isinstance(address, (ipaddress.IPv4Address, ipaddress.IPv6Address)):
        ip = address
    else:
        ip = parse_ip_literal(str(address))
        if ip is None:
            return AddressVerdict.block(str(address), BlockReason.INVALID)

    ip = _unwrap_ipv4(ip)
    table = _BLOCKED_IPV4 if isinstance(ip, ipaddress.IPv4Address) else _BLOCKED_IPV6
    for network, reason in table:
        if ip in network:
            return AddressVerdict.block(str(ip), reason)
    return AddressVerdict.allow(str(ip))


def is_public_address(address: str | IPAddress) -> bool:
    """True if ``address`` is a public, fetchable address."""
    return classify_address(address).public
