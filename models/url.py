"""URL and address models produced by the SSRF guard.

These values are ephemeral: they are built fresh for every validation call
and never cached, because a hostname's resolution can change between two
calls (DNS rebinding). Validate immediately before use, not once upfront.
"""

from dataclasses import dataclass
from enum import Enum
from urllib.parse import urlsplit

from errors import InvalidURL


class BlockReason(str, Enum):
    """Why an address is not allowed as a fetch target."""

    LOOPBACK = "loopback"
    PRIVATE = "private"
    LINK_LOCAL = "link_local"
    THIS_NETWORK = "this_network"
    MULTICAST = "multicast"
    RESERVED = "reserved"
    UNIQUE_LOCAL = "unique_local"
    UNSPECIFIED = "unspecified"
    INVALID = "invalid"


@dataclass(frozen=True)
class CandidateURL:
    """A parsed, not yet trusted URL.

    Attributes:
        raw: The URL string as given
        scheme: Lower-cased scheme ('' if missing)
        host: Lower-cased hostname without brackets
        port: Explicit port, or None
        path: Path component ('/' if empty)
    """

    raw: str
    scheme: str
    host: str
    port: int | None
    path: str

    @classmethod
    def parse(cls, raw: str) -> "CandidateURL":
        """Parse a URL string.

        Raises:
            InvalidURL: Empty input, missing host, or malformed port
        """
        text = (raw or "").strip()
        if not text:
            raise InvalidURL("empty URL")
        try:
            parts = urlsplit(text)
            port = parts.port
        except ValueError as e:
            raise InvalidURL(f"cannot parse '{text}': {e}")
        host = (parts.hostname or "").strip().lower()
        if parts.scheme.lower() in ("http", "https") and not host:
            raise InvalidURL(f"missing host in '{text}'")
        return cls(
            raw=text,
            scheme=parts.scheme.lower(),
            host=host,
            port=port,
            path=parts.path or "/",
        )

    @property
    def origin(self) -> str:
        """scheme://host[:port], with IPv6 hosts bracketed."""
        host = f"[{self.host}]" if ":" in self.host else self.host
        if self.port is not None:
            return f"{self.scheme}://{host}:{self.port}"
        return f"{self.scheme}://{host}"

    @property
    def effective_port(self) -> int:
        """Explicit port, or the scheme default."""
        if self.port is not None:
            return self.port
        return 443 if self.scheme == "https" else 80

    def __str__(self) -> str:
        return self.raw


@dataclass(frozen=True)
class AddressVerdict:
    """Classification of a single IP address.

    Attributes:
        address: Canonical textual form (IPv4-mapped forms are unwrapped)
        public: True if the address may be fetched
        reason: Why the address is blocked (None when public)
    """

    address: str
    public: bool
    reason: BlockReason | None = None

    @classmethod
    def allow(cls, address: str) -> "AddressVerdict":
        return cls(address=address, public=True)

    @classmethod
    def block(cls, address: str, reason: BlockReason) -> "AddressVerdict":
        return cls(address=address, public=False, reason=reason)

    def __str__(self) -> str:
        return self.address if self.public else f"{self.address} (blocked: {self.reason.value})"


@dataclass(frozen=True)
class ResolvedAddress:
    """Every address a hostname resolved to, each classified."""

    host: str
    verdicts: tuple[AddressVerdict, ...]

    @property
    def blocked(self) -> list[AddressVerdict]:
        return [v for v in self.verdicts if not v.public]

    @property
    def addresses(self) -> list[str]:
        return [v.address for v in self.verdicts]


@dataclass(frozen=True)
class ValidatedURL:
    """A URL that passed the guard, with the address set it was checked against."""

    url: CandidateURL
    resolved: ResolvedAddress

    def __str__(self) -> str:
        return self.url.raw
