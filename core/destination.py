"""Destination URL extraction from the raw proxy path."""

from dataclasses import dataclass
from urllib.parse import SplitResult, urlsplit

from core.exceptions import DestinationParseError

PROXY_PREFIX = "/proxy/"


@dataclass(frozen=True)
class DestinationURL:
    """Absolute destination URL, kept exactly as it arrived on the wire."""

    raw: str
    parts: SplitResult

    @property
    def scheme(self) -> str:
        return self.parts.scheme

    @property
    def host(self) -> str:
        return self.parts.hostname or ""

    @property
    def netloc(self) -> str:
        """Host and port, without any userinfo; the outbound Host header."""
        return self.parts.netloc.rpartition("@")[2]

    def __str__(self) -> str:
        return self.raw


def raw_request_target(scope: dict) -> str:
    """Rebuild the undecoded path and query of an ASGI request."""
    raw_path = scope.get("raw_path")
    if raw_path is None:
        path = scope["path"]
    elif b"?" in raw_path:
        # Left on raw_path by the server, including a bare trailing "?"
        return raw_path.decode("latin-1")
    else:
        path = raw_path.decode("latin-1")
    query = scope.get("query_string", b"").decode("latin-1")
    if query:
        return f"{path}?{query}"
    return path


def extract_destination(raw_path: str, prefix: str = PROXY_PREFIX) -> DestinationURL:
    """Take the destination URL that follows ``prefix``, byte for byte.

    Nothing is percent-decoded or normalized, so the string that is
    matched against the allowlist is the string that gets forwarded.
    """
    if not raw_path.startswith(prefix):
        raise DestinationParseError(f"path must start with {prefix}")

    raw = raw_path[len(prefix):]
    try:
        parts = urlsplit(raw)
        # port is parsed lazily and raises on garbage
        parts.port
    except ValueError as e:
        raise DestinationParseError(f"invalid destination url {raw!r}: {e}") from e

    if not parts.scheme:
        raise DestinationParseError(f"destination url {raw!r} has no scheme")
    if not parts.hostname:
        raise DestinationParseError(f"destination url {raw!r} has no host")

    return DestinationURL(raw=raw, parts=parts)
