"""Header rewriting for forwarded requests and their responses.

Headers are handled as raw byte pairs. Field values may carry any octet,
so nothing here assumes they are ASCII.
"""

from collections.abc import Iterable

import httpx

from core.allowlist import AllowlistRule

PROXY_RESPONSE_HEADER = "X-Semgrep-Private-Link"
ERROR_RESPONSE_HEADER = "X-Semgrep-Private-Link-Error"

# RFC 7230 §6.1, never forwarded by an intermediary
HOP_BY_HOP_HEADERS = frozenset(
    {
        b"connection",
        b"keep-alive",
        b"proxy-authenticate",
        b"proxy-authorization",
        b"proxy-connection",
        b"te",
        b"trailer",
        b"transfer-encoding",
        b"upgrade",
    }
)

# Lossless for every octet a header can carry
HEADER_ENCODING = "latin-1"

RawHeaders = Iterable[tuple[bytes | str, bytes | str]]


class HeaderBuilder:
    """Apply an allowlist rule's header policy in both directions."""

    def build_request_headers(
        self,
        headers: RawHeaders,
        rule: AllowlistRule,
        host: str,
        client_host: str | None = None,
    ) -> httpx.Headers:
        """Pass inbound headers through, then let the rule win."""
        upstream = httpx.Headers(_strip_hop_by_hop(headers), encoding=HEADER_ENCODING)
        upstream["Host"] = host

        if client_host:
            prior = upstream.get("X-Forwarded-For")
            upstream["X-Forwarded-For"] = f"{prior}, {client_host}" if prior else client_host

        for name, value in rule.set_request_headers.items():
            upstream[name] = value
        return upstream

    def build_response_headers(
        self,
        headers: RawHeaders,
        rule: AllowlistRule,
    ) -> httpx.Headers:
        """Mark the response as proxied and drop the rule's removed headers."""
        response = httpx.Headers(_strip_hop_by_hop(headers), encoding=HEADER_ENCODING)
        response[PROXY_RESPONSE_HEADER] = "1"
        for name in rule.remove_response_headers:
            response.pop(name, None)
        return response


def _as_bytes(value: bytes | str) -> bytes:
    return value if isinstance(value, bytes) else value.encode(HEADER_ENCODING)


def _strip_hop_by_hop(headers: RawHeaders) -> list[tuple[bytes, bytes]]:
    items = [(_as_bytes(name), _as_bytes(value)) for name, value in headers]
    # Connection may name extra per-hop headers
    listed = {
        token.strip().lower()
        for name, value in items
        if name.lower() == b"connection"
        for token in value.split(b",")
    }
    drop = HOP_BY_HOP_HEADERS | listed
    return [(name, value) for name, value in items if name.lower() not in drop]
