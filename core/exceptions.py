"""Custom exception hierarchy for the network broker."""


class ProxyError(Exception):
    """Base exception for all broker errors."""


class ConfigurationError(ProxyError):
    """Raised when configuration is missing or invalid.

    Always fatal at startup; never raised while serving a request.
    """


class DestinationParseError(ProxyError):
    """Raised when the proxied path does not hold an absolute URL."""


class PolicyRejection(ProxyError):
    """Raised when no allowlist rule authorizes the method and URL.

    Unknown destinations and disallowed methods raise the same error so
    callers cannot probe which destinations exist.
    """

    def __init__(self, method: str, url: str) -> None:
        super().__init__("url is not in allowlist")
        self.method = method
        self.url = url


class UpstreamError(ProxyError):
    """Raised when the destination cannot be reached.

    Attributes:
        message: Error message
        destination: Destination URL the request was forwarded to
        status_code: HTTP status code reported to the caller
    """

    status_code = 502

    def __init__(self, message: str, destination: str | None = None) -> None:
        super().__init__(message)
        self.destination = destination


class UpstreamTimeoutError(UpstreamError):
    """Raised when the destination does not answer in time."""

    status_code = 504


class UpstreamConnectionError(UpstreamError):
    """Raised when unable to connect to, or talk to, the destination."""
