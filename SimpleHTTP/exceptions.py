from typing import List, Optional

# Exceptions
class SimpleHTTPError(Exception):
    """Base exception for errors raised by this package itself.

    Errors coming from socket, ssl, http.client or dnspython are not wrapped
    and reach the caller as they were raised.
    """
    pass

class InvalidRequestError(SimpleHTTPError, ValueError):
    """Raised when a request cannot be built from the given method/URL/body."""
    pass

class InvalidDNSAddressError(SimpleHTTPError, ValueError):
    """Raised when a DNS server address is not a usable host:port."""
    pass

class NoAddressesError(SimpleHTTPError, LookupError):
    """Raised when a resolution succeeded but returned no address to dial."""

    def __init__(self, domain: str, dns_addr: Optional[str] = None,
                 addresses: Optional[List[str]] = None):
        server = dns_addr or "system resolver"
        super().__init__(f"no addresses resolved for {domain!r} via {server}")
        self.domain = domain
        self.dns_addr = dns_addr
        self.addresses = addresses or []

class LookupTimeoutError(SimpleHTTPError, TimeoutError):
    """Raised when the system resolver does not answer within the lookup timeout."""

    def __init__(self, domain: str, timeout: float):
        super().__init__(f"lookup of {domain!r} timed out after {timeout}s")
        self.domain = domain
        self.timeout = timeout

class RequestTimeoutError(SimpleHTTPError, TimeoutError):
    """Raised when a request exceeds the client's overall timeout."""

    def __init__(self, method: str, url: str, timeout: Optional[float]):
        super().__init__(f"{method} {url}: request timed out after {timeout}s")
        self.method = method
        self.url = url
        self.timeout = timeout

class TooManyRedirectsError(SimpleHTTPError):
    """Raised when a request is redirected more times than the client allows."""

    def __init__(self, url: str, max_redirects: int):
        super().__init__(f"stopped after {max_redirects} redirects ({url})")
        self.url = url
        self.max_redirects = max_redirects
