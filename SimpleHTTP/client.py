import http.client
import logging
import time
from contextlib import contextmanager
from typing import Iterator, Optional, Tuple
from urllib.parse import urljoin, urlparse

from .dialer import HTTP_PORT, Dialer, ResolverDialer, SingleDomainDialer
from .exceptions import RequestTimeoutError, TooManyRedirectsError
from .models import Request, new_request
from .transport import Transport

logger = logging.getLogger(__name__)

CLIENT_TIMEOUT = 5.0
MAX_REDIRECTS = 10

REDIRECT_CODES = (301, 302, 303, 307, 308)
# Headers that must not follow a redirect to another host
SENSITIVE_HEADERS = ('authorization', 'www-authenticate', 'cookie', 'cookie2')


class Client:
    """An HTTP client: a transport plus an overall timeout.

    Holds no per-request state, so one instance can be shared between threads.
    """

    def __init__(self, transport: Transport, timeout: Optional[float] = CLIENT_TIMEOUT,
                 max_redirects: int = MAX_REDIRECTS):
        self.transport = transport
        self.timeout = timeout
        self.max_redirects = max_redirects

    def deadline(self) -> Optional[float]:
        """Monotonic time by which a request started now must be finished."""
        if self.timeout is None:
            return None
        return time.monotonic() + self.timeout

    def remaining(self, request: Request, deadline: Optional[float]) -> Optional[float]:
        """Seconds left before ``deadline``; raises once it has passed."""
        if deadline is None:
            return None
        left = deadline - time.monotonic()
        if left <= 0:
            raise RequestTimeoutError(request.method, request.url, self.timeout)
        return left

    @contextmanager
    def send(self, request: Request, deadline: Optional[float] = None) -> Iterator[Tuple[Request, http.client.HTTPResponse]]:
        """Send ``request``, following redirects.

        Yields the last request sent together with its response, body unread.
        """
        if deadline is None:
            deadline = self.deadline()

        for _ in range(self.max_redirects + 1):
            timeout = self.remaining(request, deadline)
            with self.transport.round_trip(request, timeout) as response:
                next_request = self._redirect_request(request, response)
                if next_request is None:
                    yield request, response
                    return
            logger.debug(f"Redirect {response.status}: {request.url} -> {next_request.url}")
            request = next_request

        raise TooManyRedirectsError(request.url, self.max_redirects)

    def _redirect_request(self, request: Request, response: http.client.HTTPResponse) -> Optional[Request]:
        if response.status not in REDIRECT_CODES:
            return None
        location = response.getheader('Location')
        if not location:
            return None

        url = urljoin(request.url, location)
        method = request.method
        body = request.body
        headers = dict(request.headers)

        if response.status in (301, 302, 303) and method != 'HEAD':
            method, body = 'GET', None
            headers = {k: v for k, v in headers.items()
                       if k.lower() not in ('content-type', 'content-length')}

        if urlparse(url).hostname != request.parsed_url.hostname:
            headers = {k: v for k, v in headers.items() if k.lower() not in SENSITIVE_HEADERS}

        # rejects Location targets the transport cannot reach (ftp://, no host)
        return new_request(method, url, body, headers)


# Process-wide default transport
_dial = Dialer()
_default_transport = Transport(_dial)


def set_custom_dns(dns_addr: str):
    """Replace the process-wide default dialer and transport.

    An empty address goes back to the system resolver. The swap is a plain
    rebinding: requests already in flight are unaffected, clients built
    afterwards by new_client() pick it up, and the last call wins.
    """
    global _dial, _default_transport

    if not dns_addr:
        _dial = Dialer()
        logger.debug("Default transport reset to system resolver")
    else:
        _dial = ResolverDialer(dns_addr)
        logger.debug(f"Default transport now resolves through {dns_addr}")

    _default_transport = Transport(_dial)


def default_transport() -> Transport:
    return _default_transport


def new_client() -> Client:
    """Create a client over the current default transport."""
    return Client(_default_transport, timeout=CLIENT_TIMEOUT)


def new_client_with_dns(dns_addr: str, domain: str, port: int = HTTP_PORT) -> Client:
    """Create a client that always connects to ``domain`` as resolved by ``dns_addr``."""
    dialer = SingleDomainDialer(dns_addr, domain, port=port)
    return Client(Transport(dialer), timeout=CLIENT_TIMEOUT)


# Used when a request is executed without a client
DEFAULT_CLIENT = Client(Transport(Dialer()), timeout=None)
