import http.client
import logging
import socket
import ssl
from contextlib import contextmanager
from typing import Callable, Iterator, Optional

from .exceptions import InvalidRequestError
from .models import SUPPORTED_SCHEMES, Request

logger = logging.getLogger(__name__)

DialFunc = Callable[..., socket.socket]


class DialedHTTPResponse(http.client.HTTPResponse):
    """HTTPResponse that keeps hold of its socket so read timeouts can be tightened."""

    def __init__(self, sock, *args, **kwargs):
        super().__init__(sock, *args, **kwargs)
        self.socket = sock

    def settimeout(self, timeout: Optional[float]):
        # conn.close() leaves the socket open while fp refers to it; once fp is gone so is the socket
        if self.fp is not None:
            self.socket.settimeout(timeout)


# Connections that obtain their socket from a dial function
class DialedHTTPConnection(http.client.HTTPConnection):
    """HTTPConnection whose TCP socket comes from ``dial`` instead of a direct connect."""
    response_class = DialedHTTPResponse

    def __init__(self, host: str, port: Optional[int] = None, *, dial: DialFunc,
                 timeout: Optional[float] = None):
        super().__init__(host, port, timeout=timeout)
        self._dial = dial

    def connect(self):
        self.sock = self._dial((self.host, self.port), self.timeout)
        try:
            self.sock.setsockopt(socket.IPPROTO_TCP, socket.TCP_NODELAY, 1)
        except OSError:
            pass  # not every socket family supports it


class DialedHTTPSConnection(DialedHTTPConnection):
    default_port = http.client.HTTPS_PORT

    def __init__(self, host: str, port: Optional[int] = None, *, dial: DialFunc,
                 timeout: Optional[float] = None, context: Optional[ssl.SSLContext] = None):
        super().__init__(host, port, dial=dial, timeout=timeout)
        self._ssl_context = context or ssl.create_default_context()

    def connect(self):
        super().connect()
        # SNI and certificate checks use the URL host even when the dial went elsewhere
        self.sock = self._ssl_context.wrap_socket(self.sock, server_hostname=self.host)


class Transport:
    """Sends a request over a freshly dialed connection.

    Connections are never pooled or reused: every round trip dials again,
    which also means every request sees a fresh DNS answer.
    """

    def __init__(self, dial: DialFunc, ssl_context: Optional[ssl.SSLContext] = None,
                 disable_keep_alives: bool = True):
        self.dial = dial
        self.ssl_context = ssl_context
        self.disable_keep_alives = disable_keep_alives

    def _create_connection(self, request: Request, timeout: Optional[float]) -> http.client.HTTPConnection:
        """Create a new connection for the request's URL."""
        parsed_url = request.parsed_url
        if parsed_url.scheme not in SUPPORTED_SCHEMES:
            raise InvalidRequestError(f"unsupported protocol scheme {parsed_url.scheme!r} in {request.url!r}")
        if parsed_url.scheme == 'https':
            return DialedHTTPSConnection(
                parsed_url.hostname,
                parsed_url.port,
                dial=self.dial,
                timeout=timeout,
                context=self.ssl_context
            )
        return DialedHTTPConnection(
            parsed_url.hostname,
            parsed_url.port,
            dial=self.dial,
            timeout=timeout
        )

    @contextmanager
    def round_trip(self, request: Request, timeout: Optional[float] = None) -> Iterator[http.client.HTTPResponse]:
        """Send ``request`` and yield the response with its body still unread.

        Leaving the block closes the response and the connection, whether the
        body was read or not.
        """
        headers = dict(request.headers)
        if self.disable_keep_alives:
            headers = {k: v for k, v in headers.items() if k.lower() != 'connection'}
            headers['Connection'] = 'close'

        conn = self._create_connection(request, timeout)
        response = None
        try:
            conn.request(request.method, request.path, body=request.body, headers=headers)
            response = conn.getresponse()
            logger.debug(f"{request.method} {request.url} -> {response.status}")
            yield response
        finally:
            if response is not None:
                response.close()
            conn.close()
