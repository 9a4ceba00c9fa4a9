import io
from dataclasses import dataclass, field
from http.client import HTTPMessage
from typing import Dict, Optional, Union
from urllib.parse import urlparse

from .exceptions import InvalidRequestError

SUPPORTED_SCHEMES = ('http', 'https')

# Request/Response Models
@dataclass
class Request:
    """Represents an HTTP request."""
    method: str
    url: str
    headers: Dict[str, str] = field(default_factory=dict)
    body: Optional[bytes] = None

    @property
    def parsed_url(self):
        return urlparse(self.url)

    @property
    def path(self) -> str:
        """Path plus query string, as sent on the request line."""
        parsed = self.parsed_url
        path = parsed.path or '/'
        if parsed.query:
            path += '?' + parsed.query
        return path


def new_request(method: str, url: str, body: Union[bytes, str, io.IOBase, None] = None,
                headers: Optional[Dict[str, str]] = None) -> Request:
    """Build a Request, rejecting URLs the transport cannot reach."""
    if not method or not method.isalpha():
        raise InvalidRequestError(f"invalid method {method!r}")

    try:
        parsed = urlparse(url)
        parsed.port  # raises ValueError on a non-numeric port
    except ValueError as e:
        raise InvalidRequestError(f"invalid URL {url!r}: {e}") from e

    if parsed.scheme not in SUPPORTED_SCHEMES:
        raise InvalidRequestError(f"unsupported protocol scheme {parsed.scheme!r} in {url!r}")
    if not parsed.hostname:
        raise InvalidRequestError(f"no host in request URL {url!r}")

    if isinstance(body, str):
        body = body.encode('utf-8')
    elif body is not None and hasattr(body, 'read'):
        body = body.read()
        if isinstance(body, str):
            body = body.encode('utf-8')

    return Request(method=method.upper(), url=url, headers=dict(headers or {}), body=body)


@dataclass
class Response:
    """A response whose body has already been read into memory.

    ``body`` is an in-memory stream standing in for the network stream, so
    nothing here needs closing to release a connection.
    """
    status_code: int
    reason: str
    headers: HTTPMessage
    content: bytes = field(repr=False)
    url: str = ''
    request: Optional[Request] = None
    version: str = 'HTTP/1.1'
    body: io.BytesIO = field(init=False, repr=False)
    content_length: int = field(init=False)

    def __post_init__(self):
        self.body = io.BytesIO(self.content)
        self.content_length = len(self.content)

    @property
    def ok(self) -> bool:
        return 200 <= self.status_code < 300

    def bytes(self) -> bytes:
        """Return the whole body; safe to call any number of times."""
        self.body.close()
        return self.content

    def text(self) -> str:
        charset = self.headers.get_content_charset() or 'utf-8'
        try:
            return self.content.decode(charset)
        except LookupError:
            return self.content.decode('utf-8', errors='replace')

    @classmethod
    def buffered(cls, raw, content: bytes, request: Request, url: str) -> 'Response':
        """Wrap a drained http.client response and its body bytes."""
        return cls(
            status_code=raw.status,
            reason=raw.reason,
            headers=raw.msg,
            content=content,
            url=url,
            request=request,
            version='HTTP/1.0' if raw.version == 10 else 'HTTP/1.1',
        )
