"""
Buffered request execution.

Every function here returns a Response whose body has been read completely
and whose connection is already closed, so callers never have to close
anything. Only use it for responses known to be reasonably small: the whole
body is held in memory.
"""

import http.client
import logging
import time
from typing import Iterable, Mapping, Optional, Tuple, Union
from urllib.parse import urlencode

from . import client as _client
from .client import Client
from .models import Request, Response, new_request
from .transport import DialedHTTPResponse

logger = logging.getLogger(__name__)

CHUNK_SIZE = 8192
FORM_CONTENT_TYPE = 'application/x-www-form-urlencoded'

FormData = Union[Mapping[str, Union[str, Iterable[str]]], Iterable[Tuple[str, str]]]


def do(client: Optional[Client], request: Request) -> Response:
    """Send ``request`` and return it with the body fully buffered.

    With ``client`` None a generic default client is used. Errors from
    connecting, sending or reading are raised as they are; a body that ends
    early raises http.client.IncompleteRead and nothing is returned.
    """
    if client is None:
        client = _client.DEFAULT_CLIENT

    start_time = time.monotonic()
    deadline = client.deadline()

    try:
        with client.send(request, deadline) as (final_request, raw):
            content = _drain(client, request, raw, deadline)
            response = Response.buffered(raw, content, final_request, final_request.url)
    except Exception as e:
        logger.debug(f"Request failed: {request.method} {request.url} - {e!r}")
        raise

    logger.debug(f"Response: {response.status_code} {request.method} {request.url} "
                 f"({response.content_length} bytes, {time.monotonic() - start_time:.3f}s)")
    return response


def _drain(client: Client, request: Request, raw: DialedHTTPResponse,
           deadline: Optional[float]) -> bytes:
    """Read the whole body of ``raw`` or raise.

    read1() does at most one recv, and the socket timeout is narrowed to what
    is left of the deadline before each one, so a trickling server cannot
    hold the read past the client's timeout.
    """
    buffer = bytearray()
    while True:
        if deadline is not None:
            raw.settimeout(client.remaining(request, deadline))
        chunk = raw.read1(CHUNK_SIZE)
        if not chunk:
            break
        buffer += chunk

    # a short body reads as EOF; a non-zero length left means the peer hung up early
    if raw.length:
        raise http.client.IncompleteRead(bytes(buffer), raw.length)
    return bytes(buffer)


def get(client: Optional[Client], url: str) -> Response:
    return do(client, new_request('GET', url))


def head(client: Optional[Client], url: str) -> Response:
    return do(client, new_request('HEAD', url))


def post(client: Optional[Client], url: str, content_type: str, body=None) -> Response:
    """POST ``body`` with the given Content-Type."""
    request = new_request('POST', url, body)
    request.headers['Content-Type'] = content_type
    return do(client, request)


def post_form(client: Optional[Client], url: str, data: FormData) -> Response:
    """POST ``data`` URL-encoded, keys sorted, as a form."""
    return post(client, url, FORM_CONTENT_TYPE, encode_form(data))


def encode_form(data: FormData) -> str:
    if isinstance(data, Mapping):
        pairs = []
        for key in sorted(data):
            value = data[key]
            if isinstance(value, (str, bytes)):
                pairs.append((key, value))
            else:
                pairs.extend((key, v) for v in value)
    else:
        pairs = sorted(data, key=lambda pair: pair[0])
    return urlencode(pairs)
