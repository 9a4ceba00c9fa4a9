"""SimpleHTTP - buffered HTTP requests with optional custom DNS resolution."""

# Import key classes for easier access
from .client import (
    Client,
    new_client,
    new_client_with_dns,
    set_custom_dns,
    default_transport
)
from .config import ClientConfig
from .dialer import Dialer, ResolverDialer, SingleDomainDialer, FirstAddressPolicy
from .exceptions import (
    SimpleHTTPError,
    InvalidRequestError,
    InvalidDNSAddressError,
    NoAddressesError,
    LookupTimeoutError,
    RequestTimeoutError,
    TooManyRedirectsError
)
from .executor import do, get, head, post, post_form
from .models import Request, Response, new_request
from .resolver import resolve_ip
from .transport import Transport

__version__ = "0.1.0"
