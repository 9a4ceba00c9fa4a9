import logging
import socket
import time
from typing import List, Optional, Tuple

from .exceptions import NoAddressesError
from .resolver import LOOKUP_TIMEOUT, resolve_ip

logger = logging.getLogger(__name__)

Address = Tuple[str, int]

DIAL_TIMEOUT = 5.0
KEEP_ALIVE = 30.0
HTTP_PORT = 80


# Address selection
class FirstAddressPolicy:
    """Always dial the first resolved address, no fallback to the others."""

    def select(self, domain: str, addresses: List[str], dns_addr: Optional[str] = None) -> str:
        if not addresses:
            raise NoAddressesError(domain, dns_addr)
        return addresses[0]


# Dialers
class Dialer:
    """Opens TCP connections using the system resolver.

    Instances are callable as ``dial(address, timeout)`` and return a connected
    socket, the same shape as ``socket.create_connection``.
    """

    def __init__(self, timeout: float = DIAL_TIMEOUT, keep_alive: Optional[float] = KEEP_ALIVE):
        self.timeout = timeout
        self.keep_alive = keep_alive

    def __call__(self, address: Address, timeout: Optional[float] = None) -> socket.socket:
        return self.dial(address, timeout)

    def dial(self, address: Address, timeout: Optional[float] = None) -> socket.socket:
        return self._connect(address, timeout)

    def _connect(self, address: Address, timeout: Optional[float]) -> socket.socket:
        connect_timeout = self.timeout
        if timeout is not None:
            connect_timeout = min(connect_timeout, timeout)

        logger.debug(f"Dialing {address[0]}:{address[1]} (timeout {connect_timeout}s)")
        sock = socket.create_connection(address, timeout=connect_timeout)
        try:
            self._set_keep_alive(sock)
        except OSError:
            sock.close()
            raise
        return sock

    def _set_keep_alive(self, sock: socket.socket):
        if not self.keep_alive:
            return
        interval = max(1, int(self.keep_alive))
        sock.setsockopt(socket.SOL_SOCKET, socket.SO_KEEPALIVE, 1)
        if hasattr(socket, 'TCP_KEEPIDLE'):
            sock.setsockopt(socket.IPPROTO_TCP, socket.TCP_KEEPIDLE, interval)
        elif hasattr(socket, 'TCP_KEEPALIVE'):  # macOS
            sock.setsockopt(socket.IPPROTO_TCP, socket.TCP_KEEPALIVE, interval)
        if hasattr(socket, 'TCP_KEEPINTVL'):
            sock.setsockopt(socket.IPPROTO_TCP, socket.TCP_KEEPINTVL, interval)


class ResolverDialer(Dialer):
    """Resolves every requested host through the given DNS server before connecting."""

    def __init__(self, dns_addr: str, timeout: float = DIAL_TIMEOUT,
                 keep_alive: Optional[float] = KEEP_ALIVE,
                 lookup_timeout: float = LOOKUP_TIMEOUT,
                 policy: Optional[FirstAddressPolicy] = None):
        super().__init__(timeout, keep_alive)
        self.dns_addr = dns_addr
        self.lookup_timeout = lookup_timeout
        self.policy = policy or FirstAddressPolicy()

    def dial(self, address: Address, timeout: Optional[float] = None) -> socket.socket:
        host, port = address
        ip, timeout = self._resolve(host, timeout)
        return self._connect((ip, port), timeout)

    def _resolve(self, domain: str, timeout: Optional[float]) -> Tuple[str, Optional[float]]:
        """Pick the address to dial for ``domain``, and return it with the time left to connect.

        ``timeout`` is the caller's whole budget for the dial, lookup included.
        """
        started = time.monotonic()
        lookup_timeout = self.lookup_timeout
        if timeout is not None:
            lookup_timeout = min(lookup_timeout, timeout)

        addrs = resolve_ip(self.dns_addr, domain, lookup_timeout)
        ip = self.policy.select(domain, addrs, self.dns_addr)
        if timeout is None:
            return ip, None

        left = timeout - (time.monotonic() - started)
        if left <= 0:
            raise socket.timeout(f"dial {domain}: no time left to connect after resolving")
        return ip, left


class SingleDomainDialer(ResolverDialer):
    """Connects to one fixed domain whatever address the transport asks for.

    The domain is re-resolved through ``dns_addr`` on every dial and the
    connection always goes to ``port`` (80 unless told otherwise).
    """

    def __init__(self, dns_addr: str, domain: str, port: int = HTTP_PORT,
                 timeout: float = DIAL_TIMEOUT, keep_alive: Optional[float] = KEEP_ALIVE,
                 lookup_timeout: float = LOOKUP_TIMEOUT,
                 policy: Optional[FirstAddressPolicy] = None):
        super().__init__(dns_addr, timeout, keep_alive, lookup_timeout, policy)
        self.domain = domain
        self.port = port

    def dial(self, address: Address, timeout: Optional[float] = None) -> socket.socket:
        ip, timeout = self._resolve(self.domain, timeout)
        if address[0] != self.domain:
            logger.debug(f"Dial for {address[0]}:{address[1]} redirected to {self.domain} ({ip}:{self.port})")
        return self._connect((ip, self.port), timeout)
