"""
Hostname resolution, either through the system resolver or by querying one
DNS server directly over UDP.
"""

import ipaddress
import logging
import queue
import socket
import threading
import time
from typing import List, Tuple

import dns.exception
import dns.message
import dns.query
import dns.rcode
import dns.rdatatype

from .exceptions import InvalidDNSAddressError, LookupTimeoutError, NoAddressesError

logger = logging.getLogger(__name__)

LOOKUP_TIMEOUT = 5.0
DNS_PORT = 53


def is_ip_literal(value: str) -> bool:
    try:
        ipaddress.ip_address(value)
    except ValueError:
        return False
    return True


def split_dns_addr(dns_addr: str) -> Tuple[str, int]:
    """Split 'host:port', '[v6]:port' or a bare host into (host, port)."""
    addr = dns_addr.strip()
    if not addr:
        raise InvalidDNSAddressError("empty DNS server address")

    if addr.startswith('['):
        host, sep, rest = addr[1:].partition(']')
        if not sep or (rest and not rest.startswith(':')):
            raise InvalidDNSAddressError(f"malformed DNS server address {dns_addr!r}")
        port_text = rest[1:] if rest else ''
    elif addr.count(':') == 1:
        host, _, port_text = addr.partition(':')
    else:
        # bare IPv4/hostname, or an unbracketed IPv6 literal
        host, port_text = addr, ''

    if not host:
        raise InvalidDNSAddressError(f"missing host in DNS server address {dns_addr!r}")
    if not port_text:
        return host, DNS_PORT
    if not port_text.isdigit() or not 0 < int(port_text) < 65536:
        raise InvalidDNSAddressError(f"invalid port in DNS server address {dns_addr!r}")
    return host, int(port_text)


def _system_lookup(domain: str) -> List[str]:
    infos = socket.getaddrinfo(domain, None, proto=socket.IPPROTO_TCP)
    addrs = []
    for _family, _type, _proto, _canonname, sockaddr in infos:
        if sockaddr[0] not in addrs:
            addrs.append(sockaddr[0])
    return addrs


def lookup_host(domain: str, timeout: float = LOOKUP_TIMEOUT) -> List[str]:
    """Resolve ``domain`` with the platform resolver, waiting at most ``timeout`` seconds.

    getaddrinfo() cannot be interrupted, so each lookup gets its own daemon
    thread; one that times out is abandoned and finishes whenever the OS gives
    up, without holding back lookups of other names.
    """
    result_queue = queue.Queue(maxsize=1)

    def lookup_in_thread():
        try:
            result_queue.put(('ok', _system_lookup(domain)))
        except Exception as e:
            result_queue.put(('error', e))

    thread = threading.Thread(target=lookup_in_thread, name=f"simplehttp-lookup-{domain}", daemon=True)
    thread.start()

    try:
        msg_type, value = result_queue.get(timeout=timeout)
    except queue.Empty:
        raise LookupTimeoutError(domain, timeout) from None
    if msg_type == 'error':
        raise value
    return value


def query_a_records(dns_addr: str, domain: str, timeout: float = LOOKUP_TIMEOUT) -> List[str]:
    """Ask the DNS server at ``dns_addr`` for the A records of ``domain``.

    ``timeout`` covers looking up the server's own name as well as the query.
    """
    started = time.monotonic()
    host, port = split_dns_addr(dns_addr)
    if not is_ip_literal(host):
        # dnspython only sends to literal addresses
        server_addrs = lookup_host(host, timeout)
        if not server_addrs:
            raise NoAddressesError(host)
        host = server_addrs[0]

    left = timeout - (time.monotonic() - started)
    if left <= 0:
        raise dns.exception.Timeout(timeout=timeout)

    query = dns.message.make_query(domain, dns.rdatatype.A)  # absolute name, RD set
    response = dns.query.udp(query, host, timeout=left, port=port)

    if response.rcode() != dns.rcode.NOERROR:
        logger.debug(f"DNS server {dns_addr} answered {dns.rcode.to_text(response.rcode())} for {domain}")

    addrs = []
    for rrset in response.answer:
        if rrset.rdtype != dns.rdatatype.A:
            continue
        for record in rrset:
            addrs.append(record.address)
    return addrs


def resolve_ip(dns_addr: str, domain: str, timeout: float = LOOKUP_TIMEOUT) -> List[str]:
    """Resolve ``domain`` to a list of IP address strings.

    An empty ``dns_addr`` uses the system resolver; otherwise the A records are
    fetched from that server. IP literals are returned as-is without a query.
    An empty list is a valid answer and is returned without error.
    """
    if is_ip_literal(domain):
        return [domain]

    if not dns_addr:
        addrs = lookup_host(domain, timeout)
        logger.debug(f"Resolved {domain} via system resolver: {addrs}")
        return addrs

    addrs = query_a_records(dns_addr, domain, timeout)
    logger.debug(f"Resolved {domain} via {dns_addr}: {addrs}")
    return addrs
