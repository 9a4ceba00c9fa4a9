""" Client configuration, as an explicit alternative to the process-wide default transport """

import os
from dataclasses import dataclass, fields
from typing import Any, Dict, Optional

from .client import CLIENT_TIMEOUT, MAX_REDIRECTS, Client
from .dialer import DIAL_TIMEOUT, HTTP_PORT, KEEP_ALIVE, Dialer, ResolverDialer, SingleDomainDialer
from .resolver import LOOKUP_TIMEOUT, split_dns_addr
from .transport import Transport

ENV_PREFIX = "SIMPLEHTTP_"


@dataclass(frozen=True)
class ClientConfig:
    """Everything needed to build a Client.

    ``dns_server`` empty means the system resolver. With a ``domain`` set every
    connection goes to that domain on ``port`` (single-domain mode), which
    requires a DNS server.
    """
    dns_server: str = ""
    domain: str = ""
    port: int = HTTP_PORT
    timeout: Optional[float] = CLIENT_TIMEOUT
    connect_timeout: float = DIAL_TIMEOUT
    keep_alive: Optional[float] = KEEP_ALIVE
    lookup_timeout: float = LOOKUP_TIMEOUT
    max_redirects: int = MAX_REDIRECTS

    def __post_init__(self):
        """Reject settings no dialer could work with."""
        if self.dns_server:
            split_dns_addr(self.dns_server)
        if self.domain and not self.dns_server:
            raise ValueError("A single-domain client needs a DNS server address")
        if not 0 < self.port < 65536:
            raise ValueError(f"Port out of range: {self.port}")
        for name in ('timeout', 'connect_timeout', 'lookup_timeout'):
            value = getattr(self, name)
            if value is None and name != 'timeout':
                raise ValueError(f"{name} is required")
            if value is not None and value <= 0:
                raise ValueError(f"{name} must be positive, got {value}")
        if self.max_redirects < 0:
            raise ValueError(f"max_redirects must not be negative, got {self.max_redirects}")

    @classmethod
    def from_env(cls, **overrides) -> 'ClientConfig':
        """Build a config from SIMPLEHTTP_* environment variables, then apply ``overrides``."""
        values: Dict[str, Any] = {}
        for f in fields(cls):
            raw = os.getenv(ENV_PREFIX + f.name.upper())
            if raw is None:
                continue
            values[f.name] = _convert_env_value(f.name, raw)
        values.update(overrides)
        return cls(**values)

    def build_dialer(self) -> Dialer:
        if self.domain:
            return SingleDomainDialer(
                self.dns_server, self.domain, port=self.port,
                timeout=self.connect_timeout, keep_alive=self.keep_alive,
                lookup_timeout=self.lookup_timeout
            )
        if self.dns_server:
            return ResolverDialer(
                self.dns_server, timeout=self.connect_timeout,
                keep_alive=self.keep_alive, lookup_timeout=self.lookup_timeout
            )
        return Dialer(timeout=self.connect_timeout, keep_alive=self.keep_alive)

    def build_client(self) -> Client:
        """Create a client from this config without touching the default transport."""
        return Client(Transport(self.build_dialer()), timeout=self.timeout,
                      max_redirects=self.max_redirects)


def _convert_env_value(name: str, value: str):
    """Convert an environment string to the type of the named field."""
    if name in ('dns_server', 'domain'):
        return value.strip()
    if name in ('port', 'max_redirects'):
        try:
            return int(value)
        except ValueError:
            raise ValueError(f"{ENV_PREFIX}{name.upper()} must be an integer, got {value!r}")
    if value.strip().lower() in ('', 'none', 'off'):
        return None
    try:
        return float(value)
    except ValueError:
        raise ValueError(f"{ENV_PREFIX}{name.upper()} must be a number, got {value!r}")
