from dataclasses import dataclass
from typing import Any, Optional, Union

from typing_extensions import Self

from proxyfetch.defaults import HTTP_DEFAULT_PORT, HTTPS_DEFAULT_PORT
from proxyfetch.dispatcher.errors import InvalidProxyURL, InvalidTarget
from proxyfetch.utils.url import URL

PROTOCOL_DEFAULT_PORTS = {
    'http': HTTP_DEFAULT_PORT,
    'https': HTTPS_DEFAULT_PORT,
}


def first_str(*vals: Any) -> str:
    for val in vals:
        if isinstance(val, str) and val.strip():
            return val.strip()
    return ''


@dataclass
class ConnectOptions:
    """Connection options as handed over by the HTTP client."""
    hostname: Optional[str] = None
    host: Optional[str] = None
    port: Union[int, str, None] = None
    protocol: Optional[str] = None
    servername: Optional[str] = None


@dataclass(frozen=True)
class ConnectTarget:
    host: str
    port: int
    protocol: str

    def __str__(self) -> str:
        return '<{}://{}:{}>'.format(self.protocol, self.host, self.port)

    @property
    def addr(self) -> tuple[str, int]:
        return self.host, self.port

    @property
    def secure(self) -> bool:
        return self.protocol == 'https'

    @classmethod
    def from_options(cls, options: ConnectOptions) -> Self:
        # servername is the last resort for the host, it may differ from the
        # host actually requested when the caller overrides SNI.
        host = first_str(options.hostname, options.host, options.servername)
        if not host:
            raise InvalidTarget(options)

        protocol = first_str(options.protocol).rstrip(':').lower() or 'https'
        if protocol not in PROTOCOL_DEFAULT_PORTS:
            raise InvalidTarget(options, 'protocol')

        port = options.port
        if isinstance(port, str):
            port = port.strip()
            port = int(port) if port.isascii() and port.isdecimal() else None
        if not isinstance(port, int) or isinstance(port, bool) or port <= 0:
            port = PROTOCOL_DEFAULT_PORTS[protocol]
        if port > 0xffff:
            raise InvalidTarget(options, 'port')

        return cls(host=host, port=port, protocol=protocol)


@dataclass(frozen=True)
class ProxyEndpoint:
    host: str
    port: int

    def __str__(self) -> str:
        return '{}:{}'.format(self.host, self.port)

    @property
    def addr(self) -> tuple[str, int]:
        return self.host, self.port

    @classmethod
    def from_url(cls, url: URL) -> Self:
        if not url.host or not 0 < url.port <= 0xffff:
            raise InvalidProxyURL(str(url))
        return cls(host=url.host, port=url.port)
