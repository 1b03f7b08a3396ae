from typing import Any

from typing_extensions import Self
from yarl import URL as yaURL


class URL:
    """Scheme, host and port of a proxy url; path and query are ignored."""
    scheme: str
    host: str
    port: int

    def __init__(self, scheme: str = '', host: str = '', port: int = 0):
        self.scheme = scheme
        self.host = host
        self.port = port

    def __str__(self) -> str:
        kwargs: dict[str, Any] = {'scheme': self.scheme}
        if not self.host:
            # yarl cannot build a port without a host.
            port = ':{}'.format(self.port) if self.port else ''
            return '{}://{}'.format(self.scheme, port)
        kwargs['host'] = self.host
        if self.port:
            kwargs['port'] = self.port
        return str(yaURL.build(**kwargs))

    def __repr__(self) -> str:
        return 'URL.from_str({})'.format(repr(str(self)))

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, URL):
            return NotImplemented
        return (self.scheme, self.host, self.port) == \
            (other.scheme, other.host, other.port)

    @property
    def addr(self) -> tuple[str, int]:
        return self.host, self.port

    def with_default_port(self, port: int) -> Self:
        if self.port:
            return self
        return self.__class__(self.scheme, self.host, port)

    @classmethod
    def from_str(cls, s: str) -> Self:
        """Parse ``s``, the scheme is lower-cased.

        Raise ValueError if the url has no scheme or the port is not a valid
        number.
        """
        if '://' not in s:
            raise ValueError('missing scheme: {}'.format(s))
        yaurl = yaURL(s)
        # Only an explicit port counts, yarl would default http to 80.
        port = yaurl.explicit_port or 0
        return cls(yaurl.scheme.lower(), yaurl.host or '', port)
