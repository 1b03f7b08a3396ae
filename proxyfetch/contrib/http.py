"""HTTP/1.1 message heads and the CONNECT proxy client.

See RFC 9112 for more detials.

Links:
  https://www.rfc-editor.org/rfc/rfc9112
"""
from http import HTTPStatus
from typing import Optional

from typing_extensions import Self

from proxyfetch.stream import ProtocolError, ProxyConnector, Stream, phase
from proxyfetch.utils.override import override


class HTTPHeaders:
    """Start line plus header fields, in wire order with duplicates kept."""
    firstline: Optional[str]
    fields: list[tuple[str, str]]

    def __init__(
        self,
        firstline: Optional[str] = None,
        headers: Optional[dict[str, str]] = None,
        fields: Optional[list[tuple[str, str]]] = None,
    ):
        self.firstline = firstline
        self.fields = list(fields) if fields is not None else []
        if headers is not None:
            self.add_headers(headers)

    def __str__(self) -> str:
        if self.firstline is None:
            self.pack_firstline()
        assert self.firstline is not None
        lines = [self.firstline]
        lines.extend('{}: {}'.format(k, v) for k, v in self.fields)
        return '\r\n'.join(lines) + '\r\n\r\n'

    def __bytes__(self) -> bytes:
        return str(self).encode()

    @property
    def headers(self) -> dict[str, str]:
        """Fields as a dict, values of repeated names joined by commas."""
        headers: dict[str, str] = dict()
        names: dict[str, str] = dict()
        for k, v in self.fields:
            k = names.setdefault(k.lower(), k)
            headers[k] = headers[k] + ', ' + v if k in headers else v
        return headers

    @classmethod
    async def read_from_stream(cls, stream: Stream) -> Self:
        buf = await stream.readuntil(b'\r\n\r\n', strip=True)
        lines = buf.decode('latin-1').split('\r\n')
        fields = []
        for line in lines[1:]:
            k, sep, v = line.partition(':')
            if not sep or not k.strip():
                raise ProtocolError('http', 'header', line[:20])
            fields.append((k.strip(), v.strip()))
        return cls(firstline=lines[0], fields=fields)

    def pack_firstline(self):
        raise NotImplementedError

    def add_header(self, k: str, v: str):
        self.fields.append((k, v))

    def add_headers(self, headers: dict[str, str]):
        for k, v in headers.items():
            self.add_header(k, v)

    def set_header(self, k: str, v: str):
        """Replace every field named ``k`` with a single one at the end."""
        self.del_header(k)
        self.add_header(k, v)

    def del_header(self, k: str):
        k = k.lower()
        self.fields = [f for f in self.fields if f[0].lower() != k]

    def get_header(self, k: str, default: Optional[str] = None) \
            -> Optional[str]:
        values = self.get_all(k)
        return values[0] if len(values) != 0 else default

    def get_all(self, k: str) -> list[str]:
        k = k.lower()
        return [hv for hk, hv in self.fields if hk.lower() == k]


class HTTPRequest(HTTPHeaders):
    method: str
    path: str
    version: str

    def __init__(
        self,
        method: str = 'CONNECT',
        path: str = '/',
        version: str = 'HTTP/1.1',
        **kwargs,
    ):
        super().__init__(**kwargs)
        self.method = method
        self.path = path
        self.version = version

    @override(HTTPHeaders)
    def pack_firstline(self):
        self.firstline = '{} {} {}'.format(self.method, self.path,
                                           self.version)


class HTTPResponse(HTTPHeaders):
    version: str
    status: int
    reason: str

    def __init__(
        self,
        version: str = 'HTTP/1.1',
        status: int = HTTPStatus.OK,
        reason: Optional[str] = None,
        **kwargs,
    ):
        super().__init__(**kwargs)
        if reason is None:
            try:
                reason = HTTPStatus(status).phrase
            except ValueError:
                reason = ''
        self.version = version
        self.status = int(status)
        self.reason = reason

    @classmethod
    @override(HTTPHeaders)
    async def read_from_stream(cls, stream: Stream) -> Self:
        headers = await HTTPHeaders.read_from_stream(stream)
        assert headers.firstline is not None
        sp = headers.firstline.split(maxsplit=2)
        if len(sp) < 2 or not sp[0].startswith('HTTP/') \
                or not sp[1].isdigit():
            raise ProtocolError('http', 'status', headers.firstline[:20])
        version, status = sp[0], int(sp[1])
        reason = sp[2] if len(sp) == 3 else ''
        return cls(
            version=version,
            status=status,
            reason=reason,
            firstline=headers.firstline,
            fields=headers.fields,
        )

    @override(HTTPHeaders)
    def pack_firstline(self):
        self.firstline = '{} {} {}'.format(self.version, self.status,
                                           self.reason)


def format_host(addr: tuple[str, int]) -> str:
    host, port = addr
    if host.find(':') >= 0:
        host = '[{}]'.format(host)
    return '{}:{}'.format(host, port)


class HTTPConnector(ProxyConnector):
    """Tunnel to ``addr`` with CONNECT through the proxy of the next layer."""
    extra_headers: Optional[dict[str, str]]

    ensure_next_layer = True

    def __init__(
        self,
        extra_headers: Optional[dict[str, str]] = None,
        **kwargs,
    ):
        super().__init__(**kwargs)
        self.extra_headers = extra_headers

    @override(ProxyConnector)
    async def connect(self, rest: bytes = b'') -> Stream:
        assert self.next_layer is not None
        host = format_host(self.addr)
        req = HTTPRequest(path=host, headers={'Host': host})
        if self.extra_headers is not None:
            req.add_headers(self.extra_headers)
        stream = await self.next_layer.connect(rest=bytes(req))
        async with stream.cm(exc_only=True):
            with phase('http'):
                resp = await HTTPResponse.read_from_stream(stream)
                if resp.status != HTTPStatus.OK:
                    raise ProtocolError('http', 'status', str(resp.status))
                self.logger.debug('tunnel established to %s', host)
                if len(rest) != 0:
                    await stream.writedrain(rest)
            return stream
