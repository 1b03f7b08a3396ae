import ssl
from typing import Optional

from proxyfetch.common.tcp import TCPStream
from proxyfetch.stream import Connector, ProtocolError, Stream, phase
from proxyfetch.utils.override import override


def create_tls_ctx(tls_cert_file: str = '') -> ssl.SSLContext:
    """Client context verifying against ``tls_cert_file`` or system CAs."""
    return ssl.create_default_context(cafile=tls_cert_file or None)


class TLSConnector(Connector):
    """Layer a TLS client handshake over the stream of the next layer.

    The next layer must yield a TCPStream (a raw tunnel), which is upgraded
    in place so the same stream object is handed back.
    """
    tls_ctx: ssl.SSLContext
    server_hostname: str

    ensure_next_layer = True

    def __init__(
        self,
        server_hostname: str,
        tls_ctx: Optional[ssl.SSLContext] = None,
        **kwargs,
    ):
        super().__init__(**kwargs)
        if tls_ctx is None:
            tls_ctx = create_tls_ctx()
        self.tls_ctx = tls_ctx
        self.server_hostname = server_hostname

    @override(Connector)
    def __str__(self) -> str:
        return '{}({})'.format(self.__class__.__name__, self.server_hostname)

    @override(Connector)
    async def connect(self, rest: bytes = b'') -> Stream:
        assert self.next_layer is not None
        stream = await self.next_layer.connect()
        async with stream.cm(exc_only=True):
            with phase('tls'):
                if not isinstance(stream, TCPStream):
                    raise ProtocolError('tls', 'stream')
                await stream.start_tls(self.tls_ctx, self.server_hostname)
                self.logger.debug('tls established with %s',
                                  self.server_hostname)
                if len(rest) != 0:
                    await stream.writedrain(rest)
            return stream
