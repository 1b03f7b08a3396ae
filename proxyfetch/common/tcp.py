import asyncio
import ssl
from typing import Any, Optional

from proxyfetch.defaults import STREAM_TCP_BUFSIZE
from proxyfetch.stream import Connector, ProtocolError, Stream, phase
from proxyfetch.utils.override import override


class TCPStream(Stream):
    reader: asyncio.StreamReader
    writer: asyncio.StreamWriter

    def __init__(
        self,
        reader: asyncio.StreamReader,
        writer: asyncio.StreamWriter,
        **kwargs,
    ):
        super().__init__(**kwargs)
        self.reader = reader
        self.writer = writer

    @override(Stream)
    def close(self):
        self.writer.close()

    @override(Stream)
    async def wait_closed(self):
        await self.writer.wait_closed()

    @override(Stream)
    def write_primitive(self, buf: bytes):
        self.writer.write(buf)

    @override(Stream)
    async def drain(self):
        await self.writer.drain()

    @override(Stream)
    async def read_primitive(self) -> bytes:
        return await self.reader.read(STREAM_TCP_BUFSIZE)

    @property
    def is_tls(self) -> bool:
        return self.writer.get_extra_info('ssl_object') is not None

    async def start_tls(self, tls_ctx: ssl.SSLContext, server_hostname: str):
        """Upgrade the connection to TLS in place."""
        if len(self.to_read) != 0:
            # Bytes read ahead of the handshake cannot be fed back into ssl.
            raise ProtocolError('tls', 'pending')
        await self.writer.start_tls(tls_ctx, server_hostname=server_hostname)


class TCPConnector(Connector):
    addr: tuple[str, int]
    tcp_extra_kwargs: dict[str, Any]

    def __init__(
        self,
        addr: tuple[str, int],
        tcp_extra_kwargs: Optional[dict[str, Any]] = None,
        **kwargs,
    ):
        super().__init__(**kwargs)
        if tcp_extra_kwargs is None:
            tcp_extra_kwargs = dict()
        self.addr = addr
        self.tcp_extra_kwargs = tcp_extra_kwargs

    @override(Connector)
    def __str__(self) -> str:
        return '{}({}:{})'.format(self.__class__.__name__, *self.addr)

    @override(Connector)
    async def connect(self, rest: bytes = b'') -> TCPStream:
        with phase('tcp'):
            reader, writer = await asyncio.open_connection(
                self.addr[0],
                self.addr[1],
                **self.tcp_extra_kwargs,
            )
        stream = TCPStream(reader, writer)
        async with stream.cm(exc_only=True):
            if len(rest) != 0:
                with phase('tcp'):
                    await stream.writedrain(rest)
            return stream
