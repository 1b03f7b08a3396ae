import asyncio
import ssl
from collections.abc import Iterable
from typing import TYPE_CHECKING, Any, Optional

import httpcore
import httpx

from proxyfetch.common.tcp import TCPStream
from proxyfetch.dispatcher.options import ConnectOptions
from proxyfetch.stream import ProtocolError, Stream, phase

if TYPE_CHECKING:
    from proxyfetch.dispatcher.base import Dispatcher


class TunnelNetworkStream(httpcore.AsyncNetworkStream):
    """httpcore view of a tunnel stream opened by a dispatcher."""
    stream: Stream

    def __init__(self, stream: Stream):
        self.stream = stream

    async def read(self,
                   max_bytes: int,
                   timeout: Optional[float] = None) -> bytes:
        try:
            async with asyncio.timeout(timeout):
                buf = await self.stream.read()
        except TimeoutError as e:
            raise httpcore.ReadTimeout(str(e)) from e
        except OSError as e:
            raise httpcore.ReadError(str(e)) from e
        if len(buf) > max_bytes:
            self.stream.push(buf[max_bytes:])
            buf = buf[:max_bytes]
        return buf

    async def write(self, buffer: bytes, timeout: Optional[float] = None):
        if len(buffer) == 0:
            return
        try:
            async with asyncio.timeout(timeout):
                await self.stream.writedrain(buffer)
        except TimeoutError as e:
            raise httpcore.WriteTimeout(str(e)) from e
        except OSError as e:
            raise httpcore.WriteError(str(e)) from e

    async def aclose(self):
        await self.stream.ensure_closed()

    async def start_tls(
        self,
        ssl_context: ssl.SSLContext,
        server_hostname: Optional[str] = None,
        timeout: Optional[float] = None,
    ) -> 'TunnelNetworkStream':
        async with self.stream.cm(exc_only=True):
            with phase('tls'):
                if not isinstance(self.stream, TCPStream) or \
                        server_hostname is None:
                    raise ProtocolError('tls', 'stream')
                try:
                    async with asyncio.timeout(timeout):
                        await self.stream.start_tls(ssl_context,
                                                    server_hostname)
                except TimeoutError as e:
                    raise httpcore.ConnectTimeout(str(e)) from e
        return self

    def get_extra_info(self, info: str) -> Any:
        if not isinstance(self.stream, TCPStream):
            return None
        if info == 'is_readable':
            # Data or EOF on an idle connection means it cannot be reused.
            return len(self.stream.to_read) != 0 or \
                self.stream.reader.at_eof()
        if info == 'client_addr':
            return self.stream.writer.get_extra_info('sockname')
        if info == 'server_addr':
            return self.stream.writer.get_extra_info('peername')
        if info in ('ssl_object', 'socket'):
            return self.stream.writer.get_extra_info(info)
        return None


class DispatcherNetworkBackend(httpcore.AsyncNetworkBackend):
    """Open every httpcore connection as a raw tunnel of ``dispatcher``.

    https origins get their TLS from httpcore, which upgrades the tunnel in
    place through ``TunnelNetworkStream.start_tls``.
    """
    dispatcher: 'Dispatcher'

    def __init__(self, dispatcher: 'Dispatcher'):
        self.dispatcher = dispatcher

    async def connect_tcp(
        self,
        host: str,
        port: int,
        timeout: Optional[float] = None,
        local_address: Optional[str] = None,
        socket_options: Optional[Iterable[Any]] = None,
    ) -> TunnelNetworkStream:
        options = ConnectOptions(hostname=host, port=port, protocol='http')
        try:
            async with asyncio.timeout(timeout):
                stream = await self.dispatcher.connect(options)
        except TimeoutError as e:
            raise httpcore.ConnectTimeout(str(e)) from e
        return TunnelNetworkStream(stream)

    async def connect_unix_socket(
        self,
        path: str,
        timeout: Optional[float] = None,
        socket_options: Optional[Iterable[Any]] = None,
    ) -> TunnelNetworkStream:
        raise httpcore.UnsupportedProtocol(
            'unix sockets cannot be reached through a proxy')

    async def sleep(self, seconds: float):
        await asyncio.sleep(seconds)


class DispatcherTransport(httpx.AsyncHTTPTransport):
    """httpx transport whose connection pool dials through a dispatcher."""

    def __init__(self, dispatcher: 'Dispatcher'):
        super().__init__(verify=dispatcher.tls_ctx, trust_env=False)
        self._pool = httpcore.AsyncConnectionPool(
            ssl_context=dispatcher.tls_ctx,
            network_backend=DispatcherNetworkBackend(dispatcher),
        )
