import asyncio
from abc import ABC, abstractmethod
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager
from typing import Optional

from typing_extensions import Self

from proxyfetch.defaults import STREAM_BUFSIZE
from proxyfetch.stream.errors import BufferOverflowError, IncompleteReadError
from proxyfetch.utils.layerable import Layerable
from proxyfetch.utils.loggable import Loggable


class Stream(Layerable['Stream'], Loggable, ABC):
    """Duplex byte stream with a read-ahead buffer.

    ``read_primitive`` delivers whatever the transport has, in chunks of any
    size; the read helpers below coalesce those chunks and push surplus bytes
    back, so consecutive reads see the byte stream without gaps.
    """
    to_read: bytes

    def __init__(self, to_read: bytes = b'', **kwargs):
        super().__init__(**kwargs)
        self.to_read = to_read

    @asynccontextmanager
    async def cm(self, exc_only: bool = False) -> AsyncGenerator[Self, None]:
        exc: Optional[BaseException] = None
        try:
            yield self
        except (Exception, asyncio.CancelledError) as e:
            exc = e
        if not exc_only or exc is not None:
            await asyncio.shield(self.ensure_closed())
        if exc is not None:
            raise exc

    def push(self, buf: bytes):
        self.to_read = buf + self.to_read

    def pop(self) -> bytes:
        buf, self.to_read = self.to_read, b''
        return buf

    def close(self):
        pass

    async def wait_closed(self):
        pass

    async def ensure_closed(self):
        try:
            self.close()
            await self.wait_closed()
        except Exception as e:
            self.logger.debug('except while closing: %.60s', e)
        if self.next_layer is not None:
            await self.next_layer.ensure_closed()

    @abstractmethod
    def write_primitive(self, buf: bytes):
        raise NotImplementedError

    def write(self, buf: bytes):
        if len(buf) != 0:
            self.write_primitive(buf)
        else:
            self.logger.debug('write empty bytes')

    async def drain(self):
        if self.next_layer is not None:
            await self.next_layer.drain()

    async def writedrain(self, buf: bytes):
        self.write(buf)
        await self.drain()

    @abstractmethod
    async def read_primitive(self) -> bytes:
        raise NotImplementedError

    async def read(self) -> bytes:
        buf = self.pop()
        if len(buf) != 0:
            return buf
        return await self.read_primitive()

    async def peek(self) -> bytes:
        if len(self.to_read) == 0:
            self.to_read = await self.read_primitive()
        return self.to_read

    async def readatleast(self, n: int) -> bytes:
        """Collect chunks in arrival order until at least ``n`` bytes."""
        if n > STREAM_BUFSIZE:
            raise BufferOverflowError(n)
        chunks: list[bytes] = []
        total = 0
        while total < n:
            chunk = await self.read()
            if len(chunk) == 0:
                raise IncompleteReadError(partial=b''.join(chunks),
                                          expected=n)
            chunks.append(chunk)
            total += len(chunk)
        return b''.join(chunks)

    async def readexactly(self, n: int) -> bytes:
        """Read exactly ``n`` bytes, the surplus stays for the next read.

        ``n == 0`` returns at once without touching the transport. End of
        stream before ``n`` bytes raises IncompleteReadError, errors of
        ``read_primitive`` propagate as they are.
        """
        buf = await self.readatleast(n)
        if len(buf) > n:
            self.push(buf[n:])
            buf = buf[:n]
        return buf

    async def readuntil(
        self,
        separator: bytes = b'\n',
        strip: bool = False,
    ) -> bytes:
        buf = bytearray()
        start = 0
        while True:
            chunk = await self.read()
            if len(chunk) == 0:
                raise IncompleteReadError(partial=bytes(buf), expected=None)
            buf += chunk
            pos = buf.find(separator, start)
            if pos >= 0:
                break
            if len(buf) > STREAM_BUFSIZE:
                raise BufferOverflowError(len(buf))
            # The separator may straddle the next chunk.
            start = max(0, len(buf) - len(separator) + 1)
        end = pos + len(separator)
        self.push(bytes(buf[end:]))
        return bytes(buf[:pos] if strip else buf[:end])

    async def readall(self) -> bytes:
        chunks: list[bytes] = []
        total = 0
        while True:
            chunk = await self.read()
            if len(chunk) == 0:
                return b''.join(chunks)
            chunks.append(chunk)
            total += len(chunk)
            if total > STREAM_BUFSIZE:
                raise BufferOverflowError(total)
