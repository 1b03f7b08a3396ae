import asyncio
import ssl
from collections.abc import Awaitable, Callable, Coroutine
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Any, Optional

import pytest
from cryptography import x509
from cryptography.hazmat.primitives import hashes, serialization
from cryptography.hazmat.primitives.asymmetric import rsa
from cryptography.x509.oid import ExtendedKeyUsageOID, NameOID

from proxyfetch.stream import Stream

Handler = Callable[[asyncio.StreamReader, asyncio.StreamWriter],
                   Awaitable[None]]


def run_coro(coro: Coroutine[Any, Any, Any], timeout: float = 10.0) -> Any:
    return asyncio.run(asyncio.wait_for(coro, timeout))


@pytest.fixture
def run() -> Callable[..., Any]:
    return run_coro


class ChunkStream(Stream):
    """Stream delivering canned chunks, then EOF or ``exc``."""
    chunks: list[bytes]
    exc: Optional[BaseException]
    written: bytes
    reads: int
    closed: bool

    def __init__(self, chunks=(), exc=None, **kwargs):
        super().__init__(**kwargs)
        self.chunks = list(chunks)
        self.exc = exc
        self.written = b''
        self.reads = 0
        self.closed = False

    def write_primitive(self, buf: bytes):
        self.written += buf

    async def read_primitive(self) -> bytes:
        self.reads += 1
        await asyncio.sleep(0)
        if len(self.chunks) != 0:
            return self.chunks.pop(0)
        if self.exc is not None:
            raise self.exc
        return b''

    def close(self):
        self.closed = True


@pytest.fixture
def chunk_stream() -> type[ChunkStream]:
    return ChunkStream


async def wait_eof(reader: asyncio.StreamReader) -> bytes:
    try:
        return await reader.read()
    except (ConnectionError, ssl.SSLError):
        return b''


class MockServer:
    """Loopback TCP server running ``handle`` for every connection."""
    server: asyncio.AbstractServer
    port: int
    eofs: list[bytes]
    finished: asyncio.Event

    def __init__(self):
        self.eofs = []
        self.finished = asyncio.Event()

    async def __aenter__(self):
        self.server = await asyncio.start_server(self.serve, '127.0.0.1', 0)
        self.port = self.server.sockets[0].getsockname()[1]
        return self

    async def __aexit__(self, *exc_info):
        self.server.close()

    async def serve(self, reader: asyncio.StreamReader,
                    writer: asyncio.StreamWriter):
        try:
            await self.handle(reader, writer)
        except (asyncio.IncompleteReadError, ConnectionError, ssl.SSLError):
            pass
        finally:
            writer.close()
            self.finished.set()

    async def handle(self, reader: asyncio.StreamReader,
                     writer: asyncio.StreamWriter):
        raise NotImplementedError


@dataclass
class Socks5Request:
    head: bytes
    addr: bytes
    port: int


class MockSocks5Server(MockServer):
    """Accepts no-auth, answers CONNECT with ``reply``, then runs ``after``.

    Without ``after`` the connection is held until the client closes it;
    what the client sent meanwhile is recorded in ``eofs``.
    """
    reply: bytes
    after: Optional[Handler]
    greetings: list[bytes]
    requests: list[Socks5Request]
    greeted: asyncio.Event

    def __init__(self, reply: bytes = b'\x05\x00\x00\x01' + bytes(6),
                 after: Optional[Handler] = None, method: bytes = b'\x05\x00',
                 hang: bool = False):
        super().__init__()
        self.reply = reply
        self.after = after
        self.method = method
        self.hang = hang
        self.greetings = []
        self.requests = []
        self.greeted = asyncio.Event()

    async def handle(self, reader, writer):
        self.greetings.append(await reader.readexactly(3))
        self.greeted.set()
        if self.hang:
            self.eofs.append(await wait_eof(reader))
            return
        writer.write(self.method)
        await writer.drain()
        head = await reader.readexactly(4)
        atyp = head[3]
        if atyp == 1:
            addr = await reader.readexactly(4)
        elif atyp == 4:
            addr = await reader.readexactly(16)
        else:
            alen, = await reader.readexactly(1)
            addr = await reader.readexactly(alen)
        port = int.from_bytes(await reader.readexactly(2), 'big')
        self.requests.append(Socks5Request(head, addr, port))
        writer.write(self.reply)
        await writer.drain()
        if self.after is not None:
            await self.after(reader, writer)
        else:
            self.eofs.append(await wait_eof(reader))


class MockHTTPProxy(MockServer):
    """Answers CONNECT with ``status``, then runs ``after``."""
    status: bytes
    after: Optional[Handler]
    heads: list[bytes]

    def __init__(self, status: bytes = b'200 Connection Established',
                 after: Optional[Handler] = None):
        super().__init__()
        self.status = status
        self.after = after
        self.heads = []

    async def handle(self, reader, writer):
        self.heads.append(await reader.readuntil(b'\r\n\r\n'))
        writer.write(b'HTTP/1.1 ' + self.status + b'\r\n\r\n')
        await writer.drain()
        if self.after is not None:
            await self.after(reader, writer)
        else:
            self.eofs.append(await wait_eof(reader))


def http_responder(response: bytes, requests: list[bytes],
                   close: bool = False) -> Handler:
    """Serve one HTTP request with the canned ``response``."""

    async def after(reader, writer):
        head = await reader.readuntil(b'\r\n\r\n')
        for line in head.split(b'\r\n'):
            if line.lower().startswith(b'content-length:'):
                head += await reader.readexactly(int(line.split(b':')[1]))
        requests.append(head)
        writer.write(response)
        await writer.drain()
        if not close:
            await wait_eof(reader)

    return after


class MockHTTPServer(MockServer):
    """Serves every connection with the canned ``response``.

    Stands in for a forwarding HTTP proxy: requests arrive in absolute form.
    """
    requests: list[bytes]

    def __init__(self, response: bytes, close: bool = False):
        super().__init__()
        self.requests = []
        self.responder = http_responder(response, self.requests, close)

    async def handle(self, reader, writer):
        await self.responder(reader, writer)


@pytest.fixture(name='http_responder')
def http_responder_fixture() -> Callable[..., Handler]:
    return http_responder


@pytest.fixture
def mock_socks5() -> type[MockSocks5Server]:
    return MockSocks5Server


@pytest.fixture
def mock_http_proxy() -> type[MockHTTPProxy]:
    return MockHTTPProxy


@pytest.fixture
def mock_http_server() -> type[MockHTTPServer]:
    return MockHTTPServer


@dataclass
class TLSFiles:
    ca_file: str
    cert_file: str
    key_file: str

    def server_ctx(self) -> ssl.SSLContext:
        ctx = ssl.create_default_context(ssl.Purpose.CLIENT_AUTH)
        ctx.load_cert_chain(certfile=self.cert_file, keyfile=self.key_file)
        return ctx


def generate_certs(hostname: str) -> tuple[bytes, bytes, bytes]:
    now = datetime.now(timezone.utc)
    ca_key = rsa.generate_private_key(public_exponent=65537, key_size=2048)
    ca_name = x509.Name([x509.NameAttribute(NameOID.COMMON_NAME, 'Test CA')])
    ca_cert = (
        x509.CertificateBuilder()
        .subject_name(ca_name)
        .issuer_name(ca_name)
        .public_key(ca_key.public_key())
        .serial_number(x509.random_serial_number())
        .not_valid_before(now - timedelta(days=1))
        .not_valid_after(now + timedelta(days=30))
        .add_extension(x509.BasicConstraints(ca=True, path_length=None),
                       critical=True)
        .add_extension(
            x509.KeyUsage(
                digital_signature=True,
                key_encipherment=False,
                content_commitment=False,
                data_encipherment=False,
                key_agreement=False,
                key_cert_sign=True,
                crl_sign=True,
                encipher_only=False,
                decipher_only=False,
            ),
            critical=True,
        )
        .add_extension(
            x509.SubjectKeyIdentifier.from_public_key(ca_key.public_key()),
            critical=False,
        )
        .sign(ca_key, hashes.SHA256())
    )

    key = rsa.generate_private_key(public_exponent=65537, key_size=2048)
    cert = (
        x509.CertificateBuilder()
        .subject_name(
            x509.Name([x509.NameAttribute(NameOID.COMMON_NAME, hostname)]))
        .issuer_name(ca_name)
        .public_key(key.public_key())
        .serial_number(x509.random_serial_number())
        .not_valid_before(now - timedelta(days=1))
        .not_valid_after(now + timedelta(days=30))
        .add_extension(x509.BasicConstraints(ca=False, path_length=None),
                       critical=True)
        .add_extension(
            x509.KeyUsage(
                digital_signature=True,
                key_encipherment=True,
                content_commitment=False,
                data_encipherment=False,
                key_agreement=False,
                key_cert_sign=False,
                crl_sign=False,
                encipher_only=False,
                decipher_only=False,
            ),
            critical=True,
        )
        .add_extension(
            x509.ExtendedKeyUsage([ExtendedKeyUsageOID.SERVER_AUTH]),
            critical=False,
        )
        .add_extension(x509.SubjectAlternativeName([x509.DNSName(hostname)]),
                       critical=False)
        .add_extension(
            x509.SubjectKeyIdentifier.from_public_key(key.public_key()),
            critical=False,
        )
        .add_extension(
            x509.AuthorityKeyIdentifier.from_issuer_public_key(
                ca_key.public_key()),
            critical=False,
        )
        .sign(ca_key, hashes.SHA256())
    )

    ca_pem = ca_cert.public_bytes(serialization.Encoding.PEM)
    cert_pem = cert.public_bytes(serialization.Encoding.PEM)
    key_pem = key.private_bytes(
        encoding=serialization.Encoding.PEM,
        format=serialization.PrivateFormat.TraditionalOpenSSL,
        encryption_algorithm=serialization.NoEncryption(),
    )
    return ca_pem, cert_pem, key_pem


@pytest.fixture(scope='session')
def tls_files(tmp_path_factory) -> TLSFiles:
    path = tmp_path_factory.mktemp('tls')
    ca_pem, cert_pem, key_pem = generate_certs('target.example')
    files = TLSFiles(
        ca_file=str(path / 'ca.pem'),
        cert_file=str(path / 'cert.pem'),
        key_file=str(path / 'key.pem'),
    )
    with open(files.ca_file, 'wb') as f:
        f.write(ca_pem)
    with open(files.cert_file, 'wb') as f:
        f.write(cert_pem)
    with open(files.key_file, 'wb') as f:
        f.write(key_pem)
    return files
