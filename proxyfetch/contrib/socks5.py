"""Socks5 client implementation.

Only the CONNECT command with NO AUTHENTICATION REQUIRED is supported. See
RFC 1928 for more detials.

Links:
  https://www.rfc-editor.org/rfc/rfc1928
"""
import socket
from collections.abc import Callable
from dataclasses import dataclass
from enum import Enum
from typing import Optional, Union

from typing_extensions import Self

from proxyfetch.stream import Buffer, ProtocolError, ProxyConnector, Stream
from proxyfetch.stream import phase
from proxyfetch.stream.enums import BEnum
from proxyfetch.stream.structs import (BBBBStruct, BBBStruct, BBStruct,
                                       BStruct, HStruct)
from proxyfetch.utils.loggable import Loggable
from proxyfetch.utils.override import override

MAX_DOMAIN_LENGTH = 255


class Socks5Ver(BEnum):
    V5 = 5


class Socks5Rsv(BEnum):
    Zero = 0


class Socks5AuthMethod(BEnum):
    """
    o  X'00' NO AUTHENTICATION REQUIRED
    o  X'01' GSSAPI
    o  X'02' USERNAME/PASSWORD
    o  X'03' to X'7F' IANA ASSIGNED
    o  X'80' to X'FE' RESERVED FOR PRIVATE METHODS
    o  X'FF' NO ACCEPTABLE METHODS
    """
    NoAuthenticationRequired = 0
    GSSAPI = 1
    UsernamePassword = 2
    NoAcceptableMethods = 0xff


class Socks5Cmd(BEnum):
    Connect = 1


class Socks5Atyp(BEnum):
    """
    o  IP V4 address: X'01'
    o  DOMAINNAME: X'03'
    o  IP V6 address: X'04'
    """
    IPV4 = 1
    DOMAINNAME = 3
    IPV6 = 4


class Socks5Rep(BEnum):
    """
    o  X'00' succeeded
    o  X'01' general SOCKS server failure
    o  X'02' connection not allowed by ruleset
    o  X'03' Network unreachable
    o  X'04' Host unreachable
    o  X'05' Connection refused
    o  X'06' TTL expired
    o  X'07' Command not supported
    o  X'08' Address type not supported
    o  X'09' to X'FF' unassigned
    """
    Succeeded = 0
    GeneralSocksServerFailure = 1
    ConnectionNotAllowedByRuleset = 2
    NetworkUnreachable = 3
    HostUnreachable = 4
    ConnectionRefused = 5
    TTLExpired = 6
    CommandNotSupported = 7
    AddressTypeNotSupported = 8


class Socks5Error(ProtocolError):

    def __init__(self, *breadcrumb: str):
        super().__init__('socks5', *breadcrumb)


class AuthNegotiationFailed(Socks5Error):
    ver: int
    method: int

    def __init__(self, ver: int, method: int):
        super().__init__('auth', Socks5AuthMethod.name_of(method))
        self.ver = ver
        self.method = method


class HostnameTooLong(Socks5Error):
    host: str

    def __init__(self, host: str):
        super().__init__('addr', 'toolong')
        self.host = host


class InvalidResponse(Socks5Error):
    ver: int

    def __init__(self, ver: int):
        super().__init__('header', 'ver', str(ver))
        self.ver = ver


class ConnectFailed(Socks5Error):
    code: int
    rep: Union[Socks5Rep, int]

    def __init__(self, code: int):
        super().__init__('header', 'rep', Socks5Rep.name_of(code))
        self.code = code
        self.rep = Socks5Rep.get(code)


class InvalidBindAddressType(Socks5Error):
    atyp: int

    def __init__(self, atyp: int):
        super().__init__('atyp', str(atyp))
        self.atyp = atyp


@dataclass
class Socks5Addr:
    atyp: Socks5Atyp
    addr: tuple[str, int]

    def __bytes__(self) -> bytes:
        atyp, addr_bytes = self.encode_host()
        return bytes(atyp) + addr_bytes + HStruct.pack(self.addr[1])

    @staticmethod
    def classify(host: str) -> Socks5Atyp:
        """Tell IP literals from domain names, without any DNS lookup."""
        for atyp, family in ((Socks5Atyp.IPV4, socket.AF_INET),
                             (Socks5Atyp.IPV6, socket.AF_INET6)):
            try:
                socket.inet_pton(family, host)
                return atyp
            except (OSError, ValueError):
                pass
        return Socks5Atyp.DOMAINNAME

    @classmethod
    def from_host(cls, host: str, port: int) -> Self:
        return cls(cls.classify(host), (host, port))

    def encode_host(self) -> tuple[Socks5Atyp, bytes]:
        host = self.addr[0]
        if self.atyp is Socks5Atyp.IPV4:
            return self.atyp, socket.inet_pton(socket.AF_INET, host)
        if self.atyp is Socks5Atyp.IPV6:
            return self.atyp, socket.inet_pton(socket.AF_INET6, host)
        host_bytes = host.encode()
        if len(host_bytes) > MAX_DOMAIN_LENGTH:
            raise HostnameTooLong(host)
        return self.atyp, BStruct.pack_varlen(host_bytes)


@dataclass
class Socks5AuthRequest:
    """
    +----+----------+----------+
    |VER | NMETHODS | METHODS  |
    +----+----------+----------+
    | 1  |    1     | 1 to 255 |
    +----+----------+----------+
    """
    methods: tuple[Socks5AuthMethod, ...]

    def __bytes__(self) -> bytes:
        return bytes(Socks5Ver.V5) + BStruct.pack_varlen(bytes(self.methods))


@dataclass
class Socks5Request:
    """
    +----+-----+-------+------+----------+----------+
    |VER | CMD |  RSV  | ATYP | DST.ADDR | DST.PORT |
    +----+-----+-------+------+----------+----------+
    | 1  |  1  | X'00' |  1   | Variable |    2     |
    +----+-----+-------+------+----------+----------+
    """
    cmd: Socks5Cmd
    dst: Socks5Addr

    def __bytes__(self) -> bytes:
        return BBBStruct.pack(Socks5Ver.V5, self.cmd, Socks5Rsv.Zero) + \
            bytes(self.dst)


class Socks5State(Enum):
    Start = 'start'
    MethodSent = 'method-sent'
    MethodAcked = 'method-acked'
    ConnectSent = 'connect-sent'
    ConnectReplyHeaderRead = 'connect-reply-header-read'
    AddressConsuming = 'address-consuming'
    Established = 'established'
    Failed = 'failed'


class Socks5Handshake(Loggable):
    """Client side of the socks5 handshake as an explicit state machine.

    Every state consumes exactly ``need`` bytes from the server and may
    produce bytes to send. ``step`` applies the transition of the current
    state, so each transition can be exercised without a socket::

        hs = Socks5Handshake(('example.com', 443))
        hs.step()                     # -> b'\\x05\\x01\\x00'
        hs.step(b'\\x05\\x00')          # method acked
        hs.step()                     # -> connect request
        hs.step(b'\\x05\\x00\\x00\\x01')  # reply header
        hs.step()                     # -> bind address prefix (none)
        hs.step(b'\\x00' * 6)          # bind address and port

    The bound address in the reply is consumed and discarded; afterwards the
    stream carries tunnelled data only.
    """
    AUTH_REQ = bytes(
        Socks5AuthRequest((Socks5AuthMethod.NoAuthenticationRequired, )))

    BIND_ADDR_LENGTHS = {
        Socks5Atyp.IPV4: 4 + 2,
        Socks5Atyp.IPV6: 16 + 2,
    }

    addr: tuple[str, int]
    state: Socks5State
    bnd_atyp: int
    bnd_remaining: int

    def __init__(self, addr: tuple[str, int], **kwargs):
        super().__init__(**kwargs)
        self.addr = addr
        self.state = Socks5State.Start
        self.bnd_atyp = 0
        self.bnd_remaining = 0

    def __str__(self) -> str:
        return '<{} {} {}>'.format(self.addr[0], self.addr[1],
                                   self.state.name)

    @property
    def done(self) -> bool:
        return self.state in (Socks5State.Established, Socks5State.Failed)

    @property
    def need(self) -> int:
        state = self.state
        if state is Socks5State.Start or state is Socks5State.MethodAcked:
            return 0
        if state is Socks5State.MethodSent:
            return BBStruct.size
        if state is Socks5State.ConnectSent:
            return BBBBStruct.size
        if state is Socks5State.ConnectReplyHeaderRead:
            return BStruct.size \
                if self.bnd_atyp == Socks5Atyp.DOMAINNAME else 0
        if state is Socks5State.AddressConsuming:
            return self.bnd_remaining
        raise ProtocolError('socks5', 'state', state.name)

    @property
    def transitions(self) -> dict[Socks5State, Callable[[bytes], bytes]]:
        return {
            Socks5State.Start: self.send_method_request,
            Socks5State.MethodSent: self.recv_method_reply,
            Socks5State.MethodAcked: self.send_connect_request,
            Socks5State.ConnectSent: self.recv_reply_header,
            Socks5State.ConnectReplyHeaderRead: self.recv_bind_prefix,
            Socks5State.AddressConsuming: self.recv_bind_address,
        }

    def step(self, buf: bytes = b'') -> bytes:
        """Feed exactly ``need`` bytes, return the bytes to send."""
        need = self.need
        if len(buf) != need:
            raise ValueError(f'{self.state.name} needs {need} bytes, '
                             f'got {len(buf)}')
        transition = self.transitions[self.state]
        try:
            return transition(buf)
        except Exception:
            self.state = Socks5State.Failed
            raise

    def feed(self, data: bytes) -> bytes:
        """Run the whole handshake against the complete server side."""
        buffer, out = Buffer(data), b''
        while not self.done:
            out += self.step(buffer.pop(self.need))
        return out

    async def run(self, stream: Stream):
        while not self.done:
            buf = await stream.readexactly(self.need)
            out = self.step(buf)
            if len(out) != 0:
                await stream.writedrain(out)

    def send_method_request(self, buf: bytes) -> bytes:
        self.state = Socks5State.MethodSent
        return self.AUTH_REQ

    def recv_method_reply(self, buf: bytes) -> bytes:
        ver, method = BBStruct.unpack(buf)
        if ver != Socks5Ver.V5 or \
                method != Socks5AuthMethod.NoAuthenticationRequired:
            raise AuthNegotiationFailed(ver, method)
        self.state = Socks5State.MethodAcked
        return b''

    def send_connect_request(self, buf: bytes) -> bytes:
        dst = Socks5Addr.from_host(*self.addr)
        req = bytes(Socks5Request(Socks5Cmd.Connect, dst))
        self.state = Socks5State.ConnectSent
        return req

    def recv_reply_header(self, buf: bytes) -> bytes:
        ver, rep, _rsv, atyp = BBBBStruct.unpack(buf)
        if ver != Socks5Ver.V5:
            raise InvalidResponse(ver)
        if rep != Socks5Rep.Succeeded:
            raise ConnectFailed(rep)
        self.bnd_atyp = atyp
        self.state = Socks5State.ConnectReplyHeaderRead
        return b''

    def recv_bind_prefix(self, buf: bytes) -> bytes:
        atyp = self.bnd_atyp
        if atyp == Socks5Atyp.DOMAINNAME:
            alen, = BStruct.unpack(buf)
            self.bnd_remaining = alen + HStruct.size
        elif atyp in self.BIND_ADDR_LENGTHS:
            self.bnd_remaining = self.BIND_ADDR_LENGTHS[Socks5Atyp(atyp)]
        else:
            raise InvalidBindAddressType(atyp)
        self.state = Socks5State.AddressConsuming
        return b''

    def recv_bind_address(self, buf: bytes) -> bytes:
        self.state = Socks5State.Established
        return b''


class Socks5Connector(ProxyConnector):
    """Tunnel to ``addr`` through the socks5 server of the next layer."""
    handshake: Optional[Socks5Handshake]

    ensure_next_layer = True

    def __init__(self, **kwargs):
        super().__init__(**kwargs)
        self.handshake = None

    @override(ProxyConnector)
    async def connect(self, rest: bytes = b'') -> Stream:
        assert self.next_layer is not None
        stream = await self.next_layer.connect()
        async with stream.cm(exc_only=True):
            with phase('socks5'):
                self.handshake = Socks5Handshake(self.addr)
                await self.handshake.run(stream)
                self.logger.debug('tunnel established to %s:%d', *self.addr)
                if len(rest) != 0:
                    await stream.writedrain(rest)
            return stream
