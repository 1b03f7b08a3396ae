import asyncio
import socket
from typing import Any

from proxyfetch.common.tcp import TCPConnector
from proxyfetch.contrib.socks5 import Socks5Addr, Socks5Atyp, Socks5Connector
from proxyfetch.defaults import SOCKS5_DEFAULT_PORT
from proxyfetch.dispatcher.base import Dispatcher
from proxyfetch.dispatcher.options import ConnectTarget
from proxyfetch.stream import Connector, phase
from proxyfetch.utils.override import override


class Socks5Dispatcher(Dispatcher):
    """Tunnel through a socks5 server, TLS on top for https targets.

    Target hosts are sent to the server as given, so the server resolves
    domain names for both socks5:// and socks5h://. Set ``resolve_locally``
    to look names up on this side and send IP addresses instead.
    """
    resolve_locally: bool

    scheme = 'socks5'
    schemes = ('socks5h', )
    default_port = SOCKS5_DEFAULT_PORT

    def __init__(self, resolve_locally: bool = False, **kwargs):
        super().__init__(**kwargs)
        self.resolve_locally = resolve_locally

    @override(Dispatcher)
    def to_dict(self) -> dict[str, Any]:
        obj = super().to_dict()
        obj['resolve_locally'] = self.resolve_locally
        return obj

    @classmethod
    @override(Dispatcher)
    def kwargs_from_dict(cls, obj: dict[str, Any]) -> dict[str, Any]:
        kwargs = super().kwargs_from_dict(obj)
        kwargs['resolve_locally'] = bool(obj.get('resolve_locally'))
        return kwargs

    async def resolve(self, host: str) -> str:
        if Socks5Addr.classify(host) is not Socks5Atyp.DOMAINNAME:
            return host
        loop = asyncio.get_running_loop()
        with phase('resolve'):
            infos = await loop.getaddrinfo(host, None, type=socket.SOCK_STREAM)
        addr = infos[0][4][0]
        self.logger.debug('resolve %s to %s', host, addr)
        return addr

    @override(Dispatcher)
    async def tunnel_connector(self, target: ConnectTarget) -> Connector:
        host = target.host
        if self.resolve_locally:
            host = await self.resolve(host)
        next_connector = TCPConnector(
            tcp_extra_kwargs=self.tcp_extra_kwargs,
            addr=self.endpoint.addr,
        )
        return Socks5Connector(addr=(host, target.port),
                               next_layer=next_connector)
