import ssl
from abc import ABC, abstractmethod
from typing import Any, Optional

import httpx
from typing_extensions import Self

from proxyfetch.common.tls import TLSConnector, create_tls_ctx
from proxyfetch.dispatcher.completion import ConnectCallback, PendingConnect
from proxyfetch.dispatcher.errors import InvalidProxyURL
from proxyfetch.dispatcher.options import (ConnectOptions, ConnectTarget,
                                           ProxyEndpoint, first_str)
from proxyfetch.dispatcher.transport import DispatcherTransport
from proxyfetch.stream import Connector, Stream
from proxyfetch.utils.loggable import Loggable
from proxyfetch.utils.override import override
from proxyfetch.utils.serializable import DispatchedSerializable
from proxyfetch.utils.url import URL


class Dispatcher(DispatchedSerializable['Dispatcher'], Loggable, ABC):
    """Open transports to targets through one proxy.

    A dispatcher only holds immutable configuration, so a single instance
    serves any number of concurrent connects.
    """
    url: URL
    endpoint: ProxyEndpoint
    tls_cert_file: str
    tls_ctx: ssl.SSLContext
    tcp_extra_kwargs: dict[str, Any]

    default_port: int
    fallback_scheme = 'http'

    def __init__(
        self,
        url: str = '',
        tls_cert_file: str = '',
        tls_ctx: Optional[ssl.SSLContext] = None,
        tcp_extra_kwargs: Optional[dict[str, Any]] = None,
        **kwargs,
    ):
        super().__init__(**kwargs)
        if tls_ctx is None:
            tls_ctx = create_tls_ctx(tls_cert_file)
        try:
            parsed = URL.from_str(url.strip())
        except (TypeError, ValueError) as e:
            raise InvalidProxyURL(url) from e
        if not parsed.host:
            raise InvalidProxyURL(url)
        self.url = parsed.with_default_port(
            self.default_port_for(parsed.scheme))
        self.endpoint = ProxyEndpoint.from_url(self.url)
        self.tls_cert_file = tls_cert_file
        self.tls_ctx = tls_ctx
        self.tcp_extra_kwargs = dict(tcp_extra_kwargs or {})

    def __str__(self) -> str:
        return '<{} {}>'.format(self.__class__.__name__, self.endpoint)

    def default_port_for(self, scheme: str) -> int:
        return self.default_port

    @override(DispatchedSerializable)
    def to_dict(self) -> dict[str, Any]:
        obj = super().to_dict()
        obj['scheme'] = self.url.scheme
        obj['url'] = str(self.url)
        obj['tls_cert_file'] = self.tls_cert_file
        return obj

    @classmethod
    @override(DispatchedSerializable)
    def scheme_class(cls, scheme: str) -> type['Dispatcher']:
        scheme_cls = cls.scheme_dict.get(scheme.lower())
        if scheme_cls is None:
            scheme_cls = cls.scheme_dict[cls.fallback_scheme]
        return scheme_cls

    @classmethod
    @override(DispatchedSerializable)
    def scheme_from_dict(cls, obj: dict[str, Any]) -> str:
        if obj.get('scheme'):
            return super().scheme_from_dict(obj)
        url = obj.get('url') or ''
        if '://' not in url:
            raise InvalidProxyURL(url)
        return url.split('://', 1)[0]

    @classmethod
    @override(DispatchedSerializable)
    def kwargs_from_dict(cls, obj: dict[str, Any]) -> dict[str, Any]:
        kwargs = super().kwargs_from_dict(obj)
        kwargs['url'] = obj.get('url') or ''
        kwargs['tls_cert_file'] = obj.get('tls_cert_file') or ''
        return kwargs

    @classmethod
    def from_url(cls, url: str, **kwargs) -> Self:
        url = url.strip()
        if '://' not in url:
            raise InvalidProxyURL(url)
        scheme_cls = cls.scheme_class(url.split('://', 1)[0])
        return scheme_cls(url=url, **kwargs)

    @abstractmethod
    async def tunnel_connector(self, target: ConnectTarget) -> Connector:
        """Connector yielding a raw tunnel to ``target``."""
        raise NotImplementedError

    async def connector(
        self,
        target: ConnectTarget,
        servername: Optional[str] = None,
    ) -> Connector:
        connector = await self.tunnel_connector(target)
        if target.secure:
            connector = TLSConnector(
                server_hostname=servername or target.host,
                tls_ctx=self.tls_ctx,
                next_layer=connector,
            )
        return connector

    async def connect(self, options: ConnectOptions) -> Stream:
        target = ConnectTarget.from_options(options)
        try:
            connector = await self.connector(
                target,
                servername=first_str(options.servername) or None,
            )
            self.logger.debug('connect %s via %s', target,
                              connector.layers_str())
            return await connector.connect()
        except Exception as e:
            self.logger.debug('except while connecting to %s: %.60s', target,
                              e)
            raise

    def connect_cb(
        self,
        options: ConnectOptions,
        callback: ConnectCallback,
    ) -> PendingConnect:
        """Callback flavour of connect, must be called in a running loop."""
        return PendingConnect(self.connect(options), callback)

    def transport(self) -> httpx.AsyncBaseTransport:
        """httpx transport sending requests through this proxy."""
        return DispatcherTransport(self)


def make_dispatcher(proxy_url: str, **kwargs) -> Dispatcher:
    """Pick the dispatcher for ``proxy_url`` by its scheme.

    socks5:// and socks5h:// yield a Socks5Dispatcher, every other scheme
    goes through an HTTP proxy.
    """
    return Dispatcher.from_url(proxy_url, **kwargs)
