from typing import Any, Optional

import httpx

from proxyfetch.common.tcp import TCPConnector
from proxyfetch.contrib.http import HTTPConnector, format_host
from proxyfetch.defaults import HTTP_DEFAULT_PORT, HTTPS_DEFAULT_PORT
from proxyfetch.dispatcher.base import Dispatcher
from proxyfetch.dispatcher.options import ConnectTarget
from proxyfetch.stream import Connector
from proxyfetch.utils.override import override


class HTTPDispatcher(Dispatcher):
    """Tunnel with CONNECT through an HTTP proxy.

    https:// proxies are reached over TLS, with the same context as the
    targets. Fetches go through the proxy support of httpx instead, which
    forwards plain http requests and tunnels https ones.
    """
    extra_headers: Optional[dict[str, str]]

    scheme = 'http'
    schemes = ('https', )
    default_port = HTTP_DEFAULT_PORT

    def __init__(
        self,
        extra_headers: Optional[dict[str, str]] = None,
        **kwargs,
    ):
        super().__init__(**kwargs)
        self.extra_headers = extra_headers
        if self.url.scheme == 'https':
            self.tcp_extra_kwargs.setdefault('ssl', self.tls_ctx)
            self.tcp_extra_kwargs.setdefault('server_hostname',
                                             self.endpoint.host)

    @override(Dispatcher)
    def to_dict(self) -> dict[str, Any]:
        obj = super().to_dict()
        if self.extra_headers is not None:
            obj['extra_headers'] = dict(self.extra_headers)
        return obj

    @classmethod
    @override(Dispatcher)
    def kwargs_from_dict(cls, obj: dict[str, Any]) -> dict[str, Any]:
        kwargs = super().kwargs_from_dict(obj)
        kwargs['extra_headers'] = obj.get('extra_headers')
        return kwargs

    @override(Dispatcher)
    def default_port_for(self, scheme: str) -> int:
        if scheme == 'https':
            return HTTPS_DEFAULT_PORT
        return super().default_port_for(scheme)

    @override(Dispatcher)
    async def tunnel_connector(self, target: ConnectTarget) -> Connector:
        next_connector = TCPConnector(
            tcp_extra_kwargs=self.tcp_extra_kwargs,
            addr=self.endpoint.addr,
        )
        return HTTPConnector(
            extra_headers=self.extra_headers,
            addr=target.addr,
            next_layer=next_connector,
        )

    @override(Dispatcher)
    def transport(self) -> httpx.AsyncBaseTransport:
        scheme = 'https' if self.url.scheme == 'https' else 'http'
        proxy = httpx.Proxy(
            '{}://{}'.format(scheme, format_host(self.endpoint.addr)),
            ssl_context=self.tls_ctx,
            headers=self.extra_headers,
        )
        return httpx.AsyncHTTPTransport(
            verify=self.tls_ctx,
            trust_env=False,
            proxy=proxy,
        )
