import asyncio
import json
from dataclasses import dataclass, field
from typing import Any, Optional

import httpx
from typing_extensions import Self
from yarl import URL as yaURL

from proxyfetch.dispatcher import Dispatcher, make_dispatcher
from proxyfetch.utils.loggable import Loggable

SUPPORTED_SCHEMES = ('http', 'https')


@dataclass
class Response:
    url: str
    status: int
    reason: str
    headers: dict[str, str] = field(default_factory=dict)
    body: bytes = b''

    def __str__(self) -> str:
        return '<{} {} {}B>'.format(self.status, self.url, len(self.body))

    @property
    def ok(self) -> bool:
        return 200 <= self.status < 300

    def header(self, name: str, default: Optional[str] = None) \
            -> Optional[str]:
        name = name.lower()
        for k, v in self.headers.items():
            if k.lower() == name:
                return v
        return default

    def text(self, encoding: str = 'utf-8') -> str:
        return self.body.decode(encoding, errors='replace')

    def json(self) -> Any:
        return json.loads(self.body)

    @classmethod
    def from_httpx(cls, url: str, resp: httpx.Response) -> Self:
        return cls(
            url=url,
            status=resp.status_code,
            reason=resp.reason_phrase,
            headers=dict(resp.headers),
            body=resp.content,
        )


class ProxyFetch(Loggable):
    """Fetch callable sending every request through one dispatcher.

    Each call runs on a fresh httpx client over ``dispatcher.transport()``,
    with no redirects and no retries.
    """
    dispatcher: Dispatcher

    def __init__(self, dispatcher: Dispatcher, **kwargs):
        super().__init__(**kwargs)
        self.dispatcher = dispatcher

    def __str__(self) -> str:
        return '<{} {}>'.format(self.__class__.__name__, self.dispatcher)

    async def __call__(
        self,
        url: str,
        method: str = 'GET',
        headers: Optional[dict[str, str]] = None,
        body: bytes = b'',
        timeout: Optional[float] = None,
    ) -> Response:
        coro = self.fetch(url, method=method, headers=headers, body=body)
        if timeout is None:
            return await coro
        return await asyncio.wait_for(coro, timeout)

    def client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(
            transport=self.dispatcher.transport(),
            trust_env=False,
            follow_redirects=False,
            timeout=None,
        )

    async def fetch(
        self,
        url: str,
        method: str = 'GET',
        headers: Optional[dict[str, str]] = None,
        body: bytes = b'',
    ) -> Response:
        yaurl = yaURL(url)
        if yaurl.scheme.lower() not in SUPPORTED_SCHEMES or \
                not yaurl.raw_host:
            raise ValueError(f'unsupported url: {url}')
        method = method.upper()

        async with self.client() as client:
            resp = await client.request(
                method,
                url,
                headers=headers,
                content=body or None,
            )

        self.logger.debug('fetch %s %s: %d', method, url, resp.status_code)
        return Response.from_httpx(url, resp)


def make_proxy_fetch(proxy_url: str, **kwargs) -> ProxyFetch:
    """Fetch callable routing every request through ``proxy_url``.

    The dispatcher is built once here and reused by every call.
    """
    return ProxyFetch(make_dispatcher(proxy_url, **kwargs))
