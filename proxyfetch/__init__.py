# flake8: noqa
import logging

from proxyfetch.contrib.socks5 import (AuthNegotiationFailed, ConnectFailed,
                                       HostnameTooLong,
                                       InvalidBindAddressType,
                                       InvalidResponse, Socks5Error)
from proxyfetch.dispatcher import (ConnectOptions, Dispatcher,
                                   HTTPDispatcher, InvalidProxyURL,
                                   InvalidTarget, PendingConnect,
                                   Socks5Dispatcher, make_dispatcher)
from proxyfetch.fetch import ProxyFetch, Response, make_proxy_fetch
from proxyfetch.stream import (IncompleteReadError, ProtocolError, Stream,
                               StreamError)

__version__ = '0.1.0'

logging.getLogger(__name__).addHandler(logging.NullHandler())
