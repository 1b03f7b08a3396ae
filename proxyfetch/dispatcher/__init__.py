# flake8: noqa
from proxyfetch.dispatcher.base import Dispatcher, make_dispatcher
from proxyfetch.dispatcher.completion import Completion, PendingConnect
from proxyfetch.dispatcher.errors import (DispatcherError, InvalidProxyURL,
                                          InvalidTarget)
from proxyfetch.dispatcher.http import HTTPDispatcher
from proxyfetch.dispatcher.options import (ConnectOptions, ConnectTarget,
                                           ProxyEndpoint)
from proxyfetch.dispatcher.socks5 import Socks5Dispatcher
from proxyfetch.dispatcher.transport import (DispatcherNetworkBackend,
                                             DispatcherTransport,
                                             TunnelNetworkStream)
