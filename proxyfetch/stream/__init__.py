# flake8: noqa
from proxyfetch.stream.buffer import Buffer
from proxyfetch.stream.connector import Connector
from proxyfetch.stream.errors import (BufferOverflowError, IncompleteReadError,
                                      ProtocolError, StreamError, phase)
from proxyfetch.stream.proxy import ProxyConnector
from proxyfetch.stream.stream import Stream
