from proxyfetch.stream.connector import Connector
from proxyfetch.utils.override import override


class ProxyConnector(Connector):
    """Connector asking the next layer's peer to reach ``addr``."""
    addr: tuple[str, int]

    def __init__(self, addr: tuple[str, int], **kwargs):
        super().__init__(**kwargs)
        self.addr = addr

    @override(Connector)
    def __str__(self) -> str:
        return '{}({}:{})'.format(self.__class__.__name__, *self.addr)
