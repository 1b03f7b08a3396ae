from abc import ABC, abstractmethod

from proxyfetch.stream.stream import Stream
from proxyfetch.utils.layerable import Layerable


class Connector(Layerable['Connector'], ABC):
    """Opens a stream, usually on top of the stream of the next layer.

    ``rest`` is written once the connection is usable, so early data can
    share a round trip with the handshake of this layer.
    """

    def __str__(self) -> str:
        return self.__class__.__name__

    @abstractmethod
    async def connect(self, rest: bytes = b'') -> Stream:
        raise NotImplementedError
