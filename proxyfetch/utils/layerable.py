from collections.abc import Iterator
from typing import Any, Generic, Optional, TypeVar

from proxyfetch.utils.loggable import Loggable

Layer = TypeVar('Layer')


class Layerable(Generic[Layer], Loggable):
    """Object wrapping a lower layer of the same kind.

    Connectors wrap the connector that opens their transport, streams wrap
    the stream they read from. ``ensure_next_layer`` makes the lower layer
    mandatory.
    """
    next_layer: Optional[Layer]

    ensure_next_layer: bool = False

    def __init__(self, next_layer: Optional[Layer] = None, **kwargs):
        super().__init__(**kwargs)
        if self.ensure_next_layer and next_layer is None:
            raise ValueError('{} requires a next layer'.format(
                self.__class__.__name__))
        self.next_layer = next_layer

    def iter_layers(self) -> Iterator[Any]:
        """Yield this layer, then every layer below it."""
        layer: Any = self
        while layer is not None:
            yield layer
            layer = layer.next_layer

    def layers_str(self) -> str:
        return ' > '.join(str(layer) for layer in self.iter_layers())
