import asyncio
from collections.abc import Iterator
from contextlib import contextmanager


class StreamError(Exception):
    pass


class ProtocolError(RuntimeError, StreamError):
    breadcrumb: list[str]

    def __init__(self, *breadcrumb: str):
        super().__init__('protocol error: ' + '/'.join(breadcrumb))
        self.breadcrumb = list(breadcrumb)


class BufferOverflowError(asyncio.LimitOverrunError, StreamError):

    def __init__(self, consumed: int = 0):
        super().__init__(message='buffer overflow', consumed=consumed)


class IncompleteReadError(asyncio.IncompleteReadError, StreamError):
    pass


@contextmanager
def phase(name: str) -> Iterator[None]:
    """Tag exceptions escaping the block with the connect phase.

    The innermost phase wins, the exception itself is re-raised unchanged.
    """
    try:
        yield
    except Exception as e:
        if getattr(e, 'phase', None) is None:
            setattr(e, 'phase', name)
            e.add_note('phase: ' + name)
        raise
