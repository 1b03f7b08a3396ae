import asyncio
from collections.abc import Callable, Coroutine
from typing import Any, Optional

from proxyfetch.stream import Stream
from proxyfetch.utils.loggable import Loggable

ConnectCallback = Callable[[Optional[BaseException], Optional[Stream]], None]


class Completion(Loggable):
    """Single-assignment cell: only the first outcome reaches the callback."""
    callback: ConnectCallback
    settled: bool

    def __init__(self, callback: ConnectCallback, **kwargs):
        super().__init__(**kwargs)
        self.callback = callback
        self.settled = False

    def settle(
        self,
        exc: Optional[BaseException],
        stream: Optional[Stream] = None,
    ) -> bool:
        if self.settled:
            return False
        self.settled = True
        self.callback(exc, stream)
        return True


class PendingConnect(Loggable):
    """A connect attempt in flight, reported through a callback once."""
    task: asyncio.Task
    completion: Completion

    def __init__(
        self,
        coro: Coroutine[Any, Any, Stream],
        callback: ConnectCallback,
        **kwargs,
    ):
        super().__init__(**kwargs)
        self.completion = Completion(callback)
        self.task = asyncio.create_task(coro)
        self.task.add_done_callback(self.on_done)

    @property
    def done(self) -> bool:
        return self.completion.settled

    def cancel(self):
        """Abort the attempt.

        The callback sees CancelledError once the task has unwound, so a
        stream opened meanwhile is already closed by then.
        """
        self.task.cancel()

    def on_done(self, task: asyncio.Task):
        if task.cancelled():
            self.completion.settle(asyncio.CancelledError())
            return
        exc = task.exception()
        if exc is not None:
            self.completion.settle(exc)
            return
        stream = task.result()
        if not self.completion.settle(None, stream):
            self.logger.debug('drop stream connected after settle')
            stream.close()
