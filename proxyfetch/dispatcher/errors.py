from typing import Any


class DispatcherError(ValueError):
    pass


class InvalidTarget(DispatcherError):
    options: Any

    def __init__(self, options: Any, reason: str = 'no host'):
        super().__init__(
            'invalid target for proxy connect ({}): hostname={!r} host={!r} '
            'port={!r} protocol={!r}'.format(
                reason,
                getattr(options, 'hostname', None),
                getattr(options, 'host', None),
                getattr(options, 'port', None),
                getattr(options, 'protocol', None),
            ))
        self.options = options


class InvalidProxyURL(DispatcherError):
    url: str

    def __init__(self, url: str):
        super().__init__(f'invalid proxy url: {url}')
        self.url = url
