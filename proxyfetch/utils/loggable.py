import logging


class Loggable:
    """Give every subclass a logger under its module's hierarchy.

    Loggers are named ``<module>.<class>`` so the whole package can be
    tuned through ``logging.getLogger('proxyfetch')``.
    """

    logger: logging.Logger

    def __init_subclass__(cls, **kwargs):
        super().__init_subclass__(**kwargs)
        cls.logger = logging.getLogger('{}.{}'.format(cls.__module__,
                                                      cls.__qualname__))

    def __init__(self, **kwargs):
        for k in kwargs:
            self.logger.debug('unused kwarg: %s', k)
