from collections.abc import Callable
from typing import Any, TypeVar

Meth = TypeVar('Meth')


def override(cls: Any) -> Callable[[Meth], Meth]:
    """Assert that the decorated method exists on ``cls``.

    Works under @classmethod too, as long as it is the outer decorator.
    """

    def check(meth: Meth) -> Meth:
        name = getattr(meth, '__name__')
        assert hasattr(cls, name), '{}.{} overrides nothing'.format(
            cls.__name__, name)
        return meth

    return check
