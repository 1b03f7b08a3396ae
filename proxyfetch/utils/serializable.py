from abc import ABC, abstractmethod
from typing import Any, Generic, TypeVar

from proxyfetch.utils.override import override


class Serializable(ABC):

    @abstractmethod
    def to_dict(self) -> dict[str, Any]:
        raise NotImplementedError

    @classmethod
    @abstractmethod
    def from_dict(cls, obj: dict[str, Any]) -> Any:
        raise NotImplementedError


Scheme = TypeVar('Scheme')


class DispatchedSerializable(Generic[Scheme], Serializable):
    """Serializable dispatched to a subclass by its scheme.

    Subclasses declaring ``scheme`` register themselves in ``scheme_dict``,
    ``schemes`` may name additional aliases for the same class.
    """
    scheme: str
    schemes: tuple[str, ...] = ()
    scheme_dict: dict[str, type[Scheme]]

    def __init_subclass__(cls, **kwargs):
        super().__init_subclass__(**kwargs)
        if not hasattr(cls, 'scheme_dict'):
            cls.scheme_dict = dict()
        if 'scheme' in cls.__dict__:
            cls.scheme_dict[cls.scheme] = cls
            for scheme in cls.schemes:
                cls.scheme_dict[scheme] = cls

    @override(Serializable)
    def to_dict(self) -> dict[str, Any]:
        return {'scheme': self.scheme}

    @classmethod
    @override(Serializable)
    def from_dict(cls, obj: dict[str, Any]) -> Scheme:
        scheme = cls.scheme_from_dict(obj)
        scheme_cls = cls.scheme_class(scheme)
        kwargs = scheme_cls.kwargs_from_dict(obj)
        return scheme_cls(**kwargs)

    @classmethod
    def scheme_class(cls, scheme: str) -> type[Scheme]:
        return cls.scheme_dict[scheme]

    @classmethod
    def scheme_from_dict(cls, obj: dict[str, Any]) -> str:
        return obj['scheme']

    @classmethod
    def kwargs_from_dict(cls, obj: dict[str, Any]) -> dict[str, Any]:
        return dict()
