from enum import IntEnum
from typing import Union

from typing_extensions import Self

from proxyfetch.stream.structs import BaseStruct, BStruct


class BaseIntEnumMixin:
    """Wire enum packed with ``struct``.

    Peers may send codes that have no member, ``get`` and ``name_of`` keep
    those as plain integers instead of failing.
    """
    struct: BaseStruct

    def __bytes__(self) -> bytes:
        assert isinstance(self, int)
        return self.pack(self)

    @classmethod
    def pack(cls, i: int) -> bytes:
        return cls.struct.pack(int(i))

    @classmethod
    def get(cls, i: int) -> Union[Self, int]:
        assert issubclass(cls, IntEnum)
        try:
            return cls(i)
        except ValueError:
            return i

    @classmethod
    def name_of(cls, i: int) -> str:
        member = cls.get(i)
        return member.name if isinstance(member, IntEnum) else str(i)


class BEnumMixin(BaseIntEnumMixin):
    struct = BStruct


class BEnum(BEnumMixin, IntEnum):
    pass
