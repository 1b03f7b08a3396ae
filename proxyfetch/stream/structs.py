from struct import Struct


class BaseStruct(Struct):

    def pack_varlen(self, buf: bytes) -> bytes:
        """Prefix ``buf`` with its length packed by this struct."""
        return self.pack(len(buf)) + buf


BStruct = BaseStruct('!B')
HStruct = BaseStruct('!H')
BBStruct = BaseStruct('!BB')
BBBStruct = BaseStruct('!BBB')
BBBBStruct = BaseStruct('!BBBB')
