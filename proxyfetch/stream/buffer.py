from proxyfetch.stream.errors import IncompleteReadError


class Buffer:
    """Complete bytes consumed from the front, for sans-io parsing."""
    data: memoryview
    pos: int

    def __init__(self, data: bytes):
        self.data = memoryview(data)
        self.pos = 0

    def __bytes__(self) -> bytes:
        return bytes(self.data[self.pos:])

    def __len__(self) -> int:
        return len(self.data) - self.pos

    def pop(self, n: int) -> bytes:
        """Consume exactly ``n`` bytes, nothing if fewer are left."""
        if n > len(self):
            raise IncompleteReadError(partial=bytes(self), expected=n)
        buf = bytes(self.data[self.pos:self.pos + n])
        self.pos += n
        return buf
