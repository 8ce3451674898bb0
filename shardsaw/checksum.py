import zlib
from typing import Union

BytesLike = Union[bytes, bytearray, memoryview]


class Crc32:
    """Incremental CRC-32 (IEEE 802.3, same as zlib/gzip).

    Feeding two consecutive spans gives the same value as feeding their
    concatenation once, so callers may update across any buffer boundary.
    """

    def __init__(self, value: int = 0):
        self.value = value & 0xFFFFFFFF

    def update(self, data: BytesLike) -> int:
        self.value = zlib.crc32(memoryview(data), self.value) & 0xFFFFFFFF
        return self.value

    def __int__(self):
        return self.value

    def __repr__(self):
        return f"Crc32(0x{self.value:08X})"


def crc32_of(data: BytesLike) -> int:
    """CRC-32 of a complete buffer"""
    return Crc32().update(data)
