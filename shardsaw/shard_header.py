"""
Fixed-layout record at the start of every shard.

Layout (288 bytes, native byte order, no padding):
    Bytes 0-3:     magic          0xB007C8AD
    Bytes 4-5:     shard_idx      1-based position in the set
    Bytes 6-7:     shard_count    shards in the set
    Bytes 8-15:    original_size  size of the source file
    Bytes 16-19:   original_crc   CRC-32 of the whole source file
    Bytes 20-27:   shard_size     size of this shard file, header included
    Bytes 28-31:   shard_crc      CRC-32 of this shard's payload
    Bytes 32-287:  original_name  source base name, NUL-terminated, NUL-padded

Byte order follows the host; shards are not portable between hosts of
differing endianness.
"""

import os
import struct
import logging
from pydantic import BaseModel, ConfigDict, Field, ValidationError

from .config import MAGIC, HEADER_SIZE, NAME_FIELD_SIZE
from .errors import FormatError

logger = logging.getLogger("ShardHeader")

U16_MAX = 0xFFFF
U32_MAX = 0xFFFFFFFF
U64_MAX = 0xFFFFFFFFFFFFFFFF

# Struct format: I=magic, H=shard_idx, H=shard_count, Q=original_size,
#                I=original_crc, Q=shard_size, I=shard_crc, 256s=original_name
_LAYOUT = struct.Struct(f"=IHHQIQI{NAME_FIELD_SIZE}s")
assert _LAYOUT.size == HEADER_SIZE


def encode_name(name: str) -> bytes:
    """
    Encode a file name for the fixed-size name field.

    The encoded name plus its terminator must fit in NAME_FIELD_SIZE bytes;
    nothing is ever truncated.
    """
    raw = os.fsencode(name)
    if b"\x00" in raw:
        raise FormatError(f"file name {name!r} contains a NUL byte")
    if len(raw) >= NAME_FIELD_SIZE:
        raise FormatError(
            f"the file name is too long ({len(raw)} bytes, at most "
            f"{NAME_FIELD_SIZE - 1} fit in a shard header)"
        )
    return raw


def decode_name(field: bytes) -> str:
    end = field.find(b"\x00")
    if end < 0:
        raise FormatError("the original name field is not NUL-terminated")
    return os.fsdecode(field[:end])


class ShardHeader(BaseModel):
    """Header of one shard; immutable once built."""

    model_config = ConfigDict(frozen=True)

    magic: int = MAGIC
    shard_idx: int = Field(ge=0, le=U16_MAX)
    shard_count: int = Field(ge=0, le=U16_MAX)
    original_size: int = Field(ge=0, le=U64_MAX)
    original_crc: int = Field(ge=0, le=U32_MAX)
    shard_size: int = Field(ge=0, le=U64_MAX)
    shard_crc: int = Field(default=0, ge=0, le=U32_MAX)
    original_name: str

    @property
    def payload_size(self) -> int:
        return self.shard_size - HEADER_SIZE

    def same_set(self, other: "ShardHeader") -> bool:
        """True when both headers describe shards of the same original file"""
        return (
            self.shard_count == other.shard_count
            and self.original_size == other.original_size
            and self.original_crc == other.original_crc
            and self.original_name == other.original_name
        )

    def encode(self) -> bytes:
        """Encode header to its 288-byte wire form."""
        return _LAYOUT.pack(
            self.magic,
            self.shard_idx,
            self.shard_count,
            self.original_size,
            self.original_crc,
            self.shard_size,
            self.shard_crc,
            encode_name(self.original_name),
        )

    @classmethod
    def decode(cls, data: bytes) -> "ShardHeader":
        """Decode and validate a header from the first HEADER_SIZE bytes of data."""
        if len(data) < HEADER_SIZE:
            raise FormatError(f"header too small: {len(data)} < {HEADER_SIZE} bytes")

        (magic, shard_idx, shard_count, original_size, original_crc,
         shard_size, shard_crc, name_field) = _LAYOUT.unpack(data[:HEADER_SIZE])

        if magic != MAGIC:
            raise FormatError(f"bad magic number 0x{magic:08X} (expected 0x{MAGIC:08X})")
        if not 1 <= shard_idx <= shard_count:
            raise FormatError(f"shard index {shard_idx} is outside 1..{shard_count}")

        try:
            header = cls(
                magic=magic,
                shard_idx=shard_idx,
                shard_count=shard_count,
                original_size=original_size,
                original_crc=original_crc,
                shard_size=shard_size,
                shard_crc=shard_crc,
                original_name=decode_name(name_field),
            )
        except ValidationError as e:
            raise FormatError("the shard header holds invalid values") from e
        logger.debug(f"Decoded header {header}")
        return header
