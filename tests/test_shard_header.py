import struct
import pytest

from shardsaw.config import HEADER_SIZE, MAGIC, NAME_FIELD_SIZE
from shardsaw.errors import FormatError
from shardsaw.shard_header import ShardHeader, encode_name, decode_name


def make_header(**overrides):
    fields = dict(
        shard_idx=2,
        shard_count=3,
        original_size=10_000_000,
        original_crc=0xDEADBEEF,
        shard_size=4_000_000,
        shard_crc=0x12345678,
        original_name="report.bin",
    )
    fields.update(overrides)
    return ShardHeader(**fields)


def test_header_is_288_bytes():
    assert HEADER_SIZE == 288
    assert len(make_header().encode()) == HEADER_SIZE


def test_field_layout_has_no_padding():
    data = make_header().encode()
    magic, idx, count, size, crc, shard_size, shard_crc = struct.unpack_from("=IHHQIQI", data)
    assert (magic, idx, count) == (MAGIC, 2, 3)
    assert (size, crc) == (10_000_000, 0xDEADBEEF)
    assert (shard_size, shard_crc) == (4_000_000, 0x12345678)
    assert data[32:32 + len("report.bin")] == b"report.bin"
    assert data[32 + len("report.bin"):] == b"\x00" * (NAME_FIELD_SIZE - len("report.bin"))


def test_decode_restores_every_field():
    header = make_header()
    assert ShardHeader.decode(header.encode()) == header


def test_decode_ignores_trailing_payload():
    header = make_header()
    assert ShardHeader.decode(header.encode() + b"payload") == header


def test_decode_rejects_short_data():
    with pytest.raises(FormatError, match="too small"):
        ShardHeader.decode(make_header().encode()[:HEADER_SIZE - 1])


def test_decode_rejects_bad_magic():
    data = bytearray(make_header().encode())
    data[0] ^= 0xFF
    with pytest.raises(FormatError, match="magic"):
        ShardHeader.decode(bytes(data))


@pytest.mark.parametrize("idx, count", [(0, 3), (4, 3)])
def test_decode_rejects_index_out_of_range(idx, count):
    data = make_header(shard_idx=idx, shard_count=count).encode()
    with pytest.raises(FormatError, match="outside"):
        ShardHeader.decode(data)


def test_decode_rejects_unterminated_name():
    data = make_header().encode()[:32] + b"x" * NAME_FIELD_SIZE
    with pytest.raises(FormatError, match="NUL-terminated"):
        ShardHeader.decode(data)


def test_name_must_leave_room_for_terminator():
    assert len(encode_name("a" * (NAME_FIELD_SIZE - 1))) == NAME_FIELD_SIZE - 1
    with pytest.raises(FormatError, match="too long"):
        encode_name("a" * NAME_FIELD_SIZE)


def test_encode_refuses_to_truncate_long_name():
    header = make_header(original_name="n" * 300)
    with pytest.raises(FormatError):
        header.encode()


def test_multibyte_name_counts_encoded_bytes():
    name = "é" * 128  # 256 bytes in UTF-8
    with pytest.raises(FormatError):
        encode_name(name)
    assert decode_name(encode_name("é" * 10) + b"\x00") == "é" * 10


def test_header_is_immutable():
    header = make_header()
    with pytest.raises(Exception):
        header.shard_crc = 0
    amended = header.model_copy(update={"shard_crc": 7})
    assert amended.shard_crc == 7
    assert header.shard_crc == 0x12345678


def test_same_set_compares_shared_fields_only():
    a = make_header(shard_idx=1, shard_crc=1, shard_size=500)
    b = make_header(shard_idx=3, shard_crc=2, shard_size=900)
    assert a.same_set(b)
    assert not a.same_set(make_header(original_crc=0))
    assert not a.same_set(make_header(original_name="other.bin"))
