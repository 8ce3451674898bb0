import zlib

from shardsaw.checksum import Crc32, crc32_of


def test_matches_zlib():
    data = b"The quick brown fox jumps over the lazy dog"
    assert crc32_of(data) == zlib.crc32(data) == 0x414FA339


def test_empty_input_is_zero():
    assert Crc32().value == 0
    assert crc32_of(b"") == 0


def test_split_spans_equal_whole():
    data = bytes(range(256)) * 40
    for cut in (0, 1, 255, 4096, len(data)):
        crc = Crc32()
        crc.update(data[:cut])
        crc.update(data[cut:])
        assert crc.value == crc32_of(data)


def test_accepts_memoryview_and_bytearray():
    data = bytearray(b"shard payload")
    assert Crc32().update(memoryview(data)) == crc32_of(bytes(data))
