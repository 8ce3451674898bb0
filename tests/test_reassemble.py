import os
import pytest

from shardsaw.checksum import crc32_of
from shardsaw.chunker import split_file
from shardsaw.config import HEADER_SIZE
from shardsaw.errors import (
    ConsistencyError, CorruptionError, FormatError, ShardIOError, format_error_chain,
)
from shardsaw.reassemble import collect_shards, join_shards, open_shard, read_shard_header
from shardsaw.shard_header import ShardHeader


def flip_byte(path, offset):
    data = bytearray(path.read_bytes())
    data[offset] ^= 0x01
    path.write_bytes(bytes(data))


@pytest.mark.parametrize("size, limit", [
    (0, 1_000),
    (1, HEADER_SIZE + 1),
    (1_000, HEADER_SIZE + 1),
    (3 * 388, 388),
    (100_000, 7_000),
    (100_000, 200_000),
])
def test_round_trip(make_file, out_dir, size, limit):
    source = make_file(size=size)
    result = split_file(source, max_shard_size=limit)
    joined = join_shards(result.shard_paths, output_dir=out_dir)

    assert joined.output_path == out_dir / "report.bin"
    assert joined.output_path.read_bytes() == source.read_bytes()
    assert joined.original_crc == crc32_of(source.read_bytes())
    assert joined.shard_count == result.shard_count


def test_report_scenario_joined_in_reverse(make_file, out_dir):
    source = make_file("report.bin", size=10_000_000)
    result = split_file(source, max_shard_size=4_000_000)
    assert [p.name for p in result.shard_paths] == ["report.bin@1.3", "report.bin@2.3", "report.bin@3.3"]

    joined = join_shards(list(reversed(result.shard_paths)), output_dir=out_dir)
    assert joined.original_size == 10_000_000
    assert joined.output_path.stat().st_size == 10_000_000
    assert crc32_of(joined.output_path.read_bytes()) == result.original_crc
    assert joined.output_path.read_bytes() == source.read_bytes()


def test_join_defaults_to_current_directory(make_file, out_dir, monkeypatch):
    source = make_file(size=5_000)
    result = split_file(source, max_shard_size=2_000)
    monkeypatch.chdir(out_dir)
    joined = join_shards(result.shard_paths)
    assert (out_dir / "report.bin").read_bytes() == source.read_bytes()
    assert joined.output_path.name == "report.bin"


def test_join_nothing():
    with pytest.raises(ConsistencyError, match="no shards"):
        join_shards([])


def test_open_shard_positions_at_payload(make_file):
    source = make_file(size=1_000)
    result = split_file(source, max_shard_size=2_000)
    shard, header, _ = open_shard(result.shard_paths[0])
    with shard:
        assert shard.read_at_most(10_000) == source.read_bytes()
    assert header.payload_size == 1_000


def test_not_a_shard(tmp_path):
    junk = tmp_path / "junk.bin"
    junk.write_bytes(b"\x00" * 1_000)
    with pytest.raises(FormatError) as excinfo:
        join_shards([junk])
    message = format_error_chain(excinfo.value)
    assert f'could not open "{junk}" as a shard' in message
    assert "magic" in message


def test_file_smaller_than_header(tmp_path):
    tiny = tmp_path / "tiny.bin"
    tiny.write_bytes(b"abc")
    with pytest.raises(FormatError, match="as a shard"):
        read_shard_header(tiny)


def test_truncated_shard_is_not_a_shard(make_file):
    source = make_file(size=5_000)
    result = split_file(source, max_shard_size=2_000)
    shard = result.shard_paths[1]
    shard.write_bytes(shard.read_bytes()[:-1])
    with pytest.raises(FormatError) as excinfo:
        join_shards(result.shard_paths)
    assert "not a shard" in format_error_chain(excinfo.value)


def test_missing_shard_file(make_file, tmp_path):
    source = make_file(size=5_000)
    result = split_file(source, max_shard_size=2_000)
    result.shard_paths[2].unlink()
    with pytest.raises(ShardIOError) as excinfo:
        join_shards(result.shard_paths)
    assert excinfo.value.operation == "open"
    assert "as a shard" in str(excinfo.value)


def test_too_few_shards_creates_nothing(make_file, out_dir):
    source = make_file(size=5_000)
    result = split_file(source, max_shard_size=2_000)
    assert result.shard_count == 3
    with pytest.raises(ConsistencyError, match="got 2 file name"):
        join_shards(result.shard_paths[:2], output_dir=out_dir)
    assert list(out_dir.iterdir()) == []


def test_duplicate_shard(make_file, out_dir):
    source = make_file(size=3_000)
    result = split_file(source, max_shard_size=2_000)
    assert result.shard_count == 2
    first = result.shard_paths[0]
    copy = first.with_name("copy@1.2")
    copy.write_bytes(first.read_bytes())
    with pytest.raises(ConsistencyError, match="duplicate"):
        join_shards([first, copy], output_dir=out_dir)
    assert list(out_dir.iterdir()) == []


def test_shards_of_different_files_do_not_match(make_file, out_dir):
    a = split_file(make_file("a.bin", size=3_000, seed=1), max_shard_size=2_000)
    b = split_file(make_file("b.bin", size=3_000, seed=2), max_shard_size=2_000)
    with pytest.raises(ConsistencyError, match="doesn't match"):
        join_shards([a.shard_paths[0], b.shard_paths[1]], output_dir=out_dir)


def test_collect_shards_orders_by_index(make_file):
    source = make_file(size=9_000)
    result = split_file(source, max_shard_size=2_000)
    shuffled = result.shard_paths[2:] + result.shard_paths[:2]
    master, _, shard_map = collect_shards(shuffled)
    assert master.shard_idx == 3
    assert [shard_map[i] for i in sorted(shard_map)] == result.shard_paths


@pytest.mark.parametrize("victim", [0, 1, 2])
def test_payload_corruption_names_the_shard(make_file, out_dir, victim):
    source = make_file(size=5_000)
    result = split_file(source, max_shard_size=2_000)
    damaged = result.shard_paths[victim]
    flip_byte(damaged, HEADER_SIZE + 5)

    with pytest.raises(CorruptionError) as excinfo:
        join_shards(result.shard_paths, output_dir=out_dir)
    assert excinfo.value.path == damaged
    assert f'shard "{damaged}" is damaged' in str(excinfo.value)


def test_stored_checksum_corruption_detected(make_file, out_dir):
    source = make_file(size=5_000)
    result = split_file(source, max_shard_size=2_000)
    shard = result.shard_paths[1]
    header = ShardHeader.decode(shard.read_bytes())
    forged = header.model_copy(update={"shard_crc": header.shard_crc ^ 1})
    shard.write_bytes(forged.encode() + shard.read_bytes()[HEADER_SIZE:])

    with pytest.raises(CorruptionError, match="damaged"):
        join_shards(result.shard_paths, output_dir=out_dir)


def test_whole_file_checksum_verified(make_file, out_dir):
    source = make_file(size=5_000)
    result = split_file(source, max_shard_size=2_000)
    # Rewrite every header with a wrong whole-file CRC; the set stays consistent.
    for shard in result.shard_paths:
        raw = shard.read_bytes()
        header = ShardHeader.decode(raw)
        forged = header.model_copy(update={"original_crc": header.original_crc ^ 1})
        shard.write_bytes(forged.encode() + raw[HEADER_SIZE:])

    with pytest.raises(CorruptionError, match="did not reconstruct correctly"):
        join_shards(result.shard_paths, output_dir=out_dir)


def test_unsafe_original_name_rejected(make_file, out_dir):
    source = make_file(size=100)
    result = split_file(source, max_shard_size=1_000)
    (shard,) = result.shard_paths
    raw = shard.read_bytes()
    header = ShardHeader.decode(raw)
    forged = header.model_copy(update={"original_name": "../escape.bin"})
    shard.write_bytes(forged.encode() + raw[HEADER_SIZE:])

    with pytest.raises(FormatError, match="unsafe"):
        join_shards([shard], output_dir=out_dir)


@pytest.mark.skipif(os.name == "nt", reason="POSIX permission bits")
def test_join_restores_permissions(make_file, out_dir):
    source = make_file(size=3_000)
    os.chmod(source, 0o640)
    result = split_file(source, max_shard_size=2_000)
    joined = join_shards(result.shard_paths, output_dir=out_dir)
    assert joined.output_path.stat().st_mode & 0o777 == 0o640

