import logging
from pathlib import Path
from pydantic import BaseModel
from typing import Dict, List, NamedTuple

from .errors import ShardIOError, ShardsawError
from .reassemble import read_shard_header
from .shard_header import ShardHeader

logger = logging.getLogger("Metadata")


class ShardInfo(BaseModel):
    path: Path
    header: ShardHeader
    mode: int

    @property
    def payload_size(self) -> int:
        return self.header.payload_size


class ShardSetKey(NamedTuple):
    original_name: str
    original_size: int
    original_crc: int
    shard_count: int


def describe_shard(path) -> ShardInfo:
    """
    Validate a single file as a shard and report what it holds

    Args:
        path: Path to the shard file

    Returns:
        ShardInfo: header, location and permission bits of the shard
    """
    header, mode = read_shard_header(path)
    return ShardInfo(path=Path(path), header=header, mode=mode)


def format_shard_info(info: ShardInfo) -> str:
    """Render a shard's header as a readable block"""
    header = info.header
    fields = [
        ("path", f'"{info.path}"'),
        ("shard_idx", header.shard_idx),
        ("shard_count", header.shard_count),
        ("original_size", header.original_size),
        ("original_crc", f"0x{header.original_crc:08X}"),
        ("shard_size", header.shard_size),
        ("payload_size", info.payload_size),
        ("shard_crc", f"0x{header.shard_crc:08X}"),
        ("original_name", f'"{header.original_name}"'),
    ]
    lines = ["{"] + [f"  {name}: {value}," for name, value in fields] + ["}"]
    return "\n".join(lines)


def discover_shards(directory) -> Dict[ShardSetKey, List[ShardInfo]]:
    """
    Find every shard in a directory, grouped by the file it came from

    Files that are not valid shards are skipped. Each group is sorted by
    shard index; groups may be incomplete.

    Args:
        directory: Directory to scan (not recursive)

    Returns:
        dict: ShardSetKey -> shards of one split of an original file
    """
    directory = Path(directory)
    try:
        entries = sorted(directory.iterdir())
    except OSError as e:
        raise ShardIOError(
            f'could not list directory "{directory}"',
            path=directory, operation="listdir", errno=e.errno,
        ) from e

    shard_sets: Dict[ShardSetKey, List[ShardInfo]] = {}
    for entry in entries:
        if not entry.is_file():
            continue
        try:
            info = describe_shard(entry)
        except ShardsawError as e:
            logger.debug(f"Skipping {entry}: {e}")
            continue

        header = info.header
        key = ShardSetKey(
            header.original_name, header.original_size,
            header.original_crc, header.shard_count,
        )
        shard_sets.setdefault(key, []).append(info)

    for shards in shard_sets.values():
        shards.sort(key=lambda x: x.header.shard_idx)

    return shard_sets


def is_complete(shards: List[ShardInfo]) -> bool:
    """True when the list holds exactly shards 1..shard_count"""
    if not shards:
        return False
    expected = shards[0].header.shard_count
    return sorted(s.header.shard_idx for s in shards) == list(range(1, expected + 1))
