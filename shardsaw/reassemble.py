import os
import logging
from pathlib import Path
from pydantic import BaseModel, ValidationError
from typing import Dict, List, Tuple

from .checksum import Crc32
from .config import BUFFER_SIZE, HEADER_SIZE, JoinOptions
from .errors import (
    ConsistencyError, CorruptionError, FormatError, ShardsawError,
)
from .file_io import ShardFile, DEFAULT_CREATE_MODE
from .shard_header import ShardHeader

logger = logging.getLogger("Reassemble")


class JoinResult(BaseModel):
    output_path: Path
    original_size: int
    original_crc: int
    shard_count: int


def open_shard(path) -> Tuple[ShardFile, ShardHeader, int]:
    """
    Open a file as a shard and read its header.

    The file must be at least a header long, carry the magic number and be
    exactly as large as its header says. On success the file is positioned
    at the start of the payload; the caller owns the returned ShardFile.
    Returns (shard_file, header, permission_bits).
    """
    try:
        shard = ShardFile.open_ro(path)
        try:
            file_size, mode = shard.get_size_and_mode()
            if file_size < HEADER_SIZE:
                raise FormatError("the file is too small to be a shard")
            header = ShardHeader.decode(shard.read_exactly(HEADER_SIZE))
            if header.shard_size != file_size:
                raise FormatError(
                    f"the file is not a shard: header says {header.shard_size} "
                    f"bytes but the file has {file_size}"
                )
        except BaseException:
            shard.close()
            raise
    except ShardsawError as e:
        raise e.wrap(f'could not open "{path}" as a shard') from e
    return shard, header, mode


def read_shard_header(path) -> Tuple[ShardHeader, int]:
    """Validate a file as a shard and return (header, permission_bits)."""
    shard, header, mode = open_shard(path)
    with shard:
        return header, mode


def collect_shards(shard_paths: List[Path]) -> Tuple[ShardHeader, int, Dict[int, Path]]:
    """
    Validate a list of shard files as one complete set.

    The first path supplies the master header; every other shard must agree
    with it. Returns (master_header, master_mode, {shard_idx: path}).
    """
    if not shard_paths:
        raise ConsistencyError("no shards to join")

    master, master_mode = read_shard_header(shard_paths[0])
    if len(shard_paths) != master.shard_count:
        raise ConsistencyError(
            f"got {len(shard_paths)} file name(s) but expected "
            f"{master.shard_count} shard(s)"
        )

    shard_map = {master.shard_idx: shard_paths[0]}
    for path in shard_paths[1:]:
        header, _ = read_shard_header(path)
        if not header.same_set(master):
            raise ConsistencyError(f'shard "{path}" doesn\'t match "{shard_paths[0]}"')
        if header.shard_idx in shard_map:
            raise ConsistencyError(
                f'shard "{path}" is a duplicate of "{shard_map[header.shard_idx]}" '
                f"(both are shard {header.shard_idx})"
            )
        shard_map[header.shard_idx] = path

    for shard_idx in range(1, master.shard_count + 1):
        if shard_idx not in shard_map:
            raise ConsistencyError(f"missing shard {shard_idx} of {master.shard_count}")

    return master, master_mode, shard_map


def _destination_for(master: ShardHeader, output_dir) -> Path:
    name = master.original_name
    if not name or name in (".", "..") or Path(name).name != name or os.sep in name:
        raise FormatError(f"refusing to write to unsafe original name {name!r}")
    return Path(output_dir if output_dir is not None else ".") / name


def _append_shard(out: ShardFile, path: Path, master: ShardHeader,
                  shard_idx: int, total_crc: Crc32) -> None:
    shard, header, _ = open_shard(path)
    with shard:
        if not header.same_set(master) or header.shard_idx != shard_idx:
            raise ConsistencyError(f'shard "{path}" changed while joining')

        shard_crc = Crc32()
        while True:
            data = shard.read_at_most(BUFFER_SIZE)
            if not data:
                break
            total_crc.update(data)
            shard_crc.update(data)
            out.write_exactly(data)

    if shard_crc.value != header.shard_crc:
        raise CorruptionError(
            f'shard "{path}" is damaged (crc 0x{shard_crc.value:08X}, '
            f"expected 0x{header.shard_crc:08X})",
            path=path,
        )
    logger.info(f"Joined shard {shard_idx}/{master.shard_count}: {path}")


def join_shards(shard_paths, output_dir=None, restore_mode: bool = True) -> JoinResult:
    """
    Rebuild the original file from a complete set of shards.

    Args:
        shard_paths: The shard files, in any order. The first one supplies
            the reference header.
        output_dir: Where to create the reconstructed file (default: the
            current directory). Its name comes from the shard headers.
        restore_mode: Give the output the permission bits of the first shard.

    A partially written output is left in place on failure.
    """
    try:
        options = JoinOptions(output_dir=output_dir, restore_mode=restore_mode)
    except ValidationError as e:
        raise FormatError("invalid join options") from e

    shard_paths = [Path(p) for p in shard_paths]
    master, master_mode, shard_map = collect_shards(shard_paths)
    destination = _destination_for(master, options.output_dir)
    logger.info(
        f"Joining {master.shard_count} shard(s) into {destination} "
        f"({master.original_size} bytes, crc 0x{master.original_crc:08X})"
    )

    create_mode = master_mode if options.restore_mode else DEFAULT_CREATE_MODE
    total_crc = Crc32()
    with ShardFile.open_rw(destination, create_mode) as out:
        if options.restore_mode:
            out.chmod(master_mode)
        for shard_idx in sorted(shard_map):
            _append_shard(out, shard_map[shard_idx], master, shard_idx, total_crc)

        out_size = out.seek(0, os.SEEK_CUR)
        if out_size != master.original_size or total_crc.value != master.original_crc:
            raise CorruptionError(
                f'output "{destination}" did not reconstruct correctly '
                f"({out_size} bytes, crc 0x{total_crc.value:08X}; expected "
                f"{master.original_size} bytes, crc 0x{master.original_crc:08X})",
                path=destination,
            )

    return JoinResult(
        output_path=destination,
        original_size=master.original_size,
        original_crc=master.original_crc,
        shard_count=master.shard_count,
    )
