import os
import logging
from pathlib import Path
from pydantic import BaseModel, ValidationError
from typing import List, Optional

from .checksum import Crc32
from .config import (
    BUFFER_SIZE, HEADER_SIZE, MAX_SHARD_COUNT, DEFAULT_SHARD_COUNT,
    SHARD_DIR_SUFFIX, SplitOptions,
)
from .errors import FormatError, ShardIOError, ShardsawError
from .file_io import ShardFile
from .shard_header import ShardHeader, encode_name

logger = logging.getLogger("Chunker")


class SplitResult(BaseModel):
    original_name: str
    original_size: int
    original_crc: int
    shard_count: int
    shard_paths: List[Path]


def make_shard_name(base: str, shard_idx: int, shard_count: int) -> str:
    """For base="foo", idx=2, count=3 return "foo@2.3"."""
    return f"{base}@{shard_idx}.{shard_count}"


def default_max_shard_size(file_size: int, shard_count: int = DEFAULT_SHARD_COUNT) -> int:
    """
    Shard size that cuts a file into at most shard_count nearly equal pieces.

    Tries shard_count first and falls back to fewer shards while the header
    overhead would leave the last shard larger than the others; a file too
    small for two even shards gets a single one.
    """
    for count in range(shard_count, 1, -1):
        payload = max(1, -(-file_size // count))
        limit = payload + HEADER_SIZE
        if file_size == 0 or -(-file_size // limit) == count:
            return limit
    return max(1, file_size) + HEADER_SIZE


def compute_shard_count(file_size: int, max_shard_size: int) -> int:
    """
    Number of shards for a file: ceil(file_size / max_shard_size).

    An empty file still gets one (empty) shard.
    """
    if max_shard_size <= HEADER_SIZE:
        raise FormatError(
            f"a shard of {max_shard_size} bytes cannot hold the "
            f"{HEADER_SIZE}-byte header and any payload"
        )
    if file_size == 0:
        return 1
    shard_count = -(-file_size // max_shard_size)
    if shard_count > MAX_SHARD_COUNT:
        raise FormatError(
            f"that's a big file: it would need {shard_count} shards "
            f"but at most {MAX_SHARD_COUNT} are possible"
        )
    return shard_count


def plan_payload_sizes(file_size: int, max_shard_size: int) -> List[int]:
    """
    Payload size of every shard, in order.

    All shards but the last carry max_shard_size - HEADER_SIZE bytes; the
    last carries whatever remains, which may exceed that.
    """
    shard_count = compute_shard_count(file_size, max_shard_size)
    full = max_shard_size - HEADER_SIZE
    last = file_size - (shard_count - 1) * full
    return [full] * (shard_count - 1) + [last]


def _resolve_shard_dir(source: Path, options: SplitOptions) -> Path:
    shard_dir = options.output_dir if options.output_dir is not None else source.parent
    if options.make_directory:
        shard_dir = shard_dir / f"{options.prefix or source.name}{SHARD_DIR_SUFFIX}"
        try:
            shard_dir.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            raise ShardIOError(
                f'could not create directory "{shard_dir}"',
                path=shard_dir, operation="mkdir", errno=e.errno,
            ) from e
    return shard_dir


def _checksum_whole_file(src: ShardFile) -> int:
    crc = Crc32()
    while True:
        data = src.read_at_most(BUFFER_SIZE)
        if not data:
            break
        crc.update(data)
    src.seek(0, os.SEEK_SET)
    return crc.value


def write_shard(src: ShardFile, shard_path: Path, mode: int,
                header: ShardHeader, payload_size: int) -> ShardHeader:
    """
    Write one shard: header with a zero CRC, then the payload, then the
    header again with the payload CRC filled in.

    Reads exactly payload_size bytes from the current position of src.
    Returns the final header.
    """
    with ShardFile.open_rw(shard_path, mode) as out:
        out.write_exactly(header.encode())

        crc = Crc32()
        remaining = payload_size
        while remaining:
            data = src.read_exactly(min(BUFFER_SIZE, remaining))
            crc.update(data)
            out.write_exactly(data)
            remaining -= len(data)

        header = header.model_copy(update={"shard_crc": crc.value})
        out.seek(0, os.SEEK_SET)
        out.write_exactly(header.encode())
    return header


def split_file(source_path, max_shard_size: Optional[int] = None,
               output_dir=None, prefix: Optional[str] = None,
               make_directory: bool = False) -> SplitResult:
    """
    Split a file into self-describing shards.

    Args:
        source_path: File to split. It is only read.
        max_shard_size: Maximum shard size in bytes, header included. When
            omitted the file is cut into about DEFAULT_SHARD_COUNT shards.
        output_dir: Directory for the shards (default: next to the source).
        prefix: Shard base name (default: the source's base name).
        make_directory: Put the shards in a new "<base>.shards" directory.

    Returns:
        SplitResult describing the shards written, in index order.

    Existing shard files are overwritten. Shards already written are left
    in place if a later one fails.
    """
    try:
        options = SplitOptions(
            max_shard_size=max_shard_size,
            output_dir=output_dir,
            prefix=prefix,
            make_directory=make_directory,
        )
    except ValidationError as e:
        raise FormatError("invalid split options") from e

    source = Path(source_path)
    try:
        with ShardFile.open_ro(source) as src:
            file_size, mode = src.get_size_and_mode()
            original_crc = _checksum_whole_file(src)
            logger.info(f"Splitting {source} ({file_size} bytes, crc 0x{original_crc:08X})")

            limit = options.max_shard_size or default_max_shard_size(file_size)
            payload_sizes = plan_payload_sizes(file_size, limit)
            shard_count = len(payload_sizes)

            original_name = source.name
            encode_name(original_name)

            shard_dir = _resolve_shard_dir(source, options)
            base = options.prefix or source.name

            shard_paths = []
            for shard_idx, payload_size in enumerate(payload_sizes, start=1):
                shard_path = shard_dir / make_shard_name(base, shard_idx, shard_count)
                header = ShardHeader(
                    shard_idx=shard_idx,
                    shard_count=shard_count,
                    original_size=file_size,
                    original_crc=original_crc,
                    shard_size=payload_size + HEADER_SIZE,
                    original_name=original_name,
                )
                header = write_shard(src, shard_path, mode, header, payload_size)
                logger.info(
                    f"Wrote shard {shard_idx}/{shard_count}: {shard_path} "
                    f"({payload_size} payload bytes, crc 0x{header.shard_crc:08X})"
                )
                shard_paths.append(shard_path)
    except ShardsawError as e:
        raise e.wrap(f'could not split "{source}"') from e

    return SplitResult(
        original_name=original_name,
        original_size=file_size,
        original_crc=original_crc,
        shard_count=shard_count,
        shard_paths=shard_paths,
    )
