"""Split files into self-describing shards and join them back"""

__version__ = "0.1.0"

from .checksum import Crc32, crc32_of
from .chunker import split_file, SplitResult, make_shard_name, plan_payload_sizes
from .config import HEADER_SIZE, MAGIC, SplitOptions, JoinOptions
from .errors import (
    ShardsawError, FormatError, ConsistencyError, CorruptionError, ShardIOError,
    format_error_chain,
)
from .file_io import ShardFile
from .metadata import ShardInfo, ShardSetKey, describe_shard, discover_shards, format_shard_info
from .reassemble import join_shards, JoinResult, open_shard
from .shard_header import ShardHeader

__all__ = [
    'split_file',
    'join_shards',
    'describe_shard',
    'discover_shards',
    'format_shard_info',
    'open_shard',
    'make_shard_name',
    'plan_payload_sizes',
    'ShardHeader',
    'ShardFile',
    'ShardInfo',
    'ShardSetKey',
    'SplitResult',
    'JoinResult',
    'SplitOptions',
    'JoinOptions',
    'Crc32',
    'crc32_of',
    'HEADER_SIZE',
    'MAGIC',
    'ShardsawError',
    'FormatError',
    'ConsistencyError',
    'CorruptionError',
    'ShardIOError',
    'format_error_chain',
]
