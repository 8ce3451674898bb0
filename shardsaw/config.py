import os
import logging
from pathlib import Path
from pydantic import BaseModel, Field, field_validator
from typing import Optional

# Configuration Constants
MAGIC = 0xB007C8AD
NAME_FIELD_SIZE = 256
HEADER_SIZE = 4 + 2 + 2 + 8 + 4 + 8 + 4 + NAME_FIELD_SIZE  # 288 bytes
MAX_SHARD_COUNT = 65535  # shard_idx is a 2-byte field

MEGABYTE = 1024 * 1024
BUFFER_SIZE = int(os.getenv("SHARDSAW_BUFFER_SIZE", 64 * 1024))  # 64 KB
if BUFFER_SIZE < 1:
    raise ValueError("SHARDSAW_BUFFER_SIZE must be a positive number of bytes")

DEFAULT_SHARD_COUNT = 8
MIN_PREFIX_LENGTH = 3
SHARD_DIR_SUFFIX = ".shards"

LOG_FORMAT = '%(asctime)s - %(levelname)s - %(message)s'


def setup_logging(verbose: bool = False):
    """Configure root logging for the command-line and dashboard entry points"""
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO,
        format=LOG_FORMAT,
    )

# --- Option Models ---

class SplitOptions(BaseModel):
    max_shard_size: Optional[int] = Field(default=None, gt=HEADER_SIZE)
    output_dir: Optional[Path] = None
    prefix: Optional[str] = None
    make_directory: bool = False

    @field_validator("prefix")
    @classmethod
    def _check_prefix(cls, value):
        if value is not None and len(value) < MIN_PREFIX_LENGTH:
            raise ValueError(
                f"shard names ought to be at least {MIN_PREFIX_LENGTH} characters long"
            )
        if value is not None and ("/" in value or os.sep in value):
            raise ValueError("shard prefix must not contain a path separator")
        return value


class JoinOptions(BaseModel):
    output_dir: Optional[Path] = None
    restore_mode: bool = True
