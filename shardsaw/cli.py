import sys
import argparse
import logging
from pathlib import Path

from . import __version__
from .chunker import split_file
from .config import MEGABYTE, MIN_PREFIX_LENGTH, setup_logging
from .errors import ConsistencyError, ShardsawError, format_error_chain
from .metadata import describe_shard, discover_shards, format_shard_info, is_complete
from .reassemble import join_shards

logger = logging.getLogger("CLI")

BANNER = f"""--------------------------------------------------------------------------------
| shardsaw {__version__} | Split files into shards for easy transport.
--------------------------------------------------------------------------------"""

EPILOG = """examples:
  shardsaw <file>                    split the file into eight shards
  shardsaw <shards>                  join shards back into a file
  shardsaw -s 100 -n loves <file>    make 100MB shards named 'loves@7.10'
  shardsaw -d <file>                 store shards in a new directory
  shardsaw -j <directory>            join the shard set found in a directory
  shardsaw -i <shard>                show what a shard holds
"""


def _megabytes(value: str) -> int:
    try:
        size = int(value)
    except ValueError:
        raise argparse.ArgumentTypeError(f"{value!r} is not a whole number of megabytes")
    if size < 1:
        raise argparse.ArgumentTypeError("shards should be at least 1MB in size")
    return size


def _prefix(value: str) -> str:
    if len(value) < MIN_PREFIX_LENGTH:
        raise argparse.ArgumentTypeError(
            f"shard names really ought to be at least {MIN_PREFIX_LENGTH} characters long"
        )
    return value


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="shardsaw",
        description="Split files into shards for easy transport, and join them back.",
        epilog=EPILOG,
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    parser.add_argument("-s", dest="size_mb", type=_megabytes, metavar="MB",
                        help="maximum size of each shard in MB")
    parser.add_argument("-d", dest="make_directory", action="store_true",
                        help="store shards in a new directory while splitting")
    parser.add_argument("-n", dest="prefix", type=_prefix, metavar="PREFIX",
                        help="named prefix to use for shards and their directory")
    parser.add_argument("-i", dest="info", action="store_true",
                        help="display information about each shard given")
    parser.add_argument("-j", dest="join_directory", action="store_true",
                        help="join the shard set found in a directory")
    parser.add_argument("-o", dest="output_dir", type=Path, metavar="DIR",
                        help="directory for shards (split) or the rebuilt file (join)")
    parser.add_argument("-v", dest="verbose", action="store_true",
                        help="show what's happening under the hood")
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    parser.add_argument("files", nargs="*", metavar="FILE")
    return parser


def _join_directory(directory, output_dir):
    shard_sets = discover_shards(directory)
    if not shard_sets:
        raise ConsistencyError(f'no shards found in "{directory}"')
    if len(shard_sets) > 1:
        names = ", ".join(sorted(
            f"{key.original_name} in {key.shard_count} shards" for key in shard_sets
        ))
        raise ConsistencyError(
            f'"{directory}" holds {len(shard_sets)} shard sets ({names}); '
            "pass the shard files explicitly"
        )
    (key, shards), = shard_sets.items()
    if not is_complete(shards):
        raise ConsistencyError(
            f'"{directory}" holds {len(shards)} of {shards[0].header.shard_count} '
            f'shards of "{key.original_name}"'
        )
    return join_shards([s.path for s in shards], output_dir=output_dir)


def run(args) -> None:
    if args.info:
        for path in args.files:
            print(format_shard_info(describe_shard(path)))
        return

    if args.join_directory:
        if len(args.files) != 1:
            raise ConsistencyError("-j takes exactly one directory")
        result = _join_directory(args.files[0], args.output_dir)
        print(f"Rebuilt {result.output_path} from {result.shard_count} shard(s)")
        return

    if len(args.files) == 1:
        max_shard_size = args.size_mb * MEGABYTE if args.size_mb else None
        result = split_file(
            args.files[0],
            max_shard_size=max_shard_size,
            output_dir=args.output_dir,
            prefix=args.prefix,
            make_directory=args.make_directory,
        )
        print(f"Split {args.files[0]} into {result.shard_count} shard(s):")
        for path in result.shard_paths:
            print(f"  {path}")
    else:
        result = join_shards(args.files, output_dir=args.output_dir)
        print(f"Rebuilt {result.output_path} ({result.original_size} bytes) "
              f"from {result.shard_count} shard(s)")


def main(argv=None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    if not args.files:
        print(BANNER)
        parser.print_help()
        return 0

    setup_logging(args.verbose)
    logger.debug(
        f"Supplied parameters: size={args.size_mb}MB, mkdir={args.make_directory}, "
        f"prefix={args.prefix!r}, files={args.files}"
    )
    try:
        run(args)
    except ShardsawError as e:
        logger.debug("Operation failed", exc_info=True)
        print(f"shardsaw: {format_error_chain(e)}", file=sys.stderr)
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())
