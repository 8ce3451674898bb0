import os
import errno
import stat
import logging
from pathlib import Path
from typing import Tuple

from .errors import ShardIOError

logger = logging.getLogger("FileIO")

ILLEGAL_FD = -1
DEFAULT_CREATE_MODE = 0o666


class ShardFile:
    """
    Owns one operating system file descriptor.

    All OS failures are re-raised as ShardIOError annotated with the path and
    the attempted operation. Use it as a context manager so the descriptor is
    released on every exit path.
    """

    def __init__(self, path, fd: int = ILLEGAL_FD):
        self.path = Path(path)
        self.fd = fd

    def __repr__(self):
        return f"ShardFile({str(self.path)!r}, fd={self.fd})"

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc, tb):
        self.close()

    @property
    def closed(self) -> bool:
        return self.fd < 0

    def _fail(self, operation: str, err: OSError, what: str = None):
        what = what or f'could not {operation} "{self.path}"'
        raise ShardIOError(
            what, path=self.path, operation=operation, errno=err.errno
        ) from err

    @classmethod
    def open_ro(cls, path) -> "ShardFile":
        """Open an existing file for reading"""
        result = cls(path)
        try:
            result.fd = os.open(path, os.O_RDONLY | getattr(os, "O_BINARY", 0))
        except OSError as e:
            result._fail("open", e, f'could not open "{path}" for reading')
        logger.debug(f"Opened {path} for reading (fd={result.fd})")
        return result

    @classmethod
    def open_rw(cls, path, mode: int = DEFAULT_CREATE_MODE) -> "ShardFile":
        """Open a file for reading and writing, creating or truncating it"""
        result = cls(path)
        flags = os.O_RDWR | os.O_CREAT | os.O_TRUNC | getattr(os, "O_BINARY", 0)
        try:
            result.fd = os.open(path, flags, mode)
        except OSError as e:
            result._fail("open", e, f'could not open "{path}" for writing')
        logger.debug(f"Opened {path} for writing (fd={result.fd}, mode={oct(mode)})")
        return result

    def get_size_and_mode(self) -> Tuple[int, int]:
        """Return the file size in bytes and its permission bits"""
        try:
            st = os.fstat(self.fd)
        except OSError as e:
            self._fail("stat", e)
        return st.st_size, stat.S_IMODE(st.st_mode)

    def read_at_most(self, max_size: int) -> bytes:
        """Read up to max_size bytes; an empty result means end of file"""
        try:
            return os.read(self.fd, max_size)
        except OSError as e:
            self._fail("read", e)

    def read_exactly(self, size: int) -> bytes:
        """Read exactly size bytes or fail"""
        pieces = []
        remaining = size
        while remaining:
            piece = self.read_at_most(remaining)
            if not piece:
                raise ShardIOError(
                    f'could not read "{self.path}": unexpected end of file',
                    path=self.path, operation="read",
                )
            pieces.append(piece)
            remaining -= len(piece)
        return b"".join(pieces)

    def write_exactly(self, data) -> None:
        """Write every byte of data, looping over short writes"""
        view = memoryview(data)
        while view:
            try:
                written = os.write(self.fd, view)
            except OSError as e:
                self._fail("write", e)
            view = view[written:]

    def seek(self, offset: int, whence: int = os.SEEK_SET) -> int:
        """Move the file position and return the new offset from the start"""
        try:
            return os.lseek(self.fd, offset, whence)
        except OSError as e:
            self._fail("seek", e)

    def chmod(self, mode: int) -> None:
        try:
            os.fchmod(self.fd, mode)
        except OSError as e:
            self._fail("chmod", e)

    def close(self) -> None:
        """
        Release the descriptor.

        Interrupted closes are retried and EBADF counts as already closed.
        Any other failure leaves the descriptor state unknown, so the process
        is aborted instead of leaking it.
        """
        while self.fd >= 0:
            try:
                os.close(self.fd)
            except InterruptedError:
                continue
            except OSError as e:
                if e.errno != errno.EBADF:
                    logger.critical(f"Could not close {self.path} (fd={self.fd}): {e}")
                    os.abort()
            self.fd = ILLEGAL_FD
