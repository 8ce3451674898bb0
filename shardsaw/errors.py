"""
shardsaw/errors.py

Exception hierarchy for shard splitting and joining.

Every error may wrap a lower-level cause using ``raise ... from cause``; the
rendered message walks that chain so the user sees the whole story, e.g.
``could not open "a@1.2" as a shard: the file is not a shard``.
"""


class ShardsawError(Exception):
    """Base class for all shardsaw exceptions."""

    def __init__(self, msg="", **details):
        super().__init__(msg)
        self.msg = msg
        self.details = details
        for key, value in details.items():
            setattr(self, key, value)

    @property
    def cause(self):
        return self.__cause__

    def chain(self):
        """Yield the message of this error and of every error it wraps, outermost first."""
        return iter_error_chain(self)

    def wrap(self, msg):
        """Build an error of the same kind with added context.

        Meant to be raised ``from`` the original so the cause is kept.
        """
        return type(self)(msg, **self.details)


class FormatError(ShardsawError):
    """Raised for bad magic, self-inconsistent sizes or fields that do not fit."""
    pass


class ConsistencyError(ShardsawError):
    """Raised when a set of shards does not belong together."""
    pass


class CorruptionError(ShardsawError):
    """Raised when a per-shard or whole-file checksum does not match."""
    path = None


class ShardIOError(ShardsawError):
    """Raised when an operating system call on a file fails."""
    path = None
    operation = None
    errno = None


def iter_error_chain(exc):
    """Yield the message of an exception and of each of its causes."""
    while exc is not None:
        yield str(exc) or type(exc).__name__
        exc = exc.__cause__


def format_error_chain(exc):
    """Render an exception and all of its causes as a single line."""
    if isinstance(exc, ShardsawError):
        return ": ".join(exc.chain())
    return ": ".join(iter_error_chain(exc))
