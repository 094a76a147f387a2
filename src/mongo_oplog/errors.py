"""
Error taxonomy for oplog tailing.
"""

import re
from enum import Enum
from typing import Optional

from pymongo.errors import ConnectionFailure, CursorNotFound

# Server messages for a tailable cursor the server has reaped.
_TRANSIENT_MESSAGE = re.compile(r"cursor (killed or )?timed out|cursor id \d+ not found", re.IGNORECASE)


class OplogError(Exception):
    """Base exception for oplog errors."""
    pass


class OplogConnectionError(OplogError):
    """No usable database connection when a query was issued."""
    pass


class StreamError(OplogError):
    """Fatal failure of the oplog cursor stream."""

    def __init__(self, message: str, cause: Optional[BaseException] = None):
        super().__init__(message)
        self.cause = cause
        if cause is not None:
            self.__cause__ = cause

    @classmethod
    def from_exception(cls, exc: BaseException) -> "StreamError":
        return cls(str(exc) or type(exc).__name__, cause=exc)


class TransientStreamError(StreamError):
    """
    The cursor expired or a read was interrupted; tailing resumes on its own.

    Not raised by this package. Wrap a failure in it to have the tailer
    treat it as recoverable.
    """
    pass


class NoMatchingEntry(OplogError):
    """An explicit position was checked but the oplog holds no entry."""
    pass


class ErrorKind(str, Enum):
    """How the tailer reacts to a stream failure."""
    TRANSIENT = "transient"
    FATAL = "fatal"


def classify_error(error: BaseException) -> ErrorKind:
    """
    Decide whether a stream failure is recovered by re-tailing.

    Expired cursors (``CursorNotFound`` or the server's error text) and
    network failures (``ConnectionFailure``: ``AutoReconnect``,
    ``NetworkTimeout``) are transient. The driver does not retry
    ``getMore``, so every read after the first batch ends up here.
    """
    if isinstance(error, (CursorNotFound, ConnectionFailure, TransientStreamError)):
        return ErrorKind.TRANSIENT
    if _TRANSIENT_MESSAGE.search(str(error)):
        return ErrorKind.TRANSIENT
    return ErrorKind.FATAL
