"""
mongo-oplog: tail the MongoDB oplog as a stream of events.
"""

from .errors import (
    ErrorKind,
    NoMatchingEntry,
    OplogConnectionError,
    OplogError,
    StreamError,
    TransientStreamError,
    classify_error,
)
from .events import LogEntry, OperationKind, PresentationEntry, classify, present
from .filter import FilteredMongoOplog
from .namespace import NamespaceMatcher, compile_namespace
from .oplog import EVENTS, OPLOG_EVENTS, STATUS_EVENTS, MongoOplog, TailState, create_instance
from .position import from_explicit, from_seconds, get_timestamp, parse_since, positions_equal

__version__ = "0.1.0"

__all__ = [
    "MongoOplog",
    "FilteredMongoOplog",
    "TailState",
    "create_instance",
    "EVENTS",
    "OPLOG_EVENTS",
    "STATUS_EVENTS",
    "LogEntry",
    "PresentationEntry",
    "OperationKind",
    "classify",
    "present",
    "NamespaceMatcher",
    "compile_namespace",
    "from_explicit",
    "from_seconds",
    "get_timestamp",
    "parse_since",
    "positions_equal",
    "OplogError",
    "OplogConnectionError",
    "StreamError",
    "TransientStreamError",
    "NoMatchingEntry",
    "ErrorKind",
    "classify_error",
]
