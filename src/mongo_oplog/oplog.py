"""
Tailing of the MongoDB oplog.

``MongoOplog`` follows ``local.oplog.rs`` from a position, turns every
document into an ``op`` event plus an operation specific event (``insert``,
``update``, ``delete``, ``noop``, ...) and resumes on its own when the server
reaps the tailable cursor or the connection drops.

Example:
    >>> oplog = MongoOplog("mongodb://127.0.0.1/local", ns="shop.orders")
    >>> oplog.on("insert", lambda entry: print(entry.o))
    >>> oplog.tail()
"""

import logging
import threading
import time
import uuid
from enum import Enum
from typing import Any, Dict, Optional, Union

from bson import Timestamp
from pymongo import MongoClient
from pymongo.database import Database
from pymongo.errors import PyMongoError

from .config.settings import OplogSettings, get_settings
from .connection import DEFAULT_URI, OPLOG_DATABASE, create_client
from .emitter import EventEmitter
from .errors import ErrorKind, NoMatchingEntry, OplogError, StreamError, classify_error
from .events import LogEntry, OperationKind, Payload, present
from .filter import FilteredMongoOplog
from .metrics import oplog_entries_total, oplog_errors_total, oplog_lag_seconds, oplog_retails_total
from .position import from_explicit, parse_since, positions_equal
from .stream import OplogStream, get_last_entry, open_stream
from .utils.bson_convert import bson_safe
from .utils.logging import get_logger

logger = logging.getLogger(__name__)

OPLOG_EVENTS = ("delete", "insert", "op", "update", "noop")
STATUS_EVENTS = ("connect", "disconnect", "destroy", "end", "error", "tail-start", "tail-end")
EVENTS = OPLOG_EVENTS + STATUS_EVENTS


class TailState(str, Enum):
    """Lifecycle of a tailer."""
    IDLE = "idle"
    CONNECTING = "connecting"
    STREAMING = "streaming"
    STOPPED = "stopped"
    DESTROYED = "destroyed"


class MongoOplog(EventEmitter):
    """
    Tail the MongoDB oplog and emit its operations.

    Entries are dispatched one at a time, in oplog order, on the stream's
    reader thread. ``tail`` and ``stop`` may be called from any thread.

    Thread Safety: ``tail``/``stop``/``destroy`` are serialised by a lock.
    The position is only written from the dispatch path.
    """

    def __init__(
        self,
        uri_or_db: Union[str, Database, None] = None,
        *,
        ns: str = "",
        coll: str = "",
        since: Union[Timestamp, float, str, None] = 0,
        pretty: bool = False,
        filter: Optional[Dict[str, Any]] = None,
        mongo: Optional[Dict[str, Any]] = None,
    ):
        """
        Initialize the tailer.

        Args:
            uri_or_db: Connection string or an existing ``local`` database.
                An existing database is never closed by the tailer.
            ns: Namespace pattern, e.g. ``"shop.*"``
            coll: Oplog collection (default: "oplog.rs")
            since: Position to resume after: a Timestamp, seconds or an
                ISO-8601 date. Nothing means now.
            pretty: Emit ``PresentationEntry`` instead of ``LogEntry``
            filter: Raw oplog query, used instead of ``ns`` on the server
            mongo: Extra MongoClient options when connecting by URI
        """
        super().__init__()
        self.ignore: bool = False
        self.pretty: bool = bool(pretty)
        self.uri: str = ""
        self._client: Optional[MongoClient] = None
        self._db: Optional[Database] = None
        self._mongo_options: Dict[str, Any] = {}
        self._external_db = False
        if uri_or_db is None or isinstance(uri_or_db, str):
            self.uri = uri_or_db or DEFAULT_URI
            self._mongo_options = dict(mongo or {})
        else:
            self._db = uri_or_db
            self._external_db = True
        self.ns: str = ns or ""
        self.collection_name: str = coll or ""
        if isinstance(since, str):
            since = parse_since(since)
        self._ts: Timestamp = from_explicit(since or None)
        self._oplog_filter = filter
        self._stream: Optional[OplogStream] = None
        self._state = TailState.IDLE
        self._tail_lock = threading.RLock()
        self.tail_id = uuid.uuid4().hex

        logger.info(
            "Initialized MongoOplog",
            extra={
                "tail_id": self.tail_id,
                "namespace": self.ns,
                "collection": self.collection_name,
                "pretty": self.pretty,
                "external_db": self._external_db,
            }
        )

    @classmethod
    def from_settings(cls, settings: Optional[OplogSettings] = None) -> "MongoOplog":
        """
        Build a tailer from ``OplogSettings`` (environment / .env).

        Also attaches the JSON log handler to the ``mongo_oplog`` logger at
        the configured level.
        """
        settings = settings or get_settings()
        get_logger("mongo_oplog", getattr(logging, settings.log_level))
        return cls(
            settings.uri,
            ns=settings.namespace,
            coll=settings.collection,
            since=settings.since_seconds or 0,
            pretty=settings.pretty,
            filter=settings.filter,
            mongo=settings.client_options(),
        )

    @property
    def connected(self) -> bool:
        return self._db is not None

    @property
    def db(self) -> Optional[Database]:
        return self._db

    @property
    def stream(self) -> Optional[OplogStream]:
        return self._stream

    @property
    def ts(self) -> Timestamp:
        """Position of the last dispatched entry."""
        return self._ts

    @property
    def state(self) -> TailState:
        return self._state

    def filter(self, ns: str = "*") -> FilteredMongoOplog:
        """Return an emitter for the entries of one namespace pattern."""
        return FilteredMongoOplog(self, ns)

    def tail(self) -> Optional[OplogStream]:
        """
        Start tailing the oplog from the current position.

        While a stream is open the same stream is returned. Failures are
        reported through the ``error`` event, except expired cursors and
        network failures, which reopen the stream after the last position.

        Returns:
            The open stream, or None if tailing failed

        Raises:
            OplogError: If the tailer was destroyed
        """
        with self._tail_lock:
            if self._state is TailState.DESTROYED:
                raise OplogError("MongoOplog has been destroyed")
            if self._stream is not None:
                return self._stream
            self._state = TailState.CONNECTING
            try:
                db = self._connect()
                stream = open_stream(
                    db,
                    ns=self.ns,
                    ts=self._ts,
                    coll=self.collection_name,
                    raw_filter=self._oplog_filter,
                    tail_id=self.tail_id,
                )
            except Exception as e:
                error = e
            else:
                self._stream = stream
                stream.on("data", lambda doc: self._on_data(stream, doc))
                stream.on("end", lambda: self._on_end(stream))
                stream.on("error", lambda err: self._on_error(err, stream))
                self._state = TailState.STREAMING
                logger.info(
                    "Oplog tailing started",
                    extra={"tail_id": self.tail_id, "namespace": self.ns, "ts": str(self._ts)}
                )
                self.emit("tail-start")
                stream.start()
                return stream
        return self._on_error(error, None)

    start = tail

    def stop(self) -> "MongoOplog":
        """
        Stop tailing and close the cursor. The connection stays open and
        ``tail`` resumes after the last dispatched entry.
        """
        with self._tail_lock:
            stream = self._stream
            self._stream = None
            if self._state is not TailState.DESTROYED:
                self._state = TailState.STOPPED
        if stream is not None:
            stream.close()
            logger.info("Oplog tailing stopped", extra={"tail_id": self.tail_id, "ts": str(self._ts)})
        return self

    def destroy(self) -> "MongoOplog":
        """
        Stop tailing, close an owned connection, emit ``destroy`` and drop
        every listener. Never raises.
        """
        with self._tail_lock:
            if self._state is TailState.DESTROYED:
                return self
            self._state = TailState.DESTROYED
        self.stop()
        self._disconnect()
        self.emit("destroy")
        self.remove_all_listeners()
        logger.info("MongoOplog destroyed", extra={"tail_id": self.tail_id})
        return self

    def is_current(self, ts: Union[Timestamp, float, None] = None) -> bool:
        """
        Check whether the newest oplog entry is at the given position.

        ``ts`` may be a Timestamp or seconds. Without it the tracked position
        is used and an empty oplog counts as current.

        Raises:
            NoMatchingEntry: If ``ts`` was given and the oplog has no entry
        """
        db = self._connect()
        doc = get_last_entry(db, self.ns, self.collection_name)
        if doc is None:
            if ts is not None:
                raise NoMatchingEntry("No oplog entry found")
            return True
        expected = from_explicit(ts) if ts is not None else self._ts
        return positions_equal(doc.get("ts"), expected)

    def _on_data(self, stream: OplogStream, doc: Dict[str, Any]) -> None:
        if self.ignore or stream is not self._stream:
            return
        entry = LogEntry.from_document(doc)
        if entry.ts is not None:
            self._ts = entry.ts
            oplog_lag_seconds.set(max(0.0, time.time() - entry.ts.time))
        operation = entry.operation
        payload: Payload = present(entry) if self.pretty else entry
        if logger.isEnabledFor(logging.DEBUG):
            logger.debug("Incoming oplog entry", extra={"entry": bson_safe(doc)})
        oplog_entries_total.labels(operation=operation).inc()
        self.emit("op", payload)
        if operation == OperationKind.NOOP.value:
            self.emit(operation)
        else:
            self.emit(operation, payload)

    def _on_end(self, stream: OplogStream) -> None:
        with self._tail_lock:
            if stream is not self._stream:
                return
            self._stream = None
            self._state = TailState.STOPPED
        stream.close()
        logger.info("Oplog stream ended", extra={"tail_id": self.tail_id, "ts": str(self._ts)})
        self.emit("end")
        self.emit("tail-end")

    def _on_error(self, error: BaseException, stream: Optional[OplogStream]) -> Optional[OplogStream]:
        if self._state is TailState.DESTROYED:
            return None
        if stream is not None and stream is not self._stream:
            return None
        self.stop()
        kind = classify_error(error)
        oplog_errors_total.labels(kind=kind.value).inc()
        if kind is ErrorKind.TRANSIENT:
            logger.warning(
                f"Oplog read interrupted, resuming: {error}",
                extra={"tail_id": self.tail_id, "ts": str(self._ts)}
            )
            oplog_retails_total.inc()
            return self.tail()
        logger.error(
            f"Oplog error: {error}",
            extra={"tail_id": self.tail_id, "error_type": type(error).__name__}
        )
        surfaced = error if isinstance(error, OplogError) else StreamError.from_exception(error)
        self.emit("error", surfaced)
        return None

    def _connect(self) -> Database:
        with self._tail_lock:
            if self._db is not None:
                return self._db
            self._client = create_client(self.uri, **self._mongo_options)
            self._db = self._client[OPLOG_DATABASE]
        logger.info("Connected to oplog database", extra={"tail_id": self.tail_id})
        self.emit("connect")
        return self._db

    def _disconnect(self) -> None:
        """Close the client, unless the database was supplied by the caller."""
        with self._tail_lock:
            if self._external_db or self._db is None:
                logger.debug("Refusing to disconnect external or unconnected db")
                return
            client = self._client
            self._client = None
            self._db = None
        if client is not None:
            try:
                client.close()
            except PyMongoError as e:
                logger.warning(f"Error closing MongoDB client: {e}", extra={"tail_id": self.tail_id})
        self.emit("disconnect")


def create_instance(uri_or_db: Union[str, Database, None] = None, **options: Any) -> MongoOplog:
    """Create a ``MongoOplog``; same arguments as the constructor."""
    return MongoOplog(uri_or_db, **options)
