"""
Tailable cursor over the MongoDB oplog.

``open_stream`` issues the query and wraps the cursor in an ``OplogStream``;
the stream reads on a daemon thread and reports each document through its
``data`` event, followed by exactly one of ``end`` or ``error`` unless it was
closed first.
"""

import logging
import threading
import uuid
from typing import Any, Dict, Optional, Union

from bson import Timestamp
from pymongo import CursorType, DESCENDING
from pymongo.client_session import ClientSession
from pymongo.cursor import Cursor
from pymongo.database import Database
from pymongo.errors import PyMongoError

from .emitter import EventEmitter
from .errors import OplogConnectionError
from .namespace import compile_namespace
from .position import from_explicit
from .utils.logging import TailContext

logger = logging.getLogger(__name__)

DEFAULT_OPLOG_COLLECTION = "oplog.rs"

# Upper bound for one getMore wait, so close() is noticed promptly.
AWAIT_TIME_MS = 1000


def build_query(
    ns: Optional[str] = None,
    ts: Union[Timestamp, float, None] = None,
    raw_filter: Optional[Dict[str, Any]] = None,
) -> Dict[str, Any]:
    """
    Build the oplog query for entries strictly after ``ts``.

    An explicit ``raw_filter`` replaces the namespace pattern.
    """
    query: Dict[str, Any] = dict(raw_filter) if raw_filter else {}
    query["ts"] = {"$gt": from_explicit(ts)}
    if ns and not raw_filter:
        query["ns"] = {"$regex": compile_namespace(ns).regex}
    return query


class OplogStream(EventEmitter):
    """
    Ordered stream of oplog documents from one cursor.

    Events:
        data(doc): one raw oplog document
        end(): the cursor was exhausted or killed by the server
        error(exc): reading failed
    """

    def __init__(
        self,
        cursor: Cursor,
        tail_id: Optional[str] = None,
        session: Optional[ClientSession] = None,
    ):
        super().__init__()
        self._cursor = cursor
        self._session = session
        self._closed = threading.Event()
        self._thread: Optional[threading.Thread] = None
        self.tail_id = tail_id or uuid.uuid4().hex

    @property
    def cursor(self) -> Cursor:
        return self._cursor

    @property
    def closed(self) -> bool:
        return self._closed.is_set()

    def start(self) -> "OplogStream":
        """Start the reader thread; calling it again has no effect."""
        with self._lock:
            if self._thread is not None or self.closed:
                return self
            self._thread = threading.Thread(
                target=self._run,
                name=f"oplog-stream-{self.tail_id[:8]}",
                daemon=True,
            )
        self._thread.start()
        return self

    def join(self, timeout: Optional[float] = None) -> None:
        thread = self._thread
        if thread is not None and thread is not threading.current_thread():
            thread.join(timeout)

    def close(self) -> None:
        """Stop reading and close the cursor. Safe to call repeatedly."""
        with self._lock:
            if self._closed.is_set():
                return
            self._closed.set()
        try:
            self._cursor.close()
        except PyMongoError as e:
            logger.warning(
                f"Error closing oplog cursor: {e}",
                extra={"error_type": type(e).__name__},
            )
        if self._session is not None:
            try:
                self._session.end_session()
            except PyMongoError as e:
                logger.warning(
                    f"Error ending oplog session: {e}",
                    extra={"error_type": type(e).__name__},
                )
        logger.debug("Oplog stream closed")

    def _run(self) -> None:
        with TailContext(self.tail_id):
            try:
                self._read()
            except Exception as e:
                if self.closed:
                    logger.debug(f"Ignoring read failure after close: {e}")
                    return
                logger.debug(f"Oplog stream failed: {e}", extra={"error_type": type(e).__name__})
                self.emit("error", e)
                return
            if not self.closed:
                logger.debug("Oplog stream ended")
                self.emit("end")

    def _read(self) -> None:
        cursor = self._cursor
        while not self.closed and cursor.alive:
            doc = cursor.try_next()
            if doc is None or self.closed:
                continue
            self.emit("data", doc)


def open_stream(
    db: Optional[Database],
    ns: Optional[str] = None,
    ts: Union[Timestamp, float, None] = None,
    coll: Optional[str] = None,
    raw_filter: Optional[Dict[str, Any]] = None,
    tail_id: Optional[str] = None,
) -> OplogStream:
    """
    Open a tailable stream over the oplog.

    The reader is not started; register listeners, then call ``start()``.

    Args:
        db: Database holding the oplog (normally ``local``)
        ns: Optional namespace pattern, matched server-side
        ts: Position to start after. No position means now.
        coll: Oplog collection (default: "oplog.rs")
        raw_filter: Query document used instead of the namespace pattern
        tail_id: Tail session ID for log records from the reader thread

    Raises:
        OplogConnectionError: If no database is available
    """
    if db is None:
        raise OplogConnectionError("MongoDB database is missing.")
    collection = db[coll or DEFAULT_OPLOG_COLLECTION]
    query = build_query(ns, ts, raw_filter)
    # no_cursor_timeout only holds for cursors opened in an explicit session
    session = db.client.start_session()
    try:
        cursor = collection.find(
            query,
            session=session,
            cursor_type=CursorType.TAILABLE_AWAIT,
            no_cursor_timeout=True,
            oplog_replay=True,
        )
        cursor.max_await_time_ms(AWAIT_TIME_MS)
    except Exception:
        session.end_session()
        raise
    logger.debug(
        f"Opened oplog cursor on {collection.name}",
        extra={"namespace": ns, "has_raw_filter": bool(raw_filter)},
    )
    return OplogStream(cursor, tail_id=tail_id, session=session)


def get_last_entry(
    db: Optional[Database],
    ns: Optional[str] = None,
    coll: Optional[str] = None,
) -> Optional[Dict[str, Any]]:
    """
    Return the newest oplog document, optionally restricted to a namespace.

    Raises:
        OplogConnectionError: If no database is available
    """
    if db is None:
        raise OplogConnectionError("MongoDB database is missing.")
    query: Dict[str, Any] = {}
    if ns:
        query["ns"] = {"$regex": compile_namespace(ns).regex}
    return db[coll or DEFAULT_OPLOG_COLLECTION].find_one(query, sort=[("$natural", DESCENDING)])
