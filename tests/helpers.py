"""Test doubles for oplog cursors and documents."""

import threading
import time
from typing import Any, Dict, List, Optional

from bson import ObjectId, Timestamp


class FakeCursor:
    """Tailable cursor double: yields documents, then fails, ends or idles."""

    def __init__(self, docs: Optional[List[Dict[str, Any]]] = None, error: Optional[Exception] = None,
                 end: bool = False):
        self._docs = list(docs or [])
        self._error = error
        self._end = end
        self._lock = threading.Lock()
        self.alive = True
        self.closed = False
        self.await_time_ms = None

    def max_await_time_ms(self, ms):
        self.await_time_ms = ms
        return self

    def push(self, *docs):
        with self._lock:
            self._docs.extend(docs)

    def try_next(self):
        with self._lock:
            if self._docs:
                return self._docs.pop(0)
            if self._error is not None:
                error, self._error = self._error, None
                raise error
            if self._end:
                self.alive = False
                return None
        time.sleep(0.005)
        return None

    def close(self):
        self.closed = True
        self.alive = False


def make_doc(seconds: int, inc: int, op: str = "i", ns: str = "optest.a", o=None, o2=None) -> Dict[str, Any]:
    doc = {
        "ts": Timestamp(seconds, inc),
        "op": op,
        "ns": ns,
        "h": seconds * 1000 + inc,
        "o": o if o is not None else {"_id": ObjectId(), "n": "JB", "c": 1},
    }
    if o2 is not None:
        doc["o2"] = o2
    return doc


def wait_for(predicate, timeout: float = 2.0) -> bool:
    deadline = time.monotonic() + timeout
    while time.monotonic() < deadline:
        if predicate():
            return True
        time.sleep(0.005)
    return predicate()


