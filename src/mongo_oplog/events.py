"""
Oplog entry types and operation classification.

Raw documents from ``local.oplog.rs`` are wrapped in ``LogEntry``. With
``pretty`` enabled the tailer dispatches ``PresentationEntry`` instead; both
expose ``namespace`` and ``operation`` so listeners and filters handle
either shape the same way.
"""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, Mapping, Optional, Union

from bson import Timestamp

from .utils.bson_convert import bson_safe


class OperationKind(str, Enum):
    """Operation names keyed by their oplog codes."""
    INSERT = "insert"
    UPDATE = "update"
    DELETE = "delete"
    NOOP = "noop"
    COMMAND = "command"
    DB = "db"


OP_CODES: Dict[str, OperationKind] = {
    "i": OperationKind.INSERT,
    "u": OperationKind.UPDATE,
    "d": OperationKind.DELETE,
    "n": OperationKind.NOOP,
    "c": OperationKind.COMMAND,
    "db": OperationKind.DB,
}

UNKNOWN_OPERATION = "unknown"


def classify(op: Optional[str]) -> str:
    """
    Map an oplog operation code to its operation name.

    Unrecognised codes are returned unchanged so that new server
    operations still reach listeners.

    Example:
        >>> classify("i")
        'insert'
        >>> classify("xi")
        'xi'
    """
    if op is None:
        return UNKNOWN_OPERATION
    kind = OP_CODES.get(op) if isinstance(op, str) else None
    if kind is not None:
        return kind.value
    return str(op)


@dataclass(frozen=True)
class LogEntry:
    """One oplog document as read from the server."""
    ts: Optional[Timestamp]
    op: Optional[str]
    ns: Optional[str]
    h: Any = None
    o: Optional[Dict[str, Any]] = None
    o2: Optional[Dict[str, Any]] = None
    raw: Dict[str, Any] = field(default_factory=dict, repr=False, compare=False)

    @classmethod
    def from_document(cls, doc: Mapping[str, Any]) -> "LogEntry":
        """Build an entry without validating the document."""
        if not isinstance(doc, Mapping):
            doc = {}
        ts = doc.get("ts")
        return cls(
            ts=ts if isinstance(ts, Timestamp) else None,
            op=doc.get("op"),
            ns=doc.get("ns"),
            h=doc.get("h"),
            o=doc.get("o"),
            o2=doc.get("o2"),
            raw=dict(doc),
        )

    @property
    def namespace(self) -> Optional[str]:
        return self.ns

    @property
    def operation(self) -> str:
        return classify(self.op)

    def __getitem__(self, key: str) -> Any:
        return self.raw[key]

    def get(self, key: str, default: Any = None) -> Any:
        return self.raw.get(key, default)


@dataclass(frozen=True)
class PresentationEntry:
    """Oplog entry renamed to descriptive field names."""
    namespace: Optional[str]
    operation: str
    operation_id: Any
    timestamp: Optional[datetime]
    ts: Optional[Timestamp]
    target_id: Any = None
    criteria: Optional[Dict[str, Any]] = None
    data: Optional[Dict[str, Any]] = None

    def to_dict(self, json_safe: bool = False) -> Dict[str, Any]:
        """
        Convert to a dictionary; absent target, criteria and data are left out.

        Args:
            json_safe: Convert BSON values (ObjectId, Timestamp, ...) to JSON types
        """
        doc: Dict[str, Any] = {
            "namespace": self.namespace,
            "operation": self.operation,
            "operationId": self.operation_id,
            "timestamp": self.timestamp,
            "ts": self.ts,
        }
        if self.target_id is not None:
            doc["targetId"] = self.target_id
        if self.criteria is not None:
            doc["criteria"] = self.criteria
        if self.data is not None:
            doc["data"] = self.data
        return bson_safe(doc) if json_safe else doc


Payload = Union[LogEntry, PresentationEntry]


def _document_id(doc: Any) -> Any:
    if isinstance(doc, Mapping):
        return doc.get("_id")
    return None


def present(entry: LogEntry) -> PresentationEntry:
    """Reshape a raw entry for consumers that want descriptive field names."""
    target_id = _document_id(entry.o2)
    if target_id is None:
        target_id = _document_id(entry.o)
    timestamp = None
    if entry.ts is not None:
        timestamp = datetime.fromtimestamp(entry.ts.time, tz=timezone.utc)
    return PresentationEntry(
        namespace=entry.ns,
        operation=entry.operation,
        operation_id=entry.h,
        timestamp=timestamp,
        ts=entry.ts,
        target_id=target_id,
        criteria=entry.o2,
        data=entry.o,
    )
