"""
Namespace filters over a tailer's events.

A typical use is one ``MongoOplog`` tailing a whole database and one filter
per collection, each with its own listeners.
"""

import logging
import weakref
from typing import TYPE_CHECKING, Optional

from .emitter import EventEmitter, ListenerHandle
from .events import OperationKind, Payload
from .namespace import WILDCARD, compile_namespace

if TYPE_CHECKING:
    from .oplog import MongoOplog

logger = logging.getLogger(__name__)


class FilteredMongoOplog(EventEmitter):
    """
    Emits the parent's ``op`` payloads whose namespace matches a pattern.

    The filter never owns the parent's stream. The parent keeps only a
    listener registration that reaches the filter through a weak reference,
    so an abandoned filter unregisters itself on the next entry.

    Events:
        op(payload), insert(payload), update(payload), delete(payload),
        noop(), destroy()
    """

    def __init__(self, oplog: "MongoOplog", ns: str = WILDCARD):
        super().__init__()
        self.ignore: bool = False
        self.oplog = oplog
        self.matcher = compile_namespace(ns or WILDCARD)
        self._handle: Optional[ListenerHandle] = None
        logger.debug(f"Initializing filter with pattern {self.matcher.pattern}")

        ref = weakref.ref(self)

        def forward(payload: Payload) -> None:
            target = ref()
            if target is None:
                oplog.off("op", handle)
                return
            target._on_op(payload)

        handle = oplog.on("op", forward)
        self._handle = handle

    @property
    def namespace(self) -> str:
        return self.matcher.pattern

    def _on_op(self, payload: Payload) -> None:
        if self.ignore or not self.matcher.test(payload.namespace):
            return
        operation = payload.operation
        self.emit("op", payload)
        if operation == OperationKind.NOOP.value:
            self.emit(operation)
        else:
            self.emit(operation, payload)

    def destroy(self) -> None:
        """
        Emit ``destroy``, unregister from the parent and drop every listener.
        Safe to call more than once and after the parent was destroyed.
        """
        handle, self._handle = self._handle, None
        if handle is None:
            return
        logger.debug("Removing filter bindings")
        self.emit("destroy")
        self.oplog.off("op", handle)
        self.remove_all_listeners()
