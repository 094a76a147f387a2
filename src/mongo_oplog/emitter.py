"""
Listener registry with synchronous dispatch.

Listeners are called on the emitting thread, in registration order, before
``emit`` returns. Registration returns a ``ListenerHandle`` that can later be
passed to ``off``.
"""

import itertools
import logging
import threading
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Optional, Union

logger = logging.getLogger(__name__)

Listener = Callable[..., Any]

_handle_ids = itertools.count(1)


@dataclass(eq=False)
class ListenerHandle:
    """Registration of one listener for one event."""
    event: str
    listener: Listener
    once: bool = False
    id: int = field(default_factory=lambda: next(_handle_ids))


class EventEmitter:
    """Maps event names to ordered listener lists.

    Thread-safe: registration, removal and the dispatch snapshot use a lock.
    """

    def __init__(self):
        self._lock = threading.RLock()
        self._listeners: Dict[str, List[ListenerHandle]] = {}

    def on(self, event: str, listener: Listener) -> ListenerHandle:
        """Register ``listener`` to be called on every ``event``."""
        return self._add(event, listener, once=False)

    add_listener = on

    def once(self, event: str, listener: Listener) -> ListenerHandle:
        """Register ``listener`` for the next ``event`` only."""
        return self._add(event, listener, once=True)

    def _add(self, event: str, listener: Listener, once: bool) -> ListenerHandle:
        if not callable(listener):
            raise TypeError("listener must be callable")
        handle = ListenerHandle(event=event, listener=listener, once=once)
        with self._lock:
            self._listeners.setdefault(event, []).append(handle)
        return handle

    def off(self, event: str, listener: Union[ListenerHandle, Listener]) -> bool:
        """
        Remove a registration by handle or by listener function.

        Returns:
            True if something was removed
        """
        with self._lock:
            handles = self._listeners.get(event)
            if not handles:
                return False
            for index, handle in enumerate(handles):
                if handle is listener or handle.listener == listener:
                    del handles[index]
                    if not handles:
                        del self._listeners[event]
                    return True
        return False

    remove_listener = off

    def remove_all_listeners(self, event: Optional[str] = None) -> None:
        with self._lock:
            if event is None:
                self._listeners.clear()
            else:
                self._listeners.pop(event, None)

    def listeners(self, event: str) -> List[Listener]:
        with self._lock:
            return [handle.listener for handle in self._listeners.get(event, [])]

    def listener_count(self, event: str) -> int:
        with self._lock:
            return len(self._listeners.get(event, []))

    def emit(self, event: str, *args: Any) -> bool:
        """
        Call every listener registered for ``event``.

        A listener that raises is logged and the remaining listeners still
        run. An ``error`` event without listeners is logged at error level.

        Returns:
            True if the event had listeners
        """
        with self._lock:
            handles = list(self._listeners.get(event, []))
            for handle in handles:
                if handle.once:
                    self._discard(handle)

        if not handles:
            if event == "error":
                error = args[0] if args else None
                logger.error(
                    f"Unhandled error event on {type(self).__name__}: {error}",
                    exc_info=error if isinstance(error, BaseException) else None,
                )
            return False

        for handle in handles:
            try:
                handle.listener(*args)
            except Exception:
                logger.exception(
                    f"Listener for {event!r} raised",
                    extra={"event": event, "emitter": type(self).__name__},
                )
        return True

    def _discard(self, handle: ListenerHandle) -> None:
        handles = self._listeners.get(handle.event)
        if handles and handle in handles:
            handles.remove(handle)
            if not handles:
                del self._listeners[handle.event]
