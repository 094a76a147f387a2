"""Unit tests for the listener registry."""

import logging

from mongo_oplog.emitter import EventEmitter


class TestEventEmitter:
    """Test EventEmitter."""

    def test_dispatch_in_registration_order(self):
        emitter = EventEmitter()
        calls = []
        emitter.on("op", lambda x: calls.append(("first", x)))
        emitter.on("op", lambda x: calls.append(("second", x)))
        assert emitter.emit("op", 1) is True
        assert calls == [("first", 1), ("second", 1)]

    def test_emit_without_listeners(self):
        assert EventEmitter().emit("op", 1) is False

    def test_off_by_handle(self):
        emitter = EventEmitter()
        calls = []
        handle = emitter.on("op", calls.append)
        assert emitter.off("op", handle) is True
        emitter.emit("op", 1)
        assert calls == []
        assert emitter.off("op", handle) is False

    def test_off_by_function(self):
        emitter = EventEmitter()
        calls = []
        emitter.on("op", calls.append)
        assert emitter.off("op", calls.append) is True
        assert emitter.listener_count("op") == 0

    def test_once(self):
        emitter = EventEmitter()
        calls = []
        emitter.once("end", lambda: calls.append("end"))
        emitter.emit("end")
        emitter.emit("end")
        assert calls == ["end"]

    def test_remove_all_listeners(self):
        emitter = EventEmitter()
        emitter.on("a", lambda: None)
        emitter.on("b", lambda: None)
        emitter.remove_all_listeners("a")
        assert emitter.listener_count("a") == 0
        assert emitter.listener_count("b") == 1
        emitter.remove_all_listeners()
        assert emitter.listener_count("b") == 0

    def test_failing_listener_does_not_stop_dispatch(self, caplog):
        emitter = EventEmitter()
        calls = []

        def broken(_):
            raise RuntimeError("boom")

        emitter.on("op", broken)
        emitter.on("op", calls.append)
        with caplog.at_level(logging.ERROR, logger="mongo_oplog.emitter"):
            emitter.emit("op", 1)
        assert calls == [1]
        assert "raised" in caplog.text

    def test_unhandled_error_is_logged(self, caplog):
        with caplog.at_level(logging.ERROR, logger="mongo_oplog.emitter"):
            EventEmitter().emit("error", ValueError("lost"))
        assert "lost" in caplog.text

    def test_listener_may_unregister_during_dispatch(self):
        emitter = EventEmitter()
        calls = []
        handle = None

        def first(x):
            emitter.off("op", handle)
            calls.append(("first", x))

        handle = emitter.on("op", first)
        emitter.on("op", lambda x: calls.append(("second", x)))
        emitter.emit("op", 1)
        emitter.emit("op", 2)
        assert calls == [("first", 1), ("second", 1), ("second", 2)]
