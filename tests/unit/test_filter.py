"""Unit tests for namespace filters."""

import gc

import pytest
from bson import Timestamp

from mongo_oplog import FilteredMongoOplog, LogEntry, MongoOplog, present

from tests.helpers import FakeCursor, make_doc, wait_for


def _entry(ns, op="i", inc=1):
    return LogEntry.from_document(make_doc(100, inc, op=op, ns=ns))


class TestFilteredMongoOplog:
    """Test FilteredMongoOplog."""

    @pytest.fixture
    def oplog(self, oplog_db):
        oplog = MongoOplog(oplog_db)
        yield oplog
        oplog.destroy()

    def test_filter_factory(self, oplog):
        flt = oplog.filter("optest.a")
        assert isinstance(flt, FilteredMongoOplog)
        assert flt.oplog is oplog
        assert flt.namespace == "optest.a"
        assert oplog.listener_count("op") == 1

    def test_default_pattern_matches_everything(self, oplog):
        flt = oplog.filter()
        ops = []
        flt.on("op", ops.append)
        oplog.emit("op", _entry("a.b"))
        oplog.emit("op", _entry("c.d"))
        assert [entry.ns for entry in ops] == ["a.b", "c.d"]

    def test_emits_matching_namespace_only(self, oplog):
        flt = oplog.filter("*.b")
        ops, inserts, deletes = [], [], []
        flt.on("op", ops.append)
        flt.on("insert", inserts.append)
        flt.on("delete", deletes.append)
        matching = _entry("optest.b")
        removed = _entry("other.b", op="d", inc=2)
        oplog.emit("op", _entry("optest.bb"))
        oplog.emit("op", matching)
        oplog.emit("op", removed)
        assert ops == [matching, removed]
        assert inserts == [matching]
        assert deletes == [removed]

    def test_pretty_payload(self, oplog):
        flt = oplog.filter("optest.*")
        updates = []
        flt.on("update", updates.append)
        pretty = present(_entry("optest.c", op="u"))
        oplog.emit("op", pretty)
        assert updates == [pretty]

    def test_noop(self, oplog):
        flt = oplog.filter()
        noops = []
        flt.on("noop", lambda *args: noops.append(args))
        oplog.emit("op", _entry("", op="n"))
        assert noops == [()]

    def test_ignored_filter_drops_but_parent_receives(self, oplog):
        flt = oplog.filter()
        flt.ignore = True
        parent_ops, filter_ops = [], []
        oplog.on("op", parent_ops.append)
        flt.on("op", filter_ops.append)
        entry = _entry("optest.a")
        oplog.emit("op", entry)
        assert parent_ops == [entry]
        assert filter_ops == []

    def test_sibling_filters_are_independent(self, oplog):
        first, second = oplog.filter("optest.a"), oplog.filter("optest.*")
        first_ops, second_ops = [], []
        first.on("op", first_ops.append)
        second.on("op", second_ops.append)
        first.ignore = True
        oplog.emit("op", _entry("optest.a"))
        first.destroy()
        oplog.emit("op", _entry("optest.b"))
        assert first_ops == []
        assert [entry.ns for entry in second_ops] == ["optest.a", "optest.b"]

    def test_destroy(self, oplog):
        flt = oplog.filter()
        events, ops = [], []
        flt.on("destroy", lambda: events.append("destroy"))
        flt.on("op", ops.append)
        flt.destroy()
        oplog.emit("op", _entry("optest.a"))
        assert events == ["destroy"]
        assert ops == []
        assert oplog.listener_count("op") == 0
        assert flt.listener_count("op") == 0

    def test_destroy_twice(self, oplog):
        flt = oplog.filter()
        events = []
        flt.on("destroy", lambda: events.append("destroy"))
        flt.destroy()
        flt.destroy()
        assert events == ["destroy"]

    def test_destroy_after_parent_destroyed(self, oplog_db):
        oplog = MongoOplog(oplog_db)
        flt = oplog.filter()
        oplog.destroy()
        flt.destroy()
        assert oplog.listener_count("op") == 0
        assert oplog.connected

    def test_abandoned_filter_unregisters(self, oplog):
        oplog.filter("optest.*")
        gc.collect()
        oplog.emit("op", _entry("optest.a"))
        assert oplog.listener_count("op") == 0

    def test_receives_streamed_entries_in_order(self, oplog, oplog_collection):
        docs = [make_doc(100, i, ns="optest.a" if i % 2 else "optest.b") for i in range(6)]
        oplog_collection.find.return_value = FakeCursor(docs)
        flt = oplog.filter("optest.a")
        seen = []
        flt.on("op", lambda entry: seen.append(entry.ts))
        oplog.tail()
        assert wait_for(lambda: len(seen) == 3)
        assert seen == [Timestamp(100, 1), Timestamp(100, 3), Timestamp(100, 5)]
