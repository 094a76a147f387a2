"""Unit tests for namespace patterns."""

import pytest

from mongo_oplog.namespace import compile_namespace


class TestNamespaceMatcher:
    """Test compile_namespace."""

    @pytest.mark.parametrize("namespace", ["db.x", "other.coll", "a", ""])
    def test_wildcard_matches_everything(self, namespace):
        assert compile_namespace("*").test(namespace)

    def test_default_is_wildcard(self):
        assert compile_namespace().test("anything.at.all")
        assert compile_namespace("").test("anything.at.all")

    def test_collection_wildcard(self):
        matcher = compile_namespace("*.x")
        assert matcher.test("db.x")
        assert not matcher.test("db.xx")
        assert not matcher.test("other.xy")

    def test_database_wildcard(self):
        matcher = compile_namespace("db.*")
        assert matcher.test("db.x")
        assert matcher.test("db.")
        assert not matcher.test("other.x")

    def test_bare_database_is_exact(self):
        matcher = compile_namespace("mydb")
        assert matcher.test("mydb")
        assert not matcher.test("mydb.anycoll")

    def test_case_insensitive(self):
        assert compile_namespace("OpTest.A").test("optest.a")

    def test_dot_is_literal(self):
        assert not compile_namespace("db.x").test("dbax")

    def test_none_never_matches(self):
        assert not compile_namespace("*").test(None)
