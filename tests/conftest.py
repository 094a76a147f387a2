"""Shared fixtures: mock oplog database and collection."""

from unittest.mock import MagicMock

import pytest


@pytest.fixture
def oplog_collection():
    """Mock oplog collection; queue cursors on ``collection.find.side_effect``."""
    collection = MagicMock()
    collection.name = "oplog.rs"
    collection.find_one.return_value = None
    return collection


@pytest.fixture
def oplog_db(oplog_collection):
    """Mock ``local`` database returning ``oplog_collection`` for any name."""
    db = MagicMock()
    db.__getitem__.return_value = oplog_collection
    return db
