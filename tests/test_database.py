import logging

from pymongo.errors import OperationFailure

import database


class _RejectingCollection:
    def create_index(self, *args, **kwargs):
        raise OperationFailure("E11000 duplicate key error")


class _RejectingDB:
    def __getitem__(self, name):
        return _RejectingCollection()


def test_ensure_indexes_logs_duplicate_like_rows(monkeypatch, caplog):
    monkeypatch.setattr(database, "db", _RejectingDB())
    monkeypatch.setattr(database, "_is_mongo", True)

    with caplog.at_level(logging.ERROR, logger="snipshare.database"):
        database.ensure_indexes()
    assert "Could not create indexes" in caplog.text


def test_ensure_indexes_skips_embedded_store(monkeypatch):
    monkeypatch.setattr(database, "db", _RejectingDB())
    monkeypatch.setattr(database, "_is_mongo", False)
    database.ensure_indexes()


def test_to_utc_reads_naive_values_as_utc():
    value = database.to_utc("2026-10-18T09:00:00")
    assert value.utcoffset().total_seconds() == 0
    assert value.hour == 9
