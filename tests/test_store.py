"""Tests for the durable transaction store"""
import os

import pytest

from config.database import create_tables, make_session_factory
from modules.receipt.store import (
    DatabaseTransactionStore, FileTransactionStore, build_store, merge_record,
)


@pytest.fixture
def db_store(tmp_path):
    session_factory = make_session_factory(f"sqlite:///{tmp_path / 'receipts.db'}")
    create_tables(session_factory)
    return DatabaseTransactionStore(session_factory)


@pytest.fixture(params=["file", "database"])
def any_store(request, store, db_store):
    return store if request.param == "file" else db_store


def test_missing_record_is_empty(any_store):
    assert any_store.get("nobody") == {}


def test_put_then_get(any_store):
    any_store.put("R1", {"CustomerName": "דנה", "paidAmount": 99})
    assert any_store.get("R1") == {"CustomerName": "דנה", "paidAmount": 99}


def test_put_replaces_previous_snapshot(any_store):
    any_store.put("R1", {"a": 1})
    any_store.put("R1", {"b": 2})
    assert any_store.get("R1") == {"b": 2}


@pytest.mark.parametrize("first,second", [
    ({"paidAmount": 100}, {"last4": "1234"}),
    ({"last4": "1234"}, {"paidAmount": 100}),
])
def test_merge_is_monotonic_in_either_order(any_store, first, second):
    merge_record(any_store, "R1", first)
    merge_record(any_store, "R1", second)
    assert any_store.get("R1") == {"paidAmount": 100, "last4": "1234"}


def test_merge_preserves_unrelated_fields_and_skips_none(any_store):
    any_store.put("R1", {"CustomerName": "Dana", "CustomerEmail": "dana@example.org"})
    merged = merge_record(any_store, "R1", {"paidAmount": 99, "receiptUrl": None})
    assert merged == {"CustomerName": "Dana", "CustomerEmail": "dana@example.org", "paidAmount": 99}
    assert any_store.get("R1") == merged


def test_file_store_creates_directory(tmp_path):
    directory = tmp_path / "nested" / "receipts"
    FileTransactionStore(str(directory)).put("R1", {"x": 1})
    assert (directory / "R1.json").exists()


def test_file_store_leaves_no_temp_files(store, settings):
    store.put("R1", {"x": 1})
    store.put("R1", {"x": 2})
    assert os.listdir(settings.receipts_dir) == ["R1.json"]


def test_file_store_corrupt_file_reads_empty(store, settings):
    os.makedirs(settings.receipts_dir)
    with open(os.path.join(settings.receipts_dir, "R1.json"), "w") as f:
        f.write("{not json")
    assert store.get("R1") == {}


def test_file_store_sanitises_ids(store, settings, tmp_path):
    store.put("../escape", {"x": 1})
    assert store.get("../escape") == {"x": 1}
    assert not (tmp_path / "escape.json").exists()
    assert len(os.listdir(settings.receipts_dir)) == 1


def test_build_store_picks_backend(settings, tmp_path):
    import dataclasses

    assert isinstance(build_store(settings), FileTransactionStore)
    db_settings = dataclasses.replace(
        settings, store_backend="database", database_url=f"sqlite:///{tmp_path / 'b.db'}",
    )
    db = build_store(db_settings)
    assert isinstance(db, DatabaseTransactionStore)
    db.put("R9", {"ok": True})
    assert db.get("R9") == {"ok": True}
