"""Tests for card-register/app/blob_store.py — file drafts in SQLite."""

from __future__ import annotations

import logging

import pytest

from app.blob_store import BlobDraftStore
from app.page import DraftFile

MiB = 1024 * 1024


@pytest.fixture()
def store(tmp_data_dir):
    s = BlobDraftStore(tmp_data_dir / "regDraftDB.db")
    assert s.open() is True
    return s


def _png(size: int = 64, name: str = "logo.png") -> DraftFile:
    return DraftFile(name=name, data=bytes(range(256)) * (size // 256) + b"\x89" * (size % 256),
                     mime_type="image/png", last_modified=1_700_000_000_000)


class TestPutGet:
    def test_round_trip_is_byte_exact(self, store):
        file = _png(3 * MiB)
        assert store.put("company_logo", file) is True
        record = store.get("company_logo")
        assert record.blob == file.data
        assert record.name == "logo.png"
        assert record.mime_type == "image/png"
        assert record.last_modified == 1_700_000_000_000
        assert record.size == 3 * MiB

    def test_missing_key(self, store):
        assert store.get("profile_photo") is None

    def test_one_record_per_key(self, store):
        store.put("company_logo", _png(10, "old.png"))
        store.put("company_logo", _png(20, "new.png"))
        assert store.keys() == ["company_logo"]
        assert store.get("company_logo").name == "new.png"

    def test_exactly_max_size_is_accepted(self, store):
        assert store.put("company_logo", _png(5 * MiB)) is True

    def test_oversized_rejected(self, store):
        assert store.put("profile_photo", _png(7 * MiB)) is False
        assert store.get("profile_photo") is None

    def test_opens_lazily(self, tmp_data_dir):
        s = BlobDraftStore(tmp_data_dir / "lazy.db")
        assert s.put("company_logo", _png()) is True
        assert s.available


class TestDeleteClear:
    def test_delete_is_idempotent(self, store):
        store.put("company_logo", _png())
        store.delete("company_logo")
        store.delete("company_logo")
        assert store.get("company_logo") is None

    def test_clear(self, store):
        store.put("company_logo", _png())
        store.put("profile_photo", _png())
        store.clear()
        store.clear()
        assert store.keys() == []


class TestDegraded:
    @pytest.fixture()
    def broken(self, tmp_path):
        blocker = tmp_path / "blocker"
        blocker.write_text("not a directory")
        return BlobDraftStore(blocker / "regDraftDB.db")

    def test_open_fails_without_raising(self, broken):
        assert broken.open() is False
        assert broken.available is False

    def test_every_call_is_a_noop(self, broken):
        broken.open()
        assert broken.put("company_logo", _png()) is False
        assert broken.get("company_logo") is None
        assert broken.keys() == []
        broken.delete("company_logo")
        broken.clear()

    def test_warns_once(self, broken, caplog):
        with caplog.at_level(logging.WARNING, logger="app.blob_store"):
            broken.open()
            broken.open()
            broken.put("company_logo", _png())
        assert sum("unavailable" in r.getMessage() for r in caplog.records) == 1
