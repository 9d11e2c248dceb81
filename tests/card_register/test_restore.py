"""Tests for card-register/app/restore.py — file restore, previews, promote/discard."""

from __future__ import annotations

import pytest

from app.blob_store import BlobDraftStore
from app.page import DraftFile
from app.restore import RestoreEngine, format_file_size
from app.status import StatusIndicator
from app.upload_client import UploadClient

MiB = 1024 * 1024
UPLOAD_URL = "http://testserver/backend/api/business-card/upload.php"


@pytest.fixture()
def blob_store(tmp_data_dir):
    store = BlobDraftStore(tmp_data_dir / "regDraftDB.db")
    store.open()
    return store


@pytest.fixture()
def engine(page, blob_store, http):
    dirty = []
    eng = RestoreEngine(
        page,
        blob_store,
        {},
        status=StatusIndicator(page),
        uploader=UploadClient(UPLOAD_URL, http=http),
        on_dirty=lambda: dirty.append(True),
    )
    eng.dirty_calls = dirty
    return eng


def _logo(size: int = 2048) -> DraftFile:
    return DraftFile("logo.png", b"\x89PNG" + b"\0" * (size - 4), "image/png", 1_700_000_000_000)


def _preview(page, field_name):
    return page.find_by_attr("data-file-preview", field_name)


class TestFormatFileSize:
    @pytest.mark.parametrize("size, expected", [
        (0, "0 Bytes"),
        (512, "512 Bytes"),
        (1024, "1 KB"),
        (1536, "1.5 KB"),
        (3 * MiB, "3 MB"),
        (3_072_000, "2.93 MB"),
        (5 * 1024 * MiB, "5 GB"),
    ])
    def test_sizes(self, size, expected):
        assert format_file_size(size) == expected


class TestRestoreFiles:
    @pytest.mark.asyncio
    async def test_restores_into_index_with_preview(self, page, blob_store, engine):
        blob_store.put("company_logo", _logo(3 * MiB))
        assert await engine.restore_files() == 1
        assert list(engine.restored_files) == ["company_logo"]

        logo_input = page.body.find_by_name("company_logo")[0]
        siblings = logo_input.parent.children
        container = siblings[siblings.index(logo_input) + 1]
        assert container.attrs["data-file-preview"] == "company_logo"

        text = container.text_content()
        assert "logo.png" in text
        assert "3 MB" in text
        assert "復元されたファイル（再読み込み後）" in text
        img = container.find(lambda el: el.tag == "img")
        assert img.attrs["src"].startswith("data:image/png;base64,")
        assert container.find_by_class("btn-promote-file")
        assert container.find_by_class("btn-remove-file")

    @pytest.mark.asyncio
    async def test_file_input_left_empty(self, page, blob_store, engine):
        blob_store.put("company_logo", _logo())
        await engine.restore_files()
        assert page.body.find_by_name("company_logo")[0].files == []

    @pytest.mark.asyncio
    async def test_non_image_has_no_thumbnail(self, page, blob_store, engine):
        blob_store.put("profile_photo", DraftFile("resume.pdf", b"%PDF-1.7", "application/pdf"))
        await engine.restore_files()
        assert _preview(page, "profile_photo").find(lambda el: el.tag == "img") is None

    @pytest.mark.asyncio
    async def test_nothing_drafted(self, page, engine):
        assert await engine.restore_files() == 0
        assert _preview(page, "company_logo") is None

    @pytest.mark.asyncio
    async def test_existing_container_reused(self, page, blob_store, engine):
        blob_store.put("company_logo", _logo())
        await engine.restore_files()
        await engine.restore_files()
        previews = page.body.find_all(lambda el: el.attrs.get("data-file-preview") == "company_logo")
        assert len(previews) == 1
        assert len(previews[0].children) == 1

    @pytest.mark.asyncio
    async def test_unavailable_store_warns_once(self, page, tmp_path):
        blocker = tmp_path / "blocker"
        blocker.write_text("x")
        store = BlobDraftStore(blocker / "db.db")
        store.open()
        status = StatusIndicator(page)
        eng = RestoreEngine(page, store, {}, status=status)
        assert await eng.restore_files() == 0
        assert status.kind == "warning"
        status.show("other", "info")
        await eng.restore_files()
        assert status.message == "other"


class TestPromote:
    @pytest.mark.asyncio
    async def test_success_drops_draft(self, page, blob_store, engine, collaborators):
        blob_store.put("company_logo", _logo())
        await engine.restore_files()

        response = await engine.promote("company_logo")

        assert response.data.file_path == "backend/uploads/logo/logo.png"
        assert collaborators.state.uploads == [{"file_name": "logo.png", "file_type": "logo", "size": 2048}]
        assert blob_store.get("company_logo") is None
        assert "company_logo" not in engine.restored_files
        saved = _preview(page, "company_logo").find_by_class("file-preview-saved")[0]
        assert saved.attrs["data-file-path"] == "backend/uploads/logo/logo.png"

    @pytest.mark.asyncio
    async def test_file_type_tags(self, blob_store, engine, collaborators):
        blob_store.put("profile_photo", _logo())
        await engine.restore_files()
        await engine.promote("profile_photo")
        assert collaborators.state.uploads[0]["file_type"] == "photo"

    @pytest.mark.asyncio
    async def test_failure_keeps_draft(self, page, blob_store, engine, collaborators):
        collaborators.state.fail_upload = True
        blob_store.put("company_logo", _logo())
        await engine.restore_files()

        assert await engine.promote("company_logo") is None
        assert blob_store.get("company_logo") is not None
        assert "company_logo" in engine.restored_files
        assert engine.status.kind == "error"

        collaborators.state.fail_upload = False
        assert await engine.promote("company_logo") is not None

    @pytest.mark.asyncio
    async def test_unknown_field(self, engine):
        assert await engine.promote("company_logo") is None


class TestDiscard:
    @pytest.mark.asyncio
    async def test_discard_clears_everything(self, page, blob_store, engine):
        blob_store.put("company_logo", _logo())
        await engine.restore_files()

        await engine.discard("company_logo")

        assert blob_store.get("company_logo") is None
        assert engine.restored_files == {}
        assert _preview(page, "company_logo").children == []
        assert engine.dirty_calls == [True]

    @pytest.mark.asyncio
    async def test_discard_button_click(self, page, blob_store, engine):
        blob_store.put("company_logo", _logo())
        await engine.restore_files()

        _preview(page, "company_logo").find_by_class("btn-remove-file")[0].dispatch("click")
        await engine.drain()

        assert engine.restored_files == {}
        assert blob_store.get("company_logo") is None
