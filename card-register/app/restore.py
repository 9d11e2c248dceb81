"""Restore Engine: brings drafted files back after a reload.

For each file input whose field name has a record in the blob store, the
engine rebuilds the File, registers it in the restored-files index and
renders a preview block right after the input. The block offers two actions:

- promote: upload the file through the upload endpoint and, on success,
  drop the local draft and show the stored path
- discard: drop the local draft and empty the preview

Restored files are never written back into the file input; the submission
handler picks them up from the index instead.
"""

from __future__ import annotations

import asyncio
import base64
import logging
from collections.abc import Callable

from app.blob_store import BlobDraftStore
from app.page import Element, Page
from app.schema import FileDraftRecord, UploadResponse
from app.status import MESSAGES, StatusIndicator
from app.upload_client import UploadClient, UploadError, file_type_for

logger = logging.getLogger(__name__)

SIZE_UNITS = ("Bytes", "KB", "MB", "GB")

PREVIEW_ATTR = "data-file-preview"
RESTORED_NOTE = "復元されたファイル（再読み込み後）"
PROMOTE_LABEL = "このファイルを保存"
DISCARD_LABEL = "復元ファイルを削除"
SAVED_NOTE = "保存済み"

AuditHook = Callable[[str, str, dict], object]


def format_file_size(size: int) -> str:
    """Human-readable size, 1024-based, at most two decimals.

    >>> format_file_size(3 * 1024 * 1024)
    '3 MB'
    >>> format_file_size(3_072_000)
    '2.93 MB'
    """
    if size <= 0:
        return "0 Bytes"
    i = 0
    while i < len(SIZE_UNITS) - 1 and size >= 1024 ** (i + 1):
        i += 1
    return f"{round(size / 1024 ** i, 2):g} {SIZE_UNITS[i]}"


def thumbnail_uri(record: FileDraftRecord) -> str:
    encoded = base64.b64encode(record.blob).decode("ascii")
    return f"data:{record.mime_type};base64,{encoded}"


def is_file_input(el: Element) -> bool:
    return el.tag == "input" and el.type == "file"


class RestoreEngine:
    def __init__(
        self,
        page: Page,
        blob_store: BlobDraftStore,
        restored_files: dict[str, FileDraftRecord],
        status: StatusIndicator | None = None,
        uploader: UploadClient | None = None,
        on_dirty: Callable[[], object] | None = None,
        audit: AuditHook | None = None,
    ) -> None:
        self.page = page
        self.blob_store = blob_store
        self.restored_files = restored_files
        self.status = status
        self.uploader = uploader
        self.on_dirty = on_dirty
        self.audit = audit
        self._tasks: set[asyncio.Task] = set()
        self._warned_unavailable = False

    def _show(self, key: str, kind: str, **fmt) -> None:
        if self.status is not None:
            self.status.show(MESSAGES[key].format(**fmt), kind)

    def _record(self, action: str, field_name: str, details: dict | None = None) -> None:
        if self.audit is not None:
            self.audit(action, field_name, details or {})

    # ── Restore ──────────────────────────────────────────────────────────

    def file_inputs(self) -> list[Element]:
        inputs = []
        for form in self.page.forms():
            inputs.extend(el for el in form.find_all(is_file_input) if el.field_name)
        return inputs

    async def restore_files(self) -> int:
        """Rebuild every drafted file. Returns how many were restored."""
        if not self.blob_store.available:
            if not self._warned_unavailable:
                self._warned_unavailable = True
                self._show("file_drafts_unavailable", "warning")
            return 0

        count = 0
        for file_input in self.file_inputs():
            name = file_input.field_name
            record = await asyncio.to_thread(self.blob_store.get, name)
            if record is None or not record.blob:
                continue
            self.restored_files[name] = record
            self.render_preview(name, record)
            count += 1

        if count:
            logger.info("Restored %d drafted file(s)", count)
        return count

    # ── Preview ──────────────────────────────────────────────────────────

    def preview_container(self, field_name: str, create: bool = False) -> Element | None:
        container = self.page.find_by_attr(PREVIEW_ATTR, field_name)
        if container is not None or not create:
            return container

        file_input = next((el for el in self.file_inputs() if el.field_name == field_name), None)
        if file_input is None or file_input.parent is None:
            return None
        container = Element(
            "div",
            classes=["file-preview-container"],
            attrs={PREVIEW_ATTR: field_name},
        )
        file_input.insert_after(container)
        return container

    def render_preview(self, field_name: str, record: FileDraftRecord) -> Element | None:
        container = self.preview_container(field_name, create=True)
        if container is None:
            return None
        container.clear_children()

        preview = Element("div", classes=["file-preview"])
        if record.is_image:
            preview.append(Element(
                "img",
                classes=["file-preview-image"],
                attrs={"src": thumbnail_uri(record), "alt": record.name},
            ))
        preview.append(Element(
            "div",
            classes=["file-preview-info"],
            children=[
                Element("div", classes=["file-preview-name"], text=f"ファイル名: {record.name}"),
                Element("div", classes=["file-preview-size"], text=f"サイズ: {format_file_size(record.size)}"),
                Element("div", classes=["file-preview-note"], text=RESTORED_NOTE),
            ],
        ))

        promote_btn = Element("button", type="button", classes=["btn-promote-file"], text=PROMOTE_LABEL)
        promote_btn.add_listener("click", lambda _el: self._spawn(self.promote(field_name)))
        discard_btn = Element("button", type="button", classes=["btn-remove-file"], text=DISCARD_LABEL)
        discard_btn.add_listener("click", lambda _el: self._spawn(self.discard(field_name)))
        preview.append(promote_btn, discard_btn)

        container.append(preview)
        return container

    def render_saved(self, field_name: str, response: UploadResponse) -> None:
        container = self.preview_container(field_name, create=True)
        if container is None or response.data is None:
            return
        container.clear_children()
        container.append(Element(
            "div",
            classes=["file-preview", "file-preview-saved"],
            attrs={"data-file-path": response.data.file_path},
            children=[
                Element("div", classes=["file-preview-note"], text=SAVED_NOTE),
                Element("div", classes=["file-preview-path"], text=response.data.file_path),
            ],
        ))

    def clear_preview(self, field_name: str) -> None:
        container = self.preview_container(field_name)
        if container is not None:
            container.clear_children()

    # ── Actions ──────────────────────────────────────────────────────────

    def _spawn(self, coro) -> None:
        try:
            task = asyncio.get_running_loop().create_task(coro)
        except RuntimeError:
            coro.close()
            logger.warning("Preview action ignored: no running event loop")
            return
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)

    async def drain(self) -> None:
        """Wait for preview actions started from button clicks."""
        while self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)

    async def promote(self, field_name: str) -> UploadResponse | None:
        """Upload a restored file for good. The draft survives a failure."""
        record = self.restored_files.get(field_name)
        if record is None:
            return None
        if self.uploader is None:
            self._show("promote_failed", "error")
            return None

        file_type = file_type_for(field_name)
        try:
            response = await asyncio.to_thread(self.uploader.upload, record.to_file(), file_type)
        except UploadError as e:
            logger.warning("Promote of %s failed: %s", field_name, e)
            self._show("promote_failed", "error")
            return None

        await asyncio.to_thread(self.blob_store.delete, field_name)
        self.restored_files.pop(field_name, None)
        self.render_saved(field_name, response)
        self._show("promoted", "success")
        self._record("file_promoted", field_name, {
            "file_type": file_type,
            "file_path": response.data.file_path,
            "was_resized": response.data.was_resized,
        })
        return response

    async def discard(self, field_name: str) -> None:
        await asyncio.to_thread(self.blob_store.delete, field_name)
        self.restored_files.pop(field_name, None)
        self.clear_preview(field_name)
        if self.on_dirty is not None:
            self.on_dirty()
        self._record("file_discarded", field_name)
