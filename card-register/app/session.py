"""DraftSession: one draft manager per page load.

Wires the snapshot store, blob store, restore engine, dirty tracker and
remote mirror to a ``Page`` and exposes the API the wizard's submit handler
calls::

    session = DraftSession(page)
    await session.start()               # restore, then listen for input
    ...
    session.begin_submission()
    form_data = session.add_restored_files_to_submission(form, form_data)
    if ok:
        await session.clear_drafts_on_success()
        await session.navigate_after_success("/frontend/payment.php")
    else:
        session.mark_submission_failed()

All page mutation happens on the event loop thread. SQLite, HTTP and audit
file writes are handed to ``asyncio.to_thread`` and awaited.
"""

from __future__ import annotations

import asyncio
import logging

from app import audit_log
from app.blob_store import BlobDraftStore
from app.config import Settings, get_settings
from app.field_store import FieldSnapshotStore, is_snapshot_field
from app.mirror import RemoteDraftMirror, is_profile_page
from app.page import Element, Page
from app.restore import RestoreEngine, is_file_input
from app.schema import FileDraftRecord, UploadResponse
from app.status import MESSAGES, StatusIndicator
from app.tracker import DirtyTracker
from app.upload_client import UploadClient
from shared.local_storage import LocalStorage
from shared.logging_setup import configure_logging

logger = logging.getLogger(__name__)


class DraftSession:
    def __init__(
        self,
        page: Page,
        settings: Settings | None = None,
        *,
        storage: LocalStorage | None = None,
        blob_store: BlobDraftStore | None = None,
        upload_http=None,
        mirror_http=None,
    ) -> None:
        self.settings = s = settings or get_settings()
        self.page = page

        self.status = StatusIndicator(page, s.status_duration_ms)
        self.tracker = DirtyTracker()
        self.restored_files: dict[str, FileDraftRecord] = {}

        self.storage = storage or LocalStorage(s.local_storage_path)
        self.field_store = FieldSnapshotStore(
            page,
            self.storage,
            s.storage_key,
            status=self.status,
            saved_notice_delay_ms=s.saved_notice_delay_ms,
        )
        self.blob_store = blob_store or BlobDraftStore(s.db_path, s.max_file_size)
        self.mirror = RemoteDraftMirror(s.autosave_url, s.request_timeout, http=mirror_http)
        self.engine = RestoreEngine(
            page,
            self.blob_store,
            self.restored_files,
            status=self.status,
            uploader=UploadClient(s.upload_url, s.request_timeout, http=upload_http),
            on_dirty=self.tracker.mark_dirty,
            audit=self._record,
        )

        self._save_handle: asyncio.TimerHandle | None = None
        self._tasks: set[asyncio.Task] = set()
        self._watched: list[tuple[Element, str, object]] = []
        self._closed = False

    # ── Lifecycle ────────────────────────────────────────────────────────

    async def start(self) -> None:
        """Open the stores, restore both drafts, then start listening."""
        configure_logging()
        await asyncio.to_thread(self.blob_store.open)

        if self.field_store.restore():
            self.tracker.mark_dirty()
            self.status.show(MESSAGES["restored"], "restored")
            self._record("restored", "", {"source": "snapshot"})

        count = await self.engine.restore_files()
        if count:
            self.tracker.mark_dirty()
            self.status.show(MESSAGES["files_restored"].format(count=count), "restored")
            self._record("restored", "", {"source": "files", "count": count})

        self.watch_fields()
        logger.info("Draft session started for %s", self.page.url or "page")

    def watch_fields(self) -> int:
        """Attach listeners to fields not yet watched, e.g. a newly added greeting.

        Returns the number of elements newly watched.
        """
        already = {el for el, _, _ in self._watched}
        added = 0
        for form in self.page.forms():
            for el in form.find_all(lambda e: e.is_field):
                if el in already:
                    continue
                if is_file_input(el):
                    self._listen(el, "change", self._on_file_event)
                elif is_snapshot_field(el):
                    self._listen(el, "input", self._on_field_event)
                    self._listen(el, "change", self._on_field_event)
                else:
                    continue
                added += 1
        return added

    def _listen(self, el: Element, event: str, callback) -> None:
        el.add_listener(event, callback)
        self._watched.append((el, event, callback))

    async def drain(self) -> None:
        """Wait until mirror pushes, file writes and audit writes started so far have finished."""
        # Preview actions record audit events, so they settle first
        await self.engine.drain()
        while self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)

    async def close(self) -> None:
        """Stop listening, cancel timers and wait for in-flight work."""
        self._closed = True
        self._cancel_pending_save()
        self.field_store.cancel_saved_notice()
        self.status.cancel()
        for el, event, callback in self._watched:
            el.remove_listener(event, callback)
        self._watched.clear()
        await self.drain()

    # ── Autosave ─────────────────────────────────────────────────────────

    def _on_field_event(self, _el: Element) -> None:
        if not self._closed:
            self.schedule_save()

    def _on_file_event(self, el: Element) -> None:
        if not self._closed:
            self._spawn(self.on_file_change(el))

    def _spawn(self, coro) -> None:
        task = asyncio.get_running_loop().create_task(coro)
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)

    def _cancel_pending_save(self) -> None:
        if self._save_handle is not None:
            self._save_handle.cancel()
            self._save_handle = None

    @property
    def save_pending(self) -> bool:
        return self._save_handle is not None

    def schedule_save(self) -> None:
        """(Re)start the debounce timer; only the last call in a burst saves."""
        self._cancel_pending_save()
        self.tracker.mark_dirty()
        loop = asyncio.get_running_loop()
        self._save_handle = loop.call_later(self.settings.debounce_ms / 1000, self._run_save)

    def _run_save(self) -> None:
        self._save_handle = None
        saved = self.field_store.save()
        self.tracker.mark_dirty()
        if not saved:
            return
        snapshot = self.field_store.last_snapshot
        self._record("saved", "", {"forms": sorted(k for k, v in snapshot.items() if isinstance(v, dict))})
        if is_profile_page(self.page.url, self.settings.profile_page_paths):
            self._spawn(self._mirror(snapshot))

    async def _mirror(self, snapshot: dict) -> None:
        if await self.mirror.push(snapshot) or self._closed:
            return
        self.field_store.cancel_saved_notice()
        self.status.show(MESSAGES["saved_locally"], "info")

    async def on_file_change(self, file_input: Element) -> bool:
        """Draft the newly chosen file, replacing any restored one for the field."""
        name = file_input.field_name
        if not name or not file_input.files:
            return False
        file = file_input.files[0]

        if name in self.restored_files:
            await asyncio.to_thread(self.blob_store.delete, name)
            self.restored_files.pop(name, None)
            self.engine.clear_preview(name)

        if self.blob_store.rejects(file):
            self.status.show(MESSAGES["file_too_large"], "warning")
            self._record("file_rejected", name, {"size": file.size})
            return False

        stored = await asyncio.to_thread(self.blob_store.put, name, file)
        if stored:
            self.tracker.mark_dirty()
            self._record("file_stored", name, {"size": file.size, "mime_type": file.mime_type})
        return stored

    # ── Public API ───────────────────────────────────────────────────────

    async def _wipe(self) -> None:
        self._cancel_pending_save()
        self.field_store.clear()
        await asyncio.to_thread(self.blob_store.clear)
        for name in list(self.restored_files):
            self.engine.clear_preview(name)
        self.restored_files.clear()
        self.tracker.mark_clean()

    async def clear_drafts(self) -> None:
        """Drop both drafts without announcing it."""
        await self._wipe()
        self._record("cleared", "", {"reason": "manual"})

    async def clear_drafts_on_success(self) -> None:
        """Wipe every draft after the server confirmed the submission.

        The submission is over, so later edits on the same page arm the
        unload prompt again.
        """
        await self._wipe()
        self.tracker.end_submission()
        self.status.show(MESSAGES["cleared"], "success")
        self._record("cleared", "", {"reason": "submitted"})

    def add_restored_files_to_submission(self, form: Element, form_data: dict) -> dict:
        """Put restored files into *form_data* for inputs the user left empty."""
        for name, record in self.restored_files.items():
            file_input = next(
                (el for el in form.find_all(is_file_input) if el.field_name == name),
                None,
            )
            if file_input is not None and not file_input.files:
                form_data[name] = record.to_file()
        return form_data

    def mark_clean(self) -> None:
        self.tracker.mark_clean()

    def mark_dirty(self) -> None:
        self.tracker.mark_dirty()

    def mark_submission_failed(self) -> None:
        self.tracker.mark_submission_failed()

    def begin_submission(self) -> None:
        self.tracker.begin_submission()

    def get_restored_files(self) -> dict[str, FileDraftRecord]:
        return dict(self.restored_files)

    def before_unload(self) -> str | None:
        return self.tracker.before_unload()

    async def navigate_after_success(self, url: str) -> None:
        self.tracker.disarm()
        await self.close()
        self.page.url = url

    async def promote(self, field_name: str) -> UploadResponse | None:
        return await self.engine.promote(field_name)

    async def discard(self, field_name: str) -> None:
        await self.engine.discard(field_name)

    # ── Audit ────────────────────────────────────────────────────────────

    def _record(self, action: str, field_name: str = "", details: dict | None = None) -> None:
        """Append an audit event off the event loop; ``drain`` waits for it."""
        if self.settings.audit_enabled:
            self._spawn(asyncio.to_thread(
                audit_log.log_event, action, field_name, details, self.settings.audit_dir,
            ))
