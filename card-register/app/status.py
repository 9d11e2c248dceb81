"""Autosave status indicator shown above the wizard form."""

from __future__ import annotations

import asyncio

from app.page import Element, Page

STATUS_ELEMENT_ID = "auto-save-status"

# Kinds that stay visible until replaced
_STICKY_KINDS = {"saving"}

_HEADER_TAGS = ("h1", "h2")
_HEADER_CLASSES = ("form-header", "step-header")

MESSAGES = {
    "saving": "保存中...",
    "saved": "保存しました",
    "saved_locally": "ローカルに保存しました",
    "save_failed": "保存に失敗しました",
    "restored": "下書きを復元しました",
    "files_restored": "{count}個のファイルを復元しました",
    "file_too_large": "ファイルが大きすぎます（5MB以下）。再読み込み後は再選択が必要です。",
    "file_drafts_unavailable": "ファイルの下書き保存は利用できません",
    "promoted": "ファイルを保存しました",
    "promote_failed": "ファイルのアップロードに失敗しました。もう一度お試しください。",
    "cleared": "保存完了",
}


def _is_form_header(el: Element) -> bool:
    return el.tag in _HEADER_TAGS or any(el.has_class(c) for c in _HEADER_CLASSES)


class StatusIndicator:
    """Owns the ``#auto-save-status`` element and its auto-hide timer."""

    def __init__(self, page: Page, duration_ms: int = 3000) -> None:
        self.page = page
        self.duration_ms = duration_ms
        self._hide_handle: asyncio.TimerHandle | None = None

    @property
    def element(self) -> Element | None:
        return self.page.get_element_by_id(STATUS_ELEMENT_ID)

    @property
    def visible(self) -> bool:
        el = self.element
        return el is not None and not el.hidden

    @property
    def message(self) -> str:
        el = self.element
        return el.text if el is not None else ""

    @property
    def kind(self) -> str:
        el = self.element
        if el is None:
            return ""
        for cls in el.classes:
            if cls.startswith("auto-save-status-"):
                return cls[len("auto-save-status-"):]
        return ""

    def _ensure_element(self) -> Element:
        el = self.element
        if el is not None:
            return el

        el = Element("div", id=STATUS_ELEMENT_ID, classes=["auto-save-status"], hidden=True)
        forms = self.page.forms()
        if forms:
            header = forms[0].find(_is_form_header)
            if header is not None:
                header.insert_after(el)
            else:
                forms[0].insert_first(el)
        else:
            self.page.body.insert_first(el)
        return el

    def show(self, message: str, kind: str = "info") -> None:
        el = self._ensure_element()
        el.text = message
        el.classes = ["auto-save-status", f"auto-save-status-{kind}"]
        el.hidden = False

        self.cancel()
        if kind not in _STICKY_KINDS:
            self._schedule_hide()

    def hide(self) -> None:
        self._hide_handle = None
        el = self.element
        if el is not None:
            el.hidden = True

    def cancel(self) -> None:
        """Drop a pending auto-hide without touching the element."""
        if self._hide_handle is not None:
            self._hide_handle.cancel()
            self._hide_handle = None

    def _schedule_hide(self) -> None:
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            # Outside the event loop the message simply stays up
            return
        self._hide_handle = loop.call_later(self.duration_ms / 1000, self.hide)
