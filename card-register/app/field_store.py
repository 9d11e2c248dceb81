"""Field Snapshot Store: autosave of plain form fields to local storage.

Every field of every form on the page (minus file inputs and anything that
looks like a password) is written as one JSON document under a single
storage key::

    {
      "<form id or 'default'>": {"company_name": "山田商事", "tech_tools[]": ["", "ielove"]},
      "greetings": [{"title": "...", "content": "..."}]
    }

The nested per-form shape is the only one written. An older flat shape,
where top-level keys are field names, is still accepted on restore and
applied to the first form.
"""

from __future__ import annotations

import asyncio
import json
import logging
import re

from app.groups import DEFAULT_GROUPS, RepeatableGroup
from app.page import Element, Page
from app.status import MESSAGES, StatusIndicator
from shared.local_storage import LocalStorage, StorageUnavailableError

logger = logging.getLogger(__name__)

DEFAULT_FORM_KEY = "default"

# Field names allowed as element-id lookups; anything else is matched by name only
_SAFE_IDENTIFIER = re.compile(r"^[A-Za-z_][A-Za-z0-9_-]*$")

FieldValue = str | list[str] | list[list[str]]


def is_safe_identifier(name: object) -> bool:
    return isinstance(name, str) and bool(_SAFE_IDENTIFIER.match(name))


def is_sensitive_field(el: Element) -> bool:
    """Password inputs, or anything whose name/id mentions a password."""
    return (
        el.type == "password"
        or "password" in el.name.lower()
        or "password" in el.id.lower()
    )


def is_snapshot_field(el: Element) -> bool:
    return (
        el.is_field
        and el.type != "file"
        and not is_sensitive_field(el)
        and bool(el.field_name)
    )


def _field_value(el: Element) -> FieldValue:
    if el.type in ("checkbox", "radio"):
        return el.value if el.checked else ""
    if el.tag == "select" and el.multiple:
        return list(el.selected)
    return el.value


def _apply_value(el: Element, saved: object) -> bool:
    """Write one saved value into *el*. Returns True when it set something."""
    if el.tag == "select" and el.multiple:
        values = saved if isinstance(saved, list) else [saved]
        el.selected = [str(v) for v in values if v]
        return bool(el.selected)

    text = "" if saved is None else str(saved)
    if el.type in ("checkbox", "radio"):
        el.checked = bool(text) and text == el.value
        return el.checked
    el.value = text
    return bool(text)


class FieldSnapshotStore:
    """Serializes the page's fields to local storage and back."""

    def __init__(
        self,
        page: Page,
        storage: LocalStorage,
        storage_key: str,
        status: StatusIndicator | None = None,
        groups: tuple[RepeatableGroup, ...] = DEFAULT_GROUPS,
        saved_notice_delay_ms: int = 300,
    ) -> None:
        self.page = page
        self.storage = storage
        self.storage_key = storage_key
        self.status = status
        self.groups = groups
        self.saved_notice_delay_ms = saved_notice_delay_ms
        self._notice_handle = None
        self.last_snapshot: dict = {}

    # ── Save ─────────────────────────────────────────────────────────────

    def _in_group(self, el: Element) -> bool:
        return any(group.owns(self.page, el) for group in self.groups)

    def build_snapshot(self) -> dict:
        """Collect the current page state in the canonical nested shape."""
        snapshot: dict = {}
        for form in self.page.forms():
            values: dict[str, FieldValue] = snapshot.setdefault(form.id or DEFAULT_FORM_KEY, {})
            collected: dict[str, list] = {}
            for el in form.find_all(is_snapshot_field):
                if self._in_group(el):
                    continue
                collected.setdefault(el.field_name, []).append(_field_value(el))

            for name, found in collected.items():
                # One field keeps its scalar (or multi-select list); a shared
                # name becomes a positional list, nested for multi-selects
                values[name] = found[0] if len(found) == 1 else found

        for group in self.groups:
            if group.container(self.page) is not None:
                snapshot[group.key] = group.read(self.page)
        return snapshot

    def save(self) -> bool:
        """Write the full snapshot. Returns False when storage refused it."""
        snapshot = self.build_snapshot()
        self.last_snapshot = snapshot
        self.cancel_saved_notice()
        try:
            self.storage.set_item(self.storage_key, json.dumps(snapshot, ensure_ascii=False))
        except (StorageUnavailableError, TypeError, ValueError) as e:
            logger.warning("Draft snapshot not saved: %s", e)
            if self.status is not None:
                self.status.show(MESSAGES["save_failed"], "warning")
            return False

        if self.status is not None:
            self.status.show(MESSAGES["saving"], "saving")
            self._schedule_saved_notice()
        return True

    def _schedule_saved_notice(self) -> None:
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            self.status.show(MESSAGES["saved"], "success")
            return
        self._notice_handle = loop.call_later(
            self.saved_notice_delay_ms / 1000, self._show_saved_notice
        )

    def _show_saved_notice(self) -> None:
        self._notice_handle = None
        if self.status is not None:
            self.status.show(MESSAGES["saved"], "success")

    def cancel_saved_notice(self) -> None:
        if self._notice_handle is not None:
            self._notice_handle.cancel()
            self._notice_handle = None

    # ── Restore ──────────────────────────────────────────────────────────

    def load(self) -> dict | None:
        """Return the stored snapshot, or None when absent or unreadable."""
        try:
            raw = self.storage.get_item(self.storage_key)
        except StorageUnavailableError as e:
            logger.warning("Draft snapshot unavailable: %s", e)
            return None
        if not raw:
            return None
        try:
            data = json.loads(raw)
        except (TypeError, ValueError):
            logger.info("Ignoring unparseable draft snapshot")
            return None
        return data if isinstance(data, dict) else None

    def restore(self) -> bool:
        """Populate the page from the stored snapshot.

        Returns True iff at least one field received a non-empty value.
        """
        data = self.load()
        if not data:
            return False

        restored = False
        remaining = dict(data)
        for group in self.groups:
            if group.key not in remaining:
                continue
            entries = remaining.pop(group.key)
            if isinstance(entries, list) and group.populate(self.page, entries):
                restored = True

        forms = self.page.forms()
        if forms:
            for key, value in remaining.items():
                if isinstance(value, dict):
                    target = self._form_for(key, forms)
                    for name, saved in value.items():
                        restored = self._restore_field(target, name, saved) or restored
                else:
                    # Legacy flat shape: the key is the field name
                    restored = self._restore_field(forms[0], key, value) or restored

        return restored

    @staticmethod
    def _form_for(key: str, forms: list[Element]) -> Element:
        for f in forms:
            if f.id and f.id == key:
                return f
        return forms[0]

    def _lookup(self, form: Element, name: object) -> list[Element]:
        if not isinstance(name, str) or not name:
            raise ValueError(f"invalid field name {name!r}")
        found = [el for el in form.find_by_name(name) if el.is_field]
        if not found and is_safe_identifier(name):
            el = form.find_by_id(name)
            if el is not None and el.is_field:
                found = [el]
        return [
            el for el in found
            if el.type != "file" and not is_sensitive_field(el) and not self._in_group(el)
        ]

    def _restore_field(self, form: Element, name: object, saved: object) -> bool:
        try:
            targets = self._lookup(form, name)
        except ValueError as e:
            logger.warning("Skipping draft field: %s", e)
            return False
        if not targets:
            return False

        if isinstance(saved, list) and not (len(targets) == 1 and targets[0].multiple):
            populated = False
            for el, item in zip(targets, saved):
                populated = _apply_value(el, item) or populated
            return populated

        if len(targets) > 1 and all(el.type in ("checkbox", "radio") for el in targets):
            populated = False
            for el in targets:
                populated = _apply_value(el, saved) or populated
            return populated
        return _apply_value(targets[0], saved)

    # ── Clear ────────────────────────────────────────────────────────────

    def clear(self) -> None:
        self.cancel_saved_notice()
        try:
            self.storage.remove_item(self.storage_key)
        except StorageUnavailableError as e:
            logger.warning("Draft snapshot not cleared: %s", e)
